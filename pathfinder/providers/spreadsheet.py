"""
Spreadsheet Provider

Loads content items from a Google Sheets range. The first row is the
header; every later non-blank row becomes one item keyed by header name.
"""

import logging
import re
from typing import Any, Dict, List

from ..common.schemas import ContentItem
from ..common.sheets_client import SheetsClient, SheetsError
from .base import BaseProvider, ProviderResult

logger = logging.getLogger("pathfinder.providers.spreadsheet")


def normalize_header(name: Any) -> str:
    """'Target  Role ' -> 'target_role'"""
    return re.sub(r"\s+", "_", str(name or "").strip().lower())


def rows_to_items(rows: List[List[Any]]) -> List[ContentItem]:
    """Map sheet rows to items using the first row as the header."""
    if not rows:
        return []

    header = [normalize_header(h) for h in rows[0]]
    items = []
    for row in rows[1:]:
        if not any(str(cell).strip() for cell in row):
            continue

        padded = list(row) + [""] * (len(header) - len(row))
        item = {}
        for key, value in zip(header, padded):
            if not key:
                continue
            item[key] = value.strip() if isinstance(value, str) else value
        items.append(item)
    return items


class SpreadsheetProvider(BaseProvider):
    """
    Provider backed by a spreadsheet range.

    Args:
        client: SheetsClient for the spreadsheet holding the catalog
        range_name: A1 range, e.g. "Catalog!A1:Z"
    """

    def __init__(self, client: SheetsClient, range_name: str = "Catalog"):
        super().__init__("sheets")
        self._client = client
        self._range = range_name

    def load_data(self, config) -> ProviderResult:
        try:
            rows = self._client.get_values(self._range)
        except SheetsError as e:
            logger.warning("Spreadsheet load failed for %s: %s", self._range, e)
            return ProviderResult.failed(str(e), range=self._range)

        if not rows:
            return ProviderResult.failed(f"Sheet range {self._range} is empty", range=self._range)

        items = rows_to_items(rows)
        logger.info("Loaded %d items from %s", len(items), self._range)
        return ProviderResult.ok(items, range=self._range, columns=[normalize_header(h) for h in rows[0]])

    def get_metadata(self) -> Dict[str, Any]:
        meta = super().get_metadata()
        meta.update({"spreadsheet_id": self._client.spreadsheet_id, "range": self._range})
        return meta
