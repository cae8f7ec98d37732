"""
Google Sheets Client

Thin synchronous wrapper over the Sheets v4 REST "values" API, shared by the
spreadsheet data provider and the spreadsheet session logger.
"""

import logging
from typing import Any, List, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger("pathfinder.common.sheets_client")

SHEETS_API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"


class SheetsError(Exception):
    """Error talking to the Sheets API."""
    pass


class SheetsClient:
    """
    Minimal Sheets API client.

    Usage:
        client = SheetsClient(spreadsheet_id="1AbC...", access_token="ya29...")
        rows = client.get_values("Catalog!A1:Z")
        client.append_row("SessionLog", ["2026-01-01T00:00:00", "sess_..."])
    """

    def __init__(
        self,
        spreadsheet_id: str,
        access_token: str = "",
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        if not spreadsheet_id:
            raise ValueError("spreadsheet_id is required")
        self.spreadsheet_id = spreadsheet_id
        self.timeout = timeout
        self._base_url = f"{SHEETS_API_BASE}/{spreadsheet_id}"
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
        self._http = http_client or httpx.Client(headers=headers, timeout=timeout)

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._http.request(method, self._base_url + path, **kwargs)
        except httpx.HTTPError as e:
            raise SheetsError(f"Sheets request failed: {e}") from e
        if response.status_code >= 400:
            raise SheetsError(f"Sheets API error {response.status_code}: {response.text[:200]}")
        return response.json() if response.content else {}

    def get_values(self, range_name: str) -> List[List[Any]]:
        """Read a range; rows come back ragged, trailing blanks omitted."""
        data = self._request("GET", f"/values/{quote(range_name, safe='!:')}")
        return data.get("values", [])

    def append_row(self, sheet_name: str, row: List[Any]) -> dict:
        return self._request(
            "POST",
            f"/values/{quote(sheet_name, safe='')}:append",
            params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
            json={"values": [row]},
        )

    def sheet_titles(self) -> List[str]:
        data = self._request("GET", "", params={"fields": "sheets.properties.title"})
        return [s.get("properties", {}).get("title", "") for s in data.get("sheets", [])]

    def ensure_sheet(self, sheet_name: str, header: List[str]) -> bool:
        """Create the sheet with a header row if missing. Returns True if created."""
        if sheet_name in self.sheet_titles():
            return False

        self._request(
            "POST",
            ":batchUpdate",
            json={"requests": [{"addSheet": {"properties": {"title": sheet_name}}}]},
        )
        self.append_row(sheet_name, list(header))
        logger.info("Created sheet %s with %d columns", sheet_name, len(header))
        return True

    def close(self) -> None:
        self._http.close()
