"""
Session Logging

Append-only sinks for SessionRecords.

- SpreadsheetSessionLogger: one row per run in a Google Sheet
- ConsoleSessionLogger: one JSON line per run through ``logging``
"""

import json
import logging
from typing import Optional

from ..common.errors import LoggingError
from ..common.schemas import SESSION_LOG_COLUMNS, SessionRecord
from ..common.sheets_client import SheetsClient, SheetsError

logger = logging.getLogger("pathfinder.delivery.session_log")


class SpreadsheetSessionLogger:
    """Appends records to a sheet, creating it with a header row on first use."""

    def __init__(self, client: SheetsClient, sheet_name: str = "SessionLog"):
        self._client = client
        self._sheet_name = sheet_name
        self._sheet_ready = False

    @property
    def sheet_name(self) -> str:
        return self._sheet_name

    def log(self, record: SessionRecord) -> None:
        """
        Raises:
            LoggingError: the sheet could not be created or appended to
        """
        try:
            if not self._sheet_ready:
                self._client.ensure_sheet(self._sheet_name, SESSION_LOG_COLUMNS)
                self._sheet_ready = True
            self._client.append_row(self._sheet_name, record.to_row())
        except SheetsError as e:
            raise LoggingError(str(e), stage="log") from e
        logger.debug("Logged session %s to sheet %s", record.session_id, self._sheet_name)


class ConsoleSessionLogger:
    """Emits each record as a JSON object on the session logger."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logging.getLogger("pathfinder.sessions")

    def log(self, record: SessionRecord) -> None:
        payload = dict(zip(SESSION_LOG_COLUMNS, record.to_row()))
        self._log.info(json.dumps(payload, ensure_ascii=False, default=str))


def create_session_logger(config, credentials):
    """
    Spreadsheet logger when storage credentials exist, console logger otherwise.

    Returns None when session logging is disabled.
    """
    if not config.logging.enabled:
        return None
    if credentials.storage_id:
        client = SheetsClient(credentials.storage_id, access_token=credentials.storage_token)
        logger.info("Session log: spreadsheet %s (sheet %s)", credentials.storage_id, config.logging.sheet_name)
        return SpreadsheetSessionLogger(client, sheet_name=config.logging.sheet_name)
    logger.info("Session log: console (no spreadsheet configured)")
    return ConsoleSessionLogger()
