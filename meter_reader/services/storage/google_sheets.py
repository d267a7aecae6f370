"""
Google Sheets Key-Value Store

DESIGN DECISION: Google Sheets is offered as a storage backend because:
1. Non-technical users can open their data directly in Sheets
2. No database setup required
3. Version history comes with the spreadsheet

TRADEOFFS:
- A cell holds at most 50,000 characters, so readings with photos
  can outgrow it; use the JSON backend for photo-heavy histories
- No transactions (each key is one row, rewritten in place)

The worksheet has two columns, `key` and `value`, one row per key.
"""

from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from meter_reader.config import get_settings
from meter_reader.config.settings import GoogleSheetsSettings
from meter_reader.services.storage.interface import (
    KeyValueStore,
    StorageConnectionError,
    StorageError,
)

logger = structlog.get_logger(__name__)

STORE_COLUMNS = ["key", "value"]


class GoogleSheetsClient:
    """
    Owns the gspread session and the key/value worksheet.

    Connecting is retried; the sheet is created on first use.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """Authorize once with the service account and reuse the client."""
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Spreadsheet named by GOOGLE_SHEETS_SPREADSHEET_ID."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_store_sheet(self) -> gspread.Worksheet:
        """Get or create the key/value worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.store_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.store_sheet_name,
                rows=10,
                cols=len(STORE_COLUMNS),
            )
            sheet.append_row(STORE_COLUMNS)
        return sheet


class GoogleSheetsKeyValueStore(KeyValueStore):
    """
    Google Sheets implementation of the key-value store.

    Row 1 is the header; every following row is `key | value`.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find_row(self, rows: list[list[str]], key: str) -> Optional[int]:
        """1-based sheet row index holding `key`, skipping the header."""
        for idx, row in enumerate(rows[1:], start=2):
            if row and row[0] == key:
                return idx
        return None

    def get(self, key: str) -> Optional[str]:
        try:
            rows = self._client.get_store_sheet().get_all_values()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read key {key}: {e}")

        idx = self._find_row(rows, key)
        if idx is None:
            return None
        row = rows[idx - 1]
        return row[1] if len(row) > 1 else ""

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def set(self, key: str, value: str) -> None:
        try:
            sheet = self._client.get_store_sheet()
            rows = sheet.get_all_values()
            idx = self._find_row(rows, key)
            if idx is None:
                sheet.append_row([key, value], value_input_option="RAW")
            else:
                sheet.update_cell(idx, 2, value)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write key {key}: {e}")

        logger.debug("storage_key_written", key=key, backend="google_sheets")
