"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets can serve as the collection store because:
1. Users can view their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions and no server-side expressions (increment is a
  read-modify-write inside this process)
- No push channel: the change feed only carries writes made through
  this process
- Limited query capabilities (we filter and sort in Python)

The implementation follows the abstract interface, so we can swap
to a hosted database later without changing the sync engines.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import uuid4

import gspread
from gspread.utils import rowcol_to_a1
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from subly.config import get_settings
from subly.models.events import DeleteEvent, InsertEvent, UpdateEvent
from subly.services.storage.interface import (
    SERVER_TIMESTAMP_FIELDS,
    ChangeListener,
    ChangeSubscription,
    CollectionStore,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)
from subly.services.storage.local_feed import LocalChangeFeed


# Column layout of each worksheet. One worksheet per table.
TABLE_COLUMNS: dict[str, list[str]] = {
    "subscriptions": [
        "id", "user_id", "service_name", "cost", "renewal_date",
        "billing_cycle", "category", "notes", "is_active",
        "created_at", "updated_at",
    ],
    "documents": [
        "id", "user_id", "title", "category", "file_url", "file_name",
        "file_size", "tags", "storage_path", "upload_date",
    ],
    "budgets": [
        "id", "user_id", "category", "monthly_limit", "current_spending",
        "alert_threshold", "is_active", "created_at", "updated_at",
    ],
    "goals": [
        "id", "user_id", "name", "target_amount", "current_amount",
        "start_date", "end_date", "contribution_frequency", "is_active",
        "created_at", "updated_at",
    ],
    "transactions": [
        "id", "user_id", "budget_id", "goal_id", "amount", "description",
        "category", "transaction_type", "transaction_date", "created_at",
    ],
    "profiles": [
        "id", "email", "full_name", "created_at", "updated_at",
    ],
    "audit_log": [
        "event_id", "timestamp", "event_type", "severity", "user_id",
        "table", "entity_id", "correlation_id", "description", "details",
        "error_message",
    ],
}

_write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type((NotFoundError, DuplicateError)),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
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
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_table_sheet(self, table: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a table."""
        if table not in TABLE_COLUMNS:
            raise StorageError(f"Unknown table: {table}")

        if table not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(table)
            except gspread.WorksheetNotFound:
                # Create the sheet with headers
                sheet = spreadsheet.add_worksheet(
                    title=table,
                    rows=1000,
                    cols=len(TABLE_COLUMNS[table]),
                )
                sheet.append_row(TABLE_COLUMNS[table])
            self._worksheets[table] = sheet
        return self._worksheets[table]


class GoogleSheetsCollectionStore(CollectionStore):
    """
    Google Sheets implementation of the collection store.

    Each row of a worksheet is one entity. Every cell holds the JSON
    encoding of its value, so numbers, booleans, nulls and tag lists
    survive the round trip unchanged.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._feed = LocalChangeFeed()

    def _row_to_cells(self, table: str, row: dict) -> list:
        """Convert a row dict to spreadsheet cells."""
        return [json.dumps(row.get(column)) for column in TABLE_COLUMNS[table]]

    def _cells_to_row(self, table: str, cells: list) -> dict:
        """Convert spreadsheet cells to a row dict."""
        row = {}
        for index, column in enumerate(TABLE_COLUMNS[table]):
            try:
                raw = cells[index]
            except IndexError:
                raw = ""
            row[column] = json.loads(raw) if raw else None
        return row

    def _read_all(self, table: str) -> list[tuple[int, dict]]:
        """All (sheet_row_number, row) pairs of a table, header skipped."""
        sheet = self._client.get_table_sheet(table)
        result = []
        # Start from 2 (row 1 is header)
        for number, cells in enumerate(sheet.get_all_values()[1:], start=2):
            if not cells or not cells[0]:
                continue
            try:
                result.append((number, self._cells_to_row(table, cells)))
            except ValueError:
                continue  # Skip malformed rows
        return result

    def _find(self, table: str, row_id: str) -> tuple[int, dict]:
        key = "event_id" if table == "audit_log" else "id"
        for number, row in self._read_all(table):
            if row.get(key) == row_id:
                return number, row
        raise NotFoundError(f"{table} row not found: {row_id}")

    def _exists(self, table: str, row_id: str) -> bool:
        try:
            self._find(table, row_id)
        except NotFoundError:
            return False
        return True

    def _write_row(self, table: str, number: int, row: dict) -> None:
        sheet = self._client.get_table_sheet(table)
        cells = self._row_to_cells(table, row)
        end_column = rowcol_to_a1(number, len(cells))
        sheet.update(
            range_name=f"A{number}:{end_column}",
            values=[cells],
            value_input_option="RAW",
        )

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
    ) -> list[dict]:
        """Query rows of a table, filtered and sorted in Python."""
        filters = filters or {}
        try:
            rows = [
                row for _, row in self._read_all(table)
                if all(row.get(column) == value for column, value in filters.items())
            ]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to query {table}: {e}")

        if order_by:
            rows.sort(
                key=lambda row: (row.get(order_by) is None, row.get(order_by)),
                reverse=not ascending,
            )
        return rows

    @_write_retry
    async def insert(self, table: str, row: dict) -> dict:
        """Append a row, filling in id and server timestamps."""
        stored = dict(row)
        if table != "audit_log":
            if stored.get("id") is None:
                stored["id"] = str(uuid4())
            elif self._exists(table, stored["id"]):
                raise DuplicateError(f"{table} row already exists: {stored['id']}")
        timestamp = datetime.now(timezone.utc).isoformat()
        for field in SERVER_TIMESTAMP_FIELDS.get(table, ()):
            stored[field] = timestamp

        try:
            sheet = self._client.get_table_sheet(table)
            sheet.append_row(self._row_to_cells(table, stored), value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert into {table}: {e}")

        self._feed.publish(InsertEvent(table=table, new=dict(stored)))
        return stored

    @_write_retry
    async def update(self, table: str, row_id: str, fields: dict) -> dict:
        """Apply a partial update to one row."""
        try:
            number, current = self._find(table, row_id)
            updated = {**current, **fields, "id": row_id}
            if "updated_at" in SERVER_TIMESTAMP_FIELDS.get(table, ()):
                updated["updated_at"] = datetime.now(timezone.utc).isoformat()
            self._write_row(table, number, updated)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {table} row {row_id}: {e}")

        self._feed.publish(UpdateEvent(table=table, new=dict(updated), old=current))
        return updated

    @_write_retry
    async def delete(self, table: str, row_id: str) -> None:
        """Delete one row."""
        try:
            number, current = self._find(table, row_id)
            self._client.get_table_sheet(table).delete_rows(number)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {table} row {row_id}: {e}")

        self._feed.publish(DeleteEvent(table=table, old=current))

    @_write_retry
    async def increment(
        self,
        table: str,
        row_id: str,
        field: str,
        delta: Any,
    ) -> dict:
        """
        Add delta to a numeric column.

        Sheets cannot evaluate this server-side, so the current value is
        re-read from the sheet immediately before the write rather than
        taken from any caller's cache.
        """
        try:
            number, current = self._find(table, row_id)
            base = Decimal(str(current.get(field) or 0))
            updated = {**current, field: str(base + Decimal(str(delta)))}
            if "updated_at" in SERVER_TIMESTAMP_FIELDS.get(table, ()):
                updated["updated_at"] = datetime.now(timezone.utc).isoformat()
            self._write_row(table, number, updated)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to increment {table}.{field}: {e}")

        self._feed.publish(UpdateEvent(table=table, new=dict(updated), old=current))
        return updated

    def subscribe(self, table: str, listener: ChangeListener) -> ChangeSubscription:
        return self._feed.subscribe(table, listener)

    async def flush(self) -> None:
        """Wait until change events of writes made so far are delivered."""
        await self._feed.flush()
