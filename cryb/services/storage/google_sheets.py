"""
Google Sheets Storage Implementation

A spreadsheet can stand in for the hosted database:
1. Non-technical housemates can read the data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (fine for one household)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter and sort in Python)
- No row-level security: anyone with the sheet sees everything

One worksheet per table, one row per record. Every cell holds the
JSON encoding of its value so types survive the round trip; an empty
cell is NULL.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional, Sequence
from uuid import uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from cryb.config import GoogleSheetsSettings, get_settings
from cryb.services.storage.interface import (
    CHORES_TABLE,
    EXPENSES_TABLE,
    HOUSES_TABLE,
    NOTES_TABLE,
    USERS_TABLE,
    BackendError,
    ConflictError,
    Filters,
    NetworkError,
    Order,
    Row,
    TableBackend,
)
from cryb.services.storage.local_auth import ACCOUNTS_TABLE
from cryb.services.storage.query import apply_query, matches, normalize


# Column layout per worksheet (header row)
TABLE_COLUMNS = {
    USERS_TABLE: ["id", "email", "display_name", "house_id", "created_at"],
    HOUSES_TABLE: ["id", "name", "code", "created_at", "created_by"],
    CHORES_TABLE: [
        "id",
        "title",
        "description",
        "due_date",
        "is_completed",
        "assigned_user_id",
        "house_id",
        "created_by",
        "created_at",
        "recurrence",
        "points",
    ],
    EXPENSES_TABLE: [
        "id",
        "title",
        "amount",
        "description",
        "paid_by",
        "house_id",
        "created_at",
        "category",
        "shared_with",
    ],
    NOTES_TABLE: [
        "id",
        "title",
        "content",
        "house_id",
        "created_by",
        "created_at",
        "is_pinned",
        "tags",
    ],
    ACCOUNTS_TABLE: ["id", "email", "password_hash", "user_metadata", "created_at"],
}

UNIQUE_COLUMNS = {
    HOUSES_TABLE: ("code",),
    USERS_TABLE: ("id",),
    ACCOUNTS_TABLE: ("email",),
}


def _json_default(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def encode_cell(value: Any) -> str:
    if value is None:
        return ""
    return json.dumps(normalize(value), default=_json_default)


def decode_cell(cell: str) -> Any:
    if cell == "":
        return None
    try:
        return json.loads(cell)
    except ValueError:
        # Hand-edited cell
        return cell


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet bootstrap.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets
        self._worksheets: dict[str, gspread.Worksheet] = {}

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
                raise NetworkError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise NetworkError(f"Failed to connect to Google Sheets: {e}")

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
                raise NetworkError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_table_sheet(self, table: str) -> gspread.Worksheet:
        """Get or create the worksheet for a table."""
        if table in self._worksheets:
            return self._worksheets[table]

        columns = TABLE_COLUMNS.get(table)
        if columns is None:
            raise BackendError(f"Unknown table: {table}")

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(table)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=table,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        self._worksheets[table] = sheet
        return sheet


class GoogleSheetsTableBackend(TableBackend):
    """
    Google Sheets implementation of the table interface.

    Reads fetch the whole worksheet; writes touch single rows.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._logger = structlog.get_logger(__name__)

    @staticmethod
    def _columns(table: str) -> list[str]:
        return TABLE_COLUMNS[table]

    def _row_to_cells(self, table: str, row: Row) -> list[str]:
        return [encode_cell(row.get(column)) for column in self._columns(table)]

    def _cells_to_row(self, table: str, cells: list[str]) -> Row:
        # Handle short rows (trailing empty cells are dropped by the API)
        row = {}
        for index, column in enumerate(self._columns(table)):
            row[column] = decode_cell(cells[index]) if index < len(cells) else None
        return row

    def _read_all(self, table: str) -> list[tuple[int, Row]]:
        """All data rows with their 1-based sheet row numbers."""
        try:
            sheet = self._client.get_table_sheet(table)
            values = sheet.get_all_values()
        except gspread.exceptions.APIError as e:
            raise NetworkError(f"Failed to read {table}: {e}")

        rows = []
        for number, cells in enumerate(values[1:], start=2):  # Row 1 is header
            if not cells or not cells[0]:  # Skip empty rows
                continue
            rows.append((number, self._cells_to_row(table, cells)))
        return rows

    def _check_unique(self, table: str, row: Row, existing: list[tuple[int, Row]], skip: Optional[int] = None) -> None:
        for column in UNIQUE_COLUMNS.get(table, ()):
            value = normalize(row.get(column))
            if value is None:
                continue
            for number, other in existing:
                if number != skip and normalize(other.get(column)) == value:
                    raise ConflictError(
                        f"{table}.{column} already exists",
                        code="unique_violation",
                    )

    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
    ) -> list[Row]:
        rows = [row for _, row in self._read_all(table)]
        return apply_query(rows, filters, order, limit)

    async def insert(self, table: str, row: Row) -> Row:
        stored = {k: normalize(v) for k, v in row.items()}
        stored.setdefault("id", str(uuid4()))
        stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())

        self._check_unique(table, stored, self._read_all(table))

        try:
            sheet = self._client.get_table_sheet(table)
            sheet.append_row(self._row_to_cells(table, stored), value_input_option="RAW")
        except gspread.exceptions.APIError as e:
            raise NetworkError(f"Failed to insert into {table}: {e}")
        return self._cells_to_row(table, self._row_to_cells(table, stored))

    async def update(self, table: str, values: Row, filters: Filters) -> list[Row]:
        existing = self._read_all(table)
        sheet = self._client.get_table_sheet(table)

        updated = []
        for number, row in existing:
            if not matches(row, filters):
                continue
            new_row = {**row, **{k: normalize(v) for k, v in values.items()}}
            self._check_unique(table, new_row, existing, skip=number)

            cells = self._row_to_cells(table, new_row)
            last_column = gspread.utils.rowcol_to_a1(number, len(cells))
            try:
                sheet.update(
                    range_name=f"A{number}:{last_column}",
                    values=[cells],
                    value_input_option="RAW",
                )
            except gspread.exceptions.APIError as e:
                raise NetworkError(f"Failed to update {table}: {e}")
            updated.append(self._cells_to_row(table, cells))
        return updated

    async def delete(self, table: str, filters: Filters) -> int:
        doomed = [number for number, row in self._read_all(table) if matches(row, filters)]
        sheet = self._client.get_table_sheet(table)

        # Bottom-up so earlier row numbers stay valid
        for number in sorted(doomed, reverse=True):
            try:
                sheet.delete_rows(number)
            except gspread.exceptions.APIError as e:
                raise NetworkError(f"Failed to delete from {table}: {e}")
        if doomed:
            self._logger.info("sheet_rows_deleted", table=table, count=len(doomed))
        return len(doomed)
