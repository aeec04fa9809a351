"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the default persistent backend because:
1. The owner can view and hand-edit positions directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (a personal portfolio is small)
- No transactions (each save rewrites exactly one row)
- Limited query capabilities (we filter in Python)

One worksheet holds one record kind. The header row is the model's
field list, and every cell holds the JSON-mode value of its field.
"""

import json
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_tracker.config import GoogleSheetsSettings, get_settings
from finance_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    RecordStore,
    RecordT,
    StorageConnectionError,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet creation.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

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
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet whose first row is the given header."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


class GoogleSheetsRecordStore(RecordStore[RecordT]):
    """
    Google Sheets implementation of a record store.

    Records are stored one per row, identified by the `id` column.
    """

    def __init__(
        self,
        model_cls: type[RecordT],
        sheet_name: str,
        client: Optional[GoogleSheetsClient] = None,
    ):
        self._model_cls = model_cls
        self._sheet_name = sheet_name
        self._client = client or GoogleSheetsClient()
        self._columns = list(model_cls.model_fields)

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._sheet_name, self._columns)

    def _record_to_row(self, record: RecordT) -> list[str]:
        """Convert a record to a spreadsheet row."""
        data = record.model_dump(mode="json")
        row = []
        for column in self._columns:
            value = data.get(column)
            row.append("" if value is None else str(value))
        return row

    def _row_to_record(self, row: list) -> RecordT:
        """Convert a spreadsheet row to a record; blank cells fall back to model defaults."""
        data: dict[str, Any] = {}
        for column, value in zip(self._columns, row):
            if value != "":
                data[column] = value
        return self._model_cls.model_validate(data)

    async def load_all(self) -> list[RecordT]:
        try:
            all_rows = self._sheet().get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to load {self._sheet_name}: {e}")

        records = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                records.append(self._row_to_record(row))
            except Exception as e:
                logger.warning(
                    "sheets_row_skipped",
                    sheet=self._sheet_name,
                    row_id=row[0],
                    error=str(e),
                )
        return records

    async def load_by_id(self, record_id: UUID) -> Optional[RecordT]:
        try:
            all_rows = self._sheet().get_all_values()[1:]
            for row in all_rows:
                if row and row[0] == str(record_id):
                    return self._row_to_record(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get record from {self._sheet_name}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save(self, record: RecordT) -> RecordT:
        try:
            sheet = self._sheet()
            new_row = self._record_to_row(record)
            all_rows = sheet.get_all_values()

            # Row 1 is the header
            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == str(record.id):
                    sheet.update(range_name=f"A{idx}", values=[new_row])
                    return record

            sheet.append_row(new_row, value_input_option="RAW")
            return record
        except Exception as e:
            raise StorageError(f"Failed to save record to {self._sheet_name}: {e}")

    async def delete(self, record_id: UUID) -> bool:
        try:
            sheet = self._sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == str(record_id):
                    sheet.delete_rows(idx)
                    return True

            return False
        except Exception as e:
            raise StorageError(f"Failed to delete record from {self._sheet_name}: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(
            self._client.settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        self._sheet().append_row(event.to_sheets_row(), value_input_option="RAW")
        return True

    async def _all_events(self) -> list[AuditEvent]:
        try:
            all_rows = self._sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue  # Skip malformed rows
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [
            e for e in await self._all_events()
            if e.correlation_id == correlation_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = await self._all_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
