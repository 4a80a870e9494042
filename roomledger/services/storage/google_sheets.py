"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the shared household backend because:
1. Every roommate can look at the ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (a household ledger is small)
- No transactions: compare-and-swap on status writes is a read-check-write,
  so it narrows the race window rather than closing it
- Limited query capabilities (we filter in Python)

Rows are read leniently. A bad date becomes None and the row is kept; a row
whose amount or status can't be read is skipped with a warning.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import gspread
import structlog
from gspread.utils import rowcol_to_a1
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from roomledger.approval import InvalidStatusError, set_status
from roomledger.config import get_settings
from roomledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from roomledger.models.expense import Expense, Member, parse_timestamp
from roomledger.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    ConnectionError,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "room_id",
    "description",
    "amount",
    "category",
    "date",
    "added_by",
    "status",
    "approved_by",
    "approved_at",
    "version",
    "created_at",
]

# Column mappings for Members sheet
MEMBER_COLUMNS = [
    "id",
    "room_id",
    "name",
    "is_manager",
    "created_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "actor_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Missing trailing cells read as empty."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
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

    def _get_or_create(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the Expenses worksheet."""
        return self._get_or_create(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)

    def get_members_sheet(self) -> gspread.Worksheet:
        """Get or create the Members worksheet."""
        return self._get_or_create(self._settings.members_sheet_name, MEMBER_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        # More rows for audit log
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """
    Google Sheets implementation of the ledger store.

    One expense per row on the Expenses sheet, one member per row on the
    Members sheet.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # ----- row mapping -----

    @staticmethod
    def _expense_to_row(expense: Expense) -> list:
        """Convert an Expense to a spreadsheet row."""
        return [
            expense.id,
            expense.room_id,
            expense.description,
            str(expense.amount),
            expense.category,
            expense.date.isoformat() if expense.date else "",
            expense.added_by,
            expense.status.value,
            expense.approved_by or "",
            expense.approved_at.isoformat() if expense.approved_at else "",
            str(expense.version),
            expense.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_expense(row: list) -> Expense:
        """
        Convert a spreadsheet row to an Expense.

        The date cell goes through the lenient parser, so a typo made by
        hand in the sheet yields date=None instead of an error.
        """
        created_at = parse_timestamp(_safe_get(row, 11))
        return Expense(
            id=_safe_get(row, 0),
            room_id=_safe_get(row, 1),
            description=_safe_get(row, 2),
            amount=Decimal(_safe_get(row, 3)),
            category=_safe_get(row, 4),
            date=_safe_get(row, 5) or None,
            added_by=_safe_get(row, 6),
            status=_safe_get(row, 7, "pending").strip().lower(),
            approved_by=_safe_get(row, 8) or None,
            approved_at=_safe_get(row, 9) or None,
            version=int(_safe_get(row, 10, "0")),
            created_at=created_at or datetime(1970, 1, 1),
        )

    @staticmethod
    def _member_to_row(member: Member) -> list:
        return [
            member.id,
            member.room_id,
            member.name,
            str(member.is_manager),
            member.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_member(row: list) -> Member:
        created_at = parse_timestamp(_safe_get(row, 4))
        return Member(
            id=_safe_get(row, 0),
            room_id=_safe_get(row, 1),
            name=_safe_get(row, 2),
            is_manager=_safe_get(row, 3).lower() == "true",
            created_at=created_at or datetime(1970, 1, 1),
        )

    # ----- raw sheet access -----

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_rows(self, sheet: gspread.Worksheet) -> list[list]:
        """All rows including the header."""
        return sheet.get_all_values()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_row(self, sheet: gspread.Worksheet, row: list) -> None:
        sheet.append_row(row, value_input_option="RAW")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _write_row(self, sheet: gspread.Worksheet, index: int, row: list) -> None:
        """Overwrite row `index` (1-based, header is row 1)."""
        cell_range = f"A{index}:{rowcol_to_a1(index, len(row))}"
        sheet.update(range_name=cell_range, values=[row], value_input_option="RAW")

    # ----- interface -----

    async def list_expenses(self, room_id: str) -> list[Expense]:
        """List a room's expenses in sheet order."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = self._read_rows(sheet)[1:]  # Skip header
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

        expenses = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            if _safe_get(row, 1) != room_id:
                continue
            try:
                expenses.append(self._row_to_expense(row))
            except (ValueError, ArithmeticError) as e:
                logger.warning(
                    "expense_row_skipped",
                    expense_id=row[0],
                    error=str(e),
                )
        return expenses

    async def list_members(self, room_id: str) -> list[Member]:
        try:
            sheet = self._client.get_members_sheet()
            all_rows = self._read_rows(sheet)[1:]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list members: {e}")

        members = []
        for row in all_rows:
            if not row or not row[0] or _safe_get(row, 1) != room_id:
                continue
            try:
                members.append(self._row_to_member(row))
            except ValueError as e:
                logger.warning("member_row_skipped", member_id=row[0], error=str(e))
        return members

    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        """Retrieve an expense by its ID."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = self._read_rows(sheet)[1:]

            for row in all_rows:
                if row and row[0] == expense_id:
                    return self._row_to_expense(row)

            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")

    async def create_expense(
        self,
        room_id: str,
        description: str,
        amount: Decimal,
        category: str,
        date: datetime,
        added_by: str,
    ) -> Expense:
        """Append a new pending expense to the Expenses sheet."""
        expense = Expense(
            room_id=room_id,
            description=description,
            amount=amount,
            category=category,
            date=date,
            added_by=added_by,
        )
        try:
            sheet = self._client.get_expenses_sheet()
            self._append_row(sheet, self._expense_to_row(expense))
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")
        return expense

    async def update_expense_status(
        self,
        expense_id: str,
        status: Any,
        approver_id: Optional[str] = None,
        *,
        expected_version: Optional[int] = None,
    ) -> Expense:
        """Rewrite the expense row with the new status and version."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = self._read_rows(sheet)

            # Start from 2 (row 1 is header)
            for idx, row in enumerate(all_rows[1:], start=2):
                if not row or row[0] != expense_id:
                    continue

                current = self._row_to_expense(row)
                if expected_version is not None and current.version != expected_version:
                    raise ConflictError(expense_id, expected_version, current.version)

                updated = set_status(current, status, approver_id)
                updated = updated.model_copy(update={"version": current.version + 1})
                self._write_row(sheet, idx, self._expense_to_row(updated))
                return updated

            raise NotFoundError(f"Expense not found: {expense_id}")
        except (StorageError, InvalidStatusError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to update expense: {e}")

    async def create_member(
        self,
        room_id: str,
        name: str,
        is_manager: bool = False,
    ) -> Member:
        member = Member(room_id=room_id, name=name, is_manager=is_manager)
        try:
            sheet = self._client.get_members_sheet()
            self._append_row(sheet, self._member_to_row(member))
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save member: {e}")
        return member


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _row_to_event(row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            correlation_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            actor_id=_safe_get(row, 7) or None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(ConnectionError),
        reraise=True,
    )
    def _append_row(self, row: list) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(row, value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._append_row(event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_event_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    def _read_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, KeyError) as e:
                logger.warning("audit_row_skipped", event_id=row[0], error=str(e))
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == str(entity_id)
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        events = self._read_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
