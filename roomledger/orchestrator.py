"""
Main Orchestrator for Room Ledger

This module ties the pure core to storage and auditing, and defines the
flows for:
1. Ledger writes (join a room, log an expense, approve/reject/re-open)
2. Reports (settlement, analytics, ledger health)

DESIGN DECISION: The orchestrator enforces the boundaries the core leaves
open:
- Only a room manager may change an expense's status
- Status writes carry the version that was read (no silent lost updates)
- Every write and every report is audited

The core modules stay pure; everything with side effects lives here.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog

from roomledger.analytics import compute_analytics
from roomledger.approval import (
    InvalidStatusError,
    TransitionNotAllowedError,
    compute_approval,
    parse_status,
)
from roomledger.audit import AuditLogger, create_correlation_id
from roomledger.config import AppSettings, get_settings
from roomledger.models import (
    AnalyticsReport,
    AnalyticsWindow,
    Expense,
    ExpenseDraft,
    Member,
    PairwiseBalance,
    SettlementReport,
    ValidationResult,
)
from roomledger.services.storage import (
    ConflictError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)
from roomledger.settlement import compute_settlement, pairwise_balance
from roomledger.validation import LedgerValidator


logger = structlog.get_logger(__name__)


class ApprovalDeniedError(Exception):
    """The acting member may not change this expense's status."""

    def __init__(self, expense_id: str, member_id: Optional[str]):
        self.expense_id = expense_id
        self.member_id = member_id
        super().__init__(
            f"Member {member_id!r} is not a manager of the room for expense {expense_id}"
        )


class _StoreFlow:
    """Store access shared by the flows."""

    _store: LedgerStoreInterface
    _audit_logger: Optional[AuditLogger]

    async def _from_store(
        self,
        operation: str,
        *args: Any,
        correlation_id: UUID,
        **kwargs: Any,
    ) -> Any:
        """
        Call a store method, auditing failures before re-raising them.

        NotFoundError and ConflictError are outcomes the flows handle
        themselves, so they pass through untouched.
        """
        try:
            return await getattr(self._store, operation)(*args, **kwargs)
        except (NotFoundError, ConflictError):
            raise
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation=operation,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"operation": operation},
                    correlation_id=correlation_id,
                )
            raise


class LedgerFlow(_StoreFlow):
    """
    Orchestrates writes to a room's ledger.

    Flow for a status change:
    1. Parse → reject unknown statuses before touching storage
    2. Load → fetch the expense and its version
    3. Authorize → the actor must manage the expense's room
    4. Check → run the state machine (strict table if configured)
    5. Persist → compare-and-swap on the version read in step 2
    6. Audit → record who did what, or why it was refused
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    async def add_member(
        self,
        room_id: str,
        name: str,
        is_manager: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> Member:
        """
        Add a roommate.

        The first member of a room always becomes its manager.
        """
        correlation_id = correlation_id or create_correlation_id()

        existing = await self._from_store("list_members", room_id, correlation_id=correlation_id)
        if not existing:
            is_manager = True

        member = await self._from_store(
            "create_member", room_id, name, is_manager=is_manager, correlation_id=correlation_id
        )

        if self._audit_logger:
            await self._audit_logger.log_member_added(
                member_id=member.id,
                room_id=room_id,
                name=member.name,
                is_manager=member.is_manager,
                correlation_id=correlation_id,
            )

        return member

    async def add_expense(
        self,
        room_id: str,
        draft: ExpenseDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """Log a new expense. It starts out pending."""
        correlation_id = correlation_id or create_correlation_id()

        expense = await self._from_store(
            "create_expense",
            room_id=room_id,
            description=draft.description,
            amount=draft.amount,
            category=draft.category,
            date=draft.date,
            added_by=draft.added_by,
            correlation_id=correlation_id,
        )

        if self._audit_logger:
            await self._audit_logger.log_expense_created(
                expense_id=expense.id,
                room_id=room_id,
                added_by=expense.added_by,
                amount=str(expense.amount),
                category=expense.category,
                correlation_id=correlation_id,
            )

        return expense

    async def _refuse(
        self,
        expense_id: str,
        requested: Any,
        actor_id: Optional[str],
        error: Exception,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_status_change_rejected(
                expense_id=expense_id,
                requested_status=str(getattr(requested, "value", requested)),
                actor_id=actor_id,
                reason=str(error),
                correlation_id=correlation_id,
            )

    async def change_status(
        self,
        expense_id: str,
        new_status: Any,
        acting_member_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Approve, reject or re-open an expense.

        Raises:
            InvalidStatusError: new_status is not a valid status
            NotFoundError: The expense doesn't exist
            ApprovalDeniedError: The actor is not a manager of the room
            TransitionNotAllowedError: Strict mode refused the transition
            ConflictError: Someone else changed the expense meanwhile
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            target = parse_status(new_status)
        except InvalidStatusError as e:
            await self._refuse(expense_id, new_status, acting_member_id, e, correlation_id)
            raise

        expense = await self._from_store("get_expense", expense_id, correlation_id=correlation_id)
        if expense is None:
            error = NotFoundError(f"Expense not found: {expense_id}")
            await self._refuse(expense_id, target, acting_member_id, error, correlation_id)
            raise error

        if self._settings.require_manager_approval:
            members = await self._from_store(
                "list_members", expense.room_id, correlation_id=correlation_id
            )
            actor = next((m for m in members if m.id == acting_member_id), None)
            if actor is None or not actor.is_manager:
                error = ApprovalDeniedError(expense_id, acting_member_id)
                await self._refuse(expense_id, target, acting_member_id, error, correlation_id)
                raise error

        try:
            compute_approval(
                expense,
                target,
                acting_member_id,
                strict=self._settings.strict_transitions,
            )
        except TransitionNotAllowedError as e:
            await self._refuse(expense_id, target, acting_member_id, e, correlation_id)
            raise

        try:
            updated = await self._from_store(
                "update_expense_status",
                expense_id,
                target,
                acting_member_id,
                expected_version=expense.version,
                correlation_id=correlation_id,
            )
        except ConflictError as e:
            logger.warning(
                "status_change_conflict",
                expense_id=expense_id,
                expected_version=e.expected_version,
                actual_version=e.actual_version,
            )
            await self._refuse(expense_id, target, acting_member_id, e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_status_changed(
                expense_id=expense_id,
                previous_status=expense.status.value,
                new_status=updated.status.value,
                actor_id=acting_member_id,
                version=updated.version,
                correlation_id=correlation_id,
            )

        return updated


class ReportFlow(_StoreFlow):
    """
    Orchestrates read-only reports over a room snapshot.

    Every report reads the full snapshot and recomputes from scratch.
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
        validator: Optional[LedgerValidator] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app
        self._validator = validator or LedgerValidator(self._settings)

    async def settlement(
        self,
        room_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementReport:
        """Who owes whom under an equal split."""
        correlation_id = correlation_id or create_correlation_id()

        expenses = await self._from_store("list_expenses", room_id, correlation_id=correlation_id)
        members = await self._from_store("list_members", room_id, correlation_id=correlation_id)
        report = compute_settlement(expenses, members)

        if self._audit_logger:
            await self._audit_logger.log_settlement_computed(
                room_id=room_id,
                member_count=report.member_count,
                total_approved=str(report.total_approved),
                correlation_id=correlation_id,
            )

        return report

    async def settlement_summary(
        self,
        room_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> list[str]:
        """
        One line per member, with display names resolved.

        e.g. 'Alice: Will receive: $22.75'
        """
        correlation_id = correlation_id or create_correlation_id()

        report = await self.settlement(room_id, correlation_id)
        members = await self._from_store("list_members", room_id, correlation_id=correlation_id)
        names = {m.id: m.name for m in members}
        symbol = self._settings.currency_symbol

        return [
            f"{names.get(b.member_id, b.member_id)}: {b.describe(symbol)}"
            for b in report.per_member
        ]

    async def pairwise(
        self,
        room_id: str,
        member_a: str,
        member_b: str,
        correlation_id: Optional[UUID] = None,
    ) -> PairwiseBalance:
        """Compare two roommates' approved spend."""
        correlation_id = correlation_id or create_correlation_id()

        expenses = await self._from_store("list_expenses", room_id, correlation_id=correlation_id)
        return pairwise_balance(expenses, member_a, member_b)

    async def analytics(
        self,
        room_id: str,
        window: Optional[AnalyticsWindow] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AnalyticsReport:
        """
        Spending analytics for a room.

        Args:
            room_id: Room to report on
            window: Scope for window metrics, None for all time
            now: Reference time for trend and pace
        """
        correlation_id = correlation_id or create_correlation_id()

        expenses = await self._from_store("list_expenses", room_id, correlation_id=correlation_id)
        members = await self._from_store("list_members", room_id, correlation_id=correlation_id)
        report = compute_analytics(
            expenses,
            window,
            now=now,
            member_count=len(members),
            top_n=self._settings.category_share_top_n,
        )

        if self._audit_logger:
            await self._audit_logger.log_analytics_computed(
                room_id=room_id,
                window=window.label if window else None,
                expense_count=len(expenses),
                malformed_date_count=report.malformed_date_count,
                correlation_id=correlation_id,
            )

        return report

    async def check_ledger(
        self,
        room_id: str,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ValidationResult, str]:
        """
        Run the ledger health check.

        Returns:
            (validation_result, user_message)
        """
        correlation_id = correlation_id or create_correlation_id()

        expenses = await self._from_store("list_expenses", room_id, correlation_id=correlation_id)
        members = await self._from_store("list_members", room_id, correlation_id=correlation_id)
        result = self._validator.validate(expenses, members, room_id=room_id, now=now)
        message = self._validator.get_user_friendly_summary(result)

        if self._audit_logger:
            issues = [
                {
                    "field": i.field,
                    "type": i.issue_type,
                    "entity_id": i.entity_id,
                    "message": i.message,
                }
                for i in result.issues
            ]
            await self._audit_logger.log_ledger_checked(
                room_id=room_id,
                issues=issues,
                correlation_id=correlation_id,
            )

        return result, message


def create_app_components(
    use_storage: bool = True,
) -> tuple[LedgerFlow, ReportFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (ledger_flow, report_flow, sheets_client)
    """
    sheets_client = None
    store: LedgerStoreInterface

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsLedgerStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            store = InMemoryLedgerStore()
            audit_logger = AuditLogger()  # Local-only logging
    else:
        store = InMemoryLedgerStore()
        audit_logger = AuditLogger()  # Local-only logging

    settings = get_settings().app

    ledger_flow = LedgerFlow(
        store=store,
        audit_logger=audit_logger,
        settings=settings,
    )

    report_flow = ReportFlow(
        store=store,
        audit_logger=audit_logger,
        settings=settings,
    )

    return ledger_flow, report_flow, sheets_client
