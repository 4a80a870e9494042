"""
Audit Logger

DESIGN DECISION: Expense status is overwritten in place, so the audit trail
is the only record of who approved what and when. Every ledger write and
every generated report is logged here.

The audit logger:
- Is async so flows can await it alongside storage calls
- Never crashes a flow because the audit backend is down
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from roomledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from roomledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit store (Google Sheets or in-memory)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("roomledger.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Audit failures are reported locally, the flow carries on
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_member_added(
        self,
        member_id: str,
        room_id: str,
        name: str,
        is_manager: bool,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.member_added(
            member_id=member_id,
            room_id=room_id,
            name=name,
            is_manager=is_manager,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_created(
        self,
        expense_id: str,
        room_id: str,
        added_by: str,
        amount: str,
        category: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.expense_created(
            expense_id=expense_id,
            room_id=room_id,
            added_by=added_by,
            amount=amount,
            category=category,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_status_changed(
        self,
        expense_id: str,
        previous_status: str,
        new_status: str,
        actor_id: Optional[str],
        version: int,
        correlation_id: UUID,
    ) -> None:
        """Log an applied approval, rejection or re-open."""
        event = AuditEventBuilder.expense_status_changed(
            expense_id=expense_id,
            previous_status=previous_status,
            new_status=new_status,
            actor_id=actor_id,
            version=version,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_status_change_rejected(
        self,
        expense_id: str,
        requested_status: str,
        actor_id: Optional[str],
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log a status change that was refused before reaching the store."""
        event = AuditEventBuilder.status_change_rejected(
            expense_id=expense_id,
            requested_status=requested_status,
            actor_id=actor_id,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_settlement_computed(
        self,
        room_id: str,
        member_count: int,
        total_approved: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.settlement_computed(
            room_id=room_id,
            member_count=member_count,
            total_approved=total_approved,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_analytics_computed(
        self,
        room_id: str,
        window: Optional[str],
        expense_count: int,
        malformed_date_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.analytics_computed(
            room_id=room_id,
            window=window,
            expense_count=expense_count,
            malformed_date_count=malformed_date_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ledger_checked(
        self,
        room_id: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.ledger_checked(
            room_id=room_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new member action (e.g., an approval).
    Pass it through all subsequent operations.
    """
    return uuid4()
