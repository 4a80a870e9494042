"""
Audit Models for Room Ledger

The core overwrites an expense's status in place and keeps no history.
The audit trail is where history lives:
1. Who approved or rejected what, and when
2. Which status changes were refused and why
3. Which reports were generated from which snapshot

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from roomledger.models.expense import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Room membership
    MEMBER_ADDED = "member_added"

    # Ledger writes
    EXPENSE_CREATED = "expense_created"
    EXPENSE_STATUS_CHANGED = "expense_status_changed"
    STATUS_CHANGE_REJECTED = "status_change_rejected"

    # Derived views
    SETTLEMENT_COMPUTED = "settlement_computed"
    ANALYTICS_COMPUTED = "analytics_computed"
    LEDGER_CHECKED = "ledger_checked"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every ledger write and every generated report creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'member', 'room')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one approval request)"
    )

    # Who did it (None for system events)
    actor_id: Optional[str] = Field(
        default=None,
        description="Member ID of the person who triggered the event"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a member's action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "actor_id": self.actor_id,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, actor_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.actor_id or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_created(expense, correlation_id)
        event = AuditEventBuilder.expense_status_changed(...)
    """

    @staticmethod
    def member_added(
        member_id: str,
        room_id: str,
        name: str,
        is_manager: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        role = "manager" if is_manager else "member"
        return AuditEvent(
            event_type=AuditEventType.MEMBER_ADDED,
            entity_type="member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description=f"{name} joined room as {role}",
            details={
                "room_id": room_id,
                "is_manager": is_manager,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_created(
        expense_id: str,
        room_id: str,
        added_by: str,
        amount: str,
        category: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            actor_id=added_by,
            description=f"Expense logged: {category} - {amount}",
            details={
                "room_id": room_id,
                "amount": amount,
                "category": category,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_status_changed(
        expense_id: str,
        previous_status: str,
        new_status: str,
        actor_id: Optional[str],
        version: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_STATUS_CHANGED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            actor_id=actor_id,
            description=f"Expense status changed: {previous_status} -> {new_status}",
            details={
                "previous_status": previous_status,
                "new_status": new_status,
                "version": version,
            },
            is_user_action=True,
        )

    @staticmethod
    def status_change_rejected(
        expense_id: str,
        requested_status: str,
        actor_id: Optional[str],
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATUS_CHANGE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            actor_id=actor_id,
            description=f"Status change to '{requested_status}' refused",
            details={
                "requested_status": requested_status,
            },
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def settlement_computed(
        room_id: str,
        member_count: int,
        total_approved: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="room",
            entity_id=room_id,
            correlation_id=correlation_id,
            description=f"Settlement computed for {member_count} members",
            details={
                "member_count": member_count,
                "total_approved": total_approved,
            },
        )

    @staticmethod
    def analytics_computed(
        room_id: str,
        window: Optional[str],
        expense_count: int,
        malformed_date_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYTICS_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="room",
            entity_id=room_id,
            correlation_id=correlation_id,
            description=f"Analytics computed over {expense_count} expenses",
            details={
                "window": window or "all_time",
                "expense_count": expense_count,
                "malformed_date_count": malformed_date_count,
            },
        )

    @staticmethod
    def ledger_checked(
        room_id: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_CHECKED,
            severity=AuditSeverity.WARNING if issues else AuditSeverity.INFO,
            entity_type="room",
            entity_id=room_id,
            correlation_id=correlation_id,
            description=f"Ledger check found {len(issues)} issues",
            details={
                "issues": issues,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Ledger store error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )
