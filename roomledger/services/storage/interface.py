"""
Abstract Storage Interface

DESIGN DECISION: The ledger core never talks to a backend. Flows go through
these interfaces, which lets us:
1. Keep Google Sheets as the shared household backend
2. Use in-memory storage for tests and unconfigured setups
3. Keep business logic decoupled from storage implementation

The interface is intentionally small - we're not building a full ORM.
Just the operations the room ledger needs.

CONCURRENCY: update_expense_status takes an optional expected_version.
When given, the write only happens if the stored version still matches
(compare-and-swap); otherwise ConflictError. Without it the write is
last-write-wins.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from roomledger.models.audit import AuditEvent
from roomledger.models.expense import Expense, Member


class LedgerStoreInterface(ABC):
    """
    Abstract interface for room ledger storage.

    Any storage implementation (Google Sheets, in-memory, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def list_expenses(self, room_id: str) -> list[Expense]:
        """
        Snapshot of every expense in a room, any status.

        Rows with unreadable dates are still returned (date=None).
        """
        pass

    @abstractmethod
    async def list_members(self, room_id: str) -> list[Member]:
        """Members of a room, in the order they joined."""
        pass

    @abstractmethod
    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        """
        Retrieve an expense by its ID.

        Returns:
            The expense if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_expense(
        self,
        room_id: str,
        description: str,
        amount: Decimal,
        category: str,
        date: datetime,
        added_by: str,
    ) -> Expense:
        """
        Store a new expense. It always starts out pending.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_expense_status(
        self,
        expense_id: str,
        status: Any,
        approver_id: Optional[str] = None,
        *,
        expected_version: Optional[int] = None,
    ) -> Expense:
        """
        Overwrite an expense's status and bump its version.

        Args:
            expense_id: Expense to update
            status: Target status (ExpenseStatus or its string value)
            approver_id: Member recorded as the decider (ignored for pending)
            expected_version: Version the caller read, for compare-and-swap

        Returns:
            The expense as stored after the write

        Raises:
            InvalidStatusError: status is not a valid status
            NotFoundError: If the expense doesn't exist
            ConflictError: If expected_version no longer matches
        """
        pass

    @abstractmethod
    async def create_member(
        self,
        room_id: str,
        name: str,
        is_manager: bool = False,
    ) -> Member:
        """Add a member to a room."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one approval request).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'expense', 'member', 'room')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConflictError(StorageError):
    """The entity changed since the caller read it."""

    def __init__(self, entity_id: str, expected_version: int, actual_version: int):
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"{entity_id} is at version {actual_version}, expected {expected_version}"
        )


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
