"""
In-Memory Storage Implementation

Used by tests and whenever Google Sheets is not configured. Data lives for
the lifetime of the process.

Writes are serialised with an asyncio.Lock so compare-and-swap on
update_expense_status holds across concurrent tasks.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from roomledger.approval import set_status
from roomledger.models.audit import AuditEvent
from roomledger.models.expense import Expense, Member
from roomledger.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    LedgerStoreInterface,
    NotFoundError,
)


class InMemoryLedgerStore(LedgerStoreInterface):
    """Dict-backed ledger store. Returned models are copies."""

    def __init__(
        self,
        expenses: Optional[list[Expense]] = None,
        members: Optional[list[Member]] = None,
    ):
        self._expenses: dict[str, Expense] = {e.id: e for e in expenses or []}
        self._members: dict[str, Member] = {m.id: m for m in members or []}
        self._lock = asyncio.Lock()

    async def list_expenses(self, room_id: str) -> list[Expense]:
        return [
            e.model_copy() for e in self._expenses.values()
            if e.room_id == room_id
        ]

    async def list_members(self, room_id: str) -> list[Member]:
        return [
            m.model_copy() for m in self._members.values()
            if m.room_id == room_id
        ]

    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        return expense.model_copy() if expense else None

    async def create_expense(
        self,
        room_id: str,
        description: str,
        amount: Decimal,
        category: str,
        date: datetime,
        added_by: str,
    ) -> Expense:
        expense = Expense(
            room_id=room_id,
            description=description,
            amount=amount,
            category=category,
            date=date,
            added_by=added_by,
        )
        async with self._lock:
            self._expenses[expense.id] = expense
        return expense.model_copy()

    async def update_expense_status(
        self,
        expense_id: str,
        status: Any,
        approver_id: Optional[str] = None,
        *,
        expected_version: Optional[int] = None,
    ) -> Expense:
        async with self._lock:
            current = self._expenses.get(expense_id)
            if current is None:
                raise NotFoundError(f"Expense not found: {expense_id}")
            if expected_version is not None and current.version != expected_version:
                raise ConflictError(expense_id, expected_version, current.version)

            updated = set_status(current, status, approver_id)
            updated = updated.model_copy(update={"version": current.version + 1})
            self._expenses[expense_id] = updated

        return updated.model_copy()

    async def create_member(
        self,
        room_id: str,
        name: str,
        is_manager: bool = False,
    ) -> Member:
        member = Member(room_id=room_id, name=name, is_manager=is_manager)
        async with self._lock:
            self._members[member.id] = member
        return member.model_copy()


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == str(entity_id)
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
