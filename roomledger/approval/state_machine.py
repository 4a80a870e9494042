"""
Expense Approval State Machine

States: PENDING (initial), APPROVED, REJECTED.

DESIGN DECISION: Transitions are permissive by default. Any status may be
written over any other, including re-opening a decided expense to PENDING
or flipping APPROVED <-> REJECTED directly. Writing the current status
again is an idempotent overwrite that refreshes approved_at.

Strict mode swaps in an explicit transition table:

    PENDING  -> APPROVED, REJECTED
    APPROVED -> PENDING
    REJECTED -> PENDING

Who may call this (managers only) is decided by the flow layer, not here.
"""

from datetime import datetime
from typing import Any, Optional

from roomledger.models.expense import Expense, ExpenseStatus, parse_timestamp, utcnow


class InvalidStatusError(ValueError):
    """The requested status is not one of pending/approved/rejected."""

    def __init__(self, value: Any):
        self.value = value
        allowed = ", ".join(s.value for s in ExpenseStatus)
        super().__init__(f"Invalid status: {value!r}. Allowed: {allowed}")


class TransitionNotAllowedError(ValueError):
    """Strict mode refused a transition that is not in the table."""

    def __init__(self, current: ExpenseStatus, target: ExpenseStatus):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move expense from {current.value} to {target.value}"
        )


STRICT_TRANSITIONS: dict[ExpenseStatus, frozenset[ExpenseStatus]] = {
    ExpenseStatus.PENDING: frozenset({ExpenseStatus.APPROVED, ExpenseStatus.REJECTED}),
    ExpenseStatus.APPROVED: frozenset({ExpenseStatus.PENDING}),
    ExpenseStatus.REJECTED: frozenset({ExpenseStatus.PENDING}),
}


def parse_status(value: Any) -> ExpenseStatus:
    """
    Turn caller input into an ExpenseStatus.

    Accepts an ExpenseStatus or its string value in any case, surrounding
    whitespace ignored. Everything else raises InvalidStatusError.
    """
    if isinstance(value, ExpenseStatus):
        return value
    if not isinstance(value, str):
        raise InvalidStatusError(value)
    try:
        return ExpenseStatus(value.strip().lower())
    except ValueError:
        raise InvalidStatusError(value) from None


def can_transition(
    current: ExpenseStatus,
    target: ExpenseStatus,
    strict: bool = False,
) -> bool:
    """Is current -> target allowed under the chosen mode?"""
    if not strict:
        return True
    return target in STRICT_TRANSITIONS[current]


def set_status(
    expense: Expense,
    new_status: Any,
    acting_member_id: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
    strict: bool = False,
) -> Expense:
    """
    Apply a status transition and return the updated copy.

    The input expense is not modified.

    Args:
        expense: The expense as currently stored
        new_status: Target status (ExpenseStatus or its string value)
        acting_member_id: Member performing the change. May be None;
                          the approval is recorded without an approver.
        now: Transition time, defaults to current UTC time
        strict: Enforce the strict transition table

    Raises:
        InvalidStatusError: new_status is not a valid status
        TransitionNotAllowedError: strict mode and the edge is not allowed
    """
    target = parse_status(new_status)

    if not can_transition(expense.status, target, strict=strict):
        raise TransitionNotAllowedError(expense.status, target)

    if target == ExpenseStatus.PENDING:
        return expense.model_copy(update={
            "status": target,
            "approved_by": None,
            "approved_at": None,
        })

    return expense.model_copy(update={
        "status": target,
        "approved_by": acting_member_id,
        "approved_at": parse_timestamp(now) or utcnow(),
    })


def compute_approval(
    expense: Expense,
    new_status: Any,
    acting_member_id: Optional[str] = None,
    **kwargs,
) -> Expense:
    """Public entry point of the state machine. Same contract as set_status."""
    return set_status(expense, new_status, acting_member_id, **kwargs)
