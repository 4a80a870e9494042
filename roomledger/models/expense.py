"""
Core Data Models for Room Ledger

These models define the schemas for the ledger: who belongs to a room and
what they spent. They are designed to:
1. Enforce the ledger invariants at runtime
2. Load leniently at the ingestion boundary (a bad date never drops a row)
3. Be serializable for storage and logging

DESIGN DECISION: Money is Decimal everywhere. It only becomes text when a
caller explicitly asks for a display value.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the ledger's clock)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid4())


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an expense timestamp leniently.

    Accepts datetime, date and ISO-8601 strings (a trailing 'Z' is allowed).
    Aware values are converted to UTC and made naive.

    Returns None for anything that can't be parsed. Callers treat None as a
    malformed date: the expense stays in the ledger but drops out of
    date-scoped views.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("malformed_expense_date", raw_value=value)
            return None
    else:
        logger.debug("malformed_expense_date", raw_value=repr(value))
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


# =============================================================================
# ENUMS
# =============================================================================

class ExpenseStatus(str, Enum):
    """
    Expense approval status.

    Every expense starts PENDING. Only a manager moves it on, and the
    approval module decides which moves are legal.
    """
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class Member(BaseModel):
    """
    A person belonging to a room.

    One manager per room is the intended rule. It is not enforced here:
    LedgerValidator reports rooms that break it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique member ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    is_manager: bool = Field(
        default=False,
        description="May approve or reject expenses"
    )
    room_id: str = Field(
        ...,
        min_length=1,
        description="Room this member belongs to"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        description="When the member joined the room"
    )


class Expense(BaseModel):
    """
    A single ledger entry.

    The date is loaded leniently: an unparseable value becomes None instead
    of rejecting the whole record. Amount and status are strict.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique expense ID"
    )
    room_id: str = Field(
        ...,
        min_length=1,
        description="Room whose ledger this expense belongs to"
    )

    # What was bought
    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount spent, full precision"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=50,
    )
    date: Optional[datetime] = Field(
        default=None,
        description="When the expense happened; None if the stored value was malformed"
    )

    # Who
    added_by: str = Field(
        ...,
        min_length=1,
        description="Member ID of the person who paid"
    )

    # Approval state
    status: ExpenseStatus = Field(
        default=ExpenseStatus.PENDING,
    )
    approved_by: Optional[str] = Field(
        default=None,
        description="Member ID of the manager who acted, if recorded"
    )
    approved_at: Optional[datetime] = Field(
        default=None,
        description="When the last approve/reject happened"
    )

    # Bookkeeping
    version: int = Field(
        default=0,
        ge=0,
        description="Bumped on every status write (compare-and-swap token)"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
    )

    @field_validator('date', mode='before')
    @classmethod
    def parse_date_leniently(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @field_validator('approved_at', 'created_at', mode='before')
    @classmethod
    def normalize_timestamps(cls, v: Any) -> Any:
        # Unparseable values fall through so pydantic reports them
        if isinstance(v, (datetime, str)):
            parsed = parse_timestamp(v)
            return parsed if parsed is not None else v
        return v

    @model_validator(mode='after')
    def validate_pending_has_no_approval(self) -> 'Expense':
        """A pending expense carries no approver and no approval time."""
        if self.status == ExpenseStatus.PENDING:
            if self.approved_by is not None or self.approved_at is not None:
                raise ValueError(
                    "Pending expense cannot have approved_by or approved_at"
                )
        return self

    @property
    def has_valid_date(self) -> bool:
        return self.date is not None

    @property
    def is_approved(self) -> bool:
        return self.status == ExpenseStatus.APPROVED


class ExpenseDraft(BaseModel):
    """
    A new expense as submitted by a member, before the store assigns an ID.

    Stricter than Expense: the date is required and must parse.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    amount: Decimal = Field(
        ...,
        gt=0,
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=50,
    )
    date: datetime = Field(
        ...,
        description="When the expense happened"
    )
    added_by: str = Field(
        ...,
        min_length=1,
    )

    @field_validator('date', mode='before')
    @classmethod
    def parse_date_strictly(cls, v: Any) -> datetime:
        parsed = parse_timestamp(v)
        if parsed is None:
            raise ValueError(f"Invalid expense date: {v!r}")
        return parsed
