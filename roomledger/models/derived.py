"""
Derived View Models

Everything in this module is computed from a ledger snapshot and never
persisted. The settlement calculator and the analytics aggregator build
these; presentation code reads them.

DESIGN DECISION: Values are stored at full Decimal precision.
to_display_dict() is the single place where rounding happens.
"""

import calendar
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from roomledger.formatting import (
    format_money,
    money_for_display,
    percent_for_display,
)
from roomledger.models.expense import Expense, ExpenseStatus, parse_timestamp


ZERO = Decimal("0")


# =============================================================================
# SETTLEMENT
# =============================================================================

class BalanceStanding(str, Enum):
    """Which way a member's net balance points."""
    OWED = "owed"        # spent more than their share, will receive
    OWES = "owes"        # spent less than their share, needs to pay
    SETTLED = "settled"  # exactly even


class Balance(BaseModel):
    """
    One member's position against the equal split.

    net > 0: the member is owed money.
    net < 0: the member owes money.
    net == 0: settled. Never rounded to a sign.
    """

    member_id: str
    spent: Decimal = ZERO
    share: Decimal = ZERO
    net: Decimal = ZERO

    @property
    def standing(self) -> BalanceStanding:
        if self.net > 0:
            return BalanceStanding.OWED
        if self.net < 0:
            return BalanceStanding.OWES
        return BalanceStanding.SETTLED

    def describe(self, symbol: str = "$") -> str:
        """Human-readable standing, e.g. 'Will receive: $22.75'."""
        if self.standing == BalanceStanding.OWED:
            return f"Will receive: {format_money(self.net, symbol)}"
        if self.standing == BalanceStanding.OWES:
            return f"Needs to pay: {format_money(abs(self.net), symbol)}"
        return "Settled"

    def to_display_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "spent": money_for_display(self.spent),
            "share": money_for_display(self.share),
            "net": money_for_display(self.net),
            "standing": self.standing.value,
        }


class PairwiseBalance(BaseModel):
    """
    Two-member comparison of approved spend.

    net = member_a_spent - member_b_spent. Positive means member_a leads.

    Who owes whom: the trailing member is the debtor and the leading member
    is the creditor. amount_owed is the full gap between their totals, the
    figure the one-to-one view shows as "should pay" / "should receive".
    This is a two-party view, not a room-wide settlement.
    """

    member_a: str
    member_b: str
    member_a_spent: Decimal = ZERO
    member_b_spent: Decimal = ZERO
    net: Decimal = ZERO

    @classmethod
    def between(
        cls,
        member_a: str,
        member_b: str,
        member_a_spent: Decimal,
        member_b_spent: Decimal,
    ) -> "PairwiseBalance":
        return cls(
            member_a=member_a,
            member_b=member_b,
            member_a_spent=member_a_spent,
            member_b_spent=member_b_spent,
            net=member_a_spent - member_b_spent,
        )

    @property
    def is_settled(self) -> bool:
        return self.net == 0

    @property
    def leader(self) -> Optional[str]:
        """Member who spent more, None when even."""
        if self.net > 0:
            return self.member_a
        if self.net < 0:
            return self.member_b
        return None

    @property
    def creditor(self) -> Optional[str]:
        return self.leader

    @property
    def debtor(self) -> Optional[str]:
        if self.net > 0:
            return self.member_b
        if self.net < 0:
            return self.member_a
        return None

    @property
    def amount_owed(self) -> Decimal:
        return abs(self.net)

    def describe(
        self,
        name_a: Optional[str] = None,
        name_b: Optional[str] = None,
        symbol: str = "$",
    ) -> str:
        """
        Spell out the comparison and who owes whom.

        Names default to member IDs; callers resolve display names.
        """
        name_a = name_a or self.member_a
        name_b = name_b or self.member_b

        if self.is_settled:
            return "Both members have spent the same amount."

        owed = format_money(self.amount_owed, symbol)
        if self.net > 0:
            return f"{name_a} spent {owed} more than {name_b}. {name_b} should pay {name_a} {owed}."
        return f"{name_b} spent {owed} more than {name_a}. {name_a} should pay {name_b} {owed}."

    def to_display_dict(self) -> dict:
        return {
            "member_a": self.member_a,
            "member_b": self.member_b,
            "member_a_spent": money_for_display(self.member_a_spent),
            "member_b_spent": money_for_display(self.member_b_spent),
            "net": money_for_display(self.net),
            "debtor": self.debtor,
            "creditor": self.creditor,
            "amount_owed": money_for_display(self.amount_owed),
        }


class SettlementReport(BaseModel):
    """
    Result of compute_settlement.

    spent_by_contributor holds approved spend for everyone who added an
    approved expense, members or not, so pairwise() can answer for any
    two IDs without the original expense list.
    """

    per_member: list[Balance] = Field(default_factory=list)
    total_approved: Decimal = ZERO
    equal_share: Decimal = ZERO
    member_count: int = Field(default=0, ge=0)

    # Approved spend by people not in the member list (e.g. former roommates)
    unassigned_total: Decimal = ZERO

    pending_count: int = Field(default=0, ge=0)
    spent_by_contributor: dict[str, Decimal] = Field(default_factory=dict)

    def balance_for(self, member_id: str) -> Optional[Balance]:
        for balance in self.per_member:
            if balance.member_id == member_id:
                return balance
        return None

    def spent(self, member_id: str) -> Decimal:
        return self.spent_by_contributor.get(member_id, ZERO)

    def pairwise(self, member_a: str, member_b: str) -> PairwiseBalance:
        """Compare two members; unknown IDs count as zero spend."""
        if member_a == member_b:
            spent = self.spent(member_a)
            return PairwiseBalance.between(member_a, member_b, spent, spent)
        return PairwiseBalance.between(
            member_a,
            member_b,
            self.spent(member_a),
            self.spent(member_b),
        )

    def to_display_dict(self) -> dict:
        return {
            "per_member": [b.to_display_dict() for b in self.per_member],
            "total_approved": money_for_display(self.total_approved),
            "equal_share": money_for_display(self.equal_share),
            "member_count": self.member_count,
            "unassigned_total": money_for_display(self.unassigned_total),
            "pending_count": self.pending_count,
        }


# =============================================================================
# ANALYTICS
# =============================================================================

class AnalyticsWindow(BaseModel):
    """
    A half-open time window [start, end).

    Usually a calendar month, see for_month() and month_of().
    """

    start: datetime
    end: datetime

    @field_validator('start', 'end', mode='before')
    @classmethod
    def normalize_bounds(cls, v):
        """Bounds are compared with naive UTC expense dates."""
        parsed = parse_timestamp(v)
        if parsed is None:
            raise ValueError(f"Invalid window bound: {v!r}")
        return parsed

    @model_validator(mode='after')
    def validate_bounds(self) -> 'AnalyticsWindow':
        if self.end <= self.start:
            raise ValueError("Window end must be after window start")
        return self

    @classmethod
    def for_month(cls, year: int, month: int) -> "AnalyticsWindow":
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month: {month}")
        start = datetime(year, month, 1)
        if month == 12:
            end = datetime(year + 1, 1, 1)
        else:
            end = datetime(year, month + 1, 1)
        return cls(start=start, end=end)

    @classmethod
    def month_of(cls, moment: datetime) -> "AnalyticsWindow":
        return cls.for_month(moment.year, moment.month)

    def contains(self, moment: Optional[datetime]) -> bool:
        if moment is None:
            return False
        return self.start <= moment < self.end

    @property
    def label(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


class CategoryTotal(BaseModel):
    category: str
    amount: Decimal = ZERO


class CategoryShare(BaseModel):
    """A slice of the category share chart."""

    category: str
    amount: Decimal = ZERO
    percent: Decimal = ZERO
    # True for the 'Other' slice built from categories past the top N
    is_collapsed: bool = False


class ContributorStat(BaseModel):
    member_id: str
    purchase_count: int = Field(default=0, ge=0)
    total: Decimal = ZERO


class MonthlyBucket(BaseModel):
    """Approved spend for one calendar month."""

    year: int
    month: int = Field(ge=1, le=12)
    total: Decimal = ZERO

    @property
    def month_key(self) -> str:
        return f"{self.year}-{self.month:02d}"

    @property
    def label(self) -> str:
        return f"{calendar.month_abbr[self.month]} {self.year}"


class PaceSnapshot(BaseModel):
    """
    Recent spending speed.

    last30_delta_percent is None when the previous 30 days had no spend:
    there is nothing to compare against.
    """

    last7_total: Decimal = ZERO
    avg_daily7: Decimal = ZERO
    projected30: Decimal = ZERO
    last30_total: Decimal = ZERO
    prev30_total: Decimal = ZERO
    last30_delta: Decimal = ZERO
    last30_delta_percent: Optional[Decimal] = None

    @property
    def has_prior_data(self) -> bool:
        return self.last30_delta_percent is not None


class StatusSummary(BaseModel):
    count: int = Field(default=0, ge=0)
    total: Decimal = ZERO


class StatusBreakdown(BaseModel):
    """Count and total per approval status."""

    approved: StatusSummary = Field(default_factory=StatusSummary)
    pending: StatusSummary = Field(default_factory=StatusSummary)
    rejected: StatusSummary = Field(default_factory=StatusSummary)

    def for_status(self, status: ExpenseStatus) -> StatusSummary:
        return getattr(self, status.value)

    @property
    def total_count(self) -> int:
        return self.approved.count + self.pending.count + self.rejected.count


class WindowOverview(BaseModel):
    """Headline numbers for the selected window."""

    total: Decimal = ZERO
    average: Decimal = ZERO
    approved_count: int = Field(default=0, ge=0)
    approval_rate: Decimal = ZERO
    per_person_share: Decimal = ZERO


class Highlights(BaseModel):
    largest_expense: Optional[Expense] = None
    top_category: Optional[CategoryTotal] = None
    top_contributor: Optional[ContributorStat] = None
    most_frequent_category: Optional[str] = None
    latest_approved: Optional[Expense] = None


class AnalyticsReport(BaseModel):
    """
    Result of compute_analytics.

    categories, contributors, approval_rate, overview, category_share and
    window_status are scoped to `window` (None means all time).
    monthly_trend, pace, highlights, all_time_contributors and status always
    cover the whole snapshot.
    """

    window: Optional[AnalyticsWindow] = None
    generated_at: datetime

    # Window scoped
    categories: list[CategoryTotal] = Field(default_factory=list)
    contributors: list[ContributorStat] = Field(default_factory=list)
    approval_rate: Decimal = ZERO
    overview: WindowOverview = Field(default_factory=WindowOverview)
    category_share: list[CategoryShare] = Field(default_factory=list)
    window_status: StatusBreakdown = Field(default_factory=StatusBreakdown)

    # All time
    all_time_contributors: list[ContributorStat] = Field(default_factory=list)
    monthly_trend: list[MonthlyBucket] = Field(default_factory=list)
    pace: PaceSnapshot = Field(default_factory=PaceSnapshot)
    highlights: Highlights = Field(default_factory=Highlights)
    status: StatusBreakdown = Field(default_factory=StatusBreakdown)

    # Expenses whose date could not be parsed
    malformed_date_count: int = Field(default=0, ge=0)

    def to_display_dict(self) -> dict:
        """JSON-friendly view with money rounded to cents."""

        def status_dict(breakdown: StatusBreakdown) -> dict:
            return {
                status.value: {
                    "count": breakdown.for_status(status).count,
                    "total": money_for_display(breakdown.for_status(status).total),
                }
                for status in ExpenseStatus
            }

        def expense_dict(expense: Optional[Expense]) -> Optional[dict]:
            if expense is None:
                return None
            return {
                "id": expense.id,
                "description": expense.description,
                "amount": money_for_display(expense.amount),
                "category": expense.category,
                "date": expense.date.isoformat() if expense.date else None,
                "added_by": expense.added_by,
            }

        highlights = self.highlights
        return {
            "window": {
                "start": self.window.start.isoformat(),
                "end": self.window.end.isoformat(),
            } if self.window else None,
            "generated_at": self.generated_at.isoformat(),
            "categories": [
                {"category": c.category, "amount": money_for_display(c.amount)}
                for c in self.categories
            ],
            "contributors": [
                {
                    "member_id": c.member_id,
                    "purchase_count": c.purchase_count,
                    "total": money_for_display(c.total),
                }
                for c in self.contributors
            ],
            "approval_rate": percent_for_display(self.approval_rate),
            "overview": {
                "total": money_for_display(self.overview.total),
                "average": money_for_display(self.overview.average),
                "approved_count": self.overview.approved_count,
                "approval_rate": percent_for_display(self.overview.approval_rate),
                "per_person_share": money_for_display(self.overview.per_person_share),
            },
            "category_share": [
                {
                    "category": s.category,
                    "amount": money_for_display(s.amount),
                    "percent": percent_for_display(s.percent),
                }
                for s in self.category_share
            ],
            "monthly_trend": [
                {
                    "month": b.month_key,
                    "label": b.label,
                    "total": money_for_display(b.total),
                }
                for b in self.monthly_trend
            ],
            "pace": {
                "last7_total": money_for_display(self.pace.last7_total),
                "avg_daily7": money_for_display(self.pace.avg_daily7),
                "projected30": money_for_display(self.pace.projected30),
                "last30_total": money_for_display(self.pace.last30_total),
                "prev30_total": money_for_display(self.pace.prev30_total),
                "last30_delta": money_for_display(self.pace.last30_delta),
                "last30_delta_percent": percent_for_display(self.pace.last30_delta_percent),
            },
            "highlights": {
                "largest_expense": expense_dict(highlights.largest_expense),
                "top_category": highlights.top_category.category if highlights.top_category else None,
                "top_contributor": highlights.top_contributor.member_id if highlights.top_contributor else None,
                "most_frequent_category": highlights.most_frequent_category,
                "latest_approved": expense_dict(highlights.latest_approved),
            },
            "status": status_dict(self.status),
            "window_status": status_dict(self.window_status),
            "malformed_date_count": self.malformed_date_count,
        }
