"""
Analytics Aggregator

Derives spending statistics from a ledger snapshot.

Two scopes are computed side by side:
- WINDOW scope (usually the selected month): categories, contributors,
  approval rate, overview, category share, window status counts
- ALL-TIME scope: monthly trend, spending pace, highlights, all-time
  contributors, status counts

DESIGN DECISION: A malformed date never raises. Such an expense drops out
of every date-scoped view (window filter, trend, pace, latest approved) but
still counts in status breakdowns and in the all-time category and
contributor rankings, which don't look at dates.

Ties in every ranking keep first-encountered order (Python's sort is
stable), so results follow ledger order when amounts are equal.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

import structlog

from roomledger.models.derived import (
    AnalyticsReport,
    AnalyticsWindow,
    CategoryShare,
    CategoryTotal,
    ContributorStat,
    Highlights,
    MonthlyBucket,
    PaceSnapshot,
    StatusBreakdown,
    StatusSummary,
    WindowOverview,
)
from roomledger.models.expense import Expense, ExpenseStatus, parse_timestamp, utcnow
from roomledger.settlement import approved_only


logger = structlog.get_logger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

TREND_MONTHS = 6
OTHER_CATEGORY = "Other"
DEFAULT_TOP_N = 5


def in_window(
    expenses: Iterable[Expense],
    window: Optional[AnalyticsWindow],
) -> list[Expense]:
    """Expenses dated inside the window; everything when window is None."""
    if window is None:
        return list(expenses)
    return [e for e in expenses if window.contains(e.date)]


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= 0:
        return ZERO
    return part / whole * HUNDRED


# =============================================================================
# BREAKDOWNS
# =============================================================================

def category_totals(expenses: Iterable[Expense]) -> list[CategoryTotal]:
    """Approved spend per category, largest first."""
    totals: dict[str, Decimal] = {}
    for expense in approved_only(expenses):
        totals[expense.category] = totals.get(expense.category, ZERO) + expense.amount

    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [CategoryTotal(category=c, amount=a) for c, a in ranked]


def contributor_stats(expenses: Iterable[Expense]) -> list[ContributorStat]:
    """Approved purchases and spend per member, largest total first."""
    stats: dict[str, ContributorStat] = {}
    for expense in approved_only(expenses):
        stat = stats.get(expense.added_by)
        if stat is None:
            stat = ContributorStat(member_id=expense.added_by)
            stats[expense.added_by] = stat
        stat.purchase_count += 1
        stat.total += expense.amount

    return sorted(stats.values(), key=lambda s: s.total, reverse=True)


def approval_rate(expenses: Iterable[Expense]) -> Decimal:
    """Share of expenses that are approved, in percent. 0 for no expenses."""
    expenses = list(expenses)
    if not expenses:
        return ZERO
    approved = sum(1 for e in expenses if e.status == ExpenseStatus.APPROVED)
    return Decimal(approved) / Decimal(len(expenses)) * HUNDRED


def status_breakdown(expenses: Iterable[Expense]) -> StatusBreakdown:
    """Count and total per status. Dates are not looked at."""
    summaries = {status: StatusSummary() for status in ExpenseStatus}
    for expense in expenses:
        summary = summaries[expense.status]
        summary.count += 1
        summary.total += expense.amount

    return StatusBreakdown(
        approved=summaries[ExpenseStatus.APPROVED],
        pending=summaries[ExpenseStatus.PENDING],
        rejected=summaries[ExpenseStatus.REJECTED],
    )


def category_share(
    categories: list[CategoryTotal],
    top_n: int = DEFAULT_TOP_N,
) -> list[CategoryShare]:
    """
    Normalize category totals to percentages of their sum.

    Categories past the top N are folded into one 'Other' slice. The slice
    is left out when the folded amount is 0.
    """
    whole = sum((c.amount for c in categories), ZERO)

    shares = [
        CategoryShare(
            category=c.category,
            amount=c.amount,
            percent=_percent(c.amount, whole),
        )
        for c in categories[:top_n]
    ]

    other = sum((c.amount for c in categories[top_n:]), ZERO)
    if other > 0:
        shares.append(CategoryShare(
            category=OTHER_CATEGORY,
            amount=other,
            percent=_percent(other, whole),
            is_collapsed=True,
        ))

    return shares


def window_overview(
    window_expenses: list[Expense],
    member_count: int = 0,
) -> WindowOverview:
    approved = approved_only(window_expenses)
    total = sum((e.amount for e in approved), ZERO)
    average = total / len(approved) if approved else ZERO
    per_person = total / member_count if member_count > 0 else ZERO

    return WindowOverview(
        total=total,
        average=average,
        approved_count=len(approved),
        approval_rate=approval_rate(window_expenses),
        per_person_share=per_person,
    )


# =============================================================================
# TIME SERIES
# =============================================================================

def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def monthly_trend(
    expenses: Iterable[Expense],
    now: Optional[datetime] = None,
) -> list[MonthlyBucket]:
    """
    Approved spend for the current month and the five before it.

    Always returns TREND_MONTHS buckets, oldest first. Months without
    spend report 0.
    """
    now = parse_timestamp(now) or utcnow()

    buckets = []
    for offset in range(TREND_MONTHS - 1, -1, -1):
        year, month = _shift_month(now.year, now.month, -offset)
        buckets.append(MonthlyBucket(year=year, month=month))

    lookup = {(b.year, b.month): b for b in buckets}
    for expense in approved_only(expenses):
        if expense.date is None:
            continue
        bucket = lookup.get((expense.date.year, expense.date.month))
        if bucket is not None:
            bucket.total += expense.amount

    return buckets


def spending_pace(
    expenses: Iterable[Expense],
    now: Optional[datetime] = None,
) -> PaceSnapshot:
    """
    How fast the room is spending.

    Trailing windows are measured back from `now` and have no upper bound,
    so future-dated expenses count toward the most recent window.
    """
    now = parse_timestamp(now) or utcnow()
    last7_start = now - timedelta(days=7)
    last30_start = now - timedelta(days=30)
    prev30_start = now - timedelta(days=60)

    last7_total = ZERO
    last30_total = ZERO
    prev30_total = ZERO
    for expense in approved_only(expenses):
        when = expense.date
        if when is None:
            continue
        if when >= last7_start:
            last7_total += expense.amount
        if when >= last30_start:
            last30_total += expense.amount
        elif when >= prev30_start:
            prev30_total += expense.amount

    avg_daily7 = last7_total / 7
    delta = last30_total - prev30_total
    delta_percent = delta / prev30_total * HUNDRED if prev30_total > 0 else None

    return PaceSnapshot(
        last7_total=last7_total,
        avg_daily7=avg_daily7,
        projected30=avg_daily7 * 30,
        last30_total=last30_total,
        prev30_total=prev30_total,
        last30_delta=delta,
        last30_delta_percent=delta_percent,
    )


# =============================================================================
# HIGHLIGHTS
# =============================================================================

def largest_expense(expenses: Iterable[Expense]) -> Optional[Expense]:
    largest = None
    for expense in approved_only(expenses):
        if largest is None or expense.amount > largest.amount:
            largest = expense
    return largest


def latest_approved(expenses: Iterable[Expense]) -> Optional[Expense]:
    latest = None
    for expense in approved_only(expenses):
        if expense.date is None:
            continue
        if latest is None or expense.date > latest.date:
            latest = expense
    return latest


def most_frequent_category(expenses: Iterable[Expense]) -> Optional[str]:
    """Category with the most approved expenses (count, not amount)."""
    counts: dict[str, int] = {}
    for expense in approved_only(expenses):
        counts[expense.category] = counts.get(expense.category, 0) + 1
    if not counts:
        return None
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)[0][0]


# =============================================================================
# ENTRY POINT
# =============================================================================

def compute_analytics(
    expenses: Iterable[Expense],
    window: Optional[AnalyticsWindow] = None,
    *,
    now: Optional[datetime] = None,
    member_count: int = 0,
    top_n: int = DEFAULT_TOP_N,
) -> AnalyticsReport:
    """
    Build every analytics view for a ledger snapshot.

    Args:
        expenses: Full ledger snapshot (any status)
        window: Scope for the window metrics; None means all time
        now: Reference time for trend and pace, defaults to current UTC time
        member_count: Room size, for the per-person share
        top_n: Categories kept before folding into 'Other'

    Returns:
        AnalyticsReport
    """
    expenses = list(expenses)
    now = parse_timestamp(now) or utcnow()

    malformed = sum(1 for e in expenses if e.date is None)
    if malformed:
        logger.debug(
            "malformed_dates_excluded",
            count=malformed,
            expense_count=len(expenses),
        )

    scoped = in_window(expenses, window)
    categories = category_totals(scoped)
    all_time_contributors = contributor_stats(expenses)

    highlights = Highlights(
        largest_expense=largest_expense(expenses),
        top_category=categories[0] if categories else None,
        top_contributor=all_time_contributors[0] if all_time_contributors else None,
        most_frequent_category=most_frequent_category(expenses),
        latest_approved=latest_approved(expenses),
    )

    return AnalyticsReport(
        window=window,
        generated_at=now,
        categories=categories,
        contributors=contributor_stats(scoped),
        approval_rate=approval_rate(scoped),
        overview=window_overview(scoped, member_count),
        category_share=category_share(categories, top_n),
        window_status=status_breakdown(scoped),
        all_time_contributors=all_time_contributors,
        monthly_trend=monthly_trend(expenses, now),
        pace=spending_pace(expenses, now),
        highlights=highlights,
        status=status_breakdown(expenses),
        malformed_date_count=malformed,
    )
