"""Spending analytics package."""

from roomledger.analytics.aggregator import (
    OTHER_CATEGORY,
    TREND_MONTHS,
    approval_rate,
    category_share,
    category_totals,
    compute_analytics,
    contributor_stats,
    in_window,
    largest_expense,
    latest_approved,
    monthly_trend,
    most_frequent_category,
    spending_pace,
    status_breakdown,
    window_overview,
)

__all__ = [
    "OTHER_CATEGORY",
    "TREND_MONTHS",
    "approval_rate",
    "category_share",
    "category_totals",
    "compute_analytics",
    "contributor_stats",
    "in_window",
    "largest_expense",
    "latest_approved",
    "monthly_trend",
    "most_frequent_category",
    "spending_pace",
    "status_breakdown",
    "window_overview",
]
