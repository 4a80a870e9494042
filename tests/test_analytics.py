"""Tests for the analytics aggregator."""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from roomledger.analytics import (
    OTHER_CATEGORY,
    TREND_MONTHS,
    approval_rate,
    category_share,
    category_totals,
    compute_analytics,
    contributor_stats,
    monthly_trend,
    spending_pace,
)
from roomledger.models.derived import AnalyticsWindow, CategoryTotal
from roomledger.models.expense import Expense


NOW = datetime(2026, 10, 17, 12, 0)
OCTOBER = AnalyticsWindow.for_month(2026, 10)


def make_expense(
    amount: str,
    category: str = "Food",
    added_by: str = "alice",
    date="2026-10-05T10:00:00Z",
    status: str = "approved",
    description: str = "Purchase",
) -> Expense:
    data = {
        "room_id": "room-1",
        "description": description,
        "amount": Decimal(amount),
        "category": category,
        "date": date,
        "added_by": added_by,
        "status": status,
    }
    if status != "pending":
        data["approved_by"] = "alice"
        data["approved_at"] = datetime(2026, 10, 6)
    return Expense(**data)


class TestAnalyticsWindow:
    """Tests for the half-open analytics window."""

    def test_for_month_bounds(self):
        """Test a month window runs from the 1st to the next 1st."""
        assert OCTOBER.start == datetime(2026, 10, 1)
        assert OCTOBER.end == datetime(2026, 11, 1)

    def test_december_rolls_over(self):
        """Test December ends on January 1st of the next year."""
        window = AnalyticsWindow.for_month(2026, 12)
        assert window.end == datetime(2027, 1, 1)

    def test_half_open(self):
        """Test start is inside and end is outside."""
        assert OCTOBER.contains(datetime(2026, 10, 1))
        assert not OCTOBER.contains(datetime(2026, 11, 1))
        assert not OCTOBER.contains(None)

    def test_end_must_follow_start(self):
        """Test an empty or inverted window is rejected."""
        with pytest.raises(ValueError):
            AnalyticsWindow(start=datetime(2026, 10, 2), end=datetime(2026, 10, 1))

    def test_aware_bounds_become_naive_utc(self):
        """Test offset-aware bounds are converted to naive UTC."""
        plus_two = timezone(timedelta(hours=2))
        window = AnalyticsWindow(
            start=datetime(2026, 10, 1, 2, 0, tzinfo=plus_two),
            end=datetime(2026, 11, 1, tzinfo=timezone.utc),
        )

        assert window.start == datetime(2026, 10, 1)
        assert window.start.tzinfo is None
        assert window.contains(datetime(2026, 10, 15))

    def test_string_bounds(self):
        """Test ISO strings are accepted and garbage is rejected."""
        window = AnalyticsWindow(start="2026-10-01T00:00:00Z", end="2026-11-01")
        assert window == OCTOBER

        with pytest.raises(ValueError):
            AnalyticsWindow(start="not a date", end="2026-11-01")


class TestBreakdowns:
    """Tests for category and contributor breakdowns."""

    def test_categories_sorted_descending(self):
        """Test categories are summed and ranked."""
        expenses = [
            make_expense("100", "Food"),
            make_expense("50", "Food"),
            make_expense("75", "Internet"),
        ]
        totals = category_totals(expenses)
        assert [(c.category, c.amount) for c in totals] == [
            ("Food", Decimal("150")),
            ("Internet", Decimal("75")),
        ]

    def test_category_ties_keep_first_seen(self):
        """Test equal totals keep ledger order."""
        expenses = [
            make_expense("20", "Cleaning"),
            make_expense("20", "Snacks"),
        ]
        assert [c.category for c in category_totals(expenses)] == ["Cleaning", "Snacks"]

    def test_only_approved_counted(self):
        """Test pending and rejected expenses are not spend."""
        expenses = [
            make_expense("10", "Food"),
            make_expense("99", "Food", status="pending"),
            make_expense("99", "Games", status="rejected"),
        ]
        totals = category_totals(expenses)
        assert len(totals) == 1
        assert totals[0].amount == Decimal("10")

    def test_contributors(self):
        """Test purchase count and total per member."""
        expenses = [
            make_expense("10", added_by="alice"),
            make_expense("30", added_by="bob"),
            make_expense("15", added_by="alice"),
        ]
        stats = contributor_stats(expenses)

        assert [s.member_id for s in stats] == ["bob", "alice"]
        assert stats[1].purchase_count == 2
        assert stats[1].total == Decimal("25")

    def test_approval_rate(self):
        """Test approval rate counts every status in the denominator."""
        expenses = [
            make_expense("10"),
            make_expense("10", status="pending"),
            make_expense("10", status="rejected"),
            make_expense("10"),
        ]
        assert approval_rate(expenses) == Decimal("50")

    def test_approval_rate_empty(self):
        """Test an empty set has a 0% approval rate."""
        assert approval_rate([]) == Decimal("0")


class TestCategoryShare:
    """Tests for category share percentages."""

    def test_percentages(self):
        """Test shares are normalised to the total."""
        shares = category_share([
            CategoryTotal(category="Food", amount=Decimal("150")),
            CategoryTotal(category="Internet", amount=Decimal("50")),
        ])
        assert [s.percent for s in shares] == [Decimal("75"), Decimal("25")]

    def test_tail_collapses_into_other(self):
        """Test categories past the top N fold into 'Other'."""
        categories = [
            CategoryTotal(category=f"Cat{i}", amount=Decimal(10 - i))
            for i in range(7)
        ]
        shares = category_share(categories, top_n=5)

        assert len(shares) == 6
        assert shares[-1].category == OTHER_CATEGORY
        assert shares[-1].is_collapsed is True
        assert shares[-1].amount == Decimal("9")  # 5 + 4

    def test_no_other_when_within_top_n(self):
        """Test no 'Other' slice when nothing is folded."""
        shares = category_share([CategoryTotal(category="Food", amount=Decimal("1"))])
        assert [s.category for s in shares] == ["Food"]

    def test_empty(self):
        """Test no categories gives no slices."""
        assert category_share([]) == []


class TestMonthlyTrend:
    """Tests for the six-month trend."""

    def test_always_six_buckets_oldest_first(self):
        """Test the trend has exactly six months ending with now."""
        trend = monthly_trend([], NOW)

        assert len(trend) == TREND_MONTHS == 6
        assert [b.month_key for b in trend] == [
            "2026-05", "2026-06", "2026-07", "2026-08", "2026-09", "2026-10",
        ]
        assert all(b.total == 0 for b in trend)

    def test_year_boundary(self):
        """Test the trend crosses into the previous year."""
        trend = monthly_trend([], datetime(2026, 2, 10))
        assert trend[0].month_key == "2025-09"
        assert trend[-1].month_key == "2026-02"
        assert trend[-1].label == "Feb 2026"

    def test_buckets_by_year_and_month(self):
        """Test the same month of another year is not mixed in."""
        expenses = [
            make_expense("40", date="2026-10-02"),
            make_expense("25", date="2025-10-02"),
            make_expense("10", date="2026-08-31T23:00:00"),
            make_expense("99", date="garbage"),
        ]
        trend = {b.month_key: b.total for b in monthly_trend(expenses, NOW)}

        assert trend["2026-10"] == Decimal("40")
        assert trend["2026-08"] == Decimal("10")
        assert sum(trend.values()) == Decimal("50")


class TestSpendingPace:
    """Tests for the spending pace snapshot."""

    def test_no_prior_data(self):
        """Test delta percent is None when the previous 30 days had no spend."""
        expenses = [make_expense("200", date=NOW - timedelta(days=3))]
        pace = spending_pace(expenses, NOW)

        assert pace.last30_total == Decimal("200")
        assert pace.prev30_total == Decimal("0")
        assert pace.last30_delta == Decimal("200")
        assert pace.last30_delta_percent is None
        assert pace.has_prior_data is False

    def test_windows_and_projection(self):
        """Test trailing windows and the 30-day projection."""
        expenses = [
            make_expense("70", date=NOW - timedelta(days=2)),
            make_expense("30", date=NOW - timedelta(days=20)),
            make_expense("50", date=NOW - timedelta(days=45)),
            make_expense("500", date=NOW - timedelta(days=90)),
        ]
        pace = spending_pace(expenses, NOW)

        assert pace.last7_total == Decimal("70")
        assert pace.avg_daily7 == Decimal("10")
        assert pace.projected30 == Decimal("300")
        assert pace.last30_total == Decimal("100")
        assert pace.prev30_total == Decimal("50")
        assert pace.last30_delta_percent == Decimal("100")

    def test_future_dates_count_as_recent(self):
        """Test trailing windows have no upper bound."""
        expenses = [make_expense("14", date=NOW + timedelta(days=3))]
        pace = spending_pace(expenses, NOW)
        assert pace.last7_total == Decimal("14")

    def test_aware_now(self):
        """Test an offset-aware reference time is compared as UTC."""
        expenses = [make_expense("70", date=NOW - timedelta(days=2))]
        pace = spending_pace(expenses, NOW.replace(tzinfo=timezone.utc))
        assert pace.last7_total == Decimal("70")

    def test_aware_now_in_trend(self):
        """Test the trend accepts an offset-aware reference time."""
        trend = monthly_trend([make_expense("40")], NOW.replace(tzinfo=timezone.utc))
        assert trend[-1].month_key == "2026-10"
        assert trend[-1].total == Decimal("40")


class TestComputeAnalytics:
    """Tests for the full analytics report."""

    @pytest.fixture
    def ledger(self):
        return [
            make_expense("100", "Food", "alice", "2026-10-03", description="Big shop"),
            make_expense("50", "Food", "bob", "2026-10-08"),
            make_expense("75", "Internet", "bob", "2026-10-01"),
            make_expense("300", "Rent", "alice", "2026-09-01", description="September rent"),
            make_expense("40", "Food", "bob", "2026-10-09", status="pending"),
            make_expense("20", "Games", "bob", "not a date"),
        ]

    def test_window_scoped_metrics(self, ledger):
        """Test window metrics only see expenses dated in the window."""
        report = compute_analytics(ledger, OCTOBER, now=NOW, member_count=2)

        assert [(c.category, c.amount) for c in report.categories] == [
            ("Food", Decimal("150")),
            ("Internet", Decimal("75")),
        ]
        assert report.overview.total == Decimal("225")
        assert report.overview.approved_count == 3
        assert report.overview.average == Decimal("75")
        assert report.overview.per_person_share == Decimal("112.5")
        assert report.approval_rate == Decimal("75")
        assert report.window_status.pending.total == Decimal("40")

    def test_all_time_metrics(self, ledger):
        """Test all-time views cover the whole snapshot."""
        report = compute_analytics(ledger, OCTOBER, now=NOW)

        assert report.highlights.largest_expense.description == "September rent"
        assert report.highlights.top_category.category == "Food"
        assert report.highlights.top_contributor.member_id == "alice"
        assert report.highlights.most_frequent_category == "Food"
        assert report.highlights.latest_approved.amount == Decimal("50")
        assert report.status.approved.count == 5
        assert report.status.pending.total == Decimal("40")
        assert len(report.monthly_trend) == 6

    def test_malformed_dates(self, ledger):
        """Test malformed dates drop out of windows but stay in all-time views."""
        report = compute_analytics(ledger, OCTOBER, now=NOW)

        assert report.malformed_date_count == 1
        assert "Games" not in [c.category for c in report.categories]
        assert report.status.approved.total == Decimal("545")

    def test_all_time_window(self, ledger):
        """Test window=None includes everything, malformed dates too."""
        report = compute_analytics(ledger, now=NOW)

        assert report.window is None
        assert report.categories[0].category == "Rent"
        assert "Games" in [c.category for c in report.categories]

    def test_aware_now_and_window(self, ledger):
        """Test aware inputs give the same report as naive UTC ones."""
        aware_window = AnalyticsWindow(
            start=datetime(2026, 10, 1, tzinfo=timezone.utc),
            end=datetime(2026, 11, 1, tzinfo=timezone.utc),
        )
        aware = compute_analytics(ledger, aware_window, now=NOW.replace(tzinfo=timezone.utc))
        naive = compute_analytics(ledger, OCTOBER, now=NOW)

        assert aware.generated_at == NOW
        assert aware.overview.total == naive.overview.total
        assert aware.pace == naive.pace

    def test_empty_ledger(self):
        """Test an empty ledger produces zeros, never errors."""
        report = compute_analytics([], OCTOBER, now=NOW, member_count=3)

        assert report.categories == []
        assert report.approval_rate == Decimal("0")
        assert report.overview.average == Decimal("0")
        assert report.highlights.largest_expense is None
        assert report.highlights.top_contributor is None
        assert report.pace.last30_delta_percent is None
        assert len(report.monthly_trend) == 6

    def test_display_dict(self, ledger):
        """Test the JSON-friendly output."""
        display = compute_analytics(ledger, OCTOBER, now=NOW).to_display_dict()

        assert display["window"]["start"] == "2026-10-01T00:00:00"
        assert display["approval_rate"] == 75.0
        assert display["monthly_trend"][-1]["month"] == "2026-10"
        assert display["highlights"]["top_contributor"] == "alice"
        assert display["status"]["pending"]["total"] == "40.00"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
