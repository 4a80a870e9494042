"""Tests for the expense approval state machine."""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from roomledger.approval import (
    InvalidStatusError,
    TransitionNotAllowedError,
    can_transition,
    compute_approval,
    parse_status,
    set_status,
)
from roomledger.models.expense import Expense, ExpenseStatus, utcnow


NOW = datetime(2026, 10, 17, 12, 0)


def make_expense(**overrides) -> Expense:
    data = {
        "room_id": "room-1",
        "description": "Electricity bill",
        "amount": Decimal("60.00"),
        "category": "Utilities",
        "date": datetime(2026, 10, 1),
        "added_by": "bob",
    }
    data.update(overrides)
    return Expense(**data)


class TestParseStatus:
    """Tests for status parsing."""

    @pytest.mark.parametrize("raw,expected", [
        ("pending", ExpenseStatus.PENDING),
        ("APPROVED", ExpenseStatus.APPROVED),
        ("  Rejected ", ExpenseStatus.REJECTED),
        (ExpenseStatus.APPROVED, ExpenseStatus.APPROVED),
    ])
    def test_valid_values(self, raw, expected):
        """Test the three statuses parse in any case."""
        assert parse_status(raw) == expected

    @pytest.mark.parametrize("raw", ["bogus", "", None, 1, "approve"])
    def test_invalid_values(self, raw):
        """Test anything else raises InvalidStatusError."""
        with pytest.raises(InvalidStatusError) as exc_info:
            parse_status(raw)
        assert exc_info.value.value == raw

    def test_invalid_status_is_value_error(self):
        """Test callers can catch it as a ValueError."""
        with pytest.raises(ValueError):
            parse_status("bogus")


class TestSetStatus:
    """Tests for applying transitions."""

    def test_approve_records_actor_and_time(self):
        """Test approving sets approved_by and approved_at."""
        expense = make_expense()
        updated = set_status(expense, "approved", "manager", now=NOW)

        assert updated.status == ExpenseStatus.APPROVED
        assert updated.approved_by == "manager"
        assert updated.approved_at == NOW

    def test_input_is_not_mutated(self):
        """Test the original expense is left untouched."""
        expense = make_expense()
        set_status(expense, "approved", "manager", now=NOW)

        assert expense.status == ExpenseStatus.PENDING
        assert expense.approved_by is None

    def test_reject_records_actor(self):
        """Test rejecting also records who decided."""
        updated = set_status(make_expense(), ExpenseStatus.REJECTED, "manager", now=NOW)
        assert updated.status == ExpenseStatus.REJECTED
        assert updated.approved_by == "manager"
        assert updated.approved_at == NOW

    def test_reopen_clears_approval(self):
        """Test moving back to pending clears approver and time."""
        approved = set_status(make_expense(), "approved", "manager", now=NOW)
        reopened = set_status(approved, "pending", "manager")

        assert reopened.status == ExpenseStatus.PENDING
        assert reopened.approved_by is None
        assert reopened.approved_at is None

    def test_missing_actor_is_tolerated(self):
        """Test approval without an actor is recorded with no approver."""
        updated = set_status(make_expense(), "approved", None, now=NOW)
        assert updated.status == ExpenseStatus.APPROVED
        assert updated.approved_by is None
        assert updated.approved_at == NOW

    def test_default_time_is_now(self):
        """Test approved_at defaults to the current time."""
        before = utcnow()
        updated = set_status(make_expense(), "approved", "manager")
        assert updated.approved_at >= before

    def test_aware_time_stored_as_naive_utc(self):
        """Test an offset-aware approval time is stored as naive UTC."""
        plus_two = timezone(timedelta(hours=2))
        when = datetime(2026, 10, 17, 14, 0, tzinfo=plus_two)
        updated = set_status(make_expense(), "approved", "manager", now=when)

        assert updated.approved_at == NOW
        assert updated.approved_at.tzinfo is None

    def test_permissive_flip_and_repeat(self):
        """Test approved -> rejected and same-status writes are allowed."""
        approved = set_status(make_expense(), "approved", "manager", now=NOW)
        later = datetime(2026, 10, 18)

        again = set_status(approved, "approved", "manager", now=later)
        assert again.approved_at == later

        flipped = set_status(approved, "rejected", "manager", now=later)
        assert flipped.status == ExpenseStatus.REJECTED

    def test_invalid_status_leaves_expense_alone(self):
        """Test a bogus status raises and returns nothing."""
        expense = make_expense()
        with pytest.raises(InvalidStatusError):
            set_status(expense, "bogus", "manager")
        assert expense.status == ExpenseStatus.PENDING

    def test_compute_approval_matches_set_status(self):
        """Test the public entry point has the same contract."""
        updated = compute_approval(make_expense(), "approved", "manager", now=NOW)
        assert updated.status == ExpenseStatus.APPROVED
        assert updated.approved_at == NOW


class TestStrictTransitions:
    """Tests for the opt-in strict transition table."""

    @pytest.mark.parametrize("current,target,allowed", [
        (ExpenseStatus.PENDING, ExpenseStatus.APPROVED, True),
        (ExpenseStatus.PENDING, ExpenseStatus.REJECTED, True),
        (ExpenseStatus.PENDING, ExpenseStatus.PENDING, False),
        (ExpenseStatus.APPROVED, ExpenseStatus.PENDING, True),
        (ExpenseStatus.APPROVED, ExpenseStatus.REJECTED, False),
        (ExpenseStatus.APPROVED, ExpenseStatus.APPROVED, False),
        (ExpenseStatus.REJECTED, ExpenseStatus.PENDING, True),
        (ExpenseStatus.REJECTED, ExpenseStatus.APPROVED, False),
    ])
    def test_table(self, current, target, allowed):
        """Test the strict table edge by edge."""
        assert can_transition(current, target, strict=True) is allowed

    def test_permissive_allows_everything(self):
        """Test every edge is allowed without strict mode."""
        for current in ExpenseStatus:
            for target in ExpenseStatus:
                assert can_transition(current, target) is True

    def test_strict_refuses_flip(self):
        """Test strict mode refuses approved -> rejected."""
        approved = set_status(make_expense(), "approved", "manager", now=NOW)
        with pytest.raises(TransitionNotAllowedError) as exc_info:
            set_status(approved, "rejected", "manager", strict=True)
        assert exc_info.value.current == ExpenseStatus.APPROVED
        assert exc_info.value.target == ExpenseStatus.REJECTED

    def test_strict_allows_reopen(self):
        """Test strict mode still allows re-opening."""
        approved = set_status(make_expense(), "approved", "manager", now=NOW)
        reopened = set_status(approved, "pending", strict=True)
        assert reopened.status == ExpenseStatus.PENDING


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
