"""
Tests for Room Ledger

Test strategy:
1. Unit tests for the pure core (models, approval, settlement, analytics)
2. Integration tests for flows on in-memory storage
3. No real API calls in tests (Google Sheets is faked)
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from roomledger.models.expense import (
    Expense,
    ExpenseDraft,
    ExpenseStatus,
    Member,
    parse_timestamp,
)
from roomledger.models.validation import ValidationIssue, ValidationResult
from roomledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


def make_expense(**overrides) -> Expense:
    data = {
        "room_id": "room-1",
        "description": "Groceries",
        "amount": Decimal("42.10"),
        "category": "Food",
        "date": datetime(2026, 10, 3, 18, 30),
        "added_by": "alice",
    }
    data.update(overrides)
    return Expense(**data)


class TestTimestampParsing:
    """Tests for the lenient timestamp parser."""

    def test_iso_string(self):
        """Test plain ISO-8601 strings parse."""
        assert parse_timestamp("2026-10-03T18:30:00") == datetime(2026, 10, 3, 18, 30)

    def test_trailing_z_is_utc(self):
        """Test a trailing Z is read as UTC and made naive."""
        assert parse_timestamp("2026-10-03T18:30:00Z") == datetime(2026, 10, 3, 18, 30)

    def test_offset_converted_to_utc(self):
        """Test aware values are converted to naive UTC."""
        assert parse_timestamp("2026-10-03T20:30:00+02:00") == datetime(2026, 10, 3, 18, 30)

    def test_date_becomes_midnight(self):
        """Test a bare date becomes midnight."""
        assert parse_timestamp(date(2026, 10, 3)) == datetime(2026, 10, 3)

    @pytest.mark.parametrize("raw", ["not-a-date", "", "2026-13-45", 12345, None])
    def test_garbage_returns_none(self, raw):
        """Test unparseable input returns None instead of raising."""
        assert parse_timestamp(raw) is None


class TestExpenseModel:
    """Tests for the Expense model."""

    def test_expense_defaults(self):
        """Test a new expense is pending at version 0."""
        expense = make_expense()
        assert expense.status == ExpenseStatus.PENDING
        assert expense.approved_by is None
        assert expense.approved_at is None
        assert expense.version == 0
        assert expense.id

    def test_expense_strips_whitespace(self):
        """Test that whitespace is stripped from text fields."""
        expense = make_expense(description="  Milk  ", category=" Food ")
        assert expense.description == "Milk"
        assert expense.category == "Food"

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), "abc"])
    def test_expense_rejects_bad_amount(self, amount):
        """Test that non-positive or non-numeric amounts are rejected."""
        with pytest.raises(ValueError):
            make_expense(amount=amount)

    def test_malformed_date_is_kept_as_none(self):
        """Test a malformed date loads as None instead of failing."""
        expense = make_expense(date="31/31/2026")
        assert expense.date is None
        assert expense.has_valid_date is False

    def test_string_date_is_parsed(self):
        """Test ISO strings are parsed at load time."""
        expense = make_expense(date="2026-10-01T00:00:00Z")
        assert expense.date == datetime(2026, 10, 1)

    def test_pending_with_approver_rejected(self):
        """Test a pending expense cannot carry approval fields."""
        with pytest.raises(ValueError, match="Pending expense"):
            make_expense(approved_by="manager")

    def test_approved_expense_with_approver(self):
        """Test an approved expense keeps its approver."""
        expense = make_expense(
            status="approved",
            approved_by="manager",
            approved_at="2026-10-04T09:00:00Z",
        )
        assert expense.is_approved
        assert expense.approved_at == datetime(2026, 10, 4, 9)

    def test_unknown_status_rejected(self):
        """Test statuses outside the three known values are rejected."""
        with pytest.raises(ValueError):
            make_expense(status="archived")


class TestExpenseDraft:
    """Tests for the ExpenseDraft input model."""

    def test_draft_creation(self):
        """Test a valid draft."""
        draft = ExpenseDraft(
            description="Internet",
            amount="75",
            category="Utilities",
            date="2026-10-02",
            added_by="bob",
        )
        assert draft.amount == Decimal("75")
        assert draft.date == datetime(2026, 10, 2)

    def test_draft_rejects_malformed_date(self):
        """Test drafts are strict about dates."""
        with pytest.raises(ValueError, match="Invalid expense date"):
            ExpenseDraft(
                description="Internet",
                amount="75",
                category="Utilities",
                date="yesterday",
                added_by="bob",
            )


class TestMemberModel:
    """Tests for the Member model."""

    def test_member_defaults(self):
        """Test members are not managers by default."""
        member = Member(name="Alice", room_id="room-1")
        assert member.is_manager is False
        assert member.id

    def test_member_requires_name(self):
        """Test an empty name is rejected."""
        with pytest.raises(ValueError):
            Member(name="   ", room_id="room-1")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            description="Expense logged",
        )
        assert event.event_type == AuditEventType.EXPENSE_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.SETTLEMENT_COMPUTED,
            description="Settlement computed",
            details={"member_count": 3},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "settlement_computed"
        assert log_dict["details"]["member_count"] == 3

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_STATUS_CHANGED,
            actor_id="manager",
            description="Expense approved",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12  # Expected number of columns
        assert row[2] == "expense_status_changed"
        assert row[7] == "manager"  # actor_id
        assert row[11] == "True"  # is_user_action

    def test_builder_status_changed(self):
        """Test AuditEventBuilder.expense_status_changed."""
        correlation_id = uuid4()

        event = AuditEventBuilder.expense_status_changed(
            expense_id="exp-1",
            previous_status="pending",
            new_status="approved",
            actor_id="manager",
            version=1,
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.EXPENSE_STATUS_CHANGED
        assert event.entity_id == "exp-1"
        assert event.correlation_id == correlation_id
        assert event.details["version"] == 1
        assert event.is_user_action is True

    def test_builder_status_change_rejected_is_warning(self):
        """Test refused status changes are logged as warnings."""
        event = AuditEventBuilder.status_change_rejected(
            expense_id="exp-1",
            requested_status="bogus",
            actor_id="bob",
            reason="Invalid status",
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "Invalid status"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            structure_valid=False,
            records_valid=True,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="is_manager",
                    issue_type="no_manager",
                    message="Nobody can approve",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            structure_valid=True,
            records_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                    entity_id="exp-1",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert len(result.issues_for("exp-1")) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
