"""
Two-Stage Ledger Check

DESIGN DECISION: The core tolerates a lot (malformed dates, approvals by
non-managers, expenses from people who left the room). Instead of refusing
to load such data, this module looks at a room snapshot and reports what
looks wrong, in two stages:

STAGE 1 - ROOM STRUCTURE:
- Does the room have a manager?
- Does it have more than one?

STAGE 2 - EXPENSE RECORDS:
- Added by someone who is not a member
- Decided by someone who is not a manager
- Decided without a decision time
- Malformed or far-future date
- Absurd amount

Stage 2 always runs; a room without a manager still has records worth
checking.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for human review.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from roomledger.config import AppSettings, get_settings
from roomledger.models.expense import Expense, ExpenseStatus, Member, parse_timestamp, utcnow
from roomledger.models.validation import ValidationIssue, ValidationResult


class LedgerValidator:
    """
    Checks a room snapshot through a two-stage pipeline.

    Stage 1: Room structure (members only)
    Stage 2: Expense records (needs the member list for lookups)
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        """
        Initialize validator.

        Args:
            settings: Thresholds to check against. Defaults to the
                      application settings.
        """
        self._settings = settings or get_settings().app

    def _validate_structure(
        self,
        members: list[Member],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Room structure.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        managers = [m for m in members if m.is_manager]

        if not members:
            issues.append(ValidationIssue(
                field="members",
                issue_type="empty_room",
                message="This room has no members",
                severity="warning",
                suggested_fix="Add at least one roommate",
            ))
        elif not managers:
            issues.append(ValidationIssue(
                field="is_manager",
                issue_type="no_manager",
                message="Nobody in this room can approve expenses",
                severity="error",
                suggested_fix="Make one roommate the manager",
            ))
        elif len(managers) > 1:
            names = ", ".join(m.name for m in managers)
            issues.append(ValidationIssue(
                field="is_manager",
                issue_type="multiple_managers",
                message=f"This room has {len(managers)} managers: {names}",
                severity="warning",
                suggested_fix="Keep a single manager per room",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_records(
        self,
        expenses: list[Expense],
        members: list[Member],
        now: datetime,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Expense records.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        member_ids = {m.id for m in members}
        manager_ids = {m.id for m in members if m.is_manager}
        latest_allowed = now + timedelta(days=self._settings.future_date_tolerance_days)
        max_amount = Decimal(str(self._settings.max_expense_amount))

        for expense in expenses:
            label = f"'{expense.description}'"

            if expense.added_by not in member_ids:
                issues.append(ValidationIssue(
                    field="added_by",
                    issue_type="unknown_member",
                    message=f"Expense {label} was added by someone who is not in the room",
                    severity="warning",
                    entity_id=expense.id,
                    suggested_fix="It still counts toward the total but not toward anyone's balance",
                ))

            if expense.status != ExpenseStatus.PENDING:
                if expense.approved_by and expense.approved_by not in manager_ids:
                    issues.append(ValidationIssue(
                        field="approved_by",
                        issue_type="approver_not_manager",
                        message=f"Expense {label} was {expense.status.value} by a non-manager",
                        severity="warning",
                        entity_id=expense.id,
                        suggested_fix="Ask the manager to review it again",
                    ))
                if expense.approved_at is None:
                    issues.append(ValidationIssue(
                        field="approved_at",
                        issue_type="missing",
                        message=f"Expense {label} is {expense.status.value} but has no decision time",
                        severity="warning",
                        entity_id=expense.id,
                    ))

            if expense.date is None:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="malformed_date",
                    message=f"Expense {label} has an unreadable date",
                    severity="warning",
                    entity_id=expense.id,
                    suggested_fix="It is left out of monthly views until the date is fixed",
                ))
            elif expense.date > latest_allowed:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message=f"Expense {label} is dated {expense.date.date()}, which is in the future",
                    severity="warning",
                    entity_id=expense.id,
                    suggested_fix="Check if the date was entered correctly",
                ))

            if expense.amount > max_amount:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message=f"Expense {label} amount ({expense.amount}) seems unusually high",
                    severity="warning",
                    entity_id=expense.id,
                    suggested_fix="Please verify the amount is correct",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def validate(
        self,
        expenses: Iterable[Expense],
        members: Iterable[Member],
        room_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        """
        Run the full two-stage check.

        Args:
            expenses: The room's expenses (any status)
            members: The room's members
            room_id: Room being checked, for the result
            now: Reference time for the future-date check

        Returns:
            ValidationResult with all issues found
        """
        expenses = list(expenses)
        members = list(members)
        now = parse_timestamp(now) or utcnow()

        structure_valid, structure_issues = self._validate_structure(members)
        records_valid, record_issues = self._validate_records(expenses, members, now)

        all_issues = structure_issues + record_issues
        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            room_id=room_id,
            structure_valid=structure_valid,
            records_valid=records_valid,
            is_valid=structure_valid and records_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to roommates.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed! The ledger looks healthy."

        lines = []

        if result.has_errors:
            lines.append("❌ This room needs attention:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
