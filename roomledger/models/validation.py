"""
Ledger Health Models

Output of the ledger validator. Issues are reported, never fixed.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from roomledger.models.expense import utcnow


class ValidationIssue(BaseModel):
    """A single problem found in a room's ledger."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'no_manager', 'malformed_date', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Expense or member the issue is about"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of a ledger check.

    Stage 1: Room structure (who manages the room)
    Stage 2: Expense records (dates, amounts, approvers)
    """

    room_id: Optional[str] = None
    validated_at: datetime = Field(default_factory=utcnow)

    # Stage results
    structure_valid: bool = Field(
        ...,
        description="Did the room structure checks pass?"
    )
    records_valid: bool = Field(
        ...,
        description="Did the expense record checks pass?"
    )

    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    # Warnings don't block but should be shown
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    def issues_for(self, entity_id: str) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.entity_id == entity_id]
