"""
Data Models Package

This package contains all Pydantic models used in Room Ledger.
Ledger records live in expense.py, computed views in derived.py and the
audit trail in audit.py. Ledger health results live in validation.py.
"""

from roomledger.models.expense import (
    Expense,
    ExpenseDraft,
    ExpenseStatus,
    Member,
    parse_timestamp,
    utcnow,
)
from roomledger.models.derived import (
    AnalyticsReport,
    AnalyticsWindow,
    Balance,
    BalanceStanding,
    CategoryShare,
    CategoryTotal,
    ContributorStat,
    Highlights,
    MonthlyBucket,
    PaceSnapshot,
    PairwiseBalance,
    SettlementReport,
    StatusBreakdown,
    StatusSummary,
    WindowOverview,
)
from roomledger.models.validation import (
    ValidationIssue,
    ValidationResult,
)
from roomledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger records
    "Expense",
    "ExpenseDraft",
    "ExpenseStatus",
    "Member",
    "parse_timestamp",
    "utcnow",
    # Derived views
    "AnalyticsReport",
    "AnalyticsWindow",
    "Balance",
    "BalanceStanding",
    "CategoryShare",
    "CategoryTotal",
    "ContributorStat",
    "Highlights",
    "MonthlyBucket",
    "PaceSnapshot",
    "PairwiseBalance",
    "SettlementReport",
    "StatusBreakdown",
    "StatusSummary",
    "WindowOverview",
    # Ledger health
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
