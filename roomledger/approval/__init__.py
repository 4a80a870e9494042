"""Expense approval package."""

from roomledger.approval.state_machine import (
    STRICT_TRANSITIONS,
    InvalidStatusError,
    TransitionNotAllowedError,
    can_transition,
    compute_approval,
    parse_status,
    set_status,
)

__all__ = [
    "STRICT_TRANSITIONS",
    "InvalidStatusError",
    "TransitionNotAllowedError",
    "can_transition",
    "compute_approval",
    "parse_status",
    "set_status",
]
