"""Settlement calculation package."""

from roomledger.settlement.calculator import (
    approved_only,
    compute_settlement,
    equal_share,
    pairwise_balance,
    spent_by_contributor,
)

__all__ = [
    "approved_only",
    "compute_settlement",
    "equal_share",
    "pairwise_balance",
    "spent_by_contributor",
]
