"""
Settlement Calculator

Turns a ledger snapshot into who-owes-whom under an equal split.

DESIGN DECISION: Only APPROVED expenses count. Pending and rejected
expenses never move a balance.

GUARANTEES:
- No division by zero: an empty room has an equal share of 0
- Conservation: member spend + unassigned spend == total approved
- Full Decimal precision; rounding is left to presentation
"""

from collections.abc import Iterable
from decimal import Decimal

from roomledger.models.derived import Balance, PairwiseBalance, SettlementReport
from roomledger.models.expense import Expense, ExpenseStatus, Member


ZERO = Decimal("0")


def approved_only(expenses: Iterable[Expense]) -> list[Expense]:
    return [e for e in expenses if e.status == ExpenseStatus.APPROVED]


def spent_by_contributor(expenses: Iterable[Expense]) -> dict[str, Decimal]:
    """
    Sum approved spend per member ID.

    Keys appear in first-encountered order.
    """
    totals: dict[str, Decimal] = {}
    for expense in approved_only(expenses):
        totals[expense.added_by] = totals.get(expense.added_by, ZERO) + expense.amount
    return totals


def equal_share(total: Decimal, member_count: int) -> Decimal:
    """Total split evenly; 0 when there is nobody to split between."""
    if member_count <= 0:
        return ZERO
    return total / member_count


def compute_settlement(
    expenses: Iterable[Expense],
    members: Iterable[Member],
) -> SettlementReport:
    """
    Compute per-member balances for a room.

    Args:
        expenses: Full ledger snapshot (any status)
        members: Everyone sharing the room

    Returns:
        SettlementReport with one Balance per member, in member order
    """
    expenses = list(expenses)
    members = list(members)

    spent = spent_by_contributor(expenses)
    total_approved = sum(spent.values(), ZERO)
    share = equal_share(total_approved, len(members))

    per_member = []
    member_ids = set()
    for member in members:
        member_spent = spent.get(member.id, ZERO)
        per_member.append(Balance(
            member_id=member.id,
            spent=member_spent,
            share=share,
            net=member_spent - share,
        ))
        member_ids.add(member.id)

    unassigned_total = sum(
        (amount for member_id, amount in spent.items() if member_id not in member_ids),
        ZERO,
    )
    pending_count = sum(1 for e in expenses if e.status == ExpenseStatus.PENDING)

    return SettlementReport(
        per_member=per_member,
        total_approved=total_approved,
        equal_share=share,
        member_count=len(members),
        unassigned_total=unassigned_total,
        pending_count=pending_count,
        spent_by_contributor=spent,
    )


def pairwise_balance(
    expenses: Iterable[Expense],
    member_a: str,
    member_b: str,
) -> PairwiseBalance:
    """
    Compare two members' approved spend.

    Only expenses added by member_a or member_b are looked at.
    net > 0 means member_a spent more. Unknown IDs simply spent nothing.
    """
    involved = {member_a, member_b}
    spent = spent_by_contributor(
        e for e in expenses if e.added_by in involved
    )
    return PairwiseBalance.between(
        member_a,
        member_b,
        spent.get(member_a, ZERO),
        spent.get(member_b, ZERO),
    )
