"""
Room Ledger - Source Package

The computational core of a shared-household expense tracker: members log
expenses, a manager approves or rejects them, and the ledger is turned into
settlement balances and spending analytics.

DESIGN PRINCIPLES:
1. Member logs → Manager decides → Ledger derives
2. Derived views are pure functions over a snapshot
3. Money stays Decimal until it is displayed
4. Every state change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Room Ledger Team"
