"""
Pocket Ledger - Source Package

The balance-keeping core of a personal finance app: accounts, income,
expense and loan transactions, category budgets and simple analytics,
stored in a remote document store.

DESIGN PRINCIPLES:
1. One place mutates balances (the reconciliation service)
2. A balance is always the running sum of its posted transactions
3. No silent recovery - partial writes are reported, never hidden
4. Every ledger mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Pocket Ledger Team"
