"""Ledger reconciliation: the only place balances change."""

from pocketledger.reconciliation.service import (
    LedgerReconciliationService,
    balance_effect,
)

__all__ = [
    "LedgerReconciliationService",
    "balance_effect",
]
