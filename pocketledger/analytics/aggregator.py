"""
Analytics Aggregator

DESIGN DECISION: Aggregation is DETERMINISTIC and pure.
summarize() and friends take a list of transactions and return totals;
they never read the store themselves. AnalyticsAggregator is the thin
bridge that fetches an owner's transactions and hands them over.

Loans never count as income or expense. They are reported separately
by loan_outstanding().
"""

from decimal import Decimal
from typing import Iterable, Optional

from pocketledger.models.ledger import (
    ZERO,
    AnalyticsSummary,
    LoanStatus,
    LoanSummary,
    LoanType,
    Transaction,
    TransactionKind,
    TransactionQuery,
)
from pocketledger.services.storage import LedgerStorageInterface

OTHER_CATEGORY = "Other"


def summarize(transactions: Iterable[Transaction]) -> AnalyticsSummary:
    """
    Income and expense totals plus the expense breakdown by category.

    Transactions without a category are grouped under "Other".
    """
    total_income = ZERO
    total_expense = ZERO
    by_category: dict[str, Decimal] = {}

    for txn in transactions:
        if txn.kind == TransactionKind.INCOME:
            total_income += txn.amount
        elif txn.kind == TransactionKind.EXPENSE:
            total_expense += txn.amount
            key = (txn.category or "").strip() or OTHER_CATEGORY
            by_category[key] = by_category.get(key, ZERO) + txn.amount

    return AnalyticsSummary(
        total_income=total_income,
        total_expense=total_expense,
        net_balance=total_income - total_expense,
        by_category=by_category,
    )


def loan_outstanding(transactions: Iterable[Transaction]) -> LoanSummary:
    """Money still out on pending loans, split by direction."""
    lent = ZERO
    borrowed = ZERO
    count = 0

    for txn in transactions:
        if not txn.is_loan or txn.status != LoanStatus.PENDING:
            continue
        count += 1
        if txn.loan_type == LoanType.LENT:
            lent += txn.amount
        else:
            borrowed += txn.amount

    return LoanSummary(pending_lent=lent, pending_borrowed=borrowed, pending_count=count)


def category_shares(summary: AnalyticsSummary) -> dict[str, Decimal]:
    """Each category's share of total expense, in [0, 1]."""
    if summary.total_expense <= 0:
        return {}
    return {
        category: (amount / summary.total_expense).quantize(Decimal("0.0001"))
        for category, amount in summary.by_category.items()
    }


class AnalyticsAggregator:
    """
    Runs the pure aggregations over an owner's stored transactions.

    GUARANTEES:
    - Only aggregates real data from storage
    - Empty history gives zeros, never an error
    """

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    async def summarize_owner(
        self,
        owner_id: str,
        account_id: Optional[str] = None,
    ) -> AnalyticsSummary:
        """Summary of all income and expense, optionally for one account."""
        transactions = await self._storage.list_transactions(TransactionQuery(
            owner_id=owner_id,
            kinds=[TransactionKind.INCOME, TransactionKind.EXPENSE],
            account_id=account_id,
        ))
        return summarize(transactions)

    async def loans_for_owner(self, owner_id: str) -> LoanSummary:
        loans = await self._storage.list_transactions(TransactionQuery(
            owner_id=owner_id,
            kind=TransactionKind.LOAN,
            status=LoanStatus.PENDING,
        ))
        return loan_outstanding(loans)
