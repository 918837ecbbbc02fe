"""Analytics package."""

from pocketledger.analytics.aggregator import (
    AnalyticsAggregator,
    category_shares,
    loan_outstanding,
    summarize,
)

__all__ = [
    "AnalyticsAggregator",
    "category_shares",
    "loan_outstanding",
    "summarize",
]
