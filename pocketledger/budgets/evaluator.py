"""
Budget Evaluator

Computes how much of a category budget has been spent in the
current period.

DESIGN DECISION: Period boundaries are computed in the configured
local timezone, then compared with posted_at as instants.
A weekly budget therefore resets at local Monday 00:00, not at
UTC Monday 00:00.

There is no period end. "Spent" always means "from the period start
until now".
"""

from datetime import datetime, time, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Callable, Optional

from pocketledger.config import LedgerSettings, get_settings
from pocketledger.models.ledger import (
    ZERO,
    Budget,
    BudgetPeriod,
    BudgetStatus,
    TransactionKind,
    TransactionQuery,
    utc_now,
)
from pocketledger.services.storage import LedgerStorageInterface


def period_start(period: BudgetPeriod, now: datetime, tz: tzinfo) -> datetime:
    """
    Start of the period that contains `now`, at local midnight.

    daily   -> today
    weekly  -> the most recent Monday (today if today is Monday)
    monthly -> the first of the month
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_date = now.astimezone(tz).date()

    if period == BudgetPeriod.DAILY:
        start_date = local_date
    elif period == BudgetPeriod.WEEKLY:
        start_date = local_date - timedelta(days=local_date.weekday())
    elif period == BudgetPeriod.MONTHLY:
        start_date = local_date.replace(day=1)
    else:
        raise ValueError(f"Unknown budget period: {period}")

    return datetime.combine(start_date, time.min, tzinfo=tz)


class BudgetEvaluator:
    """
    Read-only spend calculations for budgets.

    The clock is injectable so tests can pin "now".
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        settings: Optional[LedgerSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().ledger
        self._clock = clock or utc_now

    async def compute_spent(
        self,
        owner_id: str,
        category: str,
        period: BudgetPeriod,
        now: Optional[datetime] = None,
    ) -> Decimal:
        """Sum of the owner's expenses in `category` since the period start."""
        now = now or self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        start = period_start(BudgetPeriod(period), now, self._settings.tzinfo)

        expenses = await self._storage.list_transactions(TransactionQuery(
            owner_id=owner_id,
            kind=TransactionKind.EXPENSE,
            category=category.strip(),
            posted_from=start,
        ))
        return sum((t.amount for t in expenses if t.posted_at <= now), ZERO)

    async def evaluate(self, budget: Budget, now: Optional[datetime] = None) -> BudgetStatus:
        """Spent, remaining and progress for one budget."""
        now = now or self._clock()
        spent = await self.compute_spent(
            budget.owner_id, budget.category, budget.period, now=now
        )
        limit = budget.limit_amount

        if limit > 0:
            percentage = (spent / limit).quantize(Decimal("0.0001"))
        else:
            percentage = Decimal("0")

        return BudgetStatus(
            budget=budget,
            period_start=period_start(budget.period, now, self._settings.tzinfo),
            spent=spent,
            remaining=limit - spent,
            percentage=percentage,
            progress=min(max(percentage, Decimal("0")), Decimal("1")),
            over_budget=spent > limit,
        )

    async def evaluate_all(
        self,
        owner_id: str,
        now: Optional[datetime] = None,
    ) -> list[BudgetStatus]:
        """Evaluate every budget of an owner against the same instant."""
        now = now or self._clock()
        budgets = await self._storage.list_budgets(owner_id)
        return [await self.evaluate(budget, now=now) for budget in budgets]
