"""
Budget Service

Create, update and delete category budgets. Budgets never touch
balances; they are only read by the BudgetEvaluator.
"""

from typing import Any, Optional

from pocketledger.audit import AuditLogger
from pocketledger.config import LedgerSettings, get_settings
from pocketledger.errors import BudgetNotFoundError
from pocketledger.models.audit import AuditEventType
from pocketledger.models.ledger import Budget
from pocketledger.services.storage import LedgerStorageInterface
from pocketledger.validation import TransactionValidator


class BudgetService:
    """CRUD for budgets, scoped to an owner."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[TransactionValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().ledger
        self._validator = validator or TransactionValidator(self._settings)
        self._audit_logger = audit_logger

    async def create_budget(
        self,
        owner_id: str,
        category: str,
        limit_amount: Any,
        period: Any,
    ) -> Budget:
        """
        Create a budget.

        Raises:
            ValidationError: Blank category, non-positive limit, unknown period
        """
        fields, issues = self._validator.check_budget(category, limit_amount, period)
        self._validator.raise_for_issues(issues)

        budget = await self._storage.add_budget(Budget(owner_id=owner_id, **fields))
        await self._audit(AuditEventType.BUDGET_CREATED, budget)
        return budget

    async def update_budget(
        self,
        owner_id: str,
        budget_id: str,
        category: str,
        limit_amount: Any,
        period: Any,
    ) -> Budget:
        """
        Replace a budget's category, limit and period.

        Raises:
            BudgetNotFoundError: Missing or not owned by owner_id
            ValidationError: Same rules as create_budget
        """
        fields, issues = self._validator.check_budget(category, limit_amount, period)
        self._validator.raise_for_issues(issues)

        budget = await self._get_owned_budget(owner_id, budget_id)
        updated = await self._storage.update_budget(budget.model_copy(update=fields))
        await self._audit(AuditEventType.BUDGET_UPDATED, updated)
        return updated

    async def delete_budget(self, owner_id: str, budget_id: str) -> None:
        budget = await self._get_owned_budget(owner_id, budget_id)
        if not await self._storage.delete_budget(budget.id):
            raise BudgetNotFoundError(budget_id)
        await self._audit(AuditEventType.BUDGET_DELETED, budget)

    async def list_budgets(self, owner_id: str) -> list[Budget]:
        return await self._storage.list_budgets(owner_id)

    async def _get_owned_budget(self, owner_id: str, budget_id: str) -> Budget:
        budget = await self._storage.get_budget(budget_id)
        if budget is None or budget.owner_id != owner_id:
            raise BudgetNotFoundError(budget_id)
        return budget

    async def _audit(self, event_type: AuditEventType, budget: Budget) -> None:
        if self._audit_logger:
            await self._audit_logger.log_budget_changed(
                event_type=event_type,
                budget_id=budget.id,
                owner_id=budget.owner_id,
                category=budget.category,
                limit_amount=budget.limit_amount,
                period=budget.period.value,
            )
