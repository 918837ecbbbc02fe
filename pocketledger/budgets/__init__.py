"""Budgets: spend evaluation and budget management."""

from pocketledger.budgets.evaluator import BudgetEvaluator, period_start
from pocketledger.budgets.service import BudgetService

__all__ = ["BudgetEvaluator", "BudgetService", "period_start"]
