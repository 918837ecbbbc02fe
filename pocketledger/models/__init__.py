"""
Data Models Package

This package contains all Pydantic models used in Pocket Ledger.
All data flowing through the system must conform to these schemas.
"""

from pocketledger.models.ledger import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    Account,
    AnalyticsSummary,
    BalanceCheck,
    Budget,
    BudgetPeriod,
    BudgetStatus,
    LoanStatus,
    LoanSummary,
    LoanType,
    Transaction,
    TransactionKind,
    TransactionQuery,
    ValidationIssue,
)
from pocketledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "Account",
    "AnalyticsSummary",
    "BalanceCheck",
    "Budget",
    "BudgetPeriod",
    "BudgetStatus",
    "LoanStatus",
    "LoanSummary",
    "LoanType",
    "Transaction",
    "TransactionKind",
    "TransactionQuery",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
