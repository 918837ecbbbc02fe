"""
Component Factory for Pocket Ledger

Ties storage, audit logging and the services together.

DESIGN DECISION: Nothing here is a module-level singleton.
The store and the audit logger are built once per call and injected
into every service, so two LedgerComponents never share state
unless they are given the same store.

A misconfigured remote backend is an error, not a silent fallback
to the in-memory store: losing a user's ledger to a typo in .env is
worse than refusing to start.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from pocketledger.accounts import AccountService
from pocketledger.analytics import AnalyticsAggregator
from pocketledger.audit import AuditLogger
from pocketledger.budgets import BudgetEvaluator, BudgetService
from pocketledger.config import get_settings
from pocketledger.reconciliation import LedgerReconciliationService
from pocketledger.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)
from pocketledger.validation import TransactionValidator


logger = structlog.get_logger(__name__)


@dataclass
class LedgerComponents:
    """Everything a presentation layer needs, wired to one store."""

    storage: LedgerStorageInterface
    audit_storage: AuditStorageInterface
    audit_logger: AuditLogger
    ledger: LedgerReconciliationService
    accounts: AccountService
    budgets: BudgetService
    budget_evaluator: BudgetEvaluator
    analytics: AnalyticsAggregator
    sheets_client: Optional[GoogleSheetsClient] = None


def create_ledger_components(backend: Optional[str] = None) -> LedgerComponents:
    """
    Factory function to create all ledger components.

    Args:
        backend: "memory" or "google_sheets".
                 Defaults to LEDGER_STORAGE_BACKEND.

    Raises:
        ValueError: Unknown backend
        pydantic.ValidationError: google_sheets selected but GOOGLE_SHEETS_* not set
    """
    settings = get_settings()
    ledger_settings = settings.ledger
    backend = backend or ledger_settings.storage_backend

    sheets_client = None
    if backend == "memory":
        storage = InMemoryLedgerStorage()
        audit_storage = InMemoryAuditStorage()
    elif backend == "google_sheets":
        sheets_client = GoogleSheetsClient(settings.google_sheets)
        storage = GoogleSheetsLedgerStorage(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    logger.info("ledger_components_created", backend=backend)

    audit_logger = AuditLogger(audit_storage)
    validator = TransactionValidator(ledger_settings)

    return LedgerComponents(
        storage=storage,
        audit_storage=audit_storage,
        audit_logger=audit_logger,
        ledger=LedgerReconciliationService(
            storage,
            audit_logger=audit_logger,
            validator=validator,
            settings=ledger_settings,
        ),
        accounts=AccountService(
            storage,
            audit_logger=audit_logger,
            validator=validator,
            settings=ledger_settings,
        ),
        budgets=BudgetService(
            storage,
            audit_logger=audit_logger,
            validator=validator,
            settings=ledger_settings,
        ),
        budget_evaluator=BudgetEvaluator(storage, settings=ledger_settings),
        analytics=AnalyticsAggregator(storage),
        sheets_client=sheets_client,
    )
