"""
Shared fixtures.

Everything runs against the in-memory store. Retry waits are zeroed
so conflict retries do not slow the suite down.
"""

import pytest

from pocketledger.accounts import AccountService
from pocketledger.analytics import AnalyticsAggregator
from pocketledger.audit import AuditLogger
from pocketledger.budgets import BudgetEvaluator, BudgetService
from pocketledger.config import LedgerSettings
from pocketledger.reconciliation import LedgerReconciliationService
from pocketledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage
from pocketledger.validation import TransactionValidator


@pytest.fixture
def settings():
    return LedgerSettings(
        balance_retry_wait_min=0,
        balance_retry_wait_max=0,
        timezone="UTC",
    )


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def validator(settings):
    return TransactionValidator(settings)


@pytest.fixture
def ledger(storage, audit_logger, validator, settings):
    return LedgerReconciliationService(
        storage,
        audit_logger=audit_logger,
        validator=validator,
        settings=settings,
    )


@pytest.fixture
def accounts(storage, audit_logger, validator, settings):
    return AccountService(
        storage,
        audit_logger=audit_logger,
        validator=validator,
        settings=settings,
    )


@pytest.fixture
def budgets(storage, audit_logger, validator, settings):
    return BudgetService(
        storage,
        audit_logger=audit_logger,
        validator=validator,
        settings=settings,
    )


@pytest.fixture
def evaluator(storage, settings):
    return BudgetEvaluator(storage, settings=settings)


@pytest.fixture
def analytics(storage):
    return AnalyticsAggregator(storage)
