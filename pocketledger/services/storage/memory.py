"""
In-Memory Storage Implementation

Used by the test suite and as the default backend for local runs.

Every operation yields to the event loop once before touching state,
the way a network round trip would. That is what lets concurrent
coroutines interleave between a balance read and its write, so the
optimistic-concurrency path is exercised for real.

Documents are copied on the way in and on the way out; callers can
never mutate stored state by accident.
"""

import asyncio
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pocketledger.models.audit import AuditEvent
from pocketledger.models.ledger import (
    Account,
    Budget,
    Transaction,
    TransactionQuery,
)
from pocketledger.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    LedgerStorageInterface,
    NotFoundError,
)


async def _round_trip() -> None:
    await asyncio.sleep(0)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed document store for accounts, transactions and budgets."""

    def __init__(self):
        self._accounts: dict[str, Account] = {}
        self._transactions: dict[str, Transaction] = {}
        self._budgets: dict[str, Budget] = {}

    # Accounts

    async def add_account(self, account: Account) -> Account:
        await _round_trip()
        self._accounts[account.id] = account.model_copy()
        return account.model_copy()

    async def get_account(self, account_id: str) -> Optional[Account]:
        await _round_trip()
        account = self._accounts.get(account_id)
        return account.model_copy() if account else None

    async def find_account(self, owner_id: str, name: str) -> Optional[Account]:
        await _round_trip()
        for account in self._accounts.values():
            if account.owner_id == owner_id and account.name == name:
                return account.model_copy()
        return None

    async def list_accounts(self, owner_id: str) -> list[Account]:
        await _round_trip()
        accounts = [
            a.model_copy() for a in self._accounts.values()
            if a.owner_id == owner_id
        ]
        accounts.sort(key=lambda a: a.created_at)
        return accounts

    async def update_account(
        self,
        account_id: str,
        name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Account:
        await _round_trip()
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")

        changes = {}
        if name is not None:
            changes["name"] = name
        if color is not None:
            changes["color"] = color
        updated = account.model_copy(update=changes)
        self._accounts[account_id] = updated
        return updated.model_copy()

    async def compare_and_set_balance(
        self,
        account_id: str,
        expected_version: int,
        new_balance: Decimal,
    ) -> Account:
        await _round_trip()
        # No await below this line: check and write happen in one step
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        if account.version != expected_version:
            raise ConflictError(
                f"Account {account_id} is at version {account.version}, "
                f"expected {expected_version}"
            )

        updated = account.model_copy(
            update={"balance": new_balance, "version": account.version + 1}
        )
        self._accounts[account_id] = updated
        return updated.model_copy()

    async def delete_account(self, account_id: str) -> bool:
        await _round_trip()
        return self._accounts.pop(account_id, None) is not None

    # Transactions

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        await _round_trip()
        self._transactions[transaction.id] = transaction.model_copy()
        return transaction.model_copy()

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        await _round_trip()
        txn = self._transactions.get(transaction_id)
        return txn.model_copy() if txn else None

    async def update_transaction(
        self,
        transaction_id: str,
        changes: dict,
        expected_version: Optional[int] = None,
    ) -> Transaction:
        await _round_trip()
        txn = self._transactions.get(transaction_id)
        if txn is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        self._check_version(txn, expected_version)

        # Re-validate so a bad change can never be stored
        updated = Transaction.model_validate(
            {**txn.model_dump(), **changes, "version": txn.version + 1}
        )
        self._transactions[transaction_id] = updated
        return updated.model_copy()

    async def delete_transaction(
        self,
        transaction_id: str,
        expected_version: Optional[int] = None,
    ) -> bool:
        await _round_trip()
        txn = self._transactions.get(transaction_id)
        if txn is None:
            return False
        self._check_version(txn, expected_version)
        del self._transactions[transaction_id]
        return True

    @staticmethod
    def _check_version(txn: Transaction, expected_version: Optional[int]) -> None:
        if expected_version is not None and txn.version != expected_version:
            raise ConflictError(
                f"Transaction {txn.id} is at version {txn.version}, "
                f"expected {expected_version}"
            )

    async def list_transactions(self, query: TransactionQuery) -> list[Transaction]:
        await _round_trip()
        return [t.model_copy() for t in query.apply(list(self._transactions.values()))]

    # Budgets

    async def add_budget(self, budget: Budget) -> Budget:
        await _round_trip()
        self._budgets[budget.id] = budget.model_copy()
        return budget.model_copy()

    async def get_budget(self, budget_id: str) -> Optional[Budget]:
        await _round_trip()
        budget = self._budgets.get(budget_id)
        return budget.model_copy() if budget else None

    async def update_budget(self, budget: Budget) -> Budget:
        await _round_trip()
        if budget.id not in self._budgets:
            raise NotFoundError(f"Budget not found: {budget.id}")
        self._budgets[budget.id] = budget.model_copy()
        return budget.model_copy()

    async def delete_budget(self, budget_id: str) -> bool:
        await _round_trip()
        return self._budgets.pop(budget_id, None) is not None

    async def list_budgets(self, owner_id: str) -> list[Budget]:
        await _round_trip()
        budgets = [
            b.model_copy() for b in self._budgets.values()
            if b.owner_id == owner_id
        ]
        budgets.sort(key=lambda b: b.created_at)
        return budgets


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed append-only audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
