"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the document store.
This allows us to:
1. Swap Google Sheets for a real document database later
2. Use in-memory storage for testing
3. Add caching layers transparently
4. Keep reconciliation logic decoupled from storage implementation

The interface mirrors what a schemaless document store offers:
collections, equality/range filters, ordering. Nothing more.

CONCURRENCY: Account balances are never written blindly.
The only way to change a balance is compare_and_set_balance(), which
fails with ConflictError if someone else wrote the account first.
Transaction updates and deletes take the same kind of version token.
"""

from abc import ABC, abstractmethod
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


class LedgerStorageInterface(ABC):
    """
    Abstract interface for the accounts, transactions and budgets collections.

    Any storage implementation (Google Sheets, Firestore, etc.)
    must implement these methods.
    """

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_account(self, account: Account) -> Account:
        """
        Insert a new account.

        Raises:
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def get_account(self, account_id: str) -> Optional[Account]:
        """Retrieve an account by ID, None if missing."""
        pass

    @abstractmethod
    async def find_account(self, owner_id: str, name: str) -> Optional[Account]:
        """
        Find an account by owner and exact name.

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_accounts(self, owner_id: str) -> list[Account]:
        """List all accounts of an owner, oldest first."""
        pass

    @abstractmethod
    async def update_account(
        self,
        account_id: str,
        name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Account:
        """
        Change display fields of an account. Never touches the balance.

        Raises:
            NotFoundError: If the account doesn't exist
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def compare_and_set_balance(
        self,
        account_id: str,
        expected_version: int,
        new_balance: Decimal,
    ) -> Account:
        """
        Write a new balance only if the account is still at expected_version.

        On success the version is incremented.

        Returns:
            The updated account

        Raises:
            NotFoundError: If the account doesn't exist
            ConflictError: If the version moved since it was read
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_account(self, account_id: str) -> bool:
        """
        Delete an account by ID.

        Returns:
            True if deleted, False if it didn't exist
        """
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_transaction(self, transaction: Transaction) -> Transaction:
        """
        Insert a new transaction.

        Raises:
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Retrieve a transaction by ID, None if missing."""
        pass

    @abstractmethod
    async def update_transaction(
        self,
        transaction_id: str,
        changes: dict,
        expected_version: Optional[int] = None,
    ) -> Transaction:
        """
        Apply field changes to a transaction.

        On success the version is incremented.

        Args:
            transaction_id: The transaction to change
            changes: Field name -> new value
            expected_version: If given, the write only happens while the
                stored version still equals it

        Returns:
            The updated transaction

        Raises:
            NotFoundError: If the transaction doesn't exist
            ConflictError: If expected_version no longer matches
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_transaction(
        self,
        transaction_id: str,
        expected_version: Optional[int] = None,
    ) -> bool:
        """
        Delete a transaction by ID.

        Args:
            transaction_id: The transaction to delete
            expected_version: If given, the delete only happens while the
                stored version still equals it

        Returns:
            True if deleted, False if it didn't exist

        Raises:
            ConflictError: If expected_version no longer matches
        """
        pass

    @abstractmethod
    async def list_transactions(self, query: TransactionQuery) -> list[Transaction]:
        """
        List transactions matching a query, newest first.

        Args:
            query: Owner, kind, category, loan, account and date filters

        Returns:
            List of matching transactions
        """
        pass

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_budget(self, budget: Budget) -> Budget:
        """Insert a new budget."""
        pass

    @abstractmethod
    async def get_budget(self, budget_id: str) -> Optional[Budget]:
        """Retrieve a budget by ID, None if missing."""
        pass

    @abstractmethod
    async def update_budget(self, budget: Budget) -> Budget:
        """
        Replace a stored budget.

        Raises:
            NotFoundError: If the budget doesn't exist
        """
        pass

    @abstractmethod
    async def delete_budget(self, budget_id: str) -> bool:
        """Delete a budget by ID."""
        pass

    @abstractmethod
    async def list_budgets(self, owner_id: str) -> list[Budget]:
        """List all budgets of an owner, oldest first."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one post_transaction call).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'transaction', 'account')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StoreError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StoreError):
    """Entity not found in storage."""
    pass


class ConflictError(StoreError):
    """A conditional write lost against a concurrent write."""
    pass


class StoreConnectionError(StoreError):
    """Could not connect to storage backend."""
    pass
