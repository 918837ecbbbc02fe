"""
Account Service

Manages an owner's accounts: default provisioning, create, rename
and delete. Balances are NOT managed here; only the reconciliation
service changes them.

Every owner starts with one default account ("Current", teal,
balance 0). An owner can never end up with zero accounts.
"""

from typing import Optional

from pocketledger.audit import AuditLogger
from pocketledger.config import LedgerSettings, get_settings
from pocketledger.errors import AccountNotFoundError, InvalidStateError
from pocketledger.models.ledger import Account, TransactionQuery, ValidationIssue
from pocketledger.services.storage import LedgerStorageInterface
from pocketledger.validation import TransactionValidator


class AccountService:
    """Account lifecycle, scoped to an owner."""

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

    async def ensure_default_account(self, owner_id: str) -> Account:
        """
        Make sure the owner has at least one account.

        Returns the oldest existing account, or a freshly created
        default account if the owner had none.
        """
        accounts = await self._storage.list_accounts(owner_id)
        if accounts:
            return accounts[0]

        account = await self._storage.add_account(Account(
            owner_id=owner_id,
            name=self._settings.default_account_name,
            color=self._settings.default_account_color,
        ))
        if self._audit_logger:
            await self._audit_logger.log_account_created(
                account_id=account.id,
                owner_id=owner_id,
                name=account.name,
                is_default=True,
            )
        return account

    async def create_account(
        self,
        owner_id: str,
        name: str,
        color: Optional[str] = None,
    ) -> Account:
        """
        Create a new account with a zero balance.

        Raises:
            ValidationError: Blank name, or the owner already has an account with it
        """
        cleaned = await self._check_new_name(owner_id, name)

        account = await self._storage.add_account(Account(
            owner_id=owner_id,
            name=cleaned,
            color=self._validator.clean_text(color) or self._settings.default_account_color,
        ))
        if self._audit_logger:
            await self._audit_logger.log_account_created(
                account_id=account.id,
                owner_id=owner_id,
                name=account.name,
            )
        return account

    async def list_accounts(self, owner_id: str) -> list[Account]:
        return await self._storage.list_accounts(owner_id)

    async def get_account(self, owner_id: str, name: str) -> Account:
        """
        Raises:
            AccountNotFoundError: No account with that name
        """
        account = await self._storage.find_account(owner_id, self._validator.clean_text(name))
        if account is None:
            raise AccountNotFoundError(owner_id, name)
        return account

    async def rename_account(self, owner_id: str, name: str, new_name: str) -> Account:
        """
        Rename an account and refresh the name shown on its transactions.

        Transactions reference the account by ID, so a rename never
        detaches them.
        """
        account = await self.get_account(owner_id, name)
        cleaned = await self._check_new_name(owner_id, new_name, current=account)

        if cleaned == account.name:
            return account

        renamed = await self._storage.update_account(account.id, name=cleaned)
        history = await self._storage.list_transactions(
            TransactionQuery(owner_id=owner_id, account_id=account.id)
        )
        for txn in history:
            await self._storage.update_transaction(txn.id, {"account_name": cleaned})

        if self._audit_logger:
            await self._audit_logger.log_account_renamed(
                account_id=account.id,
                owner_id=owner_id,
                old_name=account.name,
                new_name=cleaned,
            )
        return renamed

    async def delete_account(self, owner_id: str, name: str) -> None:
        """
        Delete an account.

        Raises:
            AccountNotFoundError: No account with that name
            InvalidStateError: It is the owner's last account, or
                transactions still reference it
        """
        account = await self.get_account(owner_id, name)

        accounts = await self._storage.list_accounts(owner_id)
        if len(accounts) <= 1:
            raise InvalidStateError(
                f"Account {account.id} is the last account of owner {owner_id}",
                user_message="You need at least one account.",
            )

        referenced = await self._storage.list_transactions(
            TransactionQuery(owner_id=owner_id, account_id=account.id, limit=1)
        )
        if referenced:
            raise InvalidStateError(
                f"Account {account.id} still has transactions",
                user_message="Delete this account's transactions first.",
            )

        if not await self._storage.delete_account(account.id):
            raise AccountNotFoundError(owner_id, name)

        if self._audit_logger:
            await self._audit_logger.log_account_deleted(
                account_id=account.id,
                owner_id=owner_id,
                name=account.name,
                balance=account.balance,
            )

    async def _check_new_name(
        self,
        owner_id: str,
        name: str,
        current: Optional[Account] = None,
    ) -> str:
        cleaned, issues = self._validator.check_account_name(name)
        self._validator.raise_for_issues(issues)

        existing = await self._storage.find_account(owner_id, cleaned)
        if existing is not None and (current is None or existing.id != current.id):
            self._validator.raise_for_issues([ValidationIssue(
                field="name",
                issue_type="duplicate",
                message=f"You already have an account named '{cleaned}'",
            )])
        return cleaned
