"""
Ledger Reconciliation Service

The only code in Pocket Ledger that changes an account balance.

INVARIANT: an account's stored balance equals the signed sum of its
balance-affecting transactions:
    income          +amount
    expense         -amount
    settled lent    +amount   (money came back)
    settled borrowed -amount  (money was paid back)
    pending loan     0        (off-balance until settled)

Every mutation derives its adjustment from balance_effect(), so post,
edit, delete and settle can never drift apart.

WRITE ORDER: the transaction record is always written first and the
balance second. If the balance write fails after the record write
succeeded, the caller gets a PartialFailureError saying exactly what
is left to do. Nothing is rolled back behind the caller's back.

CONCURRENCY: balances are adjusted with an optimistic
compare-and-set loop (read balance + version, write conditionally,
retry on conflict), so two concurrent postings can never overwrite
each other's delta. Edits, deletes and settles write the transaction
record conditionally on its version, so two overlapping operations on
one transaction can never both apply a delta from the same snapshot:
the loser fails before touching anything.
"""

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pocketledger.audit import AuditLogger, create_correlation_id
from pocketledger.config import LedgerSettings, get_settings
from pocketledger.errors import (
    AccountNotFoundError,
    InvalidStateError,
    PartialFailureError,
    TransactionNotFoundError,
)
from pocketledger.models.ledger import (
    ZERO,
    Account,
    BalanceCheck,
    LoanStatus,
    LoanType,
    Transaction,
    TransactionKind,
    TransactionQuery,
)
from pocketledger.services.storage import (
    ConflictError,
    LedgerStorageInterface,
    NotFoundError,
    StoreError,
)
from pocketledger.validation import TransactionValidator


def balance_effect(txn: Transaction) -> Decimal:
    """
    Signed amount a transaction currently contributes to its account.

    This is the single source of truth for balance arithmetic.
    """
    if not txn.is_balance_affecting:
        return ZERO
    if txn.kind == TransactionKind.INCOME:
        return txn.amount
    if txn.kind == TransactionKind.EXPENSE:
        return -txn.amount
    # Settled loan
    return txn.amount if txn.loan_type == LoanType.LENT else -txn.amount


def _already_settled(transaction_id: str) -> InvalidStateError:
    return InvalidStateError(
        f"Loan {transaction_id} is already settled",
        user_message="This loan is already settled.",
    )


class LedgerReconciliationService:
    """
    Applies transaction create/edit/delete/settle and keeps balances consistent.

    Collaborators are injected so tests can use the in-memory store.
    """

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
        self._logger = structlog.get_logger(__name__)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def post_transaction(
        self,
        owner_id: str,
        account_name: str,
        kind: Any,
        amount: Any,
        category: Optional[str] = None,
        person: Optional[str] = None,
        loan_type: Any = None,
        note: Optional[str] = None,
    ) -> str:
        """
        Record a new transaction and apply it to the account balance.

        Income and expense move the balance immediately. Loans are
        created pending and stay off-balance until settle_loan().

        Returns:
            The new transaction's ID

        Raises:
            ValidationError: Bad amount, missing person, unknown kind...
            AccountNotFoundError: account_name is not one of the owner's accounts
            StoreError: The transaction could not be written (nothing changed)
            PartialFailureError: Transaction written, balance not adjusted
        """
        fields, issues = self._validator.check_posting(
            kind=kind,
            amount=amount,
            category=category,
            person=person,
            loan_type=loan_type,
        )
        self._validator.raise_for_issues(issues)

        account = await self._resolve_account(owner_id, account_name)

        is_loan = fields["kind"] == TransactionKind.LOAN
        txn = Transaction(
            owner_id=owner_id,
            amount=fields["amount"],
            kind=fields["kind"],
            category=fields["category"],
            person=fields["person"],
            loan_type=fields["loan_type"],
            status=LoanStatus.PENDING if is_loan else None,
            note=self._validator.clean_text(note),
            account_id=account.id,
            account_name=account.name,
        )

        correlation_id = create_correlation_id()
        saved = await self._storage.add_transaction(txn)

        if self._audit_logger:
            await self._audit_logger.log_transaction_posted(
                transaction_id=saved.id,
                owner_id=owner_id,
                kind=saved.kind.value,
                amount=saved.amount,
                account_name=saved.account_name,
                correlation_id=correlation_id,
            )

        await self._apply_delta(
            operation="post_transaction",
            completed_step="transaction_written",
            txn=saved,
            delta=balance_effect(saved),
            correlation_id=correlation_id,
        )
        return saved.id

    async def edit_transaction(
        self,
        owner_id: str,
        transaction_id: str,
        new_amount: Any,
        new_label: str,
    ) -> None:
        """
        Change a transaction's amount and its category/person label.

        The label goes to whichever of category/person the transaction
        already uses. If the transaction is balance-affecting, the
        recorded account absorbs the difference.

        The record write is conditional on the version that was read,
        so the delta always comes from the record being replaced.

        Raises:
            TransactionNotFoundError: Missing or not owned by owner_id
            ValidationError: Non-positive amount or empty label
            InvalidStateError: The transaction changed while being edited
            StoreError: The edit could not be written (nothing changed)
            PartialFailureError: Edit written, balance not adjusted
        """
        fields, issues = self._validator.check_edit(new_amount, new_label)
        self._validator.raise_for_issues(issues)

        txn = await self._get_owned_transaction(owner_id, transaction_id)

        changes: dict = {"amount": fields["amount"]}
        if txn.is_loan:
            changes["person"] = fields["label"]
        else:
            changes["category"] = fields["label"]

        correlation_id = create_correlation_id()
        try:
            updated = await self._storage.update_transaction(
                txn.id,
                changes,
                expected_version=txn.version,
            )
        except ConflictError as e:
            raise await self._lost_race(owner_id, txn, "edit") from e
        except NotFoundError as e:
            raise TransactionNotFoundError(txn.id) from e

        if self._audit_logger:
            await self._audit_logger.log_transaction_edited(
                transaction_id=updated.id,
                owner_id=owner_id,
                old_amount=txn.amount,
                new_amount=updated.amount,
                label=updated.label,
                correlation_id=correlation_id,
            )

        await self._apply_delta(
            operation="edit_transaction",
            completed_step="transaction_updated",
            txn=updated,
            delta=balance_effect(updated) - balance_effect(txn),
            correlation_id=correlation_id,
        )

    async def delete_transaction(self, owner_id: str, transaction_id: str) -> None:
        """
        Remove a transaction and reverse its effect on the balance.

        Pending loans are removed without touching the balance.

        Raises:
            TransactionNotFoundError: Missing or not owned by owner_id
            InvalidStateError: The transaction changed while being deleted
            StoreError: The record could not be deleted (nothing changed)
            PartialFailureError: Record deleted, balance not reversed
        """
        txn = await self._get_owned_transaction(owner_id, transaction_id)

        correlation_id = create_correlation_id()
        try:
            deleted = await self._storage.delete_transaction(
                txn.id, expected_version=txn.version
            )
        except ConflictError as e:
            raise await self._lost_race(owner_id, txn, "delete") from e
        if not deleted:
            # Deleted concurrently; whoever deleted it reversed it
            raise TransactionNotFoundError(txn.id)

        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                transaction_id=txn.id,
                owner_id=owner_id,
                kind=txn.kind.value,
                amount=txn.amount,
                correlation_id=correlation_id,
            )

        await self._apply_delta(
            operation="delete_transaction",
            completed_step="transaction_deleted",
            txn=txn,
            delta=-balance_effect(txn),
            correlation_id=correlation_id,
        )

    async def settle_loan(self, owner_id: str, transaction_id: str) -> None:
        """
        Move a pending loan onto the balance.

        Lent loans add the amount back, borrowed loans take it out.

        Raises:
            TransactionNotFoundError: Missing or not owned by owner_id
            InvalidStateError: Not a loan, not pending anymore, or
                changed while being settled
            StoreError: The status could not be written (nothing changed)
            PartialFailureError: Status written, balance not adjusted
        """
        txn = await self._get_owned_transaction(owner_id, transaction_id)

        if not txn.is_loan:
            raise InvalidStateError(
                f"Transaction {txn.id} is a {txn.kind.value}, not a loan",
                user_message="Only loans can be settled.",
            )
        if txn.status != LoanStatus.PENDING:
            raise _already_settled(txn.id)

        correlation_id = create_correlation_id()
        try:
            settled = await self._storage.update_transaction(
                txn.id,
                {"status": LoanStatus.SETTLED},
                expected_version=txn.version,
            )
        except ConflictError as e:
            raise await self._lost_race(owner_id, txn, "settle") from e
        except NotFoundError as e:
            raise TransactionNotFoundError(txn.id) from e

        if self._audit_logger:
            await self._audit_logger.log_loan_settled(
                transaction_id=settled.id,
                owner_id=owner_id,
                loan_type=settled.loan_type.value,
                amount=settled.amount,
                person=settled.label,
                correlation_id=correlation_id,
            )

        await self._apply_delta(
            operation="settle_loan",
            completed_step="status_settled",
            txn=settled,
            delta=balance_effect(settled) - balance_effect(txn),
            correlation_id=correlation_id,
        )

    async def recompute_balance(self, owner_id: str, account_name: str) -> BalanceCheck:
        """
        Compare an account's stored balance with its transaction history.

        Read-only. Use after a PartialFailureError to see how far off
        the account is.
        """
        account = await self._resolve_account(owner_id, account_name)
        history = await self._storage.list_transactions(
            TransactionQuery(owner_id=owner_id, account_id=account.id)
        )
        expected = sum((balance_effect(t) for t in history), ZERO)
        return BalanceCheck(
            account_id=account.id,
            account_name=account.name,
            stored_balance=account.balance,
            expected_balance=expected,
            transaction_count=len(history),
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _resolve_account(self, owner_id: str, account_name: str) -> Account:
        name = self._validator.clean_text(account_name)
        account = await self._storage.find_account(owner_id, name) if name else None
        if account is None:
            raise AccountNotFoundError(owner_id, account_name)
        return account

    async def _get_owned_transaction(self, owner_id: str, transaction_id: str) -> Transaction:
        txn = await self._storage.get_transaction(transaction_id)
        # Someone else's transaction looks exactly like a missing one
        if txn is None or txn.owner_id != owner_id:
            raise TransactionNotFoundError(transaction_id)
        return txn

    async def _lost_race(self, owner_id: str, txn: Transaction, action: str) -> Exception:
        """
        Pick the error for a conditional write that lost to another write.

        Nothing was written and no balance was touched, so the caller
        can simply retry against the current record.
        """
        current = await self._storage.get_transaction(txn.id)
        if current is None or current.owner_id != owner_id:
            return TransactionNotFoundError(txn.id)
        if action == "settle" and current.status == LoanStatus.SETTLED:
            return _already_settled(txn.id)
        return InvalidStateError(
            f"Transaction {txn.id} moved from version {txn.version} "
            f"to {current.version} during {action}",
            user_message="This transaction was just changed. Please try again.",
        )

    async def _apply_delta(
        self,
        operation: str,
        completed_step: str,
        txn: Transaction,
        delta: Decimal,
        correlation_id: UUID,
    ) -> None:
        """Second step of every operation: adjust the recorded account."""
        if delta == 0:
            return

        try:
            account = await self._adjust_balance(txn.account_id, delta)
        except StoreError as e:
            if self._audit_logger:
                await self._audit_logger.log_partial_failure(
                    operation=operation,
                    completed_step=completed_step,
                    failed_step="balance_adjustment",
                    owner_id=txn.owner_id,
                    transaction_id=txn.id,
                    account_id=txn.account_id,
                    delta=delta,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise PartialFailureError(
                operation=operation,
                completed_step=completed_step,
                failed_step="balance_adjustment",
                transaction_id=txn.id,
                account_id=txn.account_id,
                delta=delta,
                cause=e,
            ) from e

        if self._audit_logger:
            await self._audit_logger.log_balance_adjusted(
                account_id=account.id,
                owner_id=txn.owner_id,
                delta=delta,
                new_balance=account.balance,
                correlation_id=correlation_id,
            )

    async def _adjust_balance(self, account_id: str, delta: Decimal) -> Account:
        """
        Add delta to a balance with optimistic concurrency.

        Raises:
            ConflictError: Still conflicting after the last attempt
            NotFoundError: The account is gone
            StoreError: Any other storage failure (not retried)
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.balance_retry_attempts),
            wait=wait_exponential(
                multiplier=self._settings.balance_retry_wait_min,
                min=self._settings.balance_retry_wait_min,
                max=self._settings.balance_retry_wait_max,
            ),
            retry=retry_if_exception_type(ConflictError),
            before_sleep=self._log_conflict,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                account = await self._storage.get_account(account_id)
                if account is None:
                    raise NotFoundError(f"Account not found: {account_id}")
                return await self._storage.compare_and_set_balance(
                    account.id,
                    expected_version=account.version,
                    new_balance=account.balance + delta,
                )

    def _log_conflict(self, retry_state: RetryCallState) -> None:
        self._logger.warning(
            "balance_conflict_retry",
            attempt=retry_state.attempt_number,
            error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )
