"""
Ledger Error Taxonomy

DESIGN DECISION: Errors surface to the caller unmodified.
The core never recovers silently. Each error carries a short
user_message the UI can show as-is.

StoreError and its subclasses live with the storage interface;
they are re-exported here so callers have one import for all errors.
"""

from decimal import Decimal
from typing import Optional

from pocketledger.models.ledger import ValidationIssue
from pocketledger.services.storage.interface import (
    ConflictError,
    NotFoundError,
    StoreConnectionError,
    StoreError,
)


class LedgerError(Exception):
    """Base exception for ledger operations."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message


class ValidationError(LedgerError):
    """Malformed input: non-positive amount, missing required field, etc."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        errors = [i for i in issues if i.severity == "error"] or issues
        message = "; ".join(f"{i.field}: {i.message}" for i in errors)
        super().__init__(
            message or "Invalid input",
            user_message=errors[0].message if errors else "Please check your input.",
        )


class AccountNotFoundError(LedgerError):
    """The named account does not exist for this owner."""

    def __init__(self, owner_id: str, account_name: str):
        self.owner_id = owner_id
        self.account_name = account_name
        super().__init__(
            f"Account '{account_name}' not found for owner {owner_id}",
            user_message=f"Account '{account_name}' does not exist.",
        )


class TransactionNotFoundError(LedgerError):
    """The transaction does not exist or belongs to someone else."""

    user_message = "That transaction no longer exists."

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class BudgetNotFoundError(LedgerError):
    """The budget does not exist or belongs to someone else."""

    user_message = "That budget no longer exists."

    def __init__(self, budget_id: str):
        self.budget_id = budget_id
        super().__init__(f"Budget not found: {budget_id}")


class InvalidStateError(LedgerError):
    """The operation is not allowed in the entity's current state."""

    user_message = "This action is not allowed right now."


class PartialFailureError(LedgerError):
    """
    A multi-step write stopped halfway.

    The first step (the transaction record) is stored; the balance
    adjustment is not. Carries everything needed to finish or undo
    the operation by hand.
    """

    user_message = (
        "Your change was saved but the account balance could not be updated. "
        "Please reconcile the account."
    )

    def __init__(
        self,
        operation: str,
        completed_step: str,
        failed_step: str,
        transaction_id: str,
        account_id: str,
        delta: Decimal,
        cause: Exception,
    ):
        self.operation = operation
        self.completed_step = completed_step
        self.failed_step = failed_step
        self.transaction_id = transaction_id
        self.account_id = account_id
        self.delta = delta
        self.cause = cause
        super().__init__(
            f"{operation}: {completed_step} succeeded but {failed_step} failed "
            f"(transaction {transaction_id}, account {account_id}, delta {delta}): {cause}"
        )


def describe_error(exc: Exception) -> str:
    """
    Map any exception to a short human-readable message.

    Ledger errors carry their own message; storage errors are
    translated here so the UI never shows a backend traceback.
    """
    if isinstance(exc, LedgerError):
        return exc.user_message
    if isinstance(exc, ConflictError):
        return "The account changed while saving. Please try again."
    if isinstance(exc, StoreConnectionError):
        return "Could not reach your ledger. Check your connection and try again."
    if isinstance(exc, StoreError):
        return "Saving failed. Please try again."
    return LedgerError.user_message


__all__ = [
    "AccountNotFoundError",
    "BudgetNotFoundError",
    "ConflictError",
    "InvalidStateError",
    "LedgerError",
    "NotFoundError",
    "PartialFailureError",
    "StoreConnectionError",
    "StoreError",
    "TransactionNotFoundError",
    "ValidationError",
    "describe_error",
]
