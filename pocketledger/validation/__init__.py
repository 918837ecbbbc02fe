"""Input validation package."""

from pocketledger.validation.validator import TransactionValidator

__all__ = ["TransactionValidator"]
