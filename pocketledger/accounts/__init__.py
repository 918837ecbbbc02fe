"""Account management package."""

from pocketledger.accounts.service import AccountService

__all__ = ["AccountService"]
