"""
Configuration Management for Pocket Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # One worksheet per collection
    accounts_sheet_name: str = Field(
        default="Accounts",
        description="Name of the sheet for accounts"
    )
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transactions"
    )
    budgets_sheet_name: str = Field(
        default="Budgets",
        description="Name of the sheet for budgets"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class LedgerSettings(BaseSettings):
    """
    Ledger behaviour settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    storage_backend: Literal["memory", "google_sheets"] = Field(
        default="memory",
        description="Which document store to use"
    )

    # Account provisioning
    default_account_name: str = Field(
        default="Current",
        min_length=1,
        max_length=100,
        description="Name of the account auto-provisioned for every owner"
    )
    default_account_color: str = Field(
        default="teal",
        description="Color tag for new accounts"
    )
    default_category: str = Field(
        default="Other",
        min_length=1,
        description="Category used when an income/expense has none"
    )

    # Budget periods are resolved in this timezone
    timezone: str = Field(
        default="UTC",
        description="IANA timezone used to find day/week/month boundaries"
    )

    # Optimistic concurrency on account balances
    balance_retry_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="How many times a conflicting balance write is retried"
    )
    balance_retry_wait_min: float = Field(
        default=0.05,
        ge=0.0,
        description="Minimum back-off between balance retries (seconds)"
    )
    balance_retry_wait_max: float = Field(
        default=1.0,
        ge=0.0,
        description="Maximum back-off between balance retries (seconds)"
    )

    # Sanity checking
    max_transaction_amount: Decimal = Field(
        default=Decimal("10000000"),
        gt=0,
        description="Largest amount a single transaction may carry"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown timezone names at startup."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @model_validator(mode='after')
    def validate_retry_window(self) -> 'LedgerSettings':
        if self.balance_retry_wait_max < self.balance_retry_wait_min:
            raise ValueError("balance_retry_wait_max cannot be below balance_retry_wait_min")
        return self

    @property
    def tzinfo(self) -> ZoneInfo:
        """Timezone as a tzinfo object."""
        return ZoneInfo(self.timezone)


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so the in-memory backend
    # works without any Google configuration.

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Google Sheets is only checked when it is the selected backend.
    """
    results = {}

    settings = get_settings()

    try:
        ledger = settings.ledger
        results["ledger"] = True
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)
        return results

    if ledger.storage_backend == "google_sheets":
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
