"""
Tests for input validation, the error taxonomy, settings and the
component factory.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError as SettingsValidationError

from pocketledger.config import LedgerSettings, get_settings, validate_all_settings
from pocketledger.errors import (
    AccountNotFoundError,
    LedgerError,
    PartialFailureError,
    TransactionNotFoundError,
    ValidationError,
    describe_error,
)
from pocketledger.models import BudgetPeriod, LoanType, TransactionKind, ValidationIssue
from pocketledger.orchestrator import create_ledger_components
from pocketledger.services.storage import (
    ConflictError,
    InMemoryLedgerStorage,
    StoreConnectionError,
    StoreError,
)
from pocketledger.validation import TransactionValidator


class TestParseAmount:
    """Tests for money parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("10", Decimal("10.00")),
        ("  7.5 ", Decimal("7.50")),
        (12.25, Decimal("12.25")),
        (3, Decimal("3.00")),
    ])
    def test_valid_amounts(self, validator, value, expected):
        amount, issues = validator.parse_amount(value)
        assert issues == []
        assert amount == expected
        assert amount.as_tuple().exponent == -2

    @pytest.mark.parametrize("value,issue_type", [
        (None, "missing"),
        ("", "missing"),
        ("abc", "invalid_format"),
        (True, "invalid_format"),
        ("NaN", "invalid_format"),
        ("Infinity", "invalid_format"),
        ("0", "not_positive"),
        ("-4", "not_positive"),
        ("1.005", "too_precise"),
        ("10000000.01", "suspicious_value"),
    ])
    def test_rejected_amounts(self, validator, value, issue_type):
        amount, issues = validator.parse_amount(value)
        assert amount is None
        assert issues[0].issue_type == issue_type

    def test_maximum_comes_from_settings(self):
        validator = TransactionValidator(LedgerSettings(max_transaction_amount=Decimal("100")))
        _, issues = validator.parse_amount("100.01")
        assert issues[0].issue_type == "suspicious_value"


class TestCheckPosting:
    """Tests for new-transaction validation."""

    def test_expense(self, validator):
        fields, issues = validator.check_posting("expense", "9.99", " Food ", None, None)

        assert issues == []
        assert fields["kind"] == TransactionKind.EXPENSE
        assert fields["category"] == "Food"
        assert fields["person"] is None

    def test_blank_category_defaults(self, validator):
        fields, issues = validator.check_posting("income", "5", "", None, None)

        assert issues == []
        assert fields["category"] == "Other"

    def test_loan(self, validator):
        fields, issues = validator.check_posting("loan", "40", None, " Alice ", "lent")

        assert issues == []
        assert fields["person"] == "Alice"
        assert fields["loan_type"] == LoanType.LENT
        assert fields["category"] is None

    def test_loan_missing_person_and_type(self, validator):
        _, issues = validator.check_posting("loan", "40", None, " ", None)

        assert {i.field for i in issues} == {"person", "loan_type"}
        assert issues[0].message == "Enter person name"

    def test_loan_with_category(self, validator):
        _, issues = validator.check_posting("loan", "40", "Food", "Alice", "lent")
        assert [i.issue_type for i in issues] == ["not_allowed"]

    def test_expense_with_loan_fields(self, validator):
        _, issues = validator.check_posting("expense", "40", "Food", "Alice", "lent")
        assert {i.field for i in issues} == {"person", "loan_type"}

    def test_unknown_kind(self, validator):
        _, issues = validator.check_posting("transfer", "40", "Food", None, None)
        assert issues[0].field == "kind"
        assert "Allowed: income, expense, loan" in issues[0].message


class TestOtherChecks:
    """Tests for edit, account and budget validation."""

    def test_edit(self, validator):
        fields, issues = validator.check_edit("35", " Bonus ")
        assert issues == []
        assert fields == {"amount": Decimal("35.00"), "label": "Bonus"}

    def test_edit_empty_label(self, validator):
        _, issues = validator.check_edit("35", "")
        assert issues[0].field == "label"

    def test_account_name_too_long(self, validator):
        _, issues = validator.check_account_name("x" * 101)
        assert issues[0].issue_type == "too_long"

    def test_budget(self, validator):
        fields, issues = validator.check_budget("Food", "200", "weekly")
        assert issues == []
        assert fields["period"] == BudgetPeriod.WEEKLY

    def test_raise_for_issues_ignores_warnings(self, validator):
        warning = ValidationIssue(
            field="amount",
            issue_type="unusual",
            message="That is a lot",
            severity="warning",
        )
        validator.raise_for_issues([warning])

        with pytest.raises(ValidationError):
            validator.raise_for_issues([warning, ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Enter an amount",
            )])

    def test_user_friendly_summary(self, validator):
        assert validator.get_user_friendly_summary([]) == "Looks good."
        summary = validator.get_user_friendly_summary([
            ValidationIssue(field="person", issue_type="missing", message="Enter person name"),
        ])
        assert summary == "• Enter person name"


class TestErrors:
    """Tests for the error taxonomy."""

    def test_validation_error_message(self):
        error = ValidationError([
            ValidationIssue(field="amount", issue_type="not_positive", message="Amount must be greater than zero"),
        ])
        assert str(error) == "amount: Amount must be greater than zero"
        assert error.user_message == "Amount must be greater than zero"

    def test_partial_failure_carries_context(self):
        cause = StoreConnectionError("timeout")
        error = PartialFailureError(
            operation="settle_loan",
            completed_step="status_settled",
            failed_step="balance_adjustment",
            transaction_id="txn-1",
            account_id="acc-1",
            delta=Decimal("40.00"),
            cause=cause,
        )
        assert isinstance(error, LedgerError)
        assert error.cause is cause
        assert "settle_loan" in str(error)
        assert "reconcile" in error.user_message

    @pytest.mark.parametrize("exc,expected", [
        (AccountNotFoundError("owner-1", "Savings"), "Account 'Savings' does not exist."),
        (TransactionNotFoundError("txn-1"), "That transaction no longer exists."),
        (ConflictError("version moved"), "The account changed while saving. Please try again."),
        (StoreConnectionError("timeout"), "Could not reach your ledger. Check your connection and try again."),
        (StoreError("boom"), "Saving failed. Please try again."),
        (RuntimeError("boom"), "Something went wrong. Please try again."),
    ])
    def test_describe_error(self, exc, expected):
        assert describe_error(exc) == expected


class TestSettings:
    """Tests for ledger settings."""

    def test_defaults(self, monkeypatch):
        for name in ("LEDGER_STORAGE_BACKEND", "LEDGER_TIMEZONE", "LEDGER_DEFAULT_CATEGORY"):
            monkeypatch.delenv(name, raising=False)
        settings = LedgerSettings(_env_file=None)

        assert settings.storage_backend == "memory"
        assert settings.default_account_name == "Current"
        assert settings.default_category == "Other"
        assert settings.balance_retry_attempts == 5

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("LEDGER_TIMEZONE", "Europe/Berlin")
        monkeypatch.setenv("LEDGER_BALANCE_RETRY_ATTEMPTS", "3")

        settings = LedgerSettings(_env_file=None)

        assert settings.timezone == "Europe/Berlin"
        assert settings.balance_retry_attempts == 3

    def test_unknown_timezone_rejected(self):
        with pytest.raises(SettingsValidationError):
            LedgerSettings(timezone="Mars/Olympus_Mons")

    def test_inverted_retry_window_rejected(self):
        with pytest.raises(SettingsValidationError):
            LedgerSettings(balance_retry_wait_min=2, balance_retry_wait_max=1)


class TestValidateAllSettings:
    """Tests for the startup settings report."""

    @pytest.fixture(autouse=True)
    def clean_environment(self, monkeypatch, tmp_path):
        # No .env file and no inherited configuration
        monkeypatch.chdir(tmp_path)
        for name in (
            "LEDGER_STORAGE_BACKEND",
            "LEDGER_TIMEZONE",
            "GOOGLE_SHEETS_CREDENTIALS_PATH",
            "GOOGLE_SHEETS_SPREADSHEET_ID",
        ):
            monkeypatch.delenv(name, raising=False)
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_memory_backend_needs_nothing_else(self):
        assert validate_all_settings() == {"ledger": True}

    def test_missing_sheets_configuration_reported(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "google_sheets")

        results = validate_all_settings()

        assert results["ledger"] is True
        assert results["google_sheets"] is False
        assert "spreadsheet_id" in results["google_sheets_error"]

    def test_sheets_configuration_accepted(self, monkeypatch, tmp_path):
        credentials = tmp_path / "credentials.json"
        credentials.write_text("{}")
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "google_sheets")
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-id")

        assert validate_all_settings() == {"ledger": True, "google_sheets": True}

    def test_bad_ledger_settings_stop_the_report(self, monkeypatch):
        monkeypatch.setenv("LEDGER_TIMEZONE", "Mars/Olympus_Mons")

        results = validate_all_settings()

        assert results["ledger"] is False
        assert "Unknown timezone" in results["ledger_error"]
        assert "google_sheets" not in results


class TestComponentFactory:
    """Tests for create_ledger_components."""

    @pytest.mark.asyncio
    async def test_memory_backend_is_wired(self):
        components = create_ledger_components(backend="memory")

        assert isinstance(components.storage, InMemoryLedgerStorage)
        assert components.sheets_client is None

        await components.accounts.ensure_default_account("owner-1")
        await components.ledger.post_transaction(
            "owner-1", "Current", "expense", "12", category="Food"
        )
        summary = await components.analytics.summarize_owner("owner-1")
        assert summary.total_expense == Decimal("12.00")
        assert len(components.audit_storage._events) >= 3

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_ledger_components(backend="postgres")

    def test_components_do_not_share_state(self):
        first = create_ledger_components(backend="memory")
        second = create_ledger_components(backend="memory")
        assert first.storage is not second.storage
