"""
Tests for Pocket Ledger

Test strategy:
1. Unit tests for individual components (models, validators)
2. Service tests against the in-memory store
3. No real API calls in tests (Google Sheets is faked)
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from pocketledger.models import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    Account,
    BalanceCheck,
    Budget,
    BudgetPeriod,
    LoanStatus,
    LoanType,
    Transaction,
    TransactionKind,
    TransactionQuery,
)
from pocketledger.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


def _expense(**kwargs):
    base = {
        "owner_id": "owner-1",
        "amount": Decimal("10.00"),
        "kind": TransactionKind.EXPENSE,
        "category": "Food",
        "account_id": "acc-1",
        "account_name": "Current",
    }
    base.update(kwargs)
    return Transaction(**base)


class TestLedgerModels:
    """Tests for ledger Pydantic models."""

    def test_account_defaults(self):
        """Test a new account starts empty and teal."""
        account = Account(owner_id="owner-1", name="  Current  ")
        assert account.name == "Current"
        assert account.balance == Decimal("0")
        assert account.color == "teal"
        assert account.version == 0

    def test_account_rejects_empty_name(self):
        with pytest.raises(ValueError):
            Account(owner_id="owner-1", name="   ")

    def test_transaction_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            _expense(amount=Decimal("0"))
        with pytest.raises(ValueError):
            _expense(amount=Decimal("-5"))

    def test_transaction_rejects_three_decimals(self):
        with pytest.raises(ValueError):
            _expense(amount=Decimal("1.005"))

    def test_expense_cannot_have_person(self):
        with pytest.raises(ValueError, match="Only loan transactions can have a person"):
            _expense(person="Alice")

    def test_loan_requires_person(self):
        with pytest.raises(ValueError, match="Loan transactions require a person"):
            _expense(
                kind=TransactionKind.LOAN,
                category=None,
                loan_type=LoanType.LENT,
                status=LoanStatus.PENDING,
            )

    def test_loan_cannot_have_category(self):
        with pytest.raises(ValueError, match="cannot have a category"):
            _expense(
                kind=TransactionKind.LOAN,
                person="Alice",
                loan_type=LoanType.LENT,
                status=LoanStatus.PENDING,
            )

    def test_posted_at_normalized_to_utc(self):
        """Test naive timestamps are read as UTC and aware ones converted."""
        naive = _expense(posted_at=datetime(2024, 5, 1, 12, 0))
        assert naive.posted_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

        plus_two = timezone(timedelta(hours=2))
        aware = _expense(posted_at=datetime(2024, 5, 1, 12, 0, tzinfo=plus_two))
        assert aware.posted_at.tzinfo == timezone.utc
        assert aware.posted_at.hour == 10

    def test_label_and_balance_flags(self):
        loan = _expense(
            kind=TransactionKind.LOAN,
            category=None,
            person="Alice",
            loan_type=LoanType.BORROWED,
            status=LoanStatus.PENDING,
        )
        assert loan.label == "Alice"
        assert loan.is_loan is True
        assert loan.is_balance_affecting is False
        assert _expense().label == "Food"
        assert _expense().is_balance_affecting is True

    def test_budget_requires_positive_limit(self):
        with pytest.raises(ValueError):
            Budget(
                owner_id="owner-1",
                category="Food",
                limit_amount=Decimal("0"),
                period=BudgetPeriod.DAILY,
            )

    def test_balance_check_discrepancy(self):
        check = BalanceCheck(
            account_id="acc-1",
            account_name="Current",
            stored_balance=Decimal("80.00"),
            expected_balance=Decimal("100.00"),
            transaction_count=3,
        )
        assert check.discrepancy == Decimal("-20.00")
        assert check.consistent is False


class TestTransactionQuery:
    """Tests for in-Python query filtering."""

    def test_filters_owner_kind_and_date(self):
        early = _expense(posted_at=datetime(2024, 5, 1, tzinfo=timezone.utc))
        late = _expense(posted_at=datetime(2024, 5, 20, tzinfo=timezone.utc))
        foreign = _expense(owner_id="owner-2")
        income = _expense(kind=TransactionKind.INCOME, category="Salary")

        query = TransactionQuery(
            owner_id="owner-1",
            kind=TransactionKind.EXPENSE,
            posted_from=datetime(2024, 5, 10, tzinfo=timezone.utc),
        )

        assert query.apply([early, late, foreign, income]) == [late]

    def test_orders_newest_first_and_limits(self):
        txns = [
            _expense(posted_at=datetime(2024, 5, day, tzinfo=timezone.utc))
            for day in (3, 1, 2)
        ]

        result = TransactionQuery(owner_id="owner-1", limit=2).apply(txns)

        assert [t.posted_at.day for t in result] == [3, 2]


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            description="Account created: Current",
        )
        assert event.event_type == AuditEventType.ACCOUNT_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.transaction_posted(
            transaction_id="txn-1",
            owner_id="owner-1",
            kind="expense",
            amount=Decimal("12.00"),
            account_name="Current",
            correlation_id=uuid4(),
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_posted"
        assert log_dict["details"]["account_name"] == "Current"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.loan_settled(
            transaction_id="txn-1",
            owner_id="owner-1",
            loan_type="lent",
            amount=Decimal("40.00"),
            person="Alice",
            correlation_id=uuid4(),
        )
        row = event.to_sheets_row()
        assert len(row) == 12  # Expected number of columns
        assert row[2] == "loan_settled"  # event_type
        assert row[11] == "True"  # is_user_action

    def test_partial_failure_is_critical(self):
        event = AuditEventBuilder.partial_failure(
            operation="post_transaction",
            completed_step="transaction_written",
            failed_step="balance_adjustment",
            owner_id="owner-1",
            transaction_id="txn-1",
            account_id="acc-1",
            delta=Decimal("-20.00"),
            error_message="network down",
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.CRITICAL
        assert event.entity_id == "acc-1"
        assert event.error_message == "network down"
        assert event.is_user_action is False

    def test_audit_event_builder_balance_adjusted(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.balance_adjusted(
            account_id="acc-1",
            owner_id="owner-1",
            delta=Decimal("15.00"),
            new_balance=Decimal("115.00"),
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.BALANCE_ADJUSTED
        assert event.entity_id == "acc-1"
        assert event.correlation_id == correlation_id


class TestCategories:
    """Tests for the suggested category lists."""

    def test_other_is_always_available(self):
        assert "Other" in EXPENSE_CATEGORIES
        assert "Other" in INCOME_CATEGORIES

    def test_category_values(self):
        assert EXPENSE_CATEGORIES[0] == "Food"
        assert INCOME_CATEGORIES[0] == "Salary"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
