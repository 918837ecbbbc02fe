"""
Tests for the Google Sheets storage backend.

No real API calls: worksheets are replaced by an in-memory fake that
behaves like gspread (string cells, 1-based rows, A1 ranges).
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import gspread
import pytest
from gspread.utils import a1_to_rowcol
from structlog.testing import capture_logs

from pocketledger.config import GoogleSheetsSettings
from pocketledger.models import (
    Account,
    AuditEventBuilder,
    Budget,
    BudgetPeriod,
    LoanStatus,
    LoanType,
    Transaction,
    TransactionKind,
    TransactionQuery,
)
from pocketledger.reconciliation import LedgerReconciliationService
from pocketledger.services.storage import (
    ConflictError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    NotFoundError,
    StoreError,
)
from pocketledger.services.storage.google_sheets import (
    ACCOUNT_COLUMNS,
    AUDIT_COLUMNS,
    BUDGET_COLUMNS,
    TRANSACTION_COLUMNS,
)


OWNER = "owner-1"


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage layer."""

    def __init__(self, columns=None):
        self.rows = [list(columns)] if columns else []

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(v) for v in values])

    def update(self, range_name, values, value_input_option=None):
        start = range_name.split(":")[0]
        row, col = a1_to_rowcol(start)
        cells = self.rows[row - 1]
        for offset, value in enumerate(values[0]):
            while len(cells) < col + offset:
                cells.append("")
            cells[col - 1 + offset] = str(value)

    def delete_rows(self, index):
        del self.rows[index - 1]


class BrokenWorksheet(FakeWorksheet):
    def get_all_values(self):
        raise ConnectionError("quota exceeded")


class FakeSheetsClient:
    def __init__(self):
        self.accounts = FakeWorksheet(ACCOUNT_COLUMNS)
        self.transactions = FakeWorksheet(TRANSACTION_COLUMNS)
        self.budgets = FakeWorksheet(BUDGET_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_accounts_sheet(self):
        return self.accounts

    def get_transactions_sheet(self):
        return self.transactions

    def get_budgets_sheet(self):
        return self.budgets

    def get_audit_sheet(self):
        return self.audit


class FakeSpreadsheet:
    def __init__(self):
        self.sheets = {}

    def worksheet(self, title):
        if title not in self.sheets:
            raise gspread.WorksheetNotFound(title)
        return self.sheets[title]

    def add_worksheet(self, title, rows, cols):
        self.sheets[title] = FakeWorksheet()
        return self.sheets[title]


@pytest.fixture
def client():
    return FakeSheetsClient()


@pytest.fixture
def sheets_storage(client):
    return GoogleSheetsLedgerStorage(client)


def _loan(account_id="acc-1"):
    return Transaction(
        owner_id=OWNER,
        amount=Decimal("40.00"),
        kind=TransactionKind.LOAN,
        person="Alice",
        loan_type=LoanType.LENT,
        status=LoanStatus.PENDING,
        account_id=account_id,
        account_name="Current",
    )


class TestGoogleSheetsClient:
    """Tests for worksheet provisioning."""

    def test_missing_worksheet_is_created_with_header(self, tmp_path):
        credentials = tmp_path / "credentials.json"
        credentials.write_text("{}")
        sheets_client = GoogleSheetsClient(GoogleSheetsSettings(
            credentials_path=str(credentials),
            spreadsheet_id="sheet-id",
        ))
        spreadsheet = FakeSpreadsheet()
        sheets_client._spreadsheet = spreadsheet

        sheet = sheets_client.get_accounts_sheet()

        assert sheet.get_all_values() == [ACCOUNT_COLUMNS]
        assert sheets_client.get_accounts_sheet() is sheet
        assert "Accounts" in spreadsheet.sheets


class TestAccountRows:
    """Tests for the accounts worksheet."""

    @pytest.mark.asyncio
    async def test_add_and_read_back(self, sheets_storage):
        account = Account(owner_id=OWNER, name="Current", balance=Decimal("12.50"))
        await sheets_storage.add_account(account)

        loaded = await sheets_storage.get_account(account.id)

        assert loaded == account
        assert await sheets_storage.find_account(OWNER, "Current") == account
        assert await sheets_storage.find_account("owner-2", "Current") is None

    @pytest.mark.asyncio
    async def test_compare_and_set_bumps_version(self, sheets_storage, client):
        account = Account(owner_id=OWNER, name="Current")
        await sheets_storage.add_account(account)

        updated = await sheets_storage.compare_and_set_balance(account.id, 0, Decimal("99.00"))

        assert updated.balance == Decimal("99.00")
        assert updated.version == 1
        row = client.accounts.rows[1]
        assert row[3] == "99.00"
        assert row[5] == "1"

    @pytest.mark.asyncio
    async def test_compare_and_set_detects_stale_version(self, sheets_storage):
        account = Account(owner_id=OWNER, name="Current")
        await sheets_storage.add_account(account)
        await sheets_storage.compare_and_set_balance(account.id, 0, Decimal("1.00"))

        with pytest.raises(ConflictError):
            await sheets_storage.compare_and_set_balance(account.id, 0, Decimal("2.00"))

        assert (await sheets_storage.get_account(account.id)).balance == Decimal("1.00")

    @pytest.mark.asyncio
    async def test_compare_and_set_missing_account(self, sheets_storage):
        with pytest.raises(NotFoundError):
            await sheets_storage.compare_and_set_balance("nope", 0, Decimal("1.00"))

    @pytest.mark.asyncio
    async def test_rename_and_delete(self, sheets_storage):
        account = Account(owner_id=OWNER, name="Current")
        await sheets_storage.add_account(account)

        renamed = await sheets_storage.update_account(account.id, name="Main")
        assert renamed.name == "Main"
        assert (await sheets_storage.get_account(account.id)).name == "Main"

        assert await sheets_storage.delete_account(account.id) is True
        assert await sheets_storage.delete_account(account.id) is False
        assert await sheets_storage.list_accounts(OWNER) == []

    @pytest.mark.asyncio
    async def test_read_failure_is_store_error(self):
        client = FakeSheetsClient()
        client.accounts = BrokenWorksheet(ACCOUNT_COLUMNS)
        storage = GoogleSheetsLedgerStorage(client)

        with pytest.raises(StoreError):
            await storage.get_account("acc-1")


class TestTransactionRows:
    """Tests for the transactions worksheet."""

    @pytest.mark.asyncio
    async def test_loan_round_trip(self, sheets_storage):
        loan = _loan()
        await sheets_storage.add_transaction(loan)

        loaded = await sheets_storage.get_transaction(loan.id)

        assert loaded == loan
        assert loaded.category is None

    @pytest.mark.asyncio
    async def test_conditional_update_bumps_version(self, sheets_storage, client):
        loan = _loan()
        await sheets_storage.add_transaction(loan)

        settled = await sheets_storage.update_transaction(
            loan.id, {"status": LoanStatus.SETTLED}, expected_version=0
        )
        assert settled.status == LoanStatus.SETTLED
        assert settled.version == 1
        assert client.transactions.rows[1][-1] == "1"

        with pytest.raises(ConflictError):
            await sheets_storage.update_transaction(
                loan.id, {"person": "Alicia"}, expected_version=0
            )
        assert (await sheets_storage.get_transaction(loan.id)).person == "Alice"

    @pytest.mark.asyncio
    async def test_stale_delete_is_rejected(self, sheets_storage):
        loan = _loan()
        await sheets_storage.add_transaction(loan)
        await sheets_storage.update_transaction(loan.id, {"person": "Alicia"})

        with pytest.raises(ConflictError):
            await sheets_storage.delete_transaction(loan.id, expected_version=0)

        assert await sheets_storage.get_transaction(loan.id) is not None
        assert await sheets_storage.delete_transaction(loan.id, expected_version=1) is True

    @pytest.mark.asyncio
    async def test_query_filters_and_orders(self, sheets_storage):
        old = Transaction(
            owner_id=OWNER,
            amount=Decimal("5"),
            kind=TransactionKind.EXPENSE,
            category="Food",
            posted_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
            account_id="acc-1",
            account_name="Current",
        )
        new = old.model_copy(update={
            "id": uuid4().hex,
            "posted_at": datetime(2024, 5, 10, tzinfo=timezone.utc),
        })
        await sheets_storage.add_transaction(old)
        await sheets_storage.add_transaction(new)
        await sheets_storage.add_transaction(_loan())

        expenses = await sheets_storage.list_transactions(
            TransactionQuery(owner_id=OWNER, kind=TransactionKind.EXPENSE)
        )
        assert [t.id for t in expenses] == [new.id, old.id]

        recent = await sheets_storage.list_transactions(TransactionQuery(
            owner_id=OWNER,
            kind=TransactionKind.EXPENSE,
            posted_from=datetime(2024, 5, 5, tzinfo=timezone.utc),
        ))
        assert [t.id for t in recent] == [new.id]

    @pytest.mark.asyncio
    async def test_malformed_rows_are_skipped_with_warning(self, sheets_storage, client):
        await sheets_storage.add_transaction(_loan())
        client.transactions.rows.append(["bad-id", OWNER, "not-a-number"])
        client.transactions.rows.append([])

        with capture_logs() as logs:
            listed = await sheets_storage.list_transactions(TransactionQuery(owner_id=OWNER))

        assert len(listed) == 1
        warnings = [log for log in logs if log["event"] == "malformed_row_skipped"]
        assert len(warnings) == 1
        assert warnings[0]["log_level"] == "warning"
        assert warnings[0]["row_id"] == "bad-id"
        assert warnings[0]["row_number"] == 3

    @pytest.mark.asyncio
    async def test_delete(self, sheets_storage):
        loan = _loan()
        await sheets_storage.add_transaction(loan)

        assert await sheets_storage.delete_transaction(loan.id) is True
        assert await sheets_storage.get_transaction(loan.id) is None


class TestBudgetRows:
    """Tests for the budgets worksheet."""

    @pytest.mark.asyncio
    async def test_budget_crud(self, sheets_storage):
        budget = Budget(
            owner_id=OWNER,
            category="Food",
            limit_amount=Decimal("100.00"),
            period=BudgetPeriod.WEEKLY,
        )
        await sheets_storage.add_budget(budget)
        assert await sheets_storage.list_budgets(OWNER) == [budget]

        changed = budget.model_copy(update={"limit_amount": Decimal("80.00")})
        await sheets_storage.update_budget(changed)
        assert (await sheets_storage.get_budget(budget.id)).limit_amount == Decimal("80.00")

        assert await sheets_storage.delete_budget(budget.id) is True
        assert await sheets_storage.get_budget(budget.id) is None

    @pytest.mark.asyncio
    async def test_update_missing_budget(self, sheets_storage):
        budget = Budget(
            owner_id=OWNER,
            category="Food",
            limit_amount=Decimal("100.00"),
            period=BudgetPeriod.WEEKLY,
        )
        with pytest.raises(NotFoundError):
            await sheets_storage.update_budget(budget)


class TestAuditRows:
    """Tests for the audit worksheet."""

    @pytest.mark.asyncio
    async def test_events_by_correlation_id(self, client):
        audit_storage = GoogleSheetsAuditStorage(client)
        correlation_id = uuid4()
        event = AuditEventBuilder.transaction_posted(
            transaction_id="txn-1",
            owner_id=OWNER,
            kind="expense",
            amount=Decimal("10.00"),
            account_name="Current",
            correlation_id=correlation_id,
        )

        assert await audit_storage.append_event(event) is True

        events = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert len(events) == 1
        assert events[0].event_id == event.event_id
        assert events[0].details["amount"] == "10.00"
        assert events[0].is_user_action is True


class TestReconciliationOverSheets:
    """The reconciliation service works unchanged on the Sheets backend."""

    @pytest.mark.asyncio
    async def test_post_and_settle(self, sheets_storage, settings):
        await sheets_storage.add_account(Account(owner_id=OWNER, name="Current"))
        ledger = LedgerReconciliationService(sheets_storage, settings=settings)

        await ledger.post_transaction(OWNER, "Current", "income", "100", category="Salary")
        loan_id = await ledger.post_transaction(
            OWNER, "Current", "loan", "40", person="Alice", loan_type="borrowed"
        )
        await ledger.settle_loan(OWNER, loan_id)

        account = await sheets_storage.find_account(OWNER, "Current")
        assert account.balance == Decimal("60.00")
        assert account.version == 2
        check = await ledger.recompute_balance(OWNER, "Current")
        assert check.consistent
