"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the remote document store because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

Each collection is one worksheet: a header row, then one document per row.

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: multi-step writes are ordered carefully and a failed
  second step is surfaced as a partial failure by the reconciliation service
- No server-side compare-and-set: account and transaction version checks
  re-read the row right before writing, which narrows the race window but
  cannot close it
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to a real document database later without changing business logic.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from gspread.utils import rowcol_to_a1
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from pocketledger.config import GoogleSheetsSettings, get_settings
from pocketledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from pocketledger.models.ledger import (
    Account,
    Budget,
    BudgetPeriod,
    LoanStatus,
    LoanType,
    Transaction,
    TransactionKind,
    TransactionQuery,
)
from pocketledger.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    LedgerStorageInterface,
    NotFoundError,
    StoreConnectionError,
    StoreError,
)


# Column mappings for each collection
ACCOUNT_COLUMNS = [
    "id",
    "owner_id",
    "name",
    "balance",
    "color",
    "version",
    "created_at",
]

TRANSACTION_COLUMNS = [
    "id",
    "owner_id",
    "amount",
    "kind",
    "category",
    "person",
    "loan_type",
    "status",
    "posted_at",
    "note",
    "account_id",
    "account_name",
    "version",
]

BUDGET_COLUMNS = [
    "id",
    "owner_id",
    "category",
    "limit_amount",
    "period",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "owner_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

BALANCE_COLUMN = ACCOUNT_COLUMNS.index("balance") + 1
VERSION_COLUMN = ACCOUNT_COLUMNS.index("version") + 1


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StoreConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StoreConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_accounts_sheet(self) -> gspread.Worksheet:
        """Get or create the Accounts worksheet."""
        return self._get_or_create(self._settings.accounts_sheet_name, ACCOUNT_COLUMNS, 100)

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, 2000
        )

    def get_budgets_sheet(self) -> gspread.Worksheet:
        """Get or create the Budgets worksheet."""
        return self._get_or_create(self._settings.budgets_sheet_name, BUDGET_COLUMNS, 200)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        # More rows for audit log
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000)


def _cell_getter(row: list):
    """Handle missing trailing columns gracefully."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


def _find_row(all_rows: list[list], doc_id: str) -> tuple[Optional[int], Optional[list]]:
    """Locate a document by ID. Returns the 1-based sheet row index and the row."""
    # Start from 2 (row 1 is header)
    for idx, row in enumerate(all_rows[1:], start=2):
        if row and row[0] == doc_id:
            return idx, row
    return None, None


def _check_transaction_version(txn: Transaction, expected_version: Optional[int]) -> None:
    if expected_version is not None and txn.version != expected_version:
        raise ConflictError(
            f"Transaction {txn.id} is at version {txn.version}, expected {expected_version}"
        )


def _write_row(sheet: gspread.Worksheet, idx: int, row: list) -> None:
    sheet.update(
        range_name=f"{rowcol_to_a1(idx, 1)}:{rowcol_to_a1(idx, len(row))}",
        values=[row],
        value_input_option="RAW",
    )


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of the ledger collections.

    Accounts, transactions and budgets live on separate worksheets.
    Amounts are stored as plain decimal strings, timestamps as ISO 8601.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._logger = structlog.get_logger(__name__)

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    def _account_to_row(self, account: Account) -> list:
        return [
            account.id,
            account.owner_id,
            account.name,
            str(account.balance),
            account.color,
            str(account.version),
            account.created_at.isoformat(),
        ]

    def _row_to_account(self, row: list) -> Account:
        safe_get = _cell_getter(row)
        return Account(
            id=safe_get(0),
            owner_id=safe_get(1),
            name=safe_get(2),
            balance=Decimal(safe_get(3, "0.00")),
            color=safe_get(4, "teal"),
            version=int(safe_get(5, "0")),
            created_at=datetime.fromisoformat(safe_get(6)),
        )

    def _transaction_to_row(self, txn: Transaction) -> list:
        return [
            txn.id,
            txn.owner_id,
            str(txn.amount),
            txn.kind.value,
            txn.category or "",
            txn.person or "",
            txn.loan_type.value if txn.loan_type else "",
            txn.status.value if txn.status else "",
            txn.posted_at.isoformat(),
            txn.note,
            txn.account_id,
            txn.account_name,
            str(txn.version),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        safe_get = _cell_getter(row)
        return Transaction(
            id=safe_get(0),
            owner_id=safe_get(1),
            amount=Decimal(safe_get(2)),
            kind=TransactionKind(safe_get(3)),
            category=safe_get(4) or None,
            person=safe_get(5) or None,
            loan_type=LoanType(safe_get(6)) if safe_get(6) else None,
            status=LoanStatus(safe_get(7)) if safe_get(7) else None,
            posted_at=datetime.fromisoformat(safe_get(8)),
            note=safe_get(9),
            account_id=safe_get(10),
            account_name=safe_get(11),
            version=int(safe_get(12, "0")),
        )

    def _budget_to_row(self, budget: Budget) -> list:
        return [
            budget.id,
            budget.owner_id,
            budget.category,
            str(budget.limit_amount),
            budget.period.value,
            budget.created_at.isoformat(),
        ]

    def _row_to_budget(self, row: list) -> Budget:
        safe_get = _cell_getter(row)
        return Budget(
            id=safe_get(0),
            owner_id=safe_get(1),
            category=safe_get(2),
            limit_amount=Decimal(safe_get(3)),
            period=BudgetPeriod(safe_get(4)),
            created_at=datetime.fromisoformat(safe_get(5)),
        )

    def _load_all(self, sheet: gspread.Worksheet, converter) -> list:
        documents = []
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):  # Skip header
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                documents.append(converter(row))
            except Exception as e:
                self._logger.warning(
                    "malformed_row_skipped",
                    worksheet=getattr(sheet, "title", None),
                    row_number=idx,
                    row_id=row[0],
                    error=str(e),
                )
        return documents

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def add_account(self, account: Account) -> Account:
        """Append an account row."""
        try:
            sheet = self._client.get_accounts_sheet()
            sheet.append_row(self._account_to_row(account), value_input_option="RAW")
            return account
        except Exception as e:
            raise StoreError(f"Failed to save account: {e}")

    async def get_account(self, account_id: str) -> Optional[Account]:
        try:
            sheet = self._client.get_accounts_sheet()
            _, row = _find_row(sheet.get_all_values(), account_id)
            return self._row_to_account(row) if row else None
        except Exception as e:
            raise StoreError(f"Failed to get account: {e}")

    async def find_account(self, owner_id: str, name: str) -> Optional[Account]:
        for account in await self.list_accounts(owner_id):
            if account.name == name:
                return account
        return None

    async def list_accounts(self, owner_id: str) -> list[Account]:
        try:
            sheet = self._client.get_accounts_sheet()
            accounts = [
                a for a in self._load_all(sheet, self._row_to_account)
                if a.owner_id == owner_id
            ]
            accounts.sort(key=lambda a: a.created_at)
            return accounts
        except Exception as e:
            raise StoreError(f"Failed to list accounts: {e}")

    async def update_account(
        self,
        account_id: str,
        name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Account:
        try:
            sheet = self._client.get_accounts_sheet()
            idx, row = _find_row(sheet.get_all_values(), account_id)
            if row is None:
                raise NotFoundError(f"Account not found: {account_id}")

            account = self._row_to_account(row)
            if name is not None:
                account.name = name
            if color is not None:
                account.color = color
            _write_row(sheet, idx, self._account_to_row(account))
            return account
        except NotFoundError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to update account: {e}")

    async def compare_and_set_balance(
        self,
        account_id: str,
        expected_version: int,
        new_balance: Decimal,
    ) -> Account:
        """Version-checked balance write (see TRADEOFFS above)."""
        try:
            sheet = self._client.get_accounts_sheet()
            idx, row = _find_row(sheet.get_all_values(), account_id)
            if row is None:
                raise NotFoundError(f"Account not found: {account_id}")

            account = self._row_to_account(row)
            if account.version != expected_version:
                raise ConflictError(
                    f"Account {account_id} is at version {account.version}, "
                    f"expected {expected_version}"
                )

            account.balance = new_balance
            account.version += 1
            sheet.update(
                range_name=(
                    f"{rowcol_to_a1(idx, BALANCE_COLUMN)}:{rowcol_to_a1(idx, VERSION_COLUMN)}"
                ),
                values=[[str(account.balance), account.color, str(account.version)]],
                value_input_option="RAW",
            )
            return account
        except (NotFoundError, ConflictError):
            raise
        except Exception as e:
            raise StoreError(f"Failed to write balance: {e}")

    async def delete_account(self, account_id: str) -> bool:
        try:
            sheet = self._client.get_accounts_sheet()
            idx, _ = _find_row(sheet.get_all_values(), account_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StoreError(f"Failed to delete account: {e}")

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def add_transaction(self, transaction: Transaction) -> Transaction:
        """Append a transaction row."""
        try:
            sheet = self._client.get_transactions_sheet()
            sheet.append_row(
                self._transaction_to_row(transaction), value_input_option="RAW"
            )
            return transaction
        except Exception as e:
            raise StoreError(f"Failed to save transaction: {e}")

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            _, row = _find_row(sheet.get_all_values(), transaction_id)
            return self._row_to_transaction(row) if row else None
        except Exception as e:
            raise StoreError(f"Failed to get transaction: {e}")

    async def update_transaction(
        self,
        transaction_id: str,
        changes: dict,
        expected_version: Optional[int] = None,
    ) -> Transaction:
        """Version-checked row rewrite (see TRADEOFFS above)."""
        try:
            sheet = self._client.get_transactions_sheet()
            idx, row = _find_row(sheet.get_all_values(), transaction_id)
            if row is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")

            txn = self._row_to_transaction(row)
            _check_transaction_version(txn, expected_version)

            updated = Transaction.model_validate(
                {**txn.model_dump(), **changes, "version": txn.version + 1}
            )
            _write_row(sheet, idx, self._transaction_to_row(updated))
            return updated
        except (NotFoundError, ConflictError):
            raise
        except Exception as e:
            raise StoreError(f"Failed to update transaction: {e}")

    async def delete_transaction(
        self,
        transaction_id: str,
        expected_version: Optional[int] = None,
    ) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            idx, row = _find_row(sheet.get_all_values(), transaction_id)
            if idx is None:
                return False
            _check_transaction_version(self._row_to_transaction(row), expected_version)
            sheet.delete_rows(idx)
            return True
        except ConflictError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to delete transaction: {e}")

    async def list_transactions(self, query: TransactionQuery) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            return query.apply(self._load_all(sheet, self._row_to_transaction))
        except Exception as e:
            raise StoreError(f"Failed to list transactions: {e}")

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def add_budget(self, budget: Budget) -> Budget:
        try:
            sheet = self._client.get_budgets_sheet()
            sheet.append_row(self._budget_to_row(budget), value_input_option="RAW")
            return budget
        except Exception as e:
            raise StoreError(f"Failed to save budget: {e}")

    async def get_budget(self, budget_id: str) -> Optional[Budget]:
        try:
            sheet = self._client.get_budgets_sheet()
            _, row = _find_row(sheet.get_all_values(), budget_id)
            return self._row_to_budget(row) if row else None
        except Exception as e:
            raise StoreError(f"Failed to get budget: {e}")

    async def update_budget(self, budget: Budget) -> Budget:
        try:
            sheet = self._client.get_budgets_sheet()
            idx, row = _find_row(sheet.get_all_values(), budget.id)
            if row is None:
                raise NotFoundError(f"Budget not found: {budget.id}")
            _write_row(sheet, idx, self._budget_to_row(budget))
            return budget
        except NotFoundError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to update budget: {e}")

    async def delete_budget(self, budget_id: str) -> bool:
        try:
            sheet = self._client.get_budgets_sheet()
            idx, _ = _find_row(sheet.get_all_values(), budget_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StoreError(f"Failed to delete budget: {e}")

    async def list_budgets(self, owner_id: str) -> list[Budget]:
        try:
            sheet = self._client.get_budgets_sheet()
            budgets = [
                b for b in self._load_all(sheet, self._row_to_budget)
                if b.owner_id == owner_id
            ]
            budgets.sort(key=lambda b: b.created_at)
            return budgets
        except Exception as e:
            raise StoreError(f"Failed to list budgets: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _cell_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            owner_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _load_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StoreError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [e for e in self._load_events() if e.correlation_id == correlation_id]
            # Sort chronologically
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StoreError(f"Failed to get audit events: {e}")

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            events = [
                e for e in self._load_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StoreError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._load_events()
            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StoreError(f"Failed to get audit events: {e}")
