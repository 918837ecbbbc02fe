"""
Core Data Models for Pocket Ledger

These models define the strict schemas for everything stored in the
document store and everything the services hand back to the UI.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Carry the ledger invariants (which fields a transaction kind may use)

DESIGN DECISION: Money is always Decimal with at most two places.
Floats never touch a balance.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def new_id() -> str:
    """Opaque identifier for a new document."""
    return uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are treated as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """What a transaction does to the owner's money."""
    INCOME = "income"
    EXPENSE = "expense"
    LOAN = "loan"


class LoanType(str, Enum):
    """Direction of a loan, seen from the owner."""
    LENT = "lent"          # Owner gave money, gets it back on settle
    BORROWED = "borrowed"  # Owner received money, pays it back on settle


class LoanStatus(str, Enum):
    """
    Loan lifecycle.

    pending --settle--> settled. Settled is terminal.
    """
    PENDING = "pending"
    SETTLED = "settled"


class BudgetPeriod(str, Enum):
    """Window a budget limit applies to."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# Advisory category catalogue offered by the add-transaction form.
EXPENSE_CATEGORIES = (
    "Food",
    "Transport",
    "Entertainment",
    "Bills",
    "Health",
    "Shopping",
    "Education",
    "Insurance",
    "Other",
)

INCOME_CATEGORIES = (
    "Salary",
    "Freelance",
    "Investment",
    "Bonus",
    "Gift",
    "Other",
)


# =============================================================================
# LEDGER ENTITIES
# =============================================================================

class Account(BaseModel):
    """
    A place money lives in (cash, bank, wallet...).

    CRITICAL: balance is a materialized running total. It is only
    written through compare-and-set, and `version` is the token
    that makes that possible.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id,
        description="Store-assigned account ID"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="Owner of this account"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name, unique per owner"
    )
    balance: Decimal = Field(
        default=ZERO,
        decimal_places=2,
        description="Signed running balance"
    )
    color: str = Field(
        default="teal",
        max_length=20,
        description="Display color tag"
    )
    version: int = Field(
        default=0,
        ge=0,
        description="Bumped on every balance write"
    )
    created_at: datetime = Field(
        default_factory=utc_now
    )


class Transaction(BaseModel):
    """
    A single income, expense or loan.

    Income and expense carry a category; loans carry a person,
    a direction and a status. Never both.

    `version` plays the same role as Account.version: edits, settles
    and deletes are conditional on it, so a balance delta is always
    computed from the record that was actually replaced.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id,
        description="Store-assigned transaction ID"
    )
    owner_id: str = Field(
        ...,
        min_length=1
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Positive amount"
    )
    kind: TransactionKind

    # Income / expense only
    category: Optional[str] = Field(
        default=None,
        max_length=100
    )

    # Loan only
    person: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Loan counterparty"
    )
    loan_type: Optional[LoanType] = None
    status: Optional[LoanStatus] = None

    posted_at: datetime = Field(
        default_factory=utc_now,
        description="When the transaction was posted (UTC)"
    )
    note: str = Field(
        default="",
        max_length=500
    )

    # Accounts are joined by id; the name is a display snapshot
    account_id: str = Field(
        ...,
        min_length=1
    )
    account_name: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    version: int = Field(
        default=0,
        ge=0,
        description="Bumped on every write to the record"
    )

    @field_validator('posted_at')
    @classmethod
    def normalize_posted_at(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @model_validator(mode='after')
    def validate_kind_fields(self) -> 'Transaction':
        """Exactly one of category/person, matching the kind."""
        if self.kind == TransactionKind.LOAN:
            if not self.person:
                raise ValueError("Loan transactions require a person")
            if self.category is not None:
                raise ValueError("Loan transactions cannot have a category")
            if self.loan_type is None or self.status is None:
                raise ValueError("Loan transactions require loan_type and status")
        else:
            if not self.category:
                raise ValueError("Income and expense transactions require a category")
            if self.person is not None:
                raise ValueError("Only loan transactions can have a person")
            if self.loan_type is not None or self.status is not None:
                raise ValueError("Only loan transactions can have loan_type or status")
        return self

    @property
    def is_loan(self) -> bool:
        return self.kind == TransactionKind.LOAN

    @property
    def is_balance_affecting(self) -> bool:
        """Pending loans are off-balance; everything else counts."""
        if self.is_loan:
            return self.status == LoanStatus.SETTLED
        return True

    @property
    def label(self) -> str:
        """Category for income/expense, person for loans."""
        return (self.person if self.is_loan else self.category) or ""


class Budget(BaseModel):
    """
    A spending limit for one category over a repeating period.

    Budgets are never touched by transaction activity; they are
    evaluated against transactions on read.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id
    )
    owner_id: str = Field(
        ...,
        min_length=1
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    limit_amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Spending limit for one period"
    )
    period: BudgetPeriod
    created_at: datetime = Field(
        default_factory=utc_now
    )


# =============================================================================
# QUERY MODELS
# =============================================================================

class TransactionQuery(BaseModel):
    """
    Filters for listing transactions.

    Results are always ordered by posted_at, newest first.
    """

    owner_id: str
    kind: Optional[TransactionKind] = None
    kinds: Optional[list[TransactionKind]] = None
    category: Optional[str] = None
    loan_type: Optional[LoanType] = None
    status: Optional[LoanStatus] = None
    account_id: Optional[str] = None
    posted_from: Optional[datetime] = Field(
        default=None,
        description="Inclusive lower bound on posted_at"
    )
    limit: Optional[int] = Field(
        default=None,
        ge=1
    )

    @field_validator('posted_from')
    @classmethod
    def normalize_posted_from(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v) if v is not None else None

    def matches(self, txn: Transaction) -> bool:
        """Check a single transaction against every filter."""
        if txn.owner_id != self.owner_id:
            return False
        if self.kind is not None and txn.kind != self.kind:
            return False
        if self.kinds is not None and txn.kind not in self.kinds:
            return False
        if self.category is not None and txn.category != self.category:
            return False
        if self.loan_type is not None and txn.loan_type != self.loan_type:
            return False
        if self.status is not None and txn.status != self.status:
            return False
        if self.account_id is not None and txn.account_id != self.account_id:
            return False
        if self.posted_from is not None and txn.posted_at < self.posted_from:
            return False
        return True

    def apply(self, transactions: list[Transaction]) -> list[Transaction]:
        """Filter, sort newest first, and cut to the limit."""
        matched = [txn for txn in transactions if self.matches(txn)]
        matched.sort(key=lambda t: t.posted_at, reverse=True)
        if self.limit is not None:
            matched = matched[:self.limit]
        return matched


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'not_positive')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


# =============================================================================
# RESULT MODELS
# =============================================================================

class BudgetStatus(BaseModel):
    """Spend-vs-limit for one budget in its current period."""

    budget: Budget
    period_start: datetime
    spent: Decimal
    remaining: Decimal
    percentage: Decimal = Field(
        ...,
        description="spent / limit, unclamped (1.25 means 125%)"
    )
    progress: Decimal = Field(
        ...,
        ge=0,
        le=1,
        description="percentage clamped to [0, 1] for progress bars"
    )
    over_budget: bool


class AnalyticsSummary(BaseModel):
    """Income/expense totals and the expense breakdown by category."""

    total_income: Decimal = ZERO
    total_expense: Decimal = ZERO
    net_balance: Decimal = ZERO
    by_category: dict[str, Decimal] = Field(default_factory=dict)


class LoanSummary(BaseModel):
    """Money still out on pending loans."""

    pending_lent: Decimal = ZERO
    pending_borrowed: Decimal = ZERO
    pending_count: int = 0


class BalanceCheck(BaseModel):
    """
    Stored balance compared with the balance recomputed from history.

    Used to reconcile an account after a partial failure.
    """

    account_id: str
    account_name: str
    stored_balance: Decimal
    expected_balance: Decimal
    transaction_count: int

    @property
    def discrepancy(self) -> Decimal:
        return self.stored_balance - self.expected_balance

    @property
    def consistent(self) -> bool:
        return self.discrepancy == 0
