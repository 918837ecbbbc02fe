"""
Input Validation

DESIGN DECISION: Every ledger operation validates its raw input here
before anything is read from or written to the store.

Checks are split the same way for every entity:
- Format: can the value be parsed at all (amount, enum values)
- Business: is it acceptable (positive, not absurd, required text present)

IMPORTANT: Validation NEVER silently fixes issues.
An amount with three decimal places is rejected, not rounded.
The only defaulting done here is the documented "Other" category
for income and expense.
"""

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, TypeVar

from pocketledger.config import LedgerSettings, get_settings
from pocketledger.errors import ValidationError
from pocketledger.models.ledger import (
    CENT,
    BudgetPeriod,
    LoanType,
    TransactionKind,
    ValidationIssue,
)


E = TypeVar("E", bound=Enum)


class TransactionValidator:
    """
    Validates user input for transactions, accounts and budgets.

    Methods named check_* return a list of issues; raise_for_issues()
    turns error-level issues into a ValidationError.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    # -------------------------------------------------------------------------
    # Parsing helpers
    # -------------------------------------------------------------------------

    def parse_amount(
        self,
        value: Any,
        field: str = "amount",
    ) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        """
        Parse a money amount.

        Returns:
            (amount, issues) - amount is None when it could not be used
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            return None, [ValidationIssue(
                field=field,
                issue_type="missing",
                message="Enter an amount",
            )]

        if isinstance(value, bool):
            return None, [ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message="Enter a valid amount",
            )]

        try:
            # str() first so floats keep their printed value
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None, [ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message="Enter a valid amount",
            )]

        if not amount.is_finite():
            return None, [ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message="Enter a valid amount",
            )]

        if amount <= 0:
            return None, [ValidationIssue(
                field=field,
                issue_type="not_positive",
                message="Amount must be greater than zero",
            )]

        if amount.as_tuple().exponent < -2:
            return None, [ValidationIssue(
                field=field,
                issue_type="too_precise",
                message="Amount can have at most two decimal places",
            )]

        if amount > self._settings.max_transaction_amount:
            return None, [ValidationIssue(
                field=field,
                issue_type="suspicious_value",
                message=f"Amount exceeds the maximum of {self._settings.max_transaction_amount}",
            )]

        return amount.quantize(CENT), []

    def parse_enum(
        self,
        enum_cls: type[E],
        value: Any,
        field: str,
    ) -> tuple[Optional[E], list[ValidationIssue]]:
        """Parse an enum value from its member or string value."""
        if value is None:
            return None, [ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{field.replace('_', ' ').capitalize()} is required",
            )]
        try:
            return enum_cls(value), []
        except ValueError:
            allowed = ", ".join(m.value for m in enum_cls)
            return None, [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"Unknown {field.replace('_', ' ')}: {value}. Allowed: {allowed}",
            )]

    @staticmethod
    def clean_text(value: Optional[str]) -> str:
        return (value or "").strip()

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def check_posting(
        self,
        kind: Any,
        amount: Any,
        category: Optional[str],
        person: Optional[str],
        loan_type: Any,
    ) -> tuple[dict, list[ValidationIssue]]:
        """
        Validate the fields of a new transaction.

        Returns:
            (cleaned_fields, issues)
            cleaned_fields holds kind, amount, category, person, loan_type
        """
        issues: list[ValidationIssue] = []
        cleaned: dict = {"category": None, "person": None, "loan_type": None}

        parsed_kind, kind_issues = self.parse_enum(TransactionKind, kind, "kind")
        issues.extend(kind_issues)
        cleaned["kind"] = parsed_kind

        parsed_amount, amount_issues = self.parse_amount(amount)
        issues.extend(amount_issues)
        cleaned["amount"] = parsed_amount

        if parsed_kind == TransactionKind.LOAN:
            cleaned_person = self.clean_text(person)
            if not cleaned_person:
                issues.append(ValidationIssue(
                    field="person",
                    issue_type="missing",
                    message="Enter person name",
                ))
            cleaned["person"] = cleaned_person

            parsed_loan_type, loan_issues = self.parse_enum(LoanType, loan_type, "loan_type")
            issues.extend(loan_issues)
            cleaned["loan_type"] = parsed_loan_type

            if self.clean_text(category):
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="not_allowed",
                    message="Loans have a person, not a category",
                ))
        elif parsed_kind is not None:
            cleaned["category"] = (
                self.clean_text(category) or self._settings.default_category
            )
            if self.clean_text(person):
                issues.append(ValidationIssue(
                    field="person",
                    issue_type="not_allowed",
                    message="Only loans have a person",
                ))
            if loan_type is not None:
                issues.append(ValidationIssue(
                    field="loan_type",
                    issue_type="not_allowed",
                    message="Only loans have a loan type",
                ))

        return cleaned, issues

    def check_edit(
        self,
        new_amount: Any,
        new_label: Optional[str],
    ) -> tuple[dict, list[ValidationIssue]]:
        """Validate an amount/label edit."""
        issues: list[ValidationIssue] = []

        parsed_amount, amount_issues = self.parse_amount(new_amount)
        issues.extend(amount_issues)

        label = self.clean_text(new_label)
        if not label:
            issues.append(ValidationIssue(
                field="label",
                issue_type="missing",
                message="Category or person cannot be empty",
            ))

        return {"amount": parsed_amount, "label": label}, issues

    def check_account_name(self, name: Optional[str]) -> tuple[str, list[ValidationIssue]]:
        cleaned = self.clean_text(name)
        if not cleaned:
            return cleaned, [ValidationIssue(
                field="name",
                issue_type="missing",
                message="Account name cannot be empty",
            )]
        if len(cleaned) > 100:
            return cleaned, [ValidationIssue(
                field="name",
                issue_type="too_long",
                message="Account name can be at most 100 characters",
            )]
        return cleaned, []

    def check_budget(
        self,
        category: Optional[str],
        limit_amount: Any,
        period: Any,
    ) -> tuple[dict, list[ValidationIssue]]:
        """Validate the fields of a budget."""
        issues: list[ValidationIssue] = []

        cleaned_category = self.clean_text(category)
        if not cleaned_category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Choose a category for the budget",
            ))

        parsed_limit, limit_issues = self.parse_amount(limit_amount, field="limit_amount")
        issues.extend(limit_issues)

        parsed_period, period_issues = self.parse_enum(BudgetPeriod, period, "period")
        issues.extend(period_issues)

        return {
            "category": cleaned_category,
            "limit_amount": parsed_limit,
            "period": parsed_period,
        }, issues

    @staticmethod
    def raise_for_issues(issues: list[ValidationIssue]) -> None:
        """Raise ValidationError if any error-level issue was found."""
        if any(issue.severity == "error" for issue in issues):
            raise ValidationError(issues)

    @staticmethod
    def get_user_friendly_summary(issues: list[ValidationIssue]) -> str:
        """
        Generate a user-friendly summary of validation issues.

        Suitable for a snackbar or an inline form message.
        """
        if not issues:
            return "Looks good."
        return "\n".join(f"• {issue.message}" for issue in issues)
