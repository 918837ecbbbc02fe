"""
Audit Models for Pocket Ledger

Every ledger mutation is logged for audit purposes.
This provides:
1. Complete traceability of every balance change
2. Debugging information when a multi-step write goes wrong
3. Enough detail to reconcile an account by hand
4. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from pocketledger.models.ledger import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every reconciliation step has its own event type.
    """
    # Transactions
    TRANSACTION_POSTED = "transaction_posted"
    TRANSACTION_EDITED = "transaction_edited"
    TRANSACTION_DELETED = "transaction_deleted"
    LOAN_SETTLED = "loan_settled"

    # Balances
    BALANCE_ADJUSTED = "balance_adjusted"
    PARTIAL_FAILURE = "partial_failure"

    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_RENAMED = "account_renamed"
    ACCOUNT_DELETED = "account_deleted"

    # Budgets
    BUDGET_CREATED = "budget_created"
    BUDGET_UPDATED = "budget_updated"
    BUDGET_DELETED = "budget_deleted"



class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger mutation creates one or more of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about, and whose is it?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'account', 'budget')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    owner_id: Optional[str] = Field(
        default=None,
        description="Owner of the entity"
    )

    # Correlation - for tracking the steps of one operation
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by all events of one ledger operation"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    # Additional data (event-specific)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "owner_id": self.owner_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         owner_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.owner_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Amounts are passed in as Decimal and stored as strings so the
    details stay JSON-serializable.

    Usage:
        event = AuditEventBuilder.transaction_posted(txn_id, owner_id, ...)
        event = AuditEventBuilder.balance_adjusted(account_id, owner_id, ...)
    """

    @staticmethod
    def transaction_posted(
        transaction_id: str,
        owner_id: str,
        kind: str,
        amount: Decimal,
        account_name: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_POSTED,
            entity_type="transaction",
            entity_id=transaction_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"{kind.capitalize()} of {amount} posted to {account_name}",
            details={
                "kind": kind,
                "amount": str(amount),
                "account_name": account_name,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_edited(
        transaction_id: str,
        owner_id: str,
        old_amount: Decimal,
        new_amount: Decimal,
        label: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_EDITED,
            entity_type="transaction",
            entity_id=transaction_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Transaction edited: {old_amount} -> {new_amount}",
            details={
                "old_amount": str(old_amount),
                "new_amount": str(new_amount),
                "label": label,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        owner_id: str,
        kind: str,
        amount: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"{kind.capitalize()} of {amount} deleted",
            details={
                "kind": kind,
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def loan_settled(
        transaction_id: str,
        owner_id: str,
        loan_type: str,
        amount: Decimal,
        person: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_SETTLED,
            entity_type="transaction",
            entity_id=transaction_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Loan {loan_type} with {person} settled ({amount})",
            details={
                "loan_type": loan_type,
                "amount": str(amount),
                "person": person,
            },
            is_user_action=True,
        )

    @staticmethod
    def balance_adjusted(
        account_id: str,
        owner_id: str,
        delta: Decimal,
        new_balance: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_ADJUSTED,
            entity_type="account",
            entity_id=account_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Balance adjusted by {delta:+}",
            details={
                "delta": str(delta),
                "new_balance": str(new_balance),
            },
        )

    @staticmethod
    def partial_failure(
        operation: str,
        completed_step: str,
        failed_step: str,
        owner_id: str,
        transaction_id: str,
        account_id: str,
        delta: Decimal,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTIAL_FAILURE,
            severity=AuditSeverity.CRITICAL,
            entity_type="account",
            entity_id=account_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"{operation} stopped after {completed_step}; {failed_step} failed",
            details={
                "operation": operation,
                "completed_step": completed_step,
                "failed_step": failed_step,
                "transaction_id": transaction_id,
                "delta": str(delta),
            },
            error_message=error_message,
        )

    @staticmethod
    def account_created(
        account_id: str,
        owner_id: str,
        name: str,
        is_default: bool = False
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            owner_id=owner_id,
            description=f"Account created: {name}",
            details={
                "name": name,
                "is_default": is_default,
            },
            is_user_action=not is_default,
        )

    @staticmethod
    def account_renamed(
        account_id: str,
        owner_id: str,
        old_name: str,
        new_name: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_RENAMED,
            entity_type="account",
            entity_id=account_id,
            owner_id=owner_id,
            description=f"Account renamed: {old_name} -> {new_name}",
            details={
                "old_name": old_name,
                "new_name": new_name,
            },
            is_user_action=True,
        )

    @staticmethod
    def account_deleted(
        account_id: str,
        owner_id: str,
        name: str,
        balance: Decimal
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            entity_type="account",
            entity_id=account_id,
            owner_id=owner_id,
            description=f"Account deleted: {name}",
            details={
                "name": name,
                "final_balance": str(balance),
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_changed(
        event_type: AuditEventType,
        budget_id: str,
        owner_id: str,
        category: str,
        limit_amount: Decimal,
        period: str
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            entity_type="budget",
            entity_id=budget_id,
            owner_id=owner_id,
            description=f"Budget {verb}: {category} {limit_amount} {period}",
            details={
                "category": category,
                "limit_amount": str(limit_amount),
                "period": period,
            },
            is_user_action=True,
        )
