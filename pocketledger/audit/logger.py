"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. Complete traceability of balance changes
2. Debugging capability for partial failures
3. User can see history of their ledger
4. A trail to reconcile an account by hand

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (a failed audit write never fails a posting)
- Supports correlation IDs so the steps of one operation can be traced
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from pocketledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from pocketledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit collection (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_posted(
        self,
        transaction_id: str,
        owner_id: str,
        kind: str,
        amount: Decimal,
        account_name: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_posted(
            transaction_id=transaction_id,
            owner_id=owner_id,
            kind=kind,
            amount=amount,
            account_name=account_name,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_edited(
        self,
        transaction_id: str,
        owner_id: str,
        old_amount: Decimal,
        new_amount: Decimal,
        label: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_edited(
            transaction_id=transaction_id,
            owner_id=owner_id,
            old_amount=old_amount,
            new_amount=new_amount,
            label=label,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        owner_id: str,
        kind: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            owner_id=owner_id,
            kind=kind,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_loan_settled(
        self,
        transaction_id: str,
        owner_id: str,
        loan_type: str,
        amount: Decimal,
        person: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.loan_settled(
            transaction_id=transaction_id,
            owner_id=owner_id,
            loan_type=loan_type,
            amount=amount,
            person=person,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_balance_adjusted(
        self,
        account_id: str,
        owner_id: str,
        delta: Decimal,
        new_balance: Decimal,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.balance_adjusted(
            account_id=account_id,
            owner_id=owner_id,
            delta=delta,
            new_balance=new_balance,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_partial_failure(
        self,
        operation: str,
        completed_step: str,
        failed_step: str,
        owner_id: str,
        transaction_id: str,
        account_id: str,
        delta: Decimal,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a multi-step write that stopped halfway."""
        event = AuditEventBuilder.partial_failure(
            operation=operation,
            completed_step=completed_step,
            failed_step=failed_step,
            owner_id=owner_id,
            transaction_id=transaction_id,
            account_id=account_id,
            delta=delta,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_account_created(
        self,
        account_id: str,
        owner_id: str,
        name: str,
        is_default: bool = False,
    ) -> None:
        await self.log(AuditEventBuilder.account_created(
            account_id=account_id,
            owner_id=owner_id,
            name=name,
            is_default=is_default,
        ))

    async def log_account_renamed(
        self,
        account_id: str,
        owner_id: str,
        old_name: str,
        new_name: str,
    ) -> None:
        await self.log(AuditEventBuilder.account_renamed(
            account_id=account_id,
            owner_id=owner_id,
            old_name=old_name,
            new_name=new_name,
        ))

    async def log_account_deleted(
        self,
        account_id: str,
        owner_id: str,
        name: str,
        balance: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.account_deleted(
            account_id=account_id,
            owner_id=owner_id,
            name=name,
            balance=balance,
        ))

    async def log_budget_changed(
        self,
        event_type: AuditEventType,
        budget_id: str,
        owner_id: str,
        category: str,
        limit_amount: Decimal,
        period: str,
    ) -> None:
        """Log a budget create/update/delete."""
        await self.log(AuditEventBuilder.budget_changed(
            event_type=event_type,
            budget_id=budget_id,
            owner_id=owner_id,
            category=category,
            limit_amount=limit_amount,
            period=period,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a ledger operation (e.g., post_transaction).
    Pass it through all subsequent steps.
    """
    return uuid4()
