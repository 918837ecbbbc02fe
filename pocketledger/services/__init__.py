"""Services package."""

from pocketledger.services.storage import (
    AuditStorageInterface,
    ConflictError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StoreConnectionError,
    StoreError,
)

__all__ = [
    "AuditStorageInterface",
    "ConflictError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "StoreConnectionError",
    "StoreError",
]
