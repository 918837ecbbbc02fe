"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the document store.
Google Sheets is the remote backend; the in-memory backend serves tests and local runs.
"""

from pocketledger.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    LedgerStorageInterface,
    NotFoundError,
    StoreConnectionError,
    StoreError,
)
from pocketledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from pocketledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConflictError",
    "NotFoundError",
    "StoreConnectionError",
    "StoreError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
