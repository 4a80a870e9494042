"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the household backend; the in-memory backend serves tests
and unconfigured setups.
"""

from roomledger.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    ConnectionError,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)
from roomledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
)
from roomledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStoreInterface",
    # Exceptions
    "ConflictError",
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
]
