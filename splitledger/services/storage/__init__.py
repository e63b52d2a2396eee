"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage:
the shared ledger store (Google Sheets or in-memory), the audit log, and the
local key-value store used for session data.
"""

from splitledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    KeyValueStoreInterface,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from splitledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from splitledger.services.storage.local import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)
from splitledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStoreInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementations
    "InMemoryAuditStorage",
    "InMemoryKeyValueStore",
    "InMemoryLedgerStorage",
    # Local file implementation
    "JsonFileKeyValueStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
