"""
Storage Services Package

Provides the abstract ledger store and concrete implementations.
The in-memory store is the reference implementation; Google Sheets is
available for users who want to see their ledger in a spreadsheet.
"""

from rewards_engine.services.storage.interface import (
    AuditStorageInterface,
    ConcurrentUpdateConflict,
    ConnectionError,
    DuplicateError,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)
from rewards_engine.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    validate_change_set,
)
from rewards_engine.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStoreInterface",
    # Exceptions
    "ConcurrentUpdateConflict",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "validate_change_set",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
]
