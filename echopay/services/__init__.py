"""Services package."""

from echopay.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    JsonLinesJournal,
    LedgerJournal,
    LedgerStoreInterface,
    StorageError,
    StorageFailureError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "JsonLinesJournal",
    "LedgerJournal",
    "LedgerStoreInterface",
    "StorageError",
    "StorageFailureError",
]
