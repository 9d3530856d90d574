"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements an in-memory ledger with an optional JSON-lines
journal, but designed to be swappable.
"""

from echopay.services.storage.interface import (
    AuditStorageInterface,
    LedgerStoreInterface,
    StorageError,
    StorageFailureError,
)
from echopay.services.storage.journal import (
    JsonLinesJournal,
    LedgerJournal,
)
from echopay.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerJournal",
    "LedgerStoreInterface",
    # Exceptions
    "StorageError",
    "StorageFailureError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    "JsonLinesJournal",
]
