"""
Data Models Package

This package contains all Pydantic models used in EchoPay.
All data flowing between the ledger service and its clients must
conform to these schemas.
"""

from echopay.models.ledger import (
    CHANNEL,
    Account,
    Direction,
    LedgerEntry,
    TransferReceipt,
)
from echopay.models.sync import (
    SyncResult,
    SyncState,
)
from echopay.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CHANNEL",
    "Account",
    "Direction",
    "LedgerEntry",
    "TransferReceipt",
    # Sync models
    "SyncResult",
    "SyncState",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
