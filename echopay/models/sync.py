"""
Client Synchronization Models

State and per-refresh outcome for a logged-in client session.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from echopay.models.ledger import LedgerEntry


class SyncState(str, Enum):
    """
    Lifecycle of one client session.

    UNINITIALIZED -> INITIALIZING      on login
    INITIALIZING  -> SYNCED            on the first successful fetch (baseline)
    SYNCED        -> ERROR_RETRY       on a failed fetch
    ERROR_RETRY   -> SYNCED            on the next successful fetch
    any           -> UNINITIALIZED     on logout (terminal for the session)
    """
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    SYNCED = "synced"
    ERROR_RETRY = "error_retry"


class SyncResult(BaseModel):
    """Outcome of a single refresh (periodic tick or out-of-band)."""
    model_config = ConfigDict(frozen=True)

    success: bool
    state: SyncState
    baseline: bool = Field(
        default=False,
        description="True if this refresh established the baseline"
    )
    announced: list[LedgerEntry] = Field(
        default_factory=list,
        description="Newly received entries that were announced"
    )
    error_message: Optional[str] = None
