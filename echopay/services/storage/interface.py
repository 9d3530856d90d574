"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger in memory for tests and demos
2. Add a durable backend without touching the transfer logic
3. Keep business logic decoupled from storage implementation

The ledger interface is deliberately narrow: append a transfer pair,
read one account's view. There is no update and no delete.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional
from uuid import UUID

from echopay.models.audit import AuditEvent
from echopay.models.ledger import Account, LedgerEntry


class LedgerStoreInterface(ABC):
    """
    Abstract interface for the channel ledger.

    Implementations must guarantee:
    - append() makes both entries of a transfer visible together, or neither
    - writes are serialized, so entry ids follow a single total order
    - readers never observe half of a pair
    """

    @abstractmethod
    async def append(
        self,
        channel: str,
        from_account: Account,
        to_account: Account,
        amount: Decimal,
    ) -> tuple[int, int]:
        """
        Record one transfer as a SENT/RECEIVED entry pair.

        Args:
            channel: Channel the transfer belongs to
            from_account: Payer; owns the SENT entry
            to_account: Payee; owns the RECEIVED entry
            amount: Positive amount, already validated

        Returns:
            (sent_entry_id, received_entry_id)

        Raises:
            StorageFailureError: If the pair could not be persisted.
                No entry is visible afterwards.
        """
        pass

    @abstractmethod
    async def query(self, account: Account) -> list[LedgerEntry]:
        """
        List the entries owned by an account.

        Args:
            account: The owning account

        Returns:
            Entries in ascending creation order (oldest first)
        """
        pass

    @abstractmethod
    async def get_entry(self, entry_id: int) -> Optional[LedgerEntry]:
        """
        Retrieve a single entry by id.

        Args:
            entry_id: The entry's ledger-wide id

        Returns:
            The entry if found, None otherwise
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one client session).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageFailureError(StorageError):
    """A write could not be persisted. Nothing was applied."""
    pass
