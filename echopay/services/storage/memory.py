"""
In-Memory Storage Implementation

DESIGN DECISION: The channel ledger lives in process memory, optionally
backed by an append-only journal for durability. Two accounts and one
channel never outgrow a Python list.

Concurrency model:
- Writers take an asyncio.Lock, so transfers apply one at a time and
  entry ids follow a single total order.
- Readers never take the lock. They read an immutable snapshot which the
  writer replaces in ONE assignment, after both entries of the pair are
  built and journaled. A reader sees the whole pair or nothing.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Callable, Mapping, Optional
from uuid import UUID

import structlog

from echopay.models.audit import AuditEvent
from echopay.models.ledger import (
    Account,
    Direction,
    LedgerEntry,
    TransferReceipt,
)
from echopay.services.storage.interface import (
    AuditStorageInterface,
    LedgerStoreInterface,
    StorageFailureError,
)
from echopay.services.storage.journal import LedgerJournal


logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _mark_retrieved(task: "asyncio.Future") -> None:
    # A cancelled caller never awaits the commit; its error is still logged
    if not task.cancelled() and task.exception() is not None:
        logger.warning("ledger_append_failed", error=str(task.exception()))


@dataclass(frozen=True)
class _LedgerSnapshot:
    """Everything readers can see, published as a unit."""
    by_owner: Mapping[Account, tuple[LedgerEntry, ...]] = field(
        default_factory=lambda: MappingProxyType({account: () for account in Account})
    )
    by_id: Mapping[int, LedgerEntry] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def with_pair(self, sent: LedgerEntry, received: LedgerEntry) -> "_LedgerSnapshot":
        by_owner = dict(self.by_owner)
        by_owner[sent.owner] = by_owner[sent.owner] + (sent,)
        by_owner[received.owner] = by_owner[received.owner] + (received,)
        by_id = dict(self.by_id)
        by_id[sent.id] = sent
        by_id[received.id] = received
        return _LedgerSnapshot(
            by_owner=MappingProxyType(by_owner),
            by_id=MappingProxyType(by_id),
        )


class InMemoryLedgerStore(LedgerStoreInterface):
    """
    Channel ledger held in memory.

    If a journal is supplied, its pairs are replayed on construction and
    every new pair is journaled before it becomes visible.
    """

    def __init__(
        self,
        journal: Optional[LedgerJournal] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._journal = journal
        self._clock = clock
        self._write_lock = asyncio.Lock()
        self._snapshot = _LedgerSnapshot()
        self._next_id = 1

        if journal is not None:
            self._replay(journal.load())

    def _replay(self, pairs: list[TransferReceipt]) -> None:
        snapshot = self._snapshot
        for pair in pairs:
            if (
                pair.sent.id == pair.received.id
                or pair.sent.id in snapshot.by_id
                or pair.received.id in snapshot.by_id
            ):
                raise ValueError(
                    f"Duplicate entry id in ledger journal: {pair.sent.id}/{pair.received.id}"
                )
            snapshot = snapshot.with_pair(pair.sent, pair.received)
            self._next_id = max(self._next_id, pair.received.id + 1, pair.sent.id + 1)
        self._snapshot = snapshot
        if pairs:
            logger.info("ledger_replayed", transfers=len(pairs), next_id=self._next_id)

    async def append(
        self,
        channel: str,
        from_account: Account,
        to_account: Account,
        amount: Decimal,
    ) -> tuple[int, int]:
        """
        Append a transfer pair.

        Once started, the append runs to completion even if the caller is
        cancelled (e.g. a client-side timeout). The journal thread cannot be
        stopped, so the pair it writes is always published and its ids are
        never handed out again.
        """
        commit = asyncio.ensure_future(
            self._append_locked(channel, from_account, to_account, amount)
        )
        commit.add_done_callback(_mark_retrieved)
        return await asyncio.shield(commit)

    async def _append_locked(
        self,
        channel: str,
        from_account: Account,
        to_account: Account,
        amount: Decimal,
    ) -> tuple[int, int]:
        async with self._write_lock:
            sent_id = self._next_id
            received_id = sent_id + 1
            created_at = self._clock()

            # Model validation rejects bad amounts and self-payment here,
            # before anything is written
            sent = LedgerEntry(
                id=sent_id,
                channel=channel,
                owner=from_account,
                counterparty=to_account,
                direction=Direction.SENT,
                amount=amount,
                created_at=created_at,
            )
            received = LedgerEntry(
                id=received_id,
                channel=channel,
                owner=to_account,
                counterparty=from_account,
                direction=Direction.RECEIVED,
                amount=amount,
                created_at=created_at,
            )

            if self._journal is not None:
                try:
                    await asyncio.to_thread(self._journal.write_pair, sent, received)
                except OSError as e:
                    raise StorageFailureError(f"Failed to persist transfer: {e}") from e

            # Publish: one assignment makes the whole pair visible
            self._snapshot = self._snapshot.with_pair(sent, received)
            self._next_id = received_id + 1

        return sent_id, received_id

    async def query(self, account: Account) -> list[LedgerEntry]:
        return list(self._snapshot.by_owner.get(account, ()))

    async def get_entry(self, entry_id: int) -> Optional[LedgerEntry]:
        return self._snapshot.by_id.get(entry_id)

    @property
    def entry_count(self) -> int:
        """Total entries across both accounts."""
        return len(self._snapshot.by_id)


class InMemoryAuditStorage(AuditStorageInterface):
    """
    Append-only audit log held in memory.
    """

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events[-limit:]))
