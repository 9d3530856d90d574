"""
Shared fixtures.

Everything runs in memory: no network, no files outside tmp_path.
"""

import time
from typing import Any

import pytest

from echopay.audit import AuditLogger
from echopay.models.ledger import Account, LedgerEntry, TransferReceipt
from echopay.orchestrator import TransferService
from echopay.queries import ChannelQuery
from echopay.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    JsonLinesJournal,
    LedgerJournal,
)
from echopay.sync import (
    ChannelTransport,
    CollectingAnnouncer,
    LocalChannelTransport,
    TransportError,
)


class FlakyTransport(ChannelTransport):
    """
    Wraps a real transport and fails reads on demand.

    Set `failing = True` to make every fetch raise TransportError.
    """

    def __init__(self, inner: ChannelTransport):
        self._inner = inner
        self.failing = False
        self.fetch_count = 0

    async def fetch_entries(self, account: Account) -> list[LedgerEntry]:
        self.fetch_count += 1
        if self.failing:
            raise TransportError("ledger unreachable")
        return await self._inner.fetch_entries(account)

    async def submit_transfer(self, from_account: Account, to_account: Any, amount: Any) -> TransferReceipt:
        return await self._inner.submit_transfer(from_account, to_account, amount)


class BrokenJournal(LedgerJournal):
    """Journal whose disk is always full."""

    def __init__(self):
        self.attempts = 0

    def write_pair(self, sent, received):
        self.attempts += 1
        raise OSError("No space left on device")

    def load(self):
        return []


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def transfer_service(store, audit_logger) -> TransferService:
    return TransferService(store, audit_logger=audit_logger)


@pytest.fixture
def channel_query(store) -> ChannelQuery:
    return ChannelQuery(store)


@pytest.fixture
def transport(channel_query, transfer_service) -> FlakyTransport:
    return FlakyTransport(LocalChannelTransport(channel_query, transfer_service))


@pytest.fixture
def announcer() -> CollectingAnnouncer:
    return CollectingAnnouncer()


@pytest.fixture
def broken_journal() -> BrokenJournal:
    return BrokenJournal()


class SlowJournal(JsonLinesJournal):
    """JSON-lines journal whose first write takes `delay` seconds."""

    def __init__(self, path, delay: float = 0.3):
        super().__init__(path)
        self.delay = delay
        self.writes = 0

    def write_pair(self, sent, received):
        self.writes += 1
        if self.writes == 1:
            time.sleep(self.delay)
        super().write_pair(sent, received)


@pytest.fixture
def slow_journal(tmp_path) -> SlowJournal:
    return SlowJournal(tmp_path / "ledger.jsonl")
