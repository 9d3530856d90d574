"""
Tests for client sessions: baseline, diffing, retry and logout.

Sessions run against the in-process transport. Tick intervals are long
unless a test is about the tick itself, so refreshes happen exactly when
the test calls them.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from echopay.auth import AuthenticationError
from echopay.config import SyncSettings
from echopay.models.audit import AuditEventType
from echopay.models.ledger import Account, Direction, LedgerEntry
from echopay.models.sync import SyncState
from echopay.orchestrator import TransferService
from echopay.queries import ChannelQuery
from echopay.services.storage import InMemoryLedgerStore, JsonLinesJournal
from echopay.sync import (
    Announcer,
    ChannelTransport,
    CollectingAnnouncer,
    HttpChannelTransport,
    LocalChannelTransport,
    SessionNotActiveError,
    SyncClient,
    SyncSession,
    TransportError,
    build_announcement,
    create_sync_client,
)
from echopay.validation import InvalidAccountsError


QUIET = SyncSettings(poll_interval_seconds=60, fetch_timeout_seconds=1)


def received(entry_id: int, amount: str = "10") -> LedgerEntry:
    return LedgerEntry(
        id=entry_id,
        owner=Account.USER_B,
        counterparty=Account.USER_A,
        direction=Direction.RECEIVED,
        amount=Decimal(amount),
        created_at=datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc),
    )


class ScriptedTransport(ChannelTransport):
    """Returns queued responses, each released by its own gate."""

    def __init__(self):
        self.responses: list[tuple[asyncio.Event, list[LedgerEntry]]] = []
        self.calls = 0

    async def fetch_entries(self, account):
        self.calls += 1
        gate, entries = self.responses.pop(0)
        await gate.wait()
        return entries

    async def submit_transfer(self, from_account, to_account, amount):
        raise NotImplementedError


class ExplodingAnnouncer(Announcer):
    def announce(self, text: str) -> None:
        raise RuntimeError("speaker unplugged")


def make_session(transport, announcer, **kwargs) -> SyncSession:
    kwargs.setdefault("poll_interval", 60)
    kwargs.setdefault("fetch_timeout", 1)
    return SyncSession(Account.USER_B, transport, announcer, **kwargs)


class TestBaseline:
    """Tests for the first fetch of a session."""

    @pytest.mark.asyncio
    async def test_existing_history_is_not_announced(self, transfer_service, transport, announcer):
        await transfer_service.transfer("user-a", "user-b", 10)
        await transfer_service.transfer("user-a", "user-b", 20)
        session = make_session(transport, announcer)
        try:
            result = await session.start()

            assert result.baseline is True
            assert result.announced == []
            assert announcer.announcements == []
            assert session.state == SyncState.SYNCED
            assert len(session.entries) == 2

            await transfer_service.transfer("user-a", "user-b", 50)
            result = await session.refresh()

            assert len(announcer.announcements) == 1
            assert announcer.announcements[0].startswith("₹50.00 received from user-a")
            assert result.announced[0].amount == Decimal("50")
        finally:
            session.close()

    @pytest.mark.asyncio
    async def test_baseline_failure_is_visible(self, transfer_service, transport, announcer):
        await transfer_service.transfer("user-a", "user-b", 10)
        transport.failing = True
        session = make_session(transport, announcer)
        try:
            result = await session.start()

            assert result.success is False
            assert session.state == SyncState.INITIALIZING
            assert session.error.startswith("Unable to load transactions")
            assert session.is_polling

            transport.failing = False
            result = await session.refresh()

            assert result.baseline is True
            assert session.error is None
            assert announcer.announcements == []
        finally:
            session.close()

    @pytest.mark.asyncio
    async def test_start_twice_is_an_error(self, transport, announcer):
        session = make_session(transport, announcer)
        try:
            await session.start()
            with pytest.raises(RuntimeError):
                await session.start()
        finally:
            session.close()


class TestDiffing:
    """Tests for exactly-once announcements."""

    @pytest.mark.asyncio
    async def test_sent_entries_are_never_announced(self, transfer_service, transport, announcer):
        session = SyncSession(Account.USER_A, transport, announcer, poll_interval=60)
        try:
            await session.start()
            await transfer_service.transfer("user-a", "user-b", 10)
            result = await session.refresh()

            assert result.announced == []
            assert len(session.entries) == 1
            assert announcer.announcements == []
        finally:
            session.close()

    @pytest.mark.asyncio
    async def test_overlapping_refreshes_announce_once(self, transfer_service, transport, announcer):
        session = make_session(transport, announcer)
        try:
            await session.start()
            await transfer_service.transfer("user-a", "user-b", 75)

            first, second = await asyncio.gather(session.refresh(), session.refresh())

            assert len(announcer.announcements) == 1
            assert len(first.announced) + len(second.announced) == 1
        finally:
            session.close()

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_view_and_retries(self, transfer_service, transport, announcer):
        await transfer_service.transfer("user-a", "user-b", 10)
        session = make_session(transport, announcer)
        try:
            await session.start()
            shown = session.entries

            transport.failing = True
            result = await session.refresh()

            assert result.success is False
            assert session.state == SyncState.ERROR_RETRY
            assert session.error is None
            assert session.entries == shown

            await transfer_service.transfer("user-a", "user-b", 30)
            transport.failing = False
            await session.refresh()
            await session.refresh()

            assert session.state == SyncState.SYNCED
            assert len(announcer.announcements) == 1
            assert "₹30.00" in announcer.announcements[0]
        finally:
            session.close()

    @pytest.mark.asyncio
    async def test_stale_response_does_not_replace_newer(self, announcer):
        transport = ScriptedTransport()
        ready = asyncio.Event()
        ready.set()
        slow = asyncio.Event()
        older = [received(2)]
        newer = [received(2), received(4, "99")]
        transport.responses = [(ready, []), (slow, older), (ready, newer)]

        session = make_session(transport, announcer)
        try:
            await session.start()
            stale = asyncio.create_task(session.refresh())
            while transport.calls < 2:
                await asyncio.sleep(0)

            await session.refresh()
            slow.set()
            await stale

            assert [e.id for e in session.entries] == [2, 4]
            assert len(announcer.announcements) == 2
        finally:
            session.close()

    @pytest.mark.asyncio
    async def test_announcer_failure_does_not_stop_sync(self, transfer_service, transport):
        session = make_session(transport, ExplodingAnnouncer())
        try:
            await session.start()
            await transfer_service.transfer("user-a", "user-b", 10)

            result = await session.refresh()

            assert result.success is True
            assert result.announced[0].id in session.seen_ids
        finally:
            session.close()

    @pytest.mark.asyncio
    async def test_slow_fetch_times_out(self, announcer):
        transport = ScriptedTransport()
        transport.responses = [(asyncio.Event(), [])]
        session = make_session(transport, announcer, fetch_timeout=0.01)
        try:
            result = await session.start()
            assert result.success is False
            assert session.error is not None
        finally:
            session.close()


class TestTick:
    """Tests for the periodic refresh task."""

    @pytest.mark.asyncio
    async def test_tick_announces_incoming_transfer(self, transfer_service, transport, announcer):
        client = SyncClient(
            transport,
            announcer,
            settings=SyncSettings(poll_interval_seconds=0.01, fetch_timeout_seconds=1),
        )
        session = await client.login("user-b", "echopay-b")
        try:
            await transfer_service.transfer("user-a", "user-b", 15)
            for _ in range(200):
                if announcer.announcements:
                    break
                await asyncio.sleep(0.01)
            await asyncio.sleep(0.05)

            assert len(announcer.announcements) == 1
            assert session.latest_entry.amount == Decimal("15")
        finally:
            await client.shutdown()


class TestSyncClient:
    """Tests for login, submit and logout."""

    @pytest.mark.asyncio
    async def test_login_rejects_bad_password(self, transport, announcer):
        client = SyncClient(transport, announcer, settings=QUIET)
        with pytest.raises(AuthenticationError):
            await client.login("user-a", "wrong")
        assert client.sessions == []

    @pytest.mark.asyncio
    async def test_submit_refreshes_and_tick_does_not_repeat(self, transfer_service, transport, announcer):
        client = SyncClient(transport, announcer, settings=QUIET)
        session = await client.login("user-b", "echopay-b")
        try:
            # Arrives while user-b is busy paying
            await transfer_service.transfer("user-a", "user-b", 40)

            receipt = await client.submit_transfer(session, "user-a", 25)

            assert receipt.sent.owner == Account.USER_B
            assert receipt.sent.amount == Decimal("25")
            assert len(announcer.announcements) == 1
            assert "₹40.00 received from user-a" in announcer.announcements[0]
            assert session.latest_entry.id == receipt.sent.id

            await session.refresh()
            assert len(announcer.announcements) == 1
        finally:
            await client.shutdown()

    @pytest.mark.asyncio
    async def test_logout_stops_everything(self, transfer_service, transport, announcer):
        client = SyncClient(transport, announcer, settings=QUIET)
        session = await client.login("user-b", "echopay-b")
        assert session.is_polling
        assert client.get_session(session.session_id) is session

        await client.logout(session)

        assert not session.is_polling
        assert not session.is_active
        assert session.state == SyncState.UNINITIALIZED
        assert session.seen_ids == frozenset()
        assert session.entries == []
        assert client.get_session(session.session_id) is None
        assert client.sessions == []

        await transfer_service.transfer("user-a", "user-b", 5)
        result = await session.refresh()
        assert result.success is False
        assert announcer.announcements == []

        with pytest.raises(SessionNotActiveError):
            await client.submit_transfer(session, "user-a", 5)

    @pytest.mark.asyncio
    async def test_relogin_starts_fresh_baseline(self, transfer_service, transport, announcer):
        client = SyncClient(transport, announcer, settings=QUIET)
        first = await client.login("user-b", "echopay-b")
        await client.logout(first)

        await transfer_service.transfer("user-a", "user-b", 5)
        second = await client.login("user-b", "echopay-b")
        try:
            assert second.session_id != first.session_id
            assert len(second.entries) == 1
            assert announcer.announcements == []
        finally:
            await client.shutdown()

    @pytest.mark.asyncio
    async def test_failed_submit_is_raised_not_retried(self, transport, announcer):
        client = SyncClient(transport, announcer, settings=QUIET)
        session = await client.login("user-a", "echopay-a")
        try:
            with pytest.raises(InvalidAccountsError):
                await client.submit_transfer(session, "user-a", 5)
            assert len(session.entries) == 0
        finally:
            await client.shutdown()

    @pytest.mark.asyncio
    async def test_transport_error_on_submit(self, transport, announcer):
        class DownTransport(type(transport)):
            async def submit_transfer(self, from_account, to_account, amount):
                raise TransportError("ledger unreachable")

        client = SyncClient(DownTransport(transport), announcer, settings=QUIET)
        session = await client.login("user-a", "echopay-a")
        try:
            with pytest.raises(TransportError):
                await client.submit_transfer(session, "user-b", 5)
        finally:
            await client.shutdown()


class TestAnnouncement:
    """Tests for announcement text."""

    def test_received_text(self):
        text = build_announcement(received(1, "1234.5"))
        assert text == "₹1,234.50 received from user-a on 18 Oct 2026, 09:30 AM"

    def test_sent_text(self):
        entry = LedgerEntry(
            id=1,
            owner=Account.USER_A,
            counterparty=Account.USER_B,
            direction=Direction.SENT,
            amount=Decimal("50"),
            created_at=datetime(2026, 10, 18, 14, 5, tzinfo=timezone.utc),
        )
        assert build_announcement(entry) == "₹50.00 paid to user-b on 18 Oct 2026, 02:05 PM"


class TestTickFailures:
    """Tests for unexpected errors inside the tick."""

    @pytest.mark.asyncio
    async def test_unexpected_error_is_audited_and_polling_continues(
        self, announcer, audit_logger, audit_storage
    ):
        class BuggyTransport(ChannelTransport):
            def __init__(self):
                self.calls = 0

            async def fetch_entries(self, account):
                self.calls += 1
                if self.calls == 2:
                    raise KeyError("unexpected")
                return []

            async def submit_transfer(self, from_account, to_account, amount):
                raise NotImplementedError

        buggy = BuggyTransport()
        session = make_session(buggy, announcer, poll_interval=0.01, audit_logger=audit_logger)
        try:
            await session.start()
            for _ in range(200):
                if buggy.calls >= 3:
                    break
                await asyncio.sleep(0.01)

            assert buggy.calls >= 3
            assert session.is_polling
            events = await audit_storage.get_recent_events(limit=1000)
            assert any(e.event_type == AuditEventType.SYSTEM_ERROR for e in events)
        finally:
            session.close()


class TestCreateSyncClient:
    """Tests for the HTTP-backed client factory."""

    @pytest.mark.asyncio
    async def test_builds_http_client(self):
        client = create_sync_client(
            announcer=CollectingAnnouncer(),
            settings=SyncSettings(base_url="http://proxy.internal:3000"),
        )
        try:
            assert isinstance(client._transport, HttpChannelTransport)
            assert client.sessions == []
        finally:
            await client.shutdown()


class TestSubmitTimeout:
    """Tests for a transfer whose submission times out on the client."""

    @pytest.mark.asyncio
    async def test_timed_out_transfer_keeps_ids_unique(self, slow_journal, announcer):
        store = InMemoryLedgerStore(journal=slow_journal)
        service = TransferService(store)
        local = LocalChannelTransport(ChannelQuery(store), service)
        client = SyncClient(
            local,
            announcer,
            settings=SyncSettings(poll_interval_seconds=60, fetch_timeout_seconds=0.1),
        )
        session = await client.login("user-a", "echopay-a")
        try:
            with pytest.raises(TransportError, match="timed out"):
                await client.submit_transfer(session, "user-b", 10)

            await service.transfer("user-a", "user-b", 20)
            await session.refresh()

            assert [e.id for e in session.entries] == [1, 3]
            restored = InMemoryLedgerStore(journal=JsonLinesJournal(slow_journal.path))
            assert [e.id for e in await restored.query(Account.USER_A)] == [1, 3]
        finally:
            await client.shutdown()


class TestLogoutDuringFetch:
    """Tests for a fetch still in flight when the user logs out."""

    @pytest.mark.asyncio
    async def test_late_response_is_discarded(self, announcer):
        transport = ScriptedTransport()
        ready = asyncio.Event()
        ready.set()
        gate = asyncio.Event()
        transport.responses = [(ready, []), (gate, [received(2, "500")])]
        client = SyncClient(transport, announcer, settings=QUIET)
        session = await client.login("user-b", "echopay-b")

        in_flight = asyncio.create_task(session.refresh())
        while transport.calls < 2:
            await asyncio.sleep(0)
        await client.logout(session)
        gate.set()
        result = await in_flight

        assert result.success is False
        assert result.state == SyncState.UNINITIALIZED
        assert announcer.announcements == []
        assert session.seen_ids == frozenset()
        assert session.entries == []
