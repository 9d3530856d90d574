"""
Client Sync Session

One SyncSession mirrors one logged-in account's view of the channel and
announces each newly received entry exactly once.

STATE MACHINE (see SyncState):
- INITIALIZING: the first successful fetch becomes the BASELINE. Every id
  it returns is marked seen and nothing is announced, so logging in never
  re-announces history.
- SYNCED: each refresh announces entries that are RECEIVED and not yet
  seen, then marks every fetched id seen.
- ERROR_RETRY: a fetch failed. Displayed entries and the seen-set are left
  alone; the next successful fetch returns to SYNCED.
- UNINITIALIZED: after close(). The tick task is cancelled and all session
  state is dropped.

EXACTLY-ONCE: the seen-set is a set, and the membership test and the update
run with no await in between. Two overlapping refreshes (tick plus an
out-of-band refresh after a transfer) can therefore never both claim the
same id.
"""

import asyncio
from typing import Optional
from uuid import UUID, uuid4

import structlog

from echopay.audit import AuditLogger
from echopay.models.ledger import Account, Direction, LedgerEntry
from echopay.models.sync import SyncResult, SyncState
from echopay.sync.announcer import Announcer, build_announcement
from echopay.sync.transport import ChannelTransport, SyncError


logger = structlog.get_logger(__name__)


class SyncSession:
    """
    Per-login mirror of one account's ledger view.

    Owns its seen-set, displayed entries and tick task; nothing is shared
    with other sessions.
    """

    def __init__(
        self,
        account: Account,
        transport: ChannelTransport,
        announcer: Announcer,
        poll_interval: float = 2.0,
        fetch_timeout: float = 5.0,
        audit_logger: Optional[AuditLogger] = None,
        session_id: Optional[UUID] = None,
    ):
        self.session_id = session_id or uuid4()
        self.account = account
        self._transport = transport
        self._announcer = announcer
        self._poll_interval = poll_interval
        self._fetch_timeout = fetch_timeout
        self._audit_logger = audit_logger

        self._state = SyncState.UNINITIALIZED
        self._seen: set[int] = set()
        self._entries: tuple[LedgerEntry, ...] = ()
        self._error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._closed = False

        # Only responses newer than the last applied one replace the display
        self._fetch_seq = 0
        self._applied_seq = 0

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def entries(self) -> list[LedgerEntry]:
        """Last successfully fetched entries, oldest first."""
        return list(self._entries)

    @property
    def latest_entry(self) -> Optional[LedgerEntry]:
        return self._entries[-1] if self._entries else None

    @property
    def error(self) -> Optional[str]:
        """
        User-visible error.

        Only set while the baseline fetch keeps failing; failures after the
        baseline are retried silently.
        """
        return self._error

    @property
    def seen_ids(self) -> frozenset[int]:
        return frozenset(self._seen)

    @property
    def is_active(self) -> bool:
        return not self._closed and self._state is not SyncState.UNINITIALIZED

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> SyncResult:
        """
        Enter INITIALIZING, run the baseline fetch and start the tick task.

        The tick task is started even if the baseline fetch fails; it keeps
        retrying on schedule.
        """
        if self._closed:
            raise RuntimeError("Session has been closed")
        if self._state is not SyncState.UNINITIALIZED:
            raise RuntimeError("Session already started")

        self._state = SyncState.INITIALIZING
        if self._audit_logger:
            await self._audit_logger.log_session_started(self.session_id, self.account.value)

        result = await self.refresh()

        if not self._closed:
            self._task = asyncio.create_task(
                self._run(), name=f"echopay-sync-{self.account.value}-{self.session_id}"
            )
            self._task.add_done_callback(self._on_task_done)
        return result

    def close(self) -> None:
        """
        Stop polling and drop all session state. Synchronous and final.
        """
        if self._closed:
            return
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._seen.clear()
        self._entries = ()
        self._error = None
        self._state = SyncState.UNINITIALIZED

    async def _run(self) -> None:
        while not self._closed:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.refresh()
            except Exception as e:
                # Unexpected, not a fetch failure; the next tick tries again
                logger.error(
                    "sync_tick_failed",
                    session_id=str(self.session_id),
                    account=self.account.value,
                    error=repr(e),
                )
                if self._audit_logger:
                    await self._audit_logger.log_error(
                        error_type=type(e).__name__,
                        error_message=str(e),
                        details={"account": self.account.value},
                        correlation_id=self.session_id,
                    )

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "sync_task_crashed",
                session_id=str(self.session_id),
                account=self.account.value,
                error=repr(exc),
            )

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self) -> SyncResult:
        """
        Fetch, diff against the seen-set, and announce new received entries.

        Used by both the periodic tick and out-of-band refreshes. Never
        raises for fetch failures; the result says what happened.
        """
        if self._closed:
            return SyncResult(
                success=False,
                state=SyncState.UNINITIALIZED,
                error_message="Session closed",
            )

        self._fetch_seq += 1
        seq = self._fetch_seq

        try:
            fetched = await asyncio.wait_for(
                self._transport.fetch_entries(self.account),
                timeout=self._fetch_timeout,
            )
        except (SyncError, asyncio.TimeoutError) as e:
            if self._closed:
                return SyncResult(
                    success=False,
                    state=SyncState.UNINITIALIZED,
                    error_message="Session closed",
                )
            return await self._handle_failure(e)

        # A fetch that finishes after logout must not announce anything
        if self._closed:
            return SyncResult(
                success=False,
                state=SyncState.UNINITIALIZED,
                error_message="Session closed",
            )

        return await self._apply(seq, fetched)

    async def _apply(self, seq: int, fetched: list[LedgerEntry]) -> SyncResult:
        ordered = sorted(fetched, key=lambda entry: entry.id)
        previous_state = self._state
        baseline = previous_state is SyncState.INITIALIZING

        # Critical section: no await until the seen-set is updated
        if baseline:
            fresh: list[LedgerEntry] = []
        else:
            fresh = [
                entry for entry in ordered
                if entry.id not in self._seen and entry.direction == Direction.RECEIVED
            ]
        self._seen.update(entry.id for entry in ordered)

        if seq > self._applied_seq:
            self._applied_seq = seq
            self._entries = tuple(ordered)
        self._state = SyncState.SYNCED
        self._error = None

        for entry in fresh:
            self._dispatch(entry)

        if self._audit_logger:
            if baseline:
                await self._audit_logger.log_baseline_established(
                    self.session_id, self.account.value, len(ordered)
                )
            elif previous_state is SyncState.ERROR_RETRY:
                await self._audit_logger.log_sync_recovered(
                    self.session_id, self.account.value
                )
            for entry in fresh:
                await self._audit_logger.log_notification_dispatched(
                    self.session_id, self.account.value, entry.id
                )

        return SyncResult(
            success=True,
            state=self._state,
            baseline=baseline,
            announced=fresh,
        )

    def _dispatch(self, entry: LedgerEntry) -> None:
        try:
            self._announcer.announce(build_announcement(entry))
        except Exception as e:
            # The entry stays seen; a broken speaker must not stop syncing
            logger.error(
                "announcement_failed",
                session_id=str(self.session_id),
                entry_id=entry.id,
                error=str(e),
            )

    async def _handle_failure(self, error: Exception) -> SyncResult:
        message = str(error) or type(error).__name__
        initializing = self._state is SyncState.INITIALIZING

        if initializing:
            # No baseline yet, so the user has nothing to look at: say so
            self._error = f"Unable to load transactions: {message}"
        else:
            self._state = SyncState.ERROR_RETRY

        if self._audit_logger:
            await self._audit_logger.log_sync_fetch_failed(
                session_id=self.session_id,
                account=self.account.value,
                error_message=message,
                initializing=initializing,
            )

        return SyncResult(
            success=False,
            state=self._state,
            error_message=message,
        )
