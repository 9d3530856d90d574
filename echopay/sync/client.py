"""
Sync Client

Owns every logged-in session on this client and the operations a user
can take: log in, send money, log out.

DESIGN DECISION: Sessions live in an arena keyed by session id. Nothing
about "what has this user already seen" is process-wide; it is created
at login and destroyed at logout together with the session.
"""

import asyncio
from typing import Any, Optional
from uuid import UUID

from echopay.audit import AuditLogger
from echopay.auth import CredentialAuthority
from echopay.config import SyncSettings, get_settings
from echopay.models.ledger import TransferReceipt
from echopay.sync.announcer import Announcer, LogAnnouncer
from echopay.sync.session import SyncSession
from echopay.sync.transport import (
    ChannelTransport,
    HttpChannelTransport,
    SyncError,
    TransportError,
)


class SessionNotActiveError(SyncError):
    """The session was logged out or never belonged to this client."""
    pass


class SyncClient:
    """
    Client-side entry point for the channel.

    Usage:
        client = SyncClient(transport, announcer)
        session = await client.login("user-b", password)
        await client.submit_transfer(session, "user-a", 50)
        await client.logout(session)
    """

    def __init__(
        self,
        transport: ChannelTransport,
        announcer: Optional[Announcer] = None,
        authority: Optional[CredentialAuthority] = None,
        settings: Optional[SyncSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._transport = transport
        self._announcer = announcer or LogAnnouncer()
        self._authority = authority or CredentialAuthority()
        self._settings = settings or get_settings().sync
        self._audit_logger = audit_logger
        self._sessions: dict[UUID, SyncSession] = {}

    @property
    def sessions(self) -> list[SyncSession]:
        return list(self._sessions.values())

    def get_session(self, session_id: UUID) -> Optional[SyncSession]:
        return self._sessions.get(session_id)

    async def login(self, username: str, password: str) -> SyncSession:
        """
        Authenticate and start a synced session.

        The returned session has either established its baseline, or
        carries a user-visible `error` and keeps retrying on its tick.

        Raises:
            AuthenticationError: Credentials not recognized
        """
        account = self._authority.authenticate(username, password)
        session = SyncSession(
            account=account,
            transport=self._transport,
            announcer=self._announcer,
            poll_interval=self._settings.poll_interval_seconds,
            fetch_timeout=self._settings.fetch_timeout_seconds,
            audit_logger=self._audit_logger,
        )
        self._sessions[session.session_id] = session
        await session.start()
        return session

    async def logout(self, session: SyncSession) -> None:
        """
        End a session. Polling stops before this returns.

        Logging out an unknown or already-closed session is a no-op.
        """
        owned = self._sessions.pop(session.session_id, None)
        if owned is None:
            return
        owned.close()
        if self._audit_logger:
            await self._audit_logger.log_session_ended(owned.session_id, owned.account.value)

    async def submit_transfer(
        self,
        session: SyncSession,
        to_account: Any,
        amount: Any,
    ) -> TransferReceipt:
        """
        Send money from the session's account, then refresh immediately.

        Failures are raised to the caller and never retried.

        Raises:
            SessionNotActiveError: Session is not logged in on this client
            InvalidAmountError / InvalidAccountsError: Rejected by validation
            TransportError / UpstreamError: Request failed
        """
        if self.get_session(session.session_id) is not session:
            raise SessionNotActiveError("Session is not logged in")

        try:
            receipt = await asyncio.wait_for(
                self._transport.submit_transfer(session.account, to_account, amount),
                timeout=self._settings.fetch_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise TransportError("Transfer request timed out") from e

        # Same diff path as the tick, so a tick right after cannot double-announce
        await session.refresh()
        return receipt

    async def shutdown(self) -> None:
        """Log out every session and release the transport."""
        for session in list(self._sessions.values()):
            await self.logout(session)
        await self._transport.aclose()


def create_sync_client(
    announcer: Optional[Announcer] = None,
    settings: Optional[SyncSettings] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> SyncClient:
    """
    Build a client that talks to the configured ledger URL over HTTP.
    """
    settings = settings or get_settings().sync
    transport = HttpChannelTransport(
        base_url=settings.base_url,
        timeout=settings.fetch_timeout_seconds,
    )
    return SyncClient(
        transport=transport,
        announcer=announcer,
        settings=settings,
        audit_logger=audit_logger,
    )
