"""Client synchronization package."""

from echopay.sync.announcer import (
    Announcer,
    CollectingAnnouncer,
    LogAnnouncer,
    build_announcement,
)
from echopay.sync.client import (
    SessionNotActiveError,
    SyncClient,
    create_sync_client,
)
from echopay.sync.session import SyncSession
from echopay.sync.transport import (
    ChannelTransport,
    HttpChannelTransport,
    LocalChannelTransport,
    SyncError,
    TransportError,
    UpstreamError,
)

__all__ = [
    # Announcers
    "Announcer",
    "CollectingAnnouncer",
    "LogAnnouncer",
    "build_announcement",
    # Client and sessions
    "SessionNotActiveError",
    "SyncClient",
    "SyncSession",
    "create_sync_client",
    # Transports
    "ChannelTransport",
    "HttpChannelTransport",
    "LocalChannelTransport",
    # Exceptions
    "SyncError",
    "TransportError",
    "UpstreamError",
]
