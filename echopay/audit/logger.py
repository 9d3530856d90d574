"""
Audit Logger

DESIGN DECISION: Every transfer attempt and every session transition is
logged. This provides:
1. Traceability of money movement
2. Debugging capability for sync problems
3. A record of exactly which entries were announced

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from echopay.models.audit import AuditEvent, AuditEventBuilder
from echopay.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """
    Route structlog output through stdlib logging at the given level.

    Call once at process start; the JSON rendering is done by structlog.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("echopay.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transfer_executed(
        self,
        from_account: str,
        to_account: str,
        amount: str,
        sent_id: int,
        received_id: int,
        correlation_id: UUID,
    ) -> None:
        """Log a completed transfer."""
        event = AuditEventBuilder.transfer_executed(
            from_account=from_account,
            to_account=to_account,
            amount=amount,
            sent_id=sent_id,
            received_id=received_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transfer_rejected(
        self,
        from_account: Any,
        to_account: Any,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log a transfer that failed validation."""
        event = AuditEventBuilder.transfer_rejected(
            from_account=from_account,
            to_account=to_account,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_failed(
        self,
        from_account: str,
        to_account: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a transfer the store could not persist."""
        event = AuditEventBuilder.storage_failed(
            from_account=from_account,
            to_account=to_account,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_session_started(self, session_id: UUID, account: str) -> None:
        await self.log(AuditEventBuilder.session_started(session_id, account))

    async def log_baseline_established(
        self,
        session_id: UUID,
        account: str,
        entry_count: int,
    ) -> None:
        await self.log(
            AuditEventBuilder.baseline_established(session_id, account, entry_count)
        )

    async def log_sync_fetch_failed(
        self,
        session_id: UUID,
        account: str,
        error_message: str,
        initializing: bool,
    ) -> None:
        """Log a failed poll or out-of-band fetch."""
        event = AuditEventBuilder.sync_fetch_failed(
            session_id=session_id,
            account=account,
            error_message=error_message,
            initializing=initializing,
        )
        await self.log(event)

    async def log_sync_recovered(self, session_id: UUID, account: str) -> None:
        await self.log(AuditEventBuilder.sync_recovered(session_id, account))

    async def log_notification_dispatched(
        self,
        session_id: UUID,
        account: str,
        entry_id: int,
    ) -> None:
        await self.log(
            AuditEventBuilder.notification_dispatched(session_id, account, entry_id)
        )

    async def log_session_ended(self, session_id: UUID, account: str) -> None:
        await self.log(AuditEventBuilder.session_ended(session_id, account))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a transfer).
    Pass it through all subsequent operations.
    """
    return uuid4()
