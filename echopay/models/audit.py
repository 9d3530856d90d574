"""
Audit Models for EchoPay

Every transfer attempt and every client session transition is recorded.
This provides:
1. Traceability of money movement
2. Debugging information when syncing goes wrong
3. A record of which entries were announced, and when

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _label(value: Any) -> str:
    # Rejected requests may carry an Account or whatever the caller sent
    return value.value if isinstance(value, Enum) else str(value)


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Transfers
    TRANSFER_EXECUTED = "transfer_executed"
    TRANSFER_REJECTED = "transfer_rejected"
    STORAGE_FAILED = "storage_failed"

    # Client sessions
    SESSION_STARTED = "session_started"
    BASELINE_ESTABLISHED = "baseline_established"
    SYNC_FETCH_FAILED = "sync_fetch_failed"
    SYNC_RECOVERED = "sync_recovered"
    NOTIFICATION_DISPATCHED = "notification_dispatched"
    SESSION_ENDED = "session_ended"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what is this about?
    account: Optional[str] = Field(
        default=None,
        description="Account the event concerns"
    )
    entry_id: Optional[int] = Field(
        default=None,
        description="Ledger entry the event concerns"
    )

    # Correlation - a transfer, or a client session
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one client session)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "account": self.account,
            "entry_id": self.entry_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transfer_executed(sent_id, received_id, ...)
        event = AuditEventBuilder.session_started(session_id, account)
    """

    @staticmethod
    def transfer_executed(
        from_account: str,
        to_account: str,
        amount: str,
        sent_id: int,
        received_id: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_EXECUTED,
            account=from_account,
            entry_id=sent_id,
            correlation_id=correlation_id,
            description=f"Transfer executed: {from_account} -> {to_account} ₹{amount}",
            details={
                "to_account": to_account,
                "amount": amount,
                "sent_id": sent_id,
                "received_id": received_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def transfer_rejected(
        from_account: Any,
        to_account: Any,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_REJECTED,
            severity=AuditSeverity.WARNING,
            account=_label(from_account),
            correlation_id=correlation_id,
            description="Transfer rejected before reaching storage",
            details={
                "to_account": _label(to_account),
            },
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def storage_failed(
        from_account: str,
        to_account: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_FAILED,
            severity=AuditSeverity.ERROR,
            account=from_account,
            correlation_id=correlation_id,
            description="Transfer could not be persisted; no entries written",
            details={
                "to_account": to_account,
            },
            error_message=error_message,
        )

    @staticmethod
    def session_started(session_id: UUID, account: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_STARTED,
            account=account,
            correlation_id=session_id,
            description=f"Session started for {account}",
            is_user_action=True,
        )

    @staticmethod
    def baseline_established(
        session_id: UUID,
        account: str,
        entry_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BASELINE_ESTABLISHED,
            account=account,
            correlation_id=session_id,
            description=f"Baseline established with {entry_count} existing entries",
            details={
                "entry_count": entry_count,
            },
        )

    @staticmethod
    def sync_fetch_failed(
        session_id: UUID,
        account: str,
        error_message: str,
        initializing: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FETCH_FAILED,
            severity=AuditSeverity.ERROR if initializing else AuditSeverity.WARNING,
            account=account,
            correlation_id=session_id,
            description="Fetch failed during initialization" if initializing
            else "Fetch failed; will retry on next tick",
            details={
                "initializing": initializing,
            },
            error_message=error_message,
        )

    @staticmethod
    def sync_recovered(session_id: UUID, account: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_RECOVERED,
            account=account,
            correlation_id=session_id,
            description="Fetch succeeded after earlier failure",
        )

    @staticmethod
    def notification_dispatched(
        session_id: UUID,
        account: str,
        entry_id: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_DISPATCHED,
            account=account,
            entry_id=entry_id,
            correlation_id=session_id,
            description=f"Announced received entry {entry_id}",
        )

    @staticmethod
    def session_ended(session_id: UUID, account: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_ENDED,
            account=account,
            correlation_id=session_id,
            description=f"Session ended for {account}",
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
