"""
Core Ledger Models for EchoPay

These models define the strict schemas for everything that flows between
the ledger service and its clients. They are designed to:
1. Make invalid entries impossible to construct
2. Match the JSON wire format used by the HTTP endpoints
3. Stay immutable once created

DESIGN DECISION: LedgerEntry is a frozen Pydantic model. The ledger is
append-only, so nothing downstream should ever be able to edit an entry
it was handed.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Account(str, Enum):
    """
    The two recognized account holders.

    No other accounts exist. Anything that is not one of these values
    is rejected before it reaches storage.
    """
    USER_A = "user-a"
    USER_B = "user-b"

    @property
    def counterpart(self) -> "Account":
        """The other side of the channel."""
        return Account.USER_B if self is Account.USER_A else Account.USER_A


class Direction(str, Enum):
    """Direction of an entry, relative to the account that owns it."""
    SENT = "sent"
    RECEIVED = "received"


# The single pairing between the two accounts
CHANNEL = "user-a<->user-b"


# =============================================================================
# LEDGER ENTRY
# =============================================================================

class LedgerEntry(BaseModel):
    """
    One side of one transfer.

    Every transfer produces two of these: a SENT entry owned by the payer
    and a RECEIVED entry owned by the payee, with the same amount and
    timestamp and owner/counterparty swapped.

    Wire names follow the HTTP API (`user`, `createdAt`); Python code uses
    `owner` and `created_at`.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(
        ...,
        ge=1,
        description="Ledger-wide id, strictly increasing in creation order"
    )
    channel: str = Field(
        default=CHANNEL,
        description="Channel this entry belongs to"
    )
    owner: Account = Field(
        ...,
        alias="user",
        description="Account that can see this entry"
    )
    counterparty: Account = Field(
        ...,
        description="The other account in the transfer"
    )
    direction: Direction
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount in INR"
    )
    created_at: datetime = Field(
        ...,
        alias="createdAt",
        description="When the transfer was executed (UTC)"
    )

    @model_validator(mode='after')
    def validate_parties(self) -> 'LedgerEntry':
        """An account can never pay itself."""
        if self.owner == self.counterparty:
            raise ValueError("Owner and counterparty must be different accounts")
        return self

    @field_serializer('amount', when_used='json')
    def serialize_amount(self, amount: Decimal) -> float:
        # JSON clients expect a number, not a string
        return float(amount)

    def to_wire(self) -> dict:
        """Convert to the JSON object served by the read endpoint."""
        return self.model_dump(mode="json", by_alias=True)


class TransferReceipt(BaseModel):
    """
    Result of a successful transfer: the two entries it created.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sent: LedgerEntry = Field(..., alias="fromUserLog")
    received: LedgerEntry = Field(..., alias="toUserLog")

    @model_validator(mode='after')
    def validate_pair(self) -> 'TransferReceipt':
        """Both halves must describe the same transfer."""
        if self.sent.direction != Direction.SENT:
            raise ValueError("First entry of a transfer must be SENT")
        if self.received.direction != Direction.RECEIVED:
            raise ValueError("Second entry of a transfer must be RECEIVED")
        if (
            self.sent.amount != self.received.amount
            or self.sent.created_at != self.received.created_at
            or self.sent.owner != self.received.counterparty
            or self.sent.counterparty != self.received.owner
        ):
            raise ValueError("Sent and received entries do not mirror each other")
        return self

    def to_wire(self) -> dict:
        """Convert to the JSON object returned by the transfer endpoint."""
        return self.model_dump(mode="json", by_alias=True)
