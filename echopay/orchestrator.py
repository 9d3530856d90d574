"""
Main Orchestrator for EchoPay

This module ties the ledger components together and defines the
write path:

    request -> validate -> append pair -> receipt

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches storage without passing validation
- A storage failure is reported as-is; there is no retry here
- Every attempt is audited

Reads go through ChannelQuery; this module only wires it up.
"""

from decimal import Decimal
from typing import Any, NamedTuple, Optional

from echopay.audit import AuditLogger, create_correlation_id
from echopay.config import LedgerServiceSettings, get_settings
from echopay.models.ledger import CHANNEL, Account, TransferReceipt
from echopay.queries import ChannelQuery
from echopay.services.storage import (
    AuditStorageInterface,
    InMemoryLedgerStore,
    JsonLinesJournal,
    LedgerStoreInterface,
    StorageFailureError,
)
from echopay.validation import TransferValidationError, TransferValidator


class TransferService:
    """
    Validates and executes transfers on the channel ledger.

    Flow:
    1. Validate accounts and amount (fail fast, no store access)
    2. Append the SENT/RECEIVED pair atomically
    3. Read both entries back into a receipt

    The only effect besides the append is an audit record.
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        validator: Optional[TransferValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        channel: str = CHANNEL,
    ):
        self._store = store
        self._validator = validator or TransferValidator()
        self._audit_logger = audit_logger
        self._channel = channel

    async def transfer(
        self,
        from_account: Any,
        to_account: Any,
        amount: Any,
    ) -> TransferReceipt:
        """
        Move `amount` from one account to the other.

        Returns:
            The receipt holding both new entries

        Raises:
            InvalidAccountsError: Unknown account, or payer == payee
            InvalidAmountError: Amount not numeric or not positive
            StorageFailureError: The pair could not be persisted
        """
        correlation_id = create_correlation_id()

        try:
            request = self._validator.validate(from_account, to_account, amount)
        except TransferValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_transfer_rejected(
                    from_account=from_account,
                    to_account=to_account,
                    reason=str(e),
                    correlation_id=correlation_id,
                )
            raise

        try:
            sent_id, received_id = await self._store.append(
                self._channel,
                request.from_account,
                request.to_account,
                request.amount,
            )
        except StorageFailureError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_failed(
                    from_account=request.from_account.value,
                    to_account=request.to_account.value,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        sent = await self._store.get_entry(sent_id)
        received = await self._store.get_entry(received_id)
        if sent is None or received is None:
            raise StorageFailureError(
                f"Transfer {sent_id}/{received_id} was acknowledged but is not readable"
            )

        if self._audit_logger:
            await self._audit_logger.log_transfer_executed(
                from_account=request.from_account.value,
                to_account=request.to_account.value,
                amount=str(request.amount),
                sent_id=sent_id,
                received_id=received_id,
                correlation_id=correlation_id,
            )

        return TransferReceipt(sent=sent, received=received)


class LedgerComponents(NamedTuple):
    store: LedgerStoreInterface
    transfer_service: TransferService
    channel_query: ChannelQuery
    audit_logger: AuditLogger


DEMO_TRANSFER_AMOUNT = Decimal("120")


async def seed_demo_transfer(components: LedgerComponents) -> bool:
    """
    Execute one user-a -> user-b transfer if the ledger is empty.

    Returns True if a transfer was made.
    """
    for account in Account:
        if await components.channel_query.list_for(account):
            return False
    await components.transfer_service.transfer(
        Account.USER_A, Account.USER_B, DEMO_TRANSFER_AMOUNT
    )
    return True


def create_app_components(
    settings: Optional[LedgerServiceSettings] = None,
    store: Optional[LedgerStoreInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> LedgerComponents:
    """
    Factory function to create the ledger-side components.

    Args:
        settings: Ledger settings; loaded from the environment if omitted
        store: Pre-built store (tests); otherwise built from settings
        audit_storage: Where audit events persist; local logging only if omitted

    Returns:
        LedgerComponents(store, transfer_service, channel_query, audit_logger)
    """
    settings = settings or get_settings().ledger

    if store is None:
        journal = JsonLinesJournal(settings.journal_path) if settings.journal_path else None
        store = InMemoryLedgerStore(journal=journal)

    # Without audit storage, events are only logged locally
    audit_logger = AuditLogger(audit_storage)

    return LedgerComponents(
        store=store,
        transfer_service=TransferService(store, audit_logger=audit_logger),
        channel_query=ChannelQuery(store),
        audit_logger=audit_logger,
    )
