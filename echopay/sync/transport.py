"""
Channel Transports

A transport is how a client session reaches the ledger:
- LocalChannelTransport calls ChannelQuery / TransferService in-process
- HttpChannelTransport talks to the ledger service (or the proxy) over HTTP

DESIGN DECISION: Transports translate every way a request can go wrong
into a small set of exceptions, so the session logic only has to decide
between "fetch worked" and "fetch failed".

RETRIES:
- Reads are idempotent, so a connection error is retried once inside
  the same fetch with a short backoff.
- Transfers are NEVER retried. A failed transfer goes back to the user.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Optional

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from echopay.models.ledger import Account, LedgerEntry, TransferReceipt
from echopay.orchestrator import TransferService
from echopay.queries import ChannelQuery
from echopay.validation import InvalidAccountsError, InvalidAmountError


logger = structlog.get_logger(__name__)


class SyncError(Exception):
    """Base exception for client-side sync and submit failures."""
    pass


class TransportError(SyncError):
    """The request could not reach the ledger service."""
    pass


class UpstreamError(SyncError):
    """The ledger service answered with a non-success status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Ledger service returned {status_code}: {body[:200]}")


_ENTRY_LIST = TypeAdapter(list[LedgerEntry])

_VALIDATION_ERRORS = {
    InvalidAmountError.code: InvalidAmountError,
    InvalidAccountsError.code: InvalidAccountsError,
}


class ChannelTransport(ABC):
    """The two ledger operations a client needs."""

    @abstractmethod
    async def fetch_entries(self, account: Account) -> list[LedgerEntry]:
        """
        Fetch an account's entries, oldest first.

        Raises:
            TransportError: The ledger could not be reached
            UpstreamError: The ledger answered with an error
        """
        pass

    @abstractmethod
    async def submit_transfer(
        self,
        from_account: Account,
        to_account: Any,
        amount: Any,
    ) -> TransferReceipt:
        """
        Submit one transfer.

        Raises:
            InvalidAmountError / InvalidAccountsError: Rejected by validation
            TransportError / UpstreamError: Request failed
        """
        pass

    async def aclose(self) -> None:
        """Release any held connections."""
        return None


class LocalChannelTransport(ChannelTransport):
    """
    In-process transport.

    Used when the client and the ledger share a process (demos, tests).
    """

    def __init__(self, query: ChannelQuery, transfer_service: TransferService):
        self._query = query
        self._transfer_service = transfer_service

    async def fetch_entries(self, account: Account) -> list[LedgerEntry]:
        return await self._query.list_for(account)

    async def submit_transfer(
        self,
        from_account: Account,
        to_account: Any,
        amount: Any,
    ) -> TransferReceipt:
        return await self._transfer_service.transfer(from_account, to_account, amount)


class HttpChannelTransport(ChannelTransport):
    """
    HTTP transport for the ledger endpoints:

        GET  /api/channels/{account}/transactions
        POST /api/channels/transfer
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Ledger service or proxy address
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=0.5),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get(self, path: str) -> httpx.Response:
        return await self._client.get(path)

    async def fetch_entries(self, account: Account) -> list[LedgerEntry]:
        path = f"/api/channels/{account.value}/transactions"
        try:
            response = await self._get(path)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to reach ledger service: {e}") from e

        _raise_for_status(response)

        try:
            return _ENTRY_LIST.validate_python(response.json())
        except (ValueError, ValidationError) as e:
            raise UpstreamError(
                response.status_code, f"Malformed transaction list: {e}"
            ) from e

    async def submit_transfer(
        self,
        from_account: Account,
        to_account: Any,
        amount: Any,
    ) -> TransferReceipt:
        payload = {
            "fromUser": _wire_value(from_account),
            "toUser": _wire_value(to_account),
            "amount": _wire_value(amount),
        }
        try:
            response = await self._client.post("/api/channels/transfer", json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to reach ledger service: {e}") from e

        _raise_for_status(response)

        try:
            return TransferReceipt.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise UpstreamError(
                response.status_code, f"Malformed transfer receipt: {e}"
            ) from e

    async def aclose(self) -> None:
        await self._client.aclose()


def _wire_value(value: Any) -> Any:
    if isinstance(value, Account):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    return value


def _raise_for_status(response: httpx.Response) -> None:
    """Map a non-success response to the matching exception."""
    if response.is_success:
        return

    if response.status_code == 400:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error_cls = _VALIDATION_ERRORS.get(body.get("code"))
            if error_cls is not None:
                raise error_cls(body.get("error") or error_cls.code)

    logger.warning(
        "upstream_error",
        status_code=response.status_code,
        url=str(response.request.url),
    )
    raise UpstreamError(response.status_code, response.text)
