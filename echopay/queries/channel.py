"""
Channel Query

DESIGN DECISION: Reads are a pure projection of the ledger.
Listing an account's entries never changes anything, so clients can
poll it as often as they like and compare results.

GUARANTEES:
- Only the requesting account's own entries are returned
- Entries come back oldest first; the most recent entry is the LAST one
- Repeated calls with no transfer in between return identical lists
"""

from typing import Any, Optional

from echopay.models.ledger import LedgerEntry
from echopay.services.storage import LedgerStoreInterface
from echopay.validation import parse_account


class ChannelQuery:
    """
    Read-only, per-account view over the channel ledger.
    """

    def __init__(self, store: LedgerStoreInterface):
        self._store = store

    async def list_for(self, account: Any) -> list[LedgerEntry]:
        """
        List an account's entries, oldest first.

        Raises:
            InvalidAccountsError: If the account is not recognized
        """
        owner = parse_account(account)
        entries = await self._store.query(owner)
        # The store already filters by owner; this guards the contract
        return [entry for entry in entries if entry.owner == owner]

    async def latest_for(self, account: Any) -> Optional[LedgerEntry]:
        """Most recent entry for an account, or None if it has none."""
        entries = await self.list_for(account)
        return entries[-1] if entries else None
