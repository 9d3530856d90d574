"""
Announcement Capability

DESIGN DECISION: The sync logic decides WHEN to announce and WHICH entry;
how the announcement is rendered (speech, toast, nothing) is injected.
This keeps platform effects out of the core and makes tests trivial.
"""

from abc import ABC, abstractmethod

import structlog

from echopay.models.ledger import Direction, LedgerEntry


class Announcer(ABC):
    """Accepts a plain announcement string."""

    @abstractmethod
    def announce(self, text: str) -> None:
        pass


class LogAnnouncer(Announcer):
    """Writes announcements to the structured log."""

    def __init__(self):
        self._logger = structlog.get_logger("echopay.announcer")

    def announce(self, text: str) -> None:
        self._logger.info("announcement", text=text)


class CollectingAnnouncer(Announcer):
    """Keeps announcements in memory, oldest first."""

    def __init__(self):
        self.announcements: list[str] = []

    def announce(self, text: str) -> None:
        self.announcements.append(text)


def format_amount(entry: LedgerEntry) -> str:
    return f"₹{entry.amount:,.2f}"


def build_announcement(entry: LedgerEntry) -> str:
    """
    Render an entry as a sentence suitable for speech.

    e.g. "₹50.00 received from user-a on 18 Oct 2026, 02:05 PM"
    """
    action = "paid to" if entry.direction == Direction.SENT else "received from"
    when = entry.created_at.strftime("%d %b %Y, %I:%M %p")
    return f"{format_amount(entry)} {action} {entry.counterparty.value} on {when}"
