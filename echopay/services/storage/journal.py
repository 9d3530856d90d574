"""
Append-Only Ledger Journal

DESIGN DECISION: Each transfer is written as ONE line holding both of its
entries. A line is either fully on disk or it is not, so replaying the
journal can never resurrect half of a pair.

TRADEOFFS:
- One fsync per transfer (fine for a two-person channel)
- The whole journal is replayed into memory at startup
"""

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

import structlog

from echopay.models.ledger import LedgerEntry, TransferReceipt


logger = structlog.get_logger(__name__)


class LedgerJournal(ABC):
    """Durable backing for an in-memory ledger."""

    @abstractmethod
    def write_pair(self, sent: LedgerEntry, received: LedgerEntry) -> None:
        """
        Durably record one transfer pair.

        Raises:
            OSError: If the pair could not be written
        """
        pass

    @abstractmethod
    def load(self) -> list[TransferReceipt]:
        """Return every fully written pair, oldest first."""
        pass


class JsonLinesJournal(LedgerJournal):
    """
    Journal stored as JSON lines: {"sent": {...}, "received": {...}}.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def write_pair(self, sent: LedgerEntry, received: LedgerEntry) -> None:
        line = json.dumps(
            {"sent": sent.to_wire(), "received": received.to_wire()},
            separators=(",", ":"),
        )
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
            fh.flush()
            os.fsync(fh.fileno())

    def load(self) -> list[TransferReceipt]:
        if not self._path.exists():
            return []

        pairs = []
        with self._path.open("r", encoding="utf-8") as fh:
            lines = fh.read().split("\n")

        for lineno, raw in enumerate(lines, start=1):
            if not raw.strip():
                continue
            try:
                record = json.loads(raw)
                pairs.append(
                    TransferReceipt(
                        sent=LedgerEntry.model_validate(record["sent"]),
                        received=LedgerEntry.model_validate(record["received"]),
                    )
                )
            except (ValueError, KeyError, TypeError) as e:
                # A torn write is the only line without a trailing newline
                if lineno == len(lines):
                    logger.warning(
                        "journal_torn_tail_discarded",
                        path=str(self._path),
                        line=lineno,
                        error=str(e),
                    )
                    self._truncate_to(lines[:-1])
                    break
                raise ValueError(
                    f"Corrupt ledger journal {self._path} at line {lineno}: {e}"
                ) from e

        return pairs

    def _truncate_to(self, complete_lines: list[str]) -> None:
        # Later appends must start on a fresh line
        content = "".join(line + "\n" for line in complete_lines)
        with self._path.open("w", encoding="utf-8") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
