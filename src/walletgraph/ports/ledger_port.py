from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, List


class Direction(str, Enum):
    # value is the indexer's `filter` query parameter
    BOTH = "to | from"
    OUTBOUND = "to"

    @classmethod
    def parse(cls, raw: str) -> Direction:
        key = (raw or "").strip().lower()
        if key in ("both", "to | from", "to|from"):
            return cls.BOTH
        if key in ("outbound", "to"):
            return cls.OUTBOUND
        raise ValueError(f"Unknown direction: {raw!r}")


class LedgerPort(ABC):
    """
    Abstract Class for fetching one batch of raw transaction records per address.
    """

    @abstractmethod
    def fetch_transactions(self, address: str) -> List[Any]:
        """Return the raw records for `address` or raise NetworkError."""
        raise NotImplementedError
