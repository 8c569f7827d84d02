from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Iterator, List, Optional, Union


DISPLAY_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Money arithmetic

CENT = Decimal("0.01")

# raw 256-bit amounts have at most 78 integer digits
MAX_AMOUNT_EXPONENT = 77
MONEY_CONTEXT = Context(prec=120, rounding=ROUND_HALF_UP)


def round_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, context=MONEY_CONTEXT)


def normalize_address(address: str) -> str:
    return (address or "").strip().lower()


# Configuration model

@dataclass(frozen=True)
class BuildConfig:
    """
    User input / run configuration for one graph build.
    """

    address: str
    max_depth: int = 3
    max_concurrency: int = 8          # 0 = unbounded
    dedupe_across_branches: bool = False


# Transactions

@dataclass(frozen=True)
class Transaction:

    from_address: str
    to_address: str
    value: Decimal
    timestamp: int                    # unix seconds
    tx_hash: Optional[str] = None

    @property
    def date(self) -> dt.datetime:
        return dt.datetime.fromtimestamp(self.timestamp, tz=dt.timezone.utc)

    @property
    def date_display(self) -> str:
        return self.date.strftime(DISPLAY_DATE_FORMAT)


# Balance variants

@dataclass(frozen=True)
class Computed:
    amount: Decimal


@dataclass(frozen=True)
class MaxDepthReached:
    pass


@dataclass(frozen=True)
class FetchFailed:
    reason: str = ""


Balance = Union[Computed, MaxDepthReached, FetchFailed]


def balance_label(balance: Balance) -> str:
    if isinstance(balance, Computed):
        return f"{balance.amount:.2f}"
    if isinstance(balance, MaxDepthReached):
        return "max-depth"
    return "error"


# Graph models

@dataclass
class WalletNode:

    address: str
    balance: Balance
    transactions: List[Transaction] = field(default_factory=list)
    children: List[WalletNode] = field(default_factory=list)

    # amount the parent sent to this wallet in the parent's batch (None for the root)
    value: Optional[Decimal] = None
    depth: int = 0

    # set only when cross-branch dedup is on and this address was already expanded elsewhere
    revisit: bool = False

    @property
    def is_terminal(self) -> bool:
        return not isinstance(self.balance, Computed)

    @property
    def last_activity(self) -> Optional[dt.datetime]:
        if not self.transactions:
            return None
        return self.transactions[0].date

    def iter_nodes(self) -> Iterator[WalletNode]:
        """Pre-order walk over this node and every descendant."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def tree_depth(self) -> int:
        return max(n.depth for n in self.iter_nodes()) - self.depth


@dataclass
class GraphBuildResult:

    root: WalletNode
    transactions: List[Transaction] = field(default_factory=list)
    max_depth: int = 0
    built_at: int = 0

    @property
    def node_count(self) -> int:
        return sum(1 for _ in self.root.iter_nodes())


# Analytics models

@dataclass(frozen=True)
class FilterBounds:
    """
    Inclusive date / amount window. None means unbounded on that side
    (amount_min falls back to zero).
    """

    date_from: Optional[dt.datetime] = None
    date_to: Optional[dt.datetime] = None
    amount_min: Optional[Decimal] = None
    amount_max: Optional[Decimal] = None

    def intersect(self, other: FilterBounds) -> FilterBounds:
        def _max(a, b):
            if a is None:
                return b
            if b is None:
                return a
            return max(a, b)

        def _min(a, b):
            if a is None:
                return b
            if b is None:
                return a
            return min(a, b)

        return FilterBounds(
            date_from=_max(as_utc(self.date_from), as_utc(other.date_from)),
            date_to=_min(as_utc(self.date_to), as_utc(other.date_to)),
            amount_min=_max(self.amount_min, other.amount_min),
            amount_max=_min(self.amount_max, other.amount_max),
        )


@dataclass(frozen=True)
class AnalyticsSummary:

    count: int
    total_volume: Decimal
    average_volume: Decimal


def as_utc(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    # naive datetimes are read as UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=dt.timezone.utc)
