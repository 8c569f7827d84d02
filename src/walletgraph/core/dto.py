from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Optional

from walletgraph.core.models import Transaction


def raw_party_address(record: Any, key: str) -> Optional[str]:
    """
    `from` / `to` of a raw indexer record, either a plain string or an
    object carrying a `hash`. None when absent or empty.
    """
    if not isinstance(record, Mapping):
        return None
    party = record.get(key)
    if isinstance(party, Mapping):
        party = party.get("hash")
    if not isinstance(party, str) or not party.strip():
        return None
    return party.strip()


@dataclass(frozen=True)
class CounterpartyStub:
    address: str
    value: Decimal          # summed outgoing value within one batch


@dataclass(frozen=True)
class AggregatedBatch:
    balance: Decimal        # rounded to 2 places
    transactions: List[Transaction] = field(default_factory=list)
    children: List[CounterpartyStub] = field(default_factory=list)
