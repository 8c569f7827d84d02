from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Dict, Iterable, List

from walletgraph.core.dto import AggregatedBatch, CounterpartyStub, raw_party_address
from walletgraph.core.errors import MalformedRecord
from walletgraph.core.models import (
    MAX_AMOUNT_EXPONENT,
    MONEY_CONTEXT,
    Transaction,
    normalize_address,
    round_cents,
)

logger = logging.getLogger(__name__)

MAX_TIMESTAMP = 253402300799   # 9999-12-31T23:59:59Z


class TransactionAggregator:
    """
    Turns one wallet's raw batch into a balance, a normalized transaction
    log and the list of distinct wallets it sent funds to.

    - Balance: inbound minus outbound, this batch only
    - Children: one stub per outgoing counterparty, values summed, first-seen order
    - Records that touch neither side stay in the log but not in the balance
    """

    def __init__(self, value_decimals: int = 0) -> None:
        if value_decimals < 0:
            raise ValueError("value_decimals must be >= 0")
        self._scale = Decimal(10) ** value_decimals

    def aggregate(self, address: str, raw_records: Iterable[Any]) -> AggregatedBatch:
        focus = normalize_address(address)
        balance = Decimal("0")
        transactions: List[Transaction] = []
        outgoing: Dict[str, Decimal] = {}

        with localcontext(MONEY_CONTEXT):
            for raw in raw_records or []:
                try:
                    tx = self.parse_record(raw)
                except MalformedRecord as e:
                    logger.debug("Skipping record for %s: %s", focus, e)
                    continue

                transactions.append(tx)

                if tx.to_address == focus:
                    balance += tx.value
                elif tx.from_address == focus:
                    balance -= tx.value
                    # dict keeps insertion order -> first occurrence decides child order
                    outgoing[tx.to_address] = outgoing.get(tx.to_address, Decimal("0")) + tx.value

        return AggregatedBatch(
            balance=round_cents(balance),
            transactions=transactions,
            children=[CounterpartyStub(address=a, value=v) for a, v in outgoing.items()],
        )

    # -------------------------
    # Record parsing
    # -------------------------

    def parse_record(self, raw: Any) -> Transaction:
        from_address = raw_party_address(raw, "from")
        to_address = raw_party_address(raw, "to")
        if from_address is None or to_address is None:
            raise MalformedRecord(f"missing address fields: {raw!r}")

        hash_ = raw.get("hash") or raw.get("tx_hash")
        return Transaction(
            from_address=normalize_address(from_address),
            to_address=normalize_address(to_address),
            value=self._parse_value(raw.get("value")),
            timestamp=parse_timestamp(raw.get("timestamp")),
            tx_hash=hash_ if isinstance(hash_, str) else None,
        )

    def _parse_value(self, raw: Any) -> Decimal:
        value = parse_decimal(raw)
        if self._scale != 1:
            value = MONEY_CONTEXT.divide(value, self._scale)
        return value


def parse_decimal(raw: Any) -> Decimal:
    """Decimal value of `raw`; 0 when missing, unparseable, not finite or beyond 256-bit range."""
    if raw is None or isinstance(raw, bool):
        return Decimal("0")
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not value.is_finite():
        return Decimal("0")
    if value and value.adjusted() > MAX_AMOUNT_EXPONENT:
        return Decimal("0")
    return value


def parse_timestamp(raw: Any) -> int:
    """Unix seconds from an integer-ish value or an ISO-8601 string; 0 otherwise."""
    ts = _parse_timestamp(raw)
    return ts if 0 <= ts <= MAX_TIMESTAMP else 0


def _parse_timestamp(raw: Any) -> int:
    if raw is None or isinstance(raw, bool):
        return 0
    text = str(raw).strip()
    try:
        return int(Decimal(text))
    except (InvalidOperation, ValueError, OverflowError):
        pass
    try:
        parsed = dt.datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return int(parsed.timestamp())
