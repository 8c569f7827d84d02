from __future__ import annotations

import datetime as dt
from decimal import Decimal, localcontext
from typing import Iterable, List, Optional

from walletgraph.core.models import (
    MONEY_CONTEXT,
    AnalyticsSummary,
    FilterBounds,
    Transaction,
    as_utc,
    round_cents,
)

EARLIEST = dt.datetime.min.replace(tzinfo=dt.timezone.utc)


class AnalyticsEngine:
    """
    Date / amount filter and summary stats over the flattened transactions
    of a build. Pure: re-run it as often as the filters change.
    """

    def filter(
        self,
        transactions: Iterable[Transaction],
        bounds: Optional[FilterBounds] = None,
    ) -> List[Transaction]:
        b = bounds or FilterBounds()
        date_from = as_utc(b.date_from) or EARLIEST
        date_to = as_utc(b.date_to)
        amount_min = b.amount_min if b.amount_min is not None else Decimal("0")
        amount_max = b.amount_max

        kept: List[Transaction] = []
        for tx in transactions:
            when = tx.date
            if when < date_from:
                continue
            if date_to is not None and when > date_to:
                continue
            if tx.value < amount_min:
                continue
            if amount_max is not None and tx.value > amount_max:
                continue
            kept.append(tx)
        return kept

    def summarize(self, transactions: Iterable[Transaction]) -> AnalyticsSummary:
        txs = list(transactions)
        count = len(txs)
        with localcontext(MONEY_CONTEXT):
            total = round_cents(sum((tx.value for tx in txs), Decimal("0")))
            average = round_cents(total / count) if count else round_cents(Decimal("0"))
        return AnalyticsSummary(count=count, total_volume=total, average_volume=average)

    def run(
        self,
        transactions: Iterable[Transaction],
        bounds: Optional[FilterBounds] = None,
    ):
        """filter + summarize in one go; returns (filtered, summary)."""
        filtered = self.filter(transactions, bounds)
        return filtered, self.summarize(filtered)
