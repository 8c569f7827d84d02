from walletgraph.core.dto import raw_party_address
from walletgraph.core.errors import NetworkError
from walletgraph.core.models import normalize_address
from walletgraph.ports.ledger_port import Direction, LedgerPort
from typing import Any, Dict, Iterable, List, Optional


class StaticLedgerAdapter(LedgerPort):
    def __init__(self,
                 records: Optional[List[Dict[str, Any]]] = None,
                 batches: Optional[Dict[str, List[Any]]] = None,
                 failing: Optional[Iterable[str]] = None,
                 batch_size: int = 50,
                 direction: Direction = Direction.BOTH,
                 sort: str = "desc",
                 ):
        self._records = records or []
        self._batches = {normalize_address(k): list(v) for k, v in (batches or {}).items()}
        self._failing = {normalize_address(a) for a in (failing or [])}
        self._batch_size = batch_size
        self._direction = direction
        self._sort = sort
        self.calls: List[str] = []

    def fetch_transactions(self, address):
        ad = normalize_address(address)
        self.calls.append(ad)
        if ad in self._failing:
            raise NetworkError(f"HTTP error! status: 503 ({address})")
        if ad in self._batches:
            return list(self._batches[ad])

        items = [
            r for r in self._records
            if normalize_address(raw_party_address(r, "from") or "") == ad
            or (self._direction is Direction.BOTH
                and normalize_address(raw_party_address(r, "to") or "") == ad)
        ]
        items.sort(key=lambda r: _ts_key(r.get("timestamp")), reverse=self._sort == "desc")
        return items[:self._batch_size]


def _ts_key(raw) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0
