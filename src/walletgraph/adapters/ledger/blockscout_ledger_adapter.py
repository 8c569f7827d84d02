import logging
from typing import Any, Dict, List, Optional
import requests

from walletgraph.config.settings import (
    LEDGER_API_KEY,
    LEDGER_API_URL,
    LEDGER_BATCH_SIZE,
    LEDGER_DIRECTION,
    LEDGER_REQUESTS_PER_SEC,
    LEDGER_SCOPE_ADDRESS,
    LEDGER_SORT,
    LEDGER_TIMEOUT_SEC,
)

from walletgraph.adapters.ledger.rate_limiter import SimpleRateLimiter
from walletgraph.core.errors import NetworkError
from walletgraph.ports.ledger_port import Direction, LedgerPort

logger = logging.getLogger(__name__)


class BlockscoutLedgerAdapter(LedgerPort):
    """
    One GET per address against `/addresses/{address}/transactions`.
    No retries here; the graph builder decides what a failure means.
    """

    def __init__(
        self,
        base_url: str = LEDGER_API_URL,
        api_key: Optional[str] = LEDGER_API_KEY,
        batch_size: int = LEDGER_BATCH_SIZE,
        direction: Optional[Direction] = None,
        sort: str = LEDGER_SORT,
        scope_address: Optional[str] = LEDGER_SCOPE_ADDRESS,
        timeout_sec: int = LEDGER_TIMEOUT_SEC,
        requests_per_sec: float = LEDGER_REQUESTS_PER_SEC,
        session: Optional[requests.Session] = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._batch_size = batch_size
        self._direction = direction or Direction.parse(LEDGER_DIRECTION)
        self._sort = sort
        self._scope_address = scope_address
        self._timeout = timeout_sec

        self._rl = SimpleRateLimiter(requests_per_sec) if requests_per_sec > 0 else None
        self._session = session or requests.Session()

    # ---------- internal ----------

    def _url_for(self, address: str) -> str:
        target = self._scope_address or address
        return f"{self._base_url}/addresses/{target}/transactions"

    def _params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "filter": self._direction.value,
            "sort": self._sort,
            "limit": self._batch_size,
        }
        if self._api_key:
            params["apikey"] = self._api_key
        return params

    def _call(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if self._rl is not None:
            self._rl.wait()
        try:
            resp = self._session.get(url, params=params, timeout=self._timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Ledger request failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise NetworkError(f"HTTP error! status: {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise NetworkError(f"Invalid ledger response body: {e}") from e

        if not isinstance(data, dict):
            raise NetworkError(f"Invalid ledger response: {data!r}")
        return data

    # ---------- port methods ----------

    def fetch_transactions(self, address: str) -> List[Any]:
        data = self._call(self._url_for(address), self._params())
        items = data.get("items")
        if not isinstance(items, list):
            raise NetworkError("Ledger response has no items list")
        logger.debug("Fetched %d record(s) for %s", len(items), address)
        return items
