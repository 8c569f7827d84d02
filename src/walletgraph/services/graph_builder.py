from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from walletgraph.config.settings import DEDUPE_ACROSS_BRANCHES, MAX_CONCURRENCY
from walletgraph.core.errors import NetworkError
from walletgraph.core.models import (
    BuildConfig,
    Computed,
    FetchFailed,
    GraphBuildResult,
    MaxDepthReached,
    Transaction,
    WalletNode,
    normalize_address,
)
from walletgraph.ports.ledger_port import LedgerPort
from walletgraph.services.aggregator import TransactionAggregator

logger = logging.getLogger(__name__)

ProgressFn = Callable[[str, Dict[str, Any]], None]

_Expansion = Tuple[WalletNode, List[Transaction]]


@dataclass
class _BuildRun:
    max_depth: int
    semaphore: Optional[asyncio.Semaphore]
    # normalized address -> first occurrence, resolved once that node is aggregated
    memo: Optional[Dict[str, "asyncio.Future[WalletNode]"]] = None
    fetched: int = 0
    failed: int = 0


class GraphBuilder:
    """
    Builds the outgoing-funds tree below a seed wallet.

    - Traversal: depth-bounded, every sibling subtree expanded concurrently
    - Failures: a fetch error ends that branch only (FetchFailed leaf)
    - Revisits: the same address is refetched in every branch it appears in,
      unless dedupe_across_branches is set

    Node count grows as branching_factor ** max_depth; max_concurrency caps the
    number of ledger calls in flight, not the total.
    """

    def __init__(
        self,
        ledger: LedgerPort,
        aggregator: Optional[TransactionAggregator] = None,
        max_concurrency: int = MAX_CONCURRENCY,
        dedupe_across_branches: bool = DEDUPE_ACROSS_BRANCHES,
        on_progress: Optional[ProgressFn] = None,
    ) -> None:
        if max_concurrency < 0:
            raise ValueError("max_concurrency must be >= 0")
        self.ledger = ledger
        self.aggregator = aggregator or TransactionAggregator()
        self.max_concurrency = max_concurrency
        self.dedupe_across_branches = dedupe_across_branches
        self.on_progress = on_progress

    @classmethod
    def from_config(
        cls,
        ledger: LedgerPort,
        cfg: BuildConfig,
        aggregator: Optional[TransactionAggregator] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> GraphBuilder:
        return cls(
            ledger,
            aggregator=aggregator,
            max_concurrency=cfg.max_concurrency,
            dedupe_across_branches=cfg.dedupe_across_branches,
            on_progress=on_progress,
        )

    async def build(self, root_address: str, max_depth: int) -> GraphBuildResult:
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")

        run = _BuildRun(
            max_depth=int(max_depth),
            semaphore=asyncio.Semaphore(self.max_concurrency) if self.max_concurrency > 0 else None,
            memo={} if self.dedupe_across_branches else None,
        )
        root_addr = normalize_address(root_address)
        logger.info("Building wallet graph for %s (max depth %d)", root_addr, run.max_depth)
        self._emit("start", {"address": root_addr, "max_depth": run.max_depth})

        root, transactions = await self._expand(run, root_addr, 0, None)

        result = GraphBuildResult(
            root=root,
            transactions=transactions,
            max_depth=run.max_depth,
            built_at=int(time.time()),
        )
        logger.info(
            "Built wallet graph for %s: %d node(s), %d fetch(es), %d failure(s)",
            root_addr, result.node_count, run.fetched, run.failed,
        )
        self._emit("done", {
            "nodes": result.node_count,
            "transactions": len(transactions),
            "fetched": run.fetched,
            "failed": run.failed,
        })
        return result

    def build_sync(self, root_address: str, max_depth: int) -> GraphBuildResult:
        return asyncio.run(self.build(root_address, max_depth))

    # -------------------------
    # Expansion
    # -------------------------

    async def _expand(
        self,
        run: _BuildRun,
        address: str,
        depth: int,
        value: Optional[Decimal],
    ) -> _Expansion:
        if depth >= run.max_depth:
            return WalletNode(address=address, balance=MaxDepthReached(), value=value, depth=depth), []

        claimed: Optional[asyncio.Future] = None
        if run.memo is not None:
            first = run.memo.get(address)
            if first is not None:
                return self._revisit(await first, value, depth), []
            claimed = asyncio.get_running_loop().create_future()
            run.memo[address] = claimed

        try:
            node, stubs = await self._resolve(run, address, depth, value)
        except Exception as e:
            if claimed is not None and not claimed.done():
                claimed.set_exception(e)
                # the error is re-raised below; waiting revisits may never read it
                claimed.exception()
            raise
        if claimed is not None:
            claimed.set_result(node)

        if not stubs:
            return node, list(node.transactions)

        expansions = await asyncio.gather(*(
            self._expand(run, stub.address, depth + 1, stub.value) for stub in stubs
        ))

        # own batch first, then each child subtree in child order
        collected: List[Transaction] = list(node.transactions)
        for child, child_txs in expansions:
            node.children.append(child)
            collected.extend(child_txs)
        return node, collected

    async def _resolve(self, run: _BuildRun, address: str, depth: int, value: Optional[Decimal]):
        """Fetch + aggregate one wallet. Returns the childless node and its counterparty stubs."""
        try:
            raw = await self._fetch(run, address, depth)
        except NetworkError as e:
            run.failed += 1
            logger.warning("Fetching %s at depth %d failed: %s", address, depth, e)
            self._emit("fetch_error", {"address": address, "depth": depth, "message": str(e)})
            node = WalletNode(address=address, balance=FetchFailed(str(e)), value=value, depth=depth)
            return node, []

        run.fetched += 1
        self._emit("fetch_done", {"address": address, "depth": depth, "count": len(raw)})

        batch = self.aggregator.aggregate(address, raw)
        node = WalletNode(
            address=address,
            balance=Computed(batch.balance),
            transactions=list(batch.transactions),
            value=value,
            depth=depth,
        )
        return node, batch.children

    async def _fetch(self, run: _BuildRun, address: str, depth: int) -> List[Any]:
        self._emit("fetch", {"address": address, "depth": depth})
        if run.semaphore is None:
            return await asyncio.to_thread(self.ledger.fetch_transactions, address)
        async with run.semaphore:
            return await asyncio.to_thread(self.ledger.fetch_transactions, address)

    # -------------------------
    # Helpers
    # -------------------------

    @staticmethod
    def _revisit(first: WalletNode, value: Optional[Decimal], depth: int) -> WalletNode:
        return WalletNode(
            address=first.address,
            balance=first.balance,
            transactions=list(first.transactions),
            value=value,
            depth=depth,
            revisit=True,
        )

    def _emit(self, event: str, data: Dict[str, Any]) -> None:
        if self.on_progress is not None:
            self.on_progress(event, data)
