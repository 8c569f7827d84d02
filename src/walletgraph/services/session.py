from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from walletgraph.config.settings import DEDUPE_ACROSS_BRANCHES, MAX_CONCURRENCY, REFRESH_INTERVAL_SEC
from walletgraph.core.models import (
    AnalyticsSummary,
    BuildConfig,
    FilterBounds,
    GraphBuildResult,
    Transaction,
)
from walletgraph.io.preferences import Preferences, PreferencesStore
from walletgraph.ports.ledger_port import LedgerPort
from walletgraph.services.aggregator import TransactionAggregator
from walletgraph.services.analytics import AnalyticsEngine
from walletgraph.services.graph_builder import GraphBuilder, ProgressFn

logger = logging.getLogger(__name__)

EMPTY_SUMMARY = AnalyticsSummary(count=0, total_volume=Decimal("0.00"), average_volume=Decimal("0.00"))


class ExplorerSession:
    """
    Holds the current graph for one seed wallet and reacts to triggers:
    refresh, depth change, the periodic timer (full rebuilds) and filter
    changes (analytics only).

    A failed rebuild leaves the previous result in place and sets last_error.
    Overlapping rebuilds are not serialized; whichever finishes last wins.
    """

    def __init__(
        self,
        ledger: LedgerPort,
        address: str,
        store: Optional[PreferencesStore] = None,
        aggregator: Optional[TransactionAggregator] = None,
        analytics: Optional[AnalyticsEngine] = None,
        max_concurrency: int = MAX_CONCURRENCY,
        dedupe_across_branches: bool = DEDUPE_ACROSS_BRANCHES,
        on_progress: Optional[ProgressFn] = None,
    ) -> None:
        self.ledger = ledger
        self.address = address
        self.store = store
        self.aggregator = aggregator or TransactionAggregator()
        self.analytics = analytics or AnalyticsEngine()
        self.max_concurrency = max_concurrency
        self.dedupe_across_branches = dedupe_across_branches
        self.on_progress = on_progress

        self.prefs: Preferences = store.load() if store is not None else Preferences()
        self.result: Optional[GraphBuildResult] = None
        self.bounds = FilterBounds()
        self.filtered: List[Transaction] = []
        self.summary: AnalyticsSummary = EMPTY_SUMMARY
        self.last_error: Optional[str] = None

    @property
    def config(self) -> BuildConfig:
        return BuildConfig(
            address=self.address,
            max_depth=self.prefs.max_depth,
            max_concurrency=self.max_concurrency,
            dedupe_across_branches=self.dedupe_across_branches,
        )

    # ---------- triggers ----------

    async def refresh(self) -> Optional[GraphBuildResult]:
        cfg = self.config
        builder = GraphBuilder.from_config(
            self.ledger, cfg, aggregator=self.aggregator, on_progress=self.on_progress,
        )
        try:
            result = await builder.build(cfg.address, cfg.max_depth)
        except Exception as e:
            self.last_error = f"{e.__class__.__name__}: {e}"
            logger.error("Error updating wallet graph: %s", self.last_error)
            return self.result

        self.result = result
        self.last_error = None
        self._run_analytics()
        return result

    async def set_max_depth(self, max_depth: int) -> Optional[GraphBuildResult]:
        depth = int(max_depth)
        if depth < 0:
            raise ValueError("max_depth must be >= 0")
        self.prefs.max_depth = depth
        self._save()
        return await self.refresh()

    def apply_filters(self, bounds: FilterBounds) -> Tuple[List[Transaction], AnalyticsSummary]:
        self.bounds = bounds
        self._run_analytics()
        return self.filtered, self.summary

    def rename_wallet(self, address: str, name: str) -> bool:
        if not self.prefs.set_label(address, name):
            return False
        self._save()
        return True

    def toggle_theme(self) -> str:
        theme = self.prefs.toggle_theme()
        self._save()
        return theme

    async def run_periodic(
        self,
        interval_sec: float = REFRESH_INTERVAL_SEC,
        max_runs: Optional[int] = None,
        on_update: Optional[Callable[[ExplorerSession], None]] = None,
    ) -> None:
        """Rebuild now and then every `interval_sec` until cancelled (or max_runs)."""
        runs = 0
        while True:
            await self.refresh()
            runs += 1
            if on_update is not None:
                on_update(self)
            if max_runs is not None and runs >= max_runs:
                return
            await asyncio.sleep(interval_sec)

    # ---------- internal ----------

    def _run_analytics(self) -> None:
        if self.result is None:
            self.filtered, self.summary = [], EMPTY_SUMMARY
            return
        self.filtered, self.summary = self.analytics.run(self.result.transactions, self.bounds)

    def _save(self) -> None:
        if self.store is not None:
            self.store.save(self.prefs)
