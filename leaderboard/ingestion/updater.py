"""Background loop writing fresh trader performance into the store."""

import asyncio
from typing import Optional

import structlog

from leaderboard.framework.metrics import MetricsCollector
from leaderboard.store.trader_repository import TraderRepository
from leaderboard.utils.errors import StoreError

from .feed import PerformanceFeed


class TraderDataUpdater:
    """
    Periodically pulls the performance feed into the trader tables.

    New samples only reach readers after the next ranked store refresh.
    Stopping is cooperative: an update in progress is allowed to finish.
    """

    def __init__(
        self,
        repository: TraderRepository,
        feed: PerformanceFeed,
        interval_seconds: float = 300.0,
        timeframe: str = "daily",
        metrics: Optional[MetricsCollector] = None,
    ):
        self.repository = repository
        self.feed = feed
        self.interval_seconds = interval_seconds
        self.timeframe = timeframe
        self.metrics = metrics
        self.logger = structlog.get_logger("trader-data-updater")
        self.is_running = False
        self.updates = 0
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._task is not None:
            return
        self.is_running = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())
        self.logger.info("Trader data updater started", interval=self.interval_seconds)

    async def stop(self) -> None:
        self.is_running = False
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        self.logger.info("Trader data updater stopped", updates=self.updates)

    async def update_once(self) -> int:
        """Fetch one batch and record it. Returns the rows written."""
        samples = await self.feed.fetch(self.timeframe)
        written = await self.repository.record_performance(samples, self.timeframe)
        self.updates += 1
        if self.metrics:
            self.metrics.ingested_samples.inc(written)
        return written

    async def _run(self) -> None:
        while self.is_running:
            try:
                written = await self.update_once()
                self.logger.info("Trader data updated", rows=written)
            except StoreError as e:
                self.logger.error("Trader data write failed", error=str(e), retryable=e.retryable)
                if self.metrics:
                    self.metrics.record_error(e.error_code, "ingestion")
            except Exception as e:
                self.logger.error("Trader data fetch failed", error=str(e))
                if self.metrics:
                    self.metrics.record_error(type(e).__name__, "ingestion")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                return
            except asyncio.TimeoutError:
                continue
