"""Refresh cycle execution for the ranked leaderboard."""

import asyncio
import logging
import time
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from leaderboard.broadcast.hub import BroadcastHub
from leaderboard.cache.leaderboard_cache import (
    LEADERBOARD_KEY_PATTERN,
    REFRESH_COUNTER_KEY,
    LeaderboardCache,
)
from leaderboard.framework.metrics import MetricsCollector
from leaderboard.schemas.models import FreshnessEvent
from leaderboard.store.ranked_store import RankedStore
from leaderboard.utils.errors import StoreError


logger = logging.getLogger(__name__)


class RefreshState(str, Enum):
    """Refresher state."""
    IDLE = "idle"
    REFRESHING = "refreshing"


class RefreshExecutor:
    """
    Runs refresh cycles: recompute the ranking, invalidate every cached
    page, then publish a freshness event.

    At most one cycle is in flight. A trigger that arrives while a cycle
    is running joins that cycle and receives its outcome. Store failures
    are absorbed: the cycle reports False and the cache and subscribers
    are left as they were after the last successful refresh.
    """

    def __init__(
        self,
        store: RankedStore,
        cache: LeaderboardCache,
        hub: BroadcastHub,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.cache = cache
        self.hub = hub
        self.metrics = metrics

        self.state = RefreshState.IDLE
        self._cycle: Optional[asyncio.Task] = None
        self.last_success: Optional[bool] = None
        self.refreshed_at: Optional[datetime] = None
        self.refresh_count: Optional[int] = None
        self.coalesced_triggers = 0

    async def stop(self):
        """Wait for an in-flight cycle to finish."""
        if self._cycle is not None and not self._cycle.done():
            logger.info("Waiting for in-flight refresh to complete")
            await asyncio.gather(self._cycle, return_exceptions=True)
        logger.info("Refresh executor stopped")

    async def refresh(self, trigger: str = "manual") -> bool:
        """Run a refresh cycle, or join the one already running."""
        if self._cycle is not None and not self._cycle.done():
            self.coalesced_triggers += 1
            logger.info(f"Refresh already in progress, {trigger} trigger joins it")
        else:
            self._cycle = asyncio.create_task(self._run_cycle(trigger))

        # A cancelled caller leaves the shared cycle running for the others
        return await asyncio.shield(self._cycle)

    async def _run_cycle(self, trigger: str) -> bool:
        self.state = RefreshState.REFRESHING
        started = time.monotonic()
        try:
            try:
                await self.store.refresh()
            except StoreError as e:
                logger.error(f"Leaderboard refresh failed ({trigger}): {e}")
                self.last_success = False
                if self.metrics:
                    self.metrics.record_refresh("failure", trigger, time.monotonic() - started)
                    self.metrics.record_error(e.error_code, "refresher")
                return False

            deleted = await self.cache.invalidate_pattern(LEADERBOARD_KEY_PATTERN)

            count = await self.cache.increment(REFRESH_COUNTER_KEY)
            if count is not None:
                self.refresh_count = count

            event = FreshnessEvent()
            delivered = self.hub.publish(event)

            self.last_success = True
            self.refreshed_at = event.timestamp
            duration = time.monotonic() - started
            if self.metrics:
                self.metrics.record_refresh("success", trigger, duration)

            logger.info(
                f"Leaderboard refreshed ({trigger}) in {duration:.3f}s: "
                f"{deleted} cached pages invalidated, {delivered} subscribers notified"
            )
            return True
        finally:
            self.state = RefreshState.IDLE

    def get_status(self) -> Dict[str, Any]:
        """Get refresher status."""
        return {
            "state": self.state.value,
            "last_success": self.last_success,
            "refreshed_at": self.refreshed_at.isoformat() if self.refreshed_at else None,
            "refresh_count": self.refresh_count,
            "coalesced_triggers": self.coalesced_triggers,
        }
