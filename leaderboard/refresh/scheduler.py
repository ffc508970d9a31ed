"""Periodic refresh scheduling."""

import asyncio
import logging
from typing import Optional

from .executor import RefreshExecutor


logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Ticks the refresh executor on a fixed interval."""

    def __init__(self, executor: RefreshExecutor, interval_seconds: float, run_immediately: bool = False):
        self.executor = executor
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self.is_running = False
        self.ticks = 0
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the refresh loop."""
        if self._task is not None:
            logger.warning("Refresh scheduler already started")
            return

        self.is_running = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())
        logger.info(f"Scheduled leaderboard refresh every {self.interval_seconds}s")

    async def stop(self):
        """Stop the loop once the current cycle, if any, has finished."""
        self.is_running = False
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.info("Refresh scheduler stopped")

    async def _run(self):
        if not self.run_immediately and await self._wait_interval():
            return

        while self.is_running:
            self.ticks += 1
            try:
                await self.executor.refresh(trigger="scheduled")
            except Exception as e:
                logger.error(f"Error in scheduled refresh: {e}")

            if await self._wait_interval():
                return

    async def _wait_interval(self) -> bool:
        """Sleep one interval. Returns True if stop was requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            return True
        except asyncio.TimeoutError:
            return False
