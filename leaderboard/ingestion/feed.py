"""HTTP source of trader performance samples."""

from typing import List, Optional

import aiohttp
import structlog

from leaderboard.schemas.models import PerformanceSample


class PerformanceFeed:
    """
    Pulls trader performance from an upstream JSON endpoint.

    The endpoint returns a list of records (or ``{"data": [...]}``) with
    a wallet address plus accountValue, pnl, roi and volume. Records
    that do not parse are skipped.
    """

    def __init__(self, url: str, session: aiohttp.ClientSession, timeout: float = 30.0):
        self.url = url
        self.session = session
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.logger = structlog.get_logger("performance-feed")

    async def fetch(self, timeframe: Optional[str] = None) -> List[PerformanceSample]:
        params = {"timeframe": timeframe} if timeframe else None
        async with self.session.get(self.url, params=params, timeout=self.timeout) as response:
            response.raise_for_status()
            payload = await response.json()

        records = payload.get("data", []) if isinstance(payload, dict) else payload
        samples: List[PerformanceSample] = []
        skipped = 0
        for record in records or []:
            try:
                samples.append(PerformanceSample.from_dict(record))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                skipped += 1
                self.logger.warning("Skipping malformed performance record", error=str(e))

        self.logger.debug("Performance feed fetched", samples=len(samples), skipped=skipped)
        return samples
