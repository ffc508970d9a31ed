"""Write side of the trader dataset feeding the ranked view."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Sequence

import structlog

from leaderboard.schemas.models import PerformanceSample
from leaderboard.storage.postgres import PostgresClient

from .ranked_store import classify_store_error


logger = structlog.get_logger(__name__)


class TraderRepository:
    """Registers traders and records their performance samples."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    async def upsert_trader(self, wallet_address: str) -> None:
        """Insert a trader, or mark an existing one as active now."""
        try:
            await self.postgres.execute_command(
                """
                INSERT INTO traders (wallet_address)
                VALUES ($1)
                ON CONFLICT (wallet_address) DO UPDATE
                SET last_active = NOW()
                """,
                wallet_address,
            )
        except Exception as e:
            raise classify_store_error(e, "upsert_trader") from e

    async def trader_ids(self, wallet_addresses: Sequence[str]) -> Dict[str, object]:
        """Resolve wallet addresses to trader ids."""
        if not wallet_addresses:
            return {}
        try:
            rows = await self.postgres.execute(
                "SELECT id, wallet_address FROM traders WHERE wallet_address = ANY($1::text[])",
                list(wallet_addresses),
            )
        except Exception as e:
            raise classify_store_error(e, "trader_ids") from e
        return {row["wallet_address"]: row["id"] for row in rows}

    async def record_performance(
        self,
        samples: Sequence[PerformanceSample],
        timeframe: str = "daily",
    ) -> int:
        """
        Register every sampled wallet and append one performance row each.

        A wallet sampled more than once keeps its last sample, since rows
        written together share one ``calculated_at``. Returns the number
        of rows written.
        """
        if not samples:
            return 0

        latest = {sample.wallet_address: sample for sample in samples}
        if len(latest) < len(samples):
            logger.warning("Duplicate wallets in performance batch", samples=len(samples), wallets=len(latest))

        for wallet in sorted(latest):
            await self.upsert_trader(wallet)

        ids = await self.trader_ids(list(latest))
        calculated_at = datetime.now(timezone.utc)
        rows: List[Dict[str, object]] = [
            {
                "trader_id": ids[sample.wallet_address],
                "account_value": sample.account_value,
                "pnl": sample.pnl,
                "roi": sample.roi,
                "volume": sample.volume,
                "timeframe": timeframe,
                "calculated_at": calculated_at,
            }
            for sample in latest.values()
            if sample.wallet_address in ids
        ]

        try:
            await self.postgres.insert_many("trader_performance", rows)
        except Exception as e:
            raise classify_store_error(e, "record_performance") from e

        logger.info("Recorded trader performance", rows=len(rows), timeframe=timeframe)
        return len(rows)
