"""Ranked leaderboard reads and refreshes over the PostgreSQL materialized view."""

from __future__ import annotations

import asyncio
from typing import List, Optional

import asyncpg
import structlog

from leaderboard.schemas.models import (
    DEFAULT_SORT_ORDER,
    LeaderboardEntry,
    QueryShape,
    SortField,
    SortOrder,
)
from leaderboard.storage.postgres import PostgresClient
from leaderboard.utils.errors import PermanentStoreError, StoreError, TransientStoreError


logger = structlog.get_logger(__name__)

VIEW_NAME = "realtime_leaderboard"

# Only these literals are ever interpolated into SQL.
_SORT_COLUMNS = {
    SortField.PNL: "pnl",
    SortField.ROI: "roi",
    SortField.VOLUME: "volume",
}
_SORT_DIRECTIONS = {
    SortOrder.ASC: "ASC NULLS LAST",
    SortOrder.DESC: "DESC NULLS LAST",
}

_PERMANENT_ERRORS = (
    asyncpg.exceptions.DataError,
    asyncpg.exceptions.SyntaxOrAccessError,
)


def _order_clause(sort_by: SortField, sort_order: SortOrder) -> str:
    # trader_wallet makes the order total, so equal values rank deterministically
    return f"{_SORT_COLUMNS[sort_by]} {_SORT_DIRECTIONS[sort_order]}, trader_wallet ASC"


def classify_store_error(exc: BaseException, operation: str) -> StoreError:
    """Map a driver failure onto the transient/permanent taxonomy."""
    if isinstance(exc, StoreError):
        return exc
    if isinstance(exc, _PERMANENT_ERRORS):
        return PermanentStoreError(f"Ranked store rejected {operation}: {exc}", operation=operation)
    return TransientStoreError(f"Ranked store unavailable during {operation}: {exc}", operation=operation)


class RankedStore:
    """
    Read side and refresh trigger of the ranked leaderboard dataset.

    Rank is never stored: every query numbers the full ordered view with
    ROW_NUMBER() before the LIMIT/OFFSET window is applied, so ranks are
    gapless and contiguous from offset + 1.
    """

    def __init__(self, postgres: PostgresClient, view_name: str = VIEW_NAME):
        self.postgres = postgres
        self.view_name = view_name
        self._refresh_task: Optional[asyncio.Task] = None
        self.refresh_count = 0

    async def query(self, shape: QueryShape) -> List[LeaderboardEntry]:
        """Fetch one ranked page."""
        order = _order_clause(shape.sort_by, shape.sort_order)
        sql = f"""
            SELECT
                ROW_NUMBER() OVER (ORDER BY {order}) AS rank,
                trader_wallet,
                account_value,
                pnl,
                roi,
                volume,
                last_updated
            FROM {self.view_name}
            ORDER BY {order}
            LIMIT $1 OFFSET $2
        """
        try:
            rows = await self.postgres.execute(sql, shape.limit, shape.offset)
        except Exception as e:
            raise classify_store_error(e, "query") from e

        return [LeaderboardEntry.from_row(row) for row in rows]

    async def get_trader(
        self,
        wallet_address: str,
        sort_by: SortField = SortField.ROI,
        sort_order: SortOrder = DEFAULT_SORT_ORDER,
    ) -> Optional[LeaderboardEntry]:
        """Fetch a single trader with their rank in the given ordering."""
        order = _order_clause(sort_by, sort_order)
        sql = f"""
            SELECT * FROM (
                SELECT
                    ROW_NUMBER() OVER (ORDER BY {order}) AS rank,
                    trader_wallet,
                    account_value,
                    pnl,
                    roi,
                    volume,
                    last_updated
                FROM {self.view_name}
            ) ranked
            WHERE trader_wallet = $1
        """
        try:
            row = await self.postgres.execute_one(sql, wallet_address)
        except Exception as e:
            raise classify_store_error(e, "get_trader") from e

        return LeaderboardEntry.from_row(row) if row else None

    async def count(self) -> int:
        """Number of ranked traders."""
        try:
            total = await self.postgres.execute_scalar(f"SELECT COUNT(*) FROM {self.view_name}")
        except Exception as e:
            raise classify_store_error(e, "count") from e
        return int(total or 0)

    async def refresh(self) -> None:
        """
        Recompute the ranking.

        Overlapping calls share one in-flight REFRESH instead of issuing
        their own; every caller sees that refresh's outcome.
        """
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh())
        # shield: a cancelled caller must not abort the refresh the others wait on
        await asyncio.shield(self._refresh_task)

    async def _refresh(self) -> None:
        try:
            await self.postgres.execute_command(
                f"REFRESH MATERIALIZED VIEW CONCURRENTLY {self.view_name}"
            )
        except Exception as e:
            raise classify_store_error(e, "refresh") from e
        self.refresh_count += 1
        logger.info("Materialized view refreshed", view=self.view_name)

    async def health_check(self) -> bool:
        return await self.postgres.health_check()
