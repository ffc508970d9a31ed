"""Leaderboard read path: read-through caching over the ranked store."""

from typing import List, Optional

import structlog

from leaderboard.cache.leaderboard_cache import LeaderboardCache, leaderboard_key
from leaderboard.framework.metrics import MetricsCollector
from leaderboard.schemas.models import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    LeaderboardEntry,
    QueryShape,
    normalize_query,
)
from leaderboard.store.ranked_store import RankedStore
from leaderboard.utils.errors import ServiceError, StoreError, create_error_context


UNAVAILABLE_MESSAGE = "Leaderboard temporarily unavailable"


class LeaderboardService:
    """
    Serves ranked pages from the cache, falling through to the store.

    The first page is the most read and the most volatile, so it is
    cached for ``first_page_ttl`` seconds; every deeper page uses the
    longer ``deep_page_ttl``. Store failures surface as ServiceError and
    are never cached. Cache failures never surface.
    """

    def __init__(
        self,
        store: RankedStore,
        cache: LeaderboardCache,
        *,
        max_limit: int = MAX_LIMIT,
        default_limit: int = DEFAULT_LIMIT,
        first_page_ttl: int = 10,
        deep_page_ttl: int = 30,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.cache = cache
        self.max_limit = max_limit
        self.default_limit = default_limit
        self.first_page_ttl = first_page_ttl
        self.deep_page_ttl = deep_page_ttl
        self.metrics = metrics
        self.logger = structlog.get_logger("leaderboard-service")

    def normalize(self, **params) -> QueryShape:
        """Normalize raw request parameters with this service's bounds."""
        return normalize_query(max_limit=self.max_limit, default_limit=self.default_limit, **params)

    def ttl_for(self, shape: QueryShape) -> int:
        return self.first_page_ttl if shape.offset == 0 else self.deep_page_ttl

    async def get_leaderboard(self, shape: Optional[QueryShape] = None) -> List[LeaderboardEntry]:
        """Return one ranked page for shape."""
        # Re-normalize so hand-built shapes obey this service's bounds
        shape = self.normalize(
            limit=shape.limit if shape else None,
            offset=shape.offset if shape else None,
            sort_by=shape.sort_by if shape else None,
            sort_order=shape.sort_order if shape else None,
        )
        key = leaderboard_key(shape)

        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        generation = self.cache.generation
        try:
            entries = await self.store.query(shape)
        except StoreError as e:
            self._record_store_failure(e, "get_leaderboard")
            raise self._service_error(e, "get_leaderboard") from e

        if self.metrics:
            self.metrics.record_store_query("success")

        if await self.cache.set(key, entries, self.ttl_for(shape), generation=generation):
            self.logger.debug("Leaderboard page populated", key=key, entries=len(entries))
        return entries

    async def get_trader(
        self,
        wallet_address: str,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> Optional[LeaderboardEntry]:
        """Look up one trader's ranked entry. Not cached."""
        shape = self.normalize(sort_by=sort_by, sort_order=sort_order)
        try:
            return await self.store.get_trader(wallet_address, shape.sort_by, shape.sort_order)
        except StoreError as e:
            self._record_store_failure(e, "get_trader")
            raise self._service_error(e, "get_trader") from e

    async def count_traders(self) -> int:
        """Number of ranked traders. Not cached."""
        try:
            return await self.store.count()
        except StoreError as e:
            self._record_store_failure(e, "count_traders")
            raise self._service_error(e, "count_traders") from e

    def _record_store_failure(self, error: StoreError, operation: str) -> None:
        self.logger.error(
            "Ranked store read failed",
            operation=operation,
            error_code=error.error_code,
            retryable=error.retryable,
            error=str(error),
        )
        if self.metrics:
            self.metrics.record_store_query("error")
            self.metrics.record_error(error.error_code, "ranked_store")

    @staticmethod
    def _service_error(error: StoreError, operation: str) -> ServiceError:
        context = create_error_context("leaderboard-service", operation)
        details = {"cause": error.error_code}
        if error.retryable:
            return ServiceError(UNAVAILABLE_MESSAGE, context=context, details=details)
        return ServiceError(error.message, client_error=True, context=context, details=details)
