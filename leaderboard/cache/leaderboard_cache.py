"""Read-through cache for ranked leaderboard pages."""

from typing import List, Optional, Union

import structlog

from leaderboard.framework.metrics import MetricsCollector
from leaderboard.schemas.models import LeaderboardEntry, QueryShape
from leaderboard.storage.memory import MemoryStore
from leaderboard.storage.redis import RedisClient
from leaderboard.utils.errors import CacheUnavailable


LEADERBOARD_KEY_PREFIX = "leaderboard"
LEADERBOARD_KEY_PATTERN = f"{LEADERBOARD_KEY_PREFIX}:*"
REFRESH_COUNTER_KEY = "stats:leaderboard:refreshes"


def leaderboard_key(shape: QueryShape) -> str:
    """Cache key for a normalized query shape.

    Every field is a bounded integer or enum value containing no ``:``,
    so distinct shapes never collide.
    """
    return (
        f"{LEADERBOARD_KEY_PREFIX}:{shape.limit}:{shape.offset}:"
        f"{shape.sort_by.value}:{shape.sort_order.value}"
    )


class LeaderboardCache:
    """
    Leaderboard page cache over a Redis or in-process backend.

    Backend failures never escape: reads degrade to a miss and writes,
    invalidations and counters are logged and dropped. Pages are
    replaced wholesale on every set.

    ``generation`` advances on every invalidation. A reader that captured
    it before querying the store passes it back to ``set``; if an
    invalidation happened in between, the page predates the refresh and
    is not written.
    """

    def __init__(
        self,
        backend: Union[RedisClient, MemoryStore],
        metrics: Optional[MetricsCollector] = None,
    ):
        self.backend = backend
        self.metrics = metrics
        self.logger = structlog.get_logger("leaderboard-cache")
        self.generation = 0
        self.cache_stats = {
            "hits": 0,
            "misses": 0,
            "errors": 0,
            "sets": 0,
            "stale_sets": 0,
            "invalidated": 0,
        }

    def _record(self, result: str) -> None:
        if result == "hit":
            self.cache_stats["hits"] += 1
        elif result == "miss":
            self.cache_stats["misses"] += 1
        else:
            self.cache_stats["errors"] += 1
        if self.metrics:
            self.metrics.record_cache_lookup(result)

    def _unavailable(self, operation: str, key: str, error: Exception) -> CacheUnavailable:
        failure = CacheUnavailable(f"Cache {operation} failed: {error}", key=key)
        self.logger.warning("Cache unavailable", operation=operation, **failure.details, error=str(error))
        if self.metrics:
            self.metrics.record_error(failure.error_code, "cache")
        return failure

    async def get(self, key: str) -> Optional[List[LeaderboardEntry]]:
        """Get a cached page, or None on miss."""
        try:
            payload = await self.backend.get(key)
        except Exception as e:
            self._unavailable("get", key, e)
            self._record("error")
            return None

        if payload is None:
            self._record("miss")
            return None

        try:
            entries = [LeaderboardEntry.from_dict(item) for item in payload]
        except (KeyError, TypeError, ValueError) as e:
            # Unreadable payloads are overwritten by the next populate
            self.logger.warning("Discarding corrupt cache entry", key=key, error=str(e))
            self._record("miss")
            return None

        self._record("hit")
        return entries

    async def set(
        self,
        key: str,
        entries: List[LeaderboardEntry],
        ttl: int,
        generation: Optional[int] = None,
    ) -> bool:
        """Replace the page stored under key, unless it was read before the last invalidation."""
        if generation is not None and generation != self.generation:
            self.cache_stats["stale_sets"] += 1
            self.logger.debug("Skipping stale page", key=key, generation=generation, current=self.generation)
            return False

        try:
            await self.backend.set(key, [entry.to_dict() for entry in entries], ttl)
        except Exception as e:
            self._unavailable("set", key, e)
            return False

        self.cache_stats["sets"] += 1
        return True

    async def invalidate_pattern(self, pattern: str = LEADERBOARD_KEY_PATTERN) -> int:
        """Delete every key matching pattern. Returns the number removed."""
        # Advance first so no in-flight read can write behind the delete
        self.generation += 1
        try:
            keys = await self.backend.keys(pattern)
            if not keys:
                return 0
            deleted = await self.backend.delete(*keys)
        except Exception as e:
            self._unavailable("invalidate", pattern, e)
            return 0

        self.cache_stats["invalidated"] += deleted
        self.logger.info("Cache invalidated", pattern=pattern, deleted=deleted)
        return deleted

    async def increment(self, key: str) -> Optional[int]:
        """Increment an auxiliary counter, or None if the cache is unreachable."""
        try:
            return int(await self.backend.incr(key))
        except Exception as e:
            self._unavailable("increment", key, e)
            return None

    async def health_check(self) -> bool:
        return await self.backend.health_check()

    def get_stats(self) -> dict:
        """Get cache statistics."""
        lookups = self.cache_stats["hits"] + self.cache_stats["misses"] + self.cache_stats["errors"]
        hit_rate = (self.cache_stats["hits"] / lookups * 100) if lookups > 0 else 0
        return {**self.cache_stats, "hit_rate": hit_rate}
