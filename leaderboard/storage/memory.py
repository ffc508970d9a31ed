"""In-process TTL key/value store with the RedisClient surface.

Used as the cache backend for single-process deployments and local
development. Expiry is lazy: an entry past its deadline is dropped
the next time it is read or listed.
"""

import fnmatch
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog


class MemoryStore:
    """Dictionary-backed store mirroring RedisClient's async methods."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}
        self.logger = structlog.get_logger("memory-store")
        self.is_connected: bool = False

    async def connect(self) -> None:
        self.is_connected = True

    async def close(self) -> None:
        self._data.clear()
        self.is_connected = False

    def _live(self, key: str) -> Optional[Tuple[Any, Optional[float]]]:
        item = self._data.get(key)
        if item is None:
            return None
        _, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return item

    async def get(self, key: str) -> Optional[Any]:
        item = self._live(key)
        return None if item is None else item[0]

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        self._data[key] = (value, expires_at)
        self.logger.debug("Value set", key=key, ttl=ttl)

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if self._live(key) is not None:
                del self._data[key]
                deleted += 1
        return deleted

    async def incr(self, key: str, amount: int = 1) -> int:
        item = self._live(key)
        current, expires_at = item if item is not None else (0, None)
        value = int(current) + amount
        self._data[key] = (value, expires_at)
        return value

    async def keys(self, pattern: str) -> List[str]:
        return [key for key in list(self._data) if fnmatch.fnmatchcase(key, pattern) and self._live(key)]

    async def health_check(self) -> bool:
        return self.is_connected
