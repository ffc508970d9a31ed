"""Redis async client wrapper for the leaderboard cache.

Provides high-level interface for Redis operations
with connection pooling and error handling.
"""

from typing import Any, List, Optional
from dataclasses import dataclass
import json
import structlog

import redis.asyncio as redis


@dataclass
class RedisConfig:
    """Redis configuration."""
    url: str
    max_connections: int = 20
    timeout: int = 30
    retry_on_timeout: bool = True


class RedisClient:
    """
    Async Redis client with a bounded, blocking connection pool.

    When every pooled connection is in use, callers wait up to
    ``timeout`` seconds for one to be released rather than opening
    additional connections.
    """

    def __init__(self, config: RedisConfig | str):
        if isinstance(config, str):
            config = RedisConfig(url=config)
        self.config = config
        self.logger = structlog.get_logger("redis-client")
        self.client: Optional[redis.Redis] = None
        self.is_connected: bool = False

    async def connect(self) -> None:
        """Connect to Redis."""
        if self.client:
            return

        pool = redis.BlockingConnectionPool.from_url(
            self.config.url,
            decode_responses=True,
            max_connections=self.config.max_connections,
            timeout=self.config.timeout,
            socket_timeout=self.config.timeout,
            retry_on_timeout=self.config.retry_on_timeout,
        )
        client = redis.Redis.from_pool(pool)

        # Validate connection
        await client.ping()
        self.client = client
        self.is_connected = True
        self.logger.info("Connected to Redis", max_connections=self.config.max_connections)

    async def close(self) -> None:
        """Close the Redis connection."""
        if self.client:
            await self.client.aclose()
            self.client = None
            self.is_connected = False
            self.logger.info("Disconnected from Redis")

    async def get(self, key: str) -> Optional[Any]:
        """Get value by key."""
        if not self.client:
            await self.connect()

        try:
            value = await self.client.get(key)
            if value is None:
                return None

            if isinstance(value, str):
                try:
                    return json.loads(value)
                except json.JSONDecodeError:
                    return value

            return value
        except Exception as e:
            self.logger.error("Redis get error", error=str(e), key=key)
            raise

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Set value with optional TTL."""
        if not self.client:
            await self.connect()

        stored_value = value
        if not isinstance(value, (str, bytes)):
            stored_value = json.dumps(value)

        try:
            await self.client.set(key, stored_value, ex=ttl)
            self.logger.debug("Value set", key=key, ttl=ttl)
        except Exception as e:
            self.logger.error("Redis set error", error=str(e), key=key)
            raise

    async def delete(self, *keys: str) -> int:
        """Delete one or more keys in a single command."""
        if not keys:
            return 0
        if not self.client:
            await self.connect()

        try:
            deleted = await self.client.delete(*keys)
            self.logger.debug("Keys deleted", count=len(keys), deleted=deleted)
            return deleted
        except Exception as e:
            self.logger.error("Redis delete error", error=str(e), keys=len(keys))
            raise

    async def incr(self, key: str, amount: int = 1) -> int:
        """Atomically increment a counter."""
        if not self.client:
            await self.connect()

        try:
            return await self.client.incr(key, amount)
        except Exception as e:
            self.logger.error("Redis incr error", error=str(e), key=key)
            raise

    async def keys(self, pattern: str) -> List[str]:
        """Get keys matching pattern without blocking the server."""
        if not self.client:
            await self.connect()

        try:
            return [key async for key in self.client.scan_iter(match=pattern, count=500)]
        except Exception as e:
            self.logger.error("Redis keys error", error=str(e), pattern=pattern)
            raise

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            if not self.client:
                await self.connect()
            result = await self.client.ping()
            return result is True
        except Exception as e:
            self.logger.error("Redis health check failed", error=str(e))
            return False

