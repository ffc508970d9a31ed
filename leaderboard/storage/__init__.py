"""
Storage abstractions for the leaderboard service.

Provides async clients for:
- PostgreSQL (ranked store)
- Redis (shared cache)
- In-process memory (single-node cache)
"""

from .postgres import PostgresClient, PostgresConfig
from .redis import RedisClient, RedisConfig
from .memory import MemoryStore

__all__ = [
    "PostgresClient",
    "PostgresConfig",
    "RedisClient",
    "RedisConfig",
    "MemoryStore",
]
