"""
Utility modules for the leaderboard service.

Provides common utilities for:
- Structured logging
- Error handling
"""

from .logging import setup_logging
from .errors import (
    LeaderboardError,
    StoreError,
    TransientStoreError,
    PermanentStoreError,
    CacheUnavailable,
    BroadcastSendFailure,
    ServiceError,
    ConfigurationError,
)

__all__ = [
    "setup_logging",
    "LeaderboardError",
    "StoreError",
    "TransientStoreError",
    "PermanentStoreError",
    "CacheUnavailable",
    "BroadcastSendFailure",
    "ServiceError",
    "ConfigurationError",
]
