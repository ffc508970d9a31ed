"""
Schema definitions for the leaderboard service.

Provides the ranked entry, query shape and event models shared
by the store, cache, refresher and broadcast layers.
"""

from .models import (
    LeaderboardEntry,
    QueryShape,
    SortField,
    SortOrder,
    FreshnessEvent,
    PerformanceSample,
    normalize_query,
)

__all__ = [
    "LeaderboardEntry",
    "QueryShape",
    "SortField",
    "SortOrder",
    "FreshnessEvent",
    "PerformanceSample",
    "normalize_query",
]
