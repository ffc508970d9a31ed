"""Leaderboard page cache."""

from .leaderboard_cache import (
    LEADERBOARD_KEY_PATTERN,
    LEADERBOARD_KEY_PREFIX,
    REFRESH_COUNTER_KEY,
    LeaderboardCache,
    leaderboard_key,
)

__all__ = [
    "LEADERBOARD_KEY_PATTERN",
    "LEADERBOARD_KEY_PREFIX",
    "REFRESH_COUNTER_KEY",
    "LeaderboardCache",
    "leaderboard_key",
]
