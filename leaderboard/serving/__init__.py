"""Leaderboard read service."""

from .service import UNAVAILABLE_MESSAGE, LeaderboardService

__all__ = ["LeaderboardService", "UNAVAILABLE_MESSAGE"]
