"""HTTP and websocket API."""

from .http import LeaderboardAPI

__all__ = ["LeaderboardAPI"]
