"""Leaderboard refresher: refresh cycles and their schedule."""

from .executor import RefreshExecutor, RefreshState
from .scheduler import RefreshScheduler

__all__ = ["RefreshExecutor", "RefreshScheduler", "RefreshState"]
