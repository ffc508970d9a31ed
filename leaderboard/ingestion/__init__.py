"""Trader performance ingestion."""

from .feed import PerformanceFeed
from .updater import TraderDataUpdater

__all__ = ["PerformanceFeed", "TraderDataUpdater"]
