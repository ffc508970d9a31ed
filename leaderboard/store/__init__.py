"""Ranked store and trader repository backed by PostgreSQL."""

from .ranked_store import RankedStore, classify_store_error
from .trader_repository import TraderRepository

__all__ = [
    "RankedStore",
    "TraderRepository",
    "classify_store_error",
]
