"""Pytest configuration and fixtures."""

import pytest
import pytest_asyncio

from leaderboard.broadcast.hub import BroadcastHub
from leaderboard.cache.leaderboard_cache import LeaderboardCache
from leaderboard.framework.metrics import MetricsCollector
from leaderboard.refresh.executor import RefreshExecutor
from leaderboard.serving.service import LeaderboardService
from leaderboard.storage.memory import MemoryStore
from tests.fixtures.mock_services import (
    ManualClock,
    MockRankedStore,
    RecordingTransport,
    make_traders,
)


@pytest.fixture
def clock():
    """Manual clock driving cache expiry."""
    return ManualClock()


@pytest.fixture
def traders():
    """Sample ranked dataset."""
    return make_traders(45)


@pytest.fixture
def ranked_store(traders):
    """In-memory ranked store fixture."""
    return MockRankedStore(traders)


@pytest.fixture
def metrics():
    """Metrics collector with its own registry."""
    return MetricsCollector("leaderboard_test")


@pytest_asyncio.fixture
async def memory_backend(clock):
    """In-process cache backend fixture."""
    backend = MemoryStore(clock=clock)
    await backend.connect()
    yield backend
    await backend.close()


@pytest.fixture
def cache(memory_backend, metrics):
    """Leaderboard cache over the in-process backend."""
    return LeaderboardCache(memory_backend, metrics=metrics)


@pytest.fixture
def hub(metrics):
    """Broadcast hub fixture."""
    return BroadcastHub(queue_size=10, metrics=metrics)


@pytest.fixture
def service(ranked_store, cache, metrics):
    """Leaderboard service fixture."""
    return LeaderboardService(
        ranked_store,
        cache,
        max_limit=30,
        default_limit=10,
        first_page_ttl=10,
        deep_page_ttl=30,
        metrics=metrics,
    )


@pytest_asyncio.fixture
async def refresher(ranked_store, cache, hub, metrics):
    """Refresh executor fixture."""
    executor = RefreshExecutor(ranked_store, cache, hub, metrics=metrics)
    yield executor
    await executor.stop()


@pytest.fixture
def transport():
    """Recording subscriber transport."""
    return RecordingTransport()
