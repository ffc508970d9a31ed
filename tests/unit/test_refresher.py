"""Unit tests for refresh cycles and scheduling."""

import asyncio
import pytest

from leaderboard.cache.leaderboard_cache import REFRESH_COUNTER_KEY, LeaderboardCache
from leaderboard.refresh.executor import RefreshExecutor, RefreshState
from leaderboard.refresh.scheduler import RefreshScheduler
from leaderboard.schemas.models import FreshnessEvent, normalize_query
from leaderboard.utils.errors import TransientStoreError
from tests.fixtures.mock_services import FailingCacheBackend, make_trader


class TestRefreshCycle:
    """Test a single refresh cycle."""

    @pytest.mark.asyncio
    async def test_successful_cycle(self, refresher, ranked_store, cache, memory_backend, hub):
        await cache.set("leaderboard:10:0:roi:desc", [], ttl=10)
        await cache.set("leaderboard:10:10:pnl:asc", [], ttl=30)
        subscription = hub.subscribe()

        assert await refresher.refresh() is True

        assert ranked_store.refresh_completed == 1
        assert await memory_backend.keys("leaderboard:*") == []
        assert await memory_backend.get(REFRESH_COUNTER_KEY) == 1
        assert subscription.pending() == 1
        assert isinstance(await subscription.get(), FreshnessEvent)

        assert refresher.state == RefreshState.IDLE
        assert refresher.last_success is True
        assert refresher.refresh_count == 1
        assert refresher.refreshed_at is not None

    @pytest.mark.asyncio
    async def test_counter_survives_invalidation(self, refresher, memory_backend):
        await refresher.refresh()
        await refresher.refresh()
        await refresher.refresh()

        assert await memory_backend.get(REFRESH_COUNTER_KEY) == 3
        assert refresher.refresh_count == 3

    @pytest.mark.asyncio
    async def test_refresh_exposes_new_ranking(self, refresher, ranked_store, service):
        before = await service.get_leaderboard(normalize_query(limit=1))
        ranked_store.stage([make_trader("0xnewleader", pnl=1, roi=99, volume=1)])

        # Served from cache until the refresh invalidates it
        assert await service.get_leaderboard(normalize_query(limit=1)) == before

        await refresher.refresh()
        after = await service.get_leaderboard(normalize_query(limit=1))
        assert after[0].trader_wallet == "0xnewleader"

    @pytest.mark.asyncio
    async def test_read_overlapping_refresh_does_not_cache_old_page(
        self, refresher, ranked_store, service, cache, traders
    ):
        ranked_store.query_gate = asyncio.Event()
        read = asyncio.create_task(service.get_leaderboard(normalize_query()))
        await ranked_store.query_started.wait()

        # The read has the old rows in hand when the refresh lands
        ranked_store.stage([make_trader("0xnew", pnl=1, roi=50, volume=1), *traders])
        assert await refresher.refresh() is True

        ranked_store.query_gate.set()
        stale = await read
        assert stale[0].trader_wallet == "0xwallet044"
        assert cache.get_stats()["stale_sets"] == 1

        fresh = await service.get_leaderboard(normalize_query())
        assert fresh[0].trader_wallet == "0xnew"
        assert ranked_store.query_calls == 2

    @pytest.mark.asyncio
    async def test_failed_cycle_leaves_cache_and_subscribers_alone(
        self, refresher, ranked_store, cache, memory_backend, hub, metrics
    ):
        await cache.set("leaderboard:10:0:roi:desc", [], ttl=10)
        subscription = hub.subscribe()
        ranked_store.fail_refresh = TransientStoreError("statement timeout", operation="refresh")

        assert await refresher.refresh(trigger="manual") is False

        assert await memory_backend.keys("leaderboard:*") == ["leaderboard:10:0:roi:desc"]
        assert await memory_backend.get(REFRESH_COUNTER_KEY) is None
        assert subscription.pending() == 0
        assert refresher.last_success is False
        assert refresher.state == RefreshState.IDLE
        assert metrics.refresh_cycles.labels(status="failure", trigger="manual")._value.get() == 1

    @pytest.mark.asyncio
    async def test_recovers_after_failure(self, refresher, ranked_store):
        ranked_store.fail_refresh = TransientStoreError("down")
        assert await refresher.refresh() is False

        ranked_store.fail_refresh = None
        assert await refresher.refresh() is True
        assert refresher.last_success is True

    @pytest.mark.asyncio
    async def test_cache_outage_does_not_fail_refresh(self, ranked_store, hub):
        executor = RefreshExecutor(ranked_store, LeaderboardCache(FailingCacheBackend()), hub)
        subscription = hub.subscribe()

        assert await executor.refresh() is True
        assert subscription.pending() == 1
        assert executor.refresh_count is None


class TestCoalescing:
    """Overlapping triggers share one cycle."""

    @pytest.mark.asyncio
    async def test_concurrent_triggers_run_one_refresh(self, refresher, ranked_store, hub):
        ranked_store.refresh_gate = asyncio.Event()
        subscription = hub.subscribe()

        first = asyncio.create_task(refresher.refresh(trigger="scheduled"))
        await ranked_store.refresh_started.wait()
        assert refresher.state == RefreshState.REFRESHING

        others = [asyncio.create_task(refresher.refresh(trigger="manual")) for _ in range(4)]
        await asyncio.sleep(0)
        ranked_store.refresh_gate.set()

        results = await asyncio.gather(first, *others)

        assert results == [True] * 5
        assert ranked_store.refresh_calls == 1
        assert refresher.coalesced_triggers == 4
        assert subscription.pending() == 1

    @pytest.mark.asyncio
    async def test_joined_trigger_sees_failure(self, refresher, ranked_store):
        ranked_store.refresh_gate = asyncio.Event()
        ranked_store.fail_refresh = TransientStoreError("down")

        first = asyncio.create_task(refresher.refresh())
        await ranked_store.refresh_started.wait()
        second = asyncio.create_task(refresher.refresh())
        await asyncio.sleep(0)
        ranked_store.refresh_gate.set()

        assert await asyncio.gather(first, second) == [False, False]
        assert ranked_store.refresh_calls == 1

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_cycle(self, refresher, ranked_store):
        ranked_store.refresh_gate = asyncio.Event()

        first = asyncio.create_task(refresher.refresh())
        await ranked_store.refresh_started.wait()
        second = asyncio.create_task(refresher.refresh())
        await asyncio.sleep(0)

        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        ranked_store.refresh_gate.set()
        assert await second is True
        assert ranked_store.refresh_completed == 1

    @pytest.mark.asyncio
    async def test_sequential_triggers_each_refresh(self, refresher, ranked_store):
        await refresher.refresh()
        await refresher.refresh()
        assert ranked_store.refresh_calls == 2
        assert refresher.coalesced_triggers == 0

    @pytest.mark.asyncio
    async def test_stop_waits_for_cycle(self, refresher, ranked_store):
        ranked_store.refresh_gate = asyncio.Event()
        cycle = asyncio.create_task(refresher.refresh())
        await ranked_store.refresh_started.wait()

        stopper = asyncio.create_task(refresher.stop())
        await asyncio.sleep(0)
        assert not stopper.done()

        ranked_store.refresh_gate.set()
        await stopper
        assert await cycle is True

    @pytest.mark.asyncio
    async def test_status(self, refresher):
        await refresher.refresh()
        status = refresher.get_status()
        assert status["state"] == "idle"
        assert status["last_success"] is True
        assert status["refresh_count"] == 1


class TestRefreshScheduler:
    """Test the periodic refresh loop."""

    @pytest.mark.asyncio
    async def test_ticks_on_interval(self, refresher, ranked_store):
        scheduler = RefreshScheduler(refresher, interval_seconds=0.01)
        await scheduler.start()
        await asyncio.sleep(0.1)
        await scheduler.stop()

        assert scheduler.ticks >= 2
        assert ranked_store.refresh_calls == scheduler.ticks
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_run_immediately(self, refresher, ranked_store):
        scheduler = RefreshScheduler(refresher, interval_seconds=60, run_immediately=True)
        await scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert ranked_store.refresh_calls == 1

    @pytest.mark.asyncio
    async def test_stop_before_first_interval(self, refresher, ranked_store):
        scheduler = RefreshScheduler(refresher, interval_seconds=60)
        await scheduler.start()
        await asyncio.wait_for(scheduler.stop(), timeout=1)

        assert scheduler.ticks == 0
        assert ranked_store.refresh_calls == 0

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_the_loop(self, refresher, ranked_store):
        ranked_store.fail_refresh = TransientStoreError("down")
        scheduler = RefreshScheduler(refresher, interval_seconds=0.01, run_immediately=True)
        await scheduler.start()
        await asyncio.sleep(0.1)
        await scheduler.stop()

        assert ranked_store.refresh_calls >= 2
        assert ranked_store.refresh_completed == 0
