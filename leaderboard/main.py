"""Main entry point for the leaderboard service."""

import asyncio
from pathlib import Path
from typing import Optional, Union

import structlog

from leaderboard.apis.http import LeaderboardAPI
from leaderboard.broadcast.hub import BroadcastHub
from leaderboard.cache.leaderboard_cache import LeaderboardCache
from leaderboard.config import LeaderboardConfig
from leaderboard.framework.health import HealthCheck
from leaderboard.framework.service import AsyncService
from leaderboard.ingestion.feed import PerformanceFeed
from leaderboard.ingestion.updater import TraderDataUpdater
from leaderboard.migrations import MigrationRunner
from leaderboard.refresh.executor import RefreshExecutor
from leaderboard.refresh.scheduler import RefreshScheduler
from leaderboard.serving.service import LeaderboardService
from leaderboard.storage.memory import MemoryStore
from leaderboard.storage.postgres import PostgresClient, PostgresConfig
from leaderboard.storage.redis import RedisClient, RedisConfig
from leaderboard.store.ranked_store import RankedStore
from leaderboard.store.trader_repository import TraderRepository
from leaderboard.utils.logging import setup_logging


logger = structlog.get_logger(__name__)


class LeaderboardApp(AsyncService):
    """Realtime leaderboard: cached ranked reads, periodic refresh and live push."""

    def __init__(self, config: Optional[LeaderboardConfig] = None):
        config = config or LeaderboardConfig()
        super().__init__(config)
        self.config = config

        # Shared handles, built once and injected into every component
        self.postgres = PostgresClient(
            PostgresConfig(
                dsn=config.database.postgres_dsn,
                min_size=config.database.postgres_pool_min,
                max_size=config.database.postgres_pool_max,
                timeout=config.database.postgres_timeout,
            )
        )
        self.cache_backend: Union[RedisClient, MemoryStore]
        if config.cache_backend == "memory":
            self.cache_backend = MemoryStore()
        else:
            self.cache_backend = RedisClient(
                RedisConfig(
                    url=config.database.redis_url,
                    max_connections=config.database.redis_pool_max,
                    timeout=config.database.redis_timeout,
                )
            )

        self.store = RankedStore(self.postgres)
        self.repository = TraderRepository(self.postgres)
        self.cache = LeaderboardCache(self.cache_backend, metrics=self.metrics)
        self.hub = BroadcastHub(queue_size=config.subscriber_queue_size, metrics=self.metrics)
        self.service = LeaderboardService(
            self.store,
            self.cache,
            max_limit=config.max_limit,
            default_limit=config.default_limit,
            first_page_ttl=config.first_page_ttl,
            deep_page_ttl=config.deep_page_ttl,
            metrics=self.metrics,
        )
        self.refresher = RefreshExecutor(self.store, self.cache, self.hub, metrics=self.metrics)
        self.scheduler = RefreshScheduler(
            self.refresher,
            interval_seconds=config.refresh_interval_seconds,
            run_immediately=config.refresh_on_start,
        )
        self.api = LeaderboardAPI(
            self.service,
            self.refresher,
            self.hub,
            repository=self.repository,
            metrics=self.metrics,
            push_interval=config.push_interval_seconds,
            send_timeout=config.send_timeout_seconds,
            heartbeat=config.ws_heartbeat_seconds,
        )
        self.updater: Optional[TraderDataUpdater] = None

        self.health_checker.add_check(
            HealthCheck(
                name="ranked_store",
                check_func=self.store.health_check,
                description="PostgreSQL ranked store connectivity",
            )
        )
        self.health_checker.add_check(
            HealthCheck(
                name="cache",
                check_func=self.cache.health_check,
                critical=False,
                description="Leaderboard cache connectivity",
            )
        )

    def _setup_service_routes(self) -> None:
        self.api.register(self.app)

    async def _startup_hook(self) -> None:
        logger.info("Starting leaderboard components", config=self.config.to_dict())

        await self.postgres.connect()
        try:
            await self.cache_backend.connect()
        except Exception as e:
            # Reads fall through to the store until the cache comes back
            logger.warning("Cache backend unavailable at startup", error=str(e))

        if self.config.run_migrations:
            await MigrationRunner(self.postgres).run_migrations(self._migrations_dir())

        await self.scheduler.start()

        if self.config.performance_feed_url:
            feed = PerformanceFeed(self.config.performance_feed_url, self.session)
            self.updater = TraderDataUpdater(
                self.repository,
                feed,
                interval_seconds=self.config.ingest_interval_seconds,
                timeframe=self.config.ingest_timeframe,
                metrics=self.metrics,
            )
            await self.updater.start()
        else:
            logger.info("No performance feed configured, ingestion disabled")

    async def _shutdown_hook(self) -> None:
        logger.info("Stopping leaderboard components")

        if self.updater:
            await self.updater.stop()
        await self.scheduler.stop()
        await self.refresher.stop()

        await self.cache_backend.close()
        await self.postgres.close()

        logger.info("Leaderboard components stopped")

    def _migrations_dir(self) -> str:
        path = Path(self.config.migrations_dir)
        if not path.is_absolute() and not path.exists():
            path = Path(__file__).resolve().parent.parent / path
        return str(path)


async def main():
    """Main entry point."""
    config = LeaderboardConfig()
    setup_logging(config.service_name, config.observability.log_level, config.observability.log_format)
    service = LeaderboardApp(config)
    await service.run()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
