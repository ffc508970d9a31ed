"""Configuration for the leaderboard service."""

import os
from typing import Any, Dict, Optional

from leaderboard.framework.config import ServiceConfig
from leaderboard.utils.errors import ConfigurationError


CACHE_BACKENDS = ("redis", "memory")


class LeaderboardConfig(ServiceConfig):
    """Configuration for the leaderboard service."""

    def __init__(self) -> None:
        super().__init__(service_name="leaderboard")

        self.cache_backend = os.getenv("LEADERBOARD_CACHE_BACKEND", "redis").lower()

        # Query shape bounds
        self.max_limit = int(os.getenv("LEADERBOARD_MAX_LIMIT", "30"))
        self.default_limit = int(os.getenv("LEADERBOARD_DEFAULT_LIMIT", "10"))

        # Page-dependent cache TTLs
        self.first_page_ttl = int(os.getenv("LEADERBOARD_FIRST_PAGE_TTL", "10"))
        self.deep_page_ttl = int(os.getenv("LEADERBOARD_DEEP_PAGE_TTL", "30"))

        # Refresher
        self.refresh_interval_seconds = float(os.getenv("LEADERBOARD_REFRESH_INTERVAL", "60"))
        self.refresh_on_start = os.getenv("LEADERBOARD_REFRESH_ON_START", "false").lower() == "true"

        # Broadcast
        self.subscriber_queue_size = int(os.getenv("LEADERBOARD_SUBSCRIBER_QUEUE_SIZE", "100"))
        self.push_interval_seconds = float(os.getenv("LEADERBOARD_PUSH_INTERVAL", "30"))
        self.send_timeout_seconds = float(os.getenv("LEADERBOARD_SEND_TIMEOUT", "10"))
        self.ws_heartbeat_seconds = float(os.getenv("LEADERBOARD_WS_HEARTBEAT", "30"))

        # Trader-data ingestion
        self.ingest_interval_seconds = float(os.getenv("LEADERBOARD_INGEST_INTERVAL", "300"))
        self.performance_feed_url: Optional[str] = os.getenv("LEADERBOARD_PERFORMANCE_FEED_URL") or None
        self.ingest_timeframe = os.getenv("LEADERBOARD_INGEST_TIMEFRAME", "daily")

        self.run_migrations = os.getenv("LEADERBOARD_RUN_MIGRATIONS", "true").lower() == "true"
        self.migrations_dir = os.getenv("LEADERBOARD_MIGRATIONS_DIR", "migrations/postgres")

        self.validate()

    def validate(self) -> None:
        """Reject settings the service cannot run with."""
        positive = {
            "max_limit": self.max_limit,
            "default_limit": self.default_limit,
            "first_page_ttl": self.first_page_ttl,
            "deep_page_ttl": self.deep_page_ttl,
            "refresh_interval_seconds": self.refresh_interval_seconds,
            "subscriber_queue_size": self.subscriber_queue_size,
            "push_interval_seconds": self.push_interval_seconds,
            "send_timeout_seconds": self.send_timeout_seconds,
            "ws_heartbeat_seconds": self.ws_heartbeat_seconds,
            "ingest_interval_seconds": self.ingest_interval_seconds,
        }
        for key, value in positive.items():
            if value <= 0:
                raise ConfigurationError(f"{key} must be positive", config_key=key, config_value=value)

        if self.default_limit > self.max_limit:
            raise ConfigurationError(
                "default_limit cannot exceed max_limit",
                config_key="default_limit",
                config_value=self.default_limit,
            )
        if self.first_page_ttl > self.deep_page_ttl:
            raise ConfigurationError(
                "first_page_ttl cannot exceed deep_page_ttl",
                config_key="first_page_ttl",
                config_value=self.first_page_ttl,
            )
        if self.cache_backend not in CACHE_BACKENDS:
            raise ConfigurationError(
                f"Unknown cache backend, expected one of {CACHE_BACKENDS}",
                config_key="cache_backend",
                config_value=self.cache_backend,
            )

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            "cache_backend": self.cache_backend,
            "max_limit": self.max_limit,
            "default_limit": self.default_limit,
            "first_page_ttl": self.first_page_ttl,
            "deep_page_ttl": self.deep_page_ttl,
            "refresh_interval_seconds": self.refresh_interval_seconds,
            "refresh_on_start": self.refresh_on_start,
            "subscriber_queue_size": self.subscriber_queue_size,
            "push_interval_seconds": self.push_interval_seconds,
            "send_timeout_seconds": self.send_timeout_seconds,
            "ws_heartbeat_seconds": self.ws_heartbeat_seconds,
            "ingest_interval_seconds": self.ingest_interval_seconds,
            "ingestion_enabled": self.performance_feed_url is not None,
            "run_migrations": self.run_migrations,
        })
        return result
