"""
Configuration management for the leaderboard service.

Provides typed configuration classes with environment variable
injection and validation.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class DatabaseConfig:
    """Backing store configuration."""
    postgres_dsn: str = field(default_factory=lambda: os.getenv("LEADERBOARD_POSTGRES_DSN", "postgresql://localhost:5432/leaderboard"))
    postgres_pool_min: int = field(default_factory=lambda: int(os.getenv("LEADERBOARD_POSTGRES_POOL_MIN", "2")))
    postgres_pool_max: int = field(default_factory=lambda: int(os.getenv("LEADERBOARD_POSTGRES_POOL_MAX", "20")))
    postgres_timeout: int = field(default_factory=lambda: int(os.getenv("LEADERBOARD_POSTGRES_TIMEOUT", "30")))
    redis_url: str = field(default_factory=lambda: os.getenv("LEADERBOARD_REDIS_URL", "redis://localhost:6379/0"))
    redis_pool_max: int = field(default_factory=lambda: int(os.getenv("LEADERBOARD_REDIS_POOL_MAX", "20")))
    redis_timeout: int = field(default_factory=lambda: int(os.getenv("LEADERBOARD_REDIS_TIMEOUT", "5")))


@dataclass
class ObservabilityConfig:
    """Observability configuration."""
    log_level: str = field(default_factory=lambda: os.getenv("LEADERBOARD_LOG_LEVEL", "info"))
    log_format: str = field(default_factory=lambda: os.getenv("LEADERBOARD_LOG_FORMAT", "json"))
    host: str = field(default_factory=lambda: os.getenv("LEADERBOARD_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("LEADERBOARD_PORT", "8080")))


@dataclass
class ServiceConfig:
    """Base service configuration."""
    service_name: str
    environment: str = field(default_factory=lambda: os.getenv("LEADERBOARD_ENV", "local"))
    version: str = field(default_factory=lambda: os.getenv("LEADERBOARD_VERSION", "1.0.0"))

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.service_name:
            raise ValueError("service_name is required")

        if self.environment not in ["local", "dev", "staging", "prod"]:
            raise ValueError(f"Invalid environment: {self.environment}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary, without credentials."""
        return {
            "service_name": self.service_name,
            "environment": self.environment,
            "version": self.version,
            "database": {
                "postgres_pool_min": self.database.postgres_pool_min,
                "postgres_pool_max": self.database.postgres_pool_max,
                "postgres_timeout": self.database.postgres_timeout,
                "redis_pool_max": self.database.redis_pool_max,
                "redis_timeout": self.database.redis_timeout,
            },
            "observability": {
                "log_level": self.observability.log_level,
                "log_format": self.observability.log_format,
                "host": self.observability.host,
                "port": self.observability.port,
            },
        }
