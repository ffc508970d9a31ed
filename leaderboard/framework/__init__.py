"""
Core framework components for the leaderboard service.

Provides the async service base class, configuration, health
checks and metrics shared by every component.
"""

from .service import AsyncService
from .config import ServiceConfig, DatabaseConfig, ObservabilityConfig
from .health import HealthChecker, HealthCheck, HealthStatus
from .metrics import MetricsCollector

__all__ = [
    "AsyncService",
    "ServiceConfig",
    "DatabaseConfig",
    "ObservabilityConfig",
    "HealthChecker",
    "HealthCheck",
    "HealthStatus",
    "MetricsCollector",
]
