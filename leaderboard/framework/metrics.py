"""Prometheus metrics collection for the leaderboard service."""

from typing import Optional

from prometheus_client import (
    Counter, Histogram, Gauge, Info,
    CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST
)


class MetricsCollector:
    """Centralized metrics collection for the leaderboard service.

    Each collector owns its registry, so several collectors (one per
    test, for example) never clash on metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self._init_common_metrics()
        self._init_leaderboard_metrics()

    def _init_common_metrics(self):
        """Initialize common service metrics."""
        self.info = Info(
            f"{self.service_name}_info",
            f"Information about {self.service_name}",
            registry=self.registry
        )

        self.request_count = Counter(
            f"{self.service_name}_requests_total",
            f"Total number of requests processed by {self.service_name}",
            ["method", "endpoint", "status"],
            registry=self.registry
        )

        self.request_duration = Histogram(
            f"{self.service_name}_request_duration_seconds",
            f"Request duration in seconds for {self.service_name}",
            ["method", "endpoint"],
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry
        )

        self.errors_total = Counter(
            f"{self.service_name}_errors_total",
            f"Total number of errors in {self.service_name}",
            ["error_type", "component"],
            registry=self.registry
        )

        self.health_status = Gauge(
            f"{self.service_name}_health_status",
            f"Health status of {self.service_name} (1=healthy, 0=unhealthy)",
            registry=self.registry
        )

        self.memory_usage = Gauge(
            f"{self.service_name}_memory_usage_bytes",
            f"Memory usage in bytes for {self.service_name}",
            registry=self.registry
        )

    def _init_leaderboard_metrics(self):
        """Initialize cache, store, refresh and broadcast metrics."""
        self.cache_lookups = Counter(
            f"{self.service_name}_cache_lookups_total",
            "Leaderboard cache lookups by result",
            ["result"],
            registry=self.registry
        )

        self.store_queries = Counter(
            f"{self.service_name}_store_queries_total",
            "Ranked store page queries by outcome",
            ["status"],
            registry=self.registry
        )

        self.refresh_cycles = Counter(
            f"{self.service_name}_refresh_cycles_total",
            "Refresh cycles by outcome",
            ["status", "trigger"],
            registry=self.registry
        )

        self.refresh_duration = Histogram(
            f"{self.service_name}_refresh_duration_seconds",
            "Duration of a full refresh cycle",
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=self.registry
        )

        self.subscribers = Gauge(
            f"{self.service_name}_broadcast_subscribers",
            "Currently attached broadcast subscribers",
            registry=self.registry
        )

        self.broadcast_published = Counter(
            f"{self.service_name}_broadcast_published_total",
            "Messages published to the broadcast hub",
            registry=self.registry
        )

        self.broadcast_dropped = Counter(
            f"{self.service_name}_broadcast_dropped_total",
            "Messages dropped because a subscriber queue was full",
            registry=self.registry
        )

        self.ingested_samples = Counter(
            f"{self.service_name}_ingested_samples_total",
            "Trader performance samples written by the ingestion loop",
            registry=self.registry
        )

    def record_request(self, method: str, endpoint: str, status: str, duration: float):
        """Record a request metric."""
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_cache_lookup(self, result: str):
        """Record a cache lookup (hit, miss or error)."""
        self.cache_lookups.labels(result=result).inc()

    def record_store_query(self, status: str):
        """Record a ranked store page query."""
        self.store_queries.labels(status=status).inc()

    def record_refresh(self, status: str, trigger: str, duration: float):
        """Record a completed refresh cycle."""
        self.refresh_cycles.labels(status=status, trigger=trigger).inc()
        self.refresh_duration.observe(duration)

    def record_error(self, error_type: str, component: str):
        """Record an error metric."""
        self.errors_total.labels(error_type=error_type, component=component).inc()

    def set_health_status(self, healthy: bool):
        """Set the health status metric."""
        self.health_status.set(1 if healthy else 0)

    def set_memory_usage(self, bytes_used: int):
        """Set the memory usage metric."""
        self.memory_usage.set(bytes_used)

    def update_service_info(self, version: str, environment: str, **kwargs):
        """Update service information."""
        info_dict = {
            "version": version,
            "environment": environment,
            **kwargs
        }
        self.info.info(info_dict)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics."""
        return CONTENT_TYPE_LATEST
