"""
Health checks for the leaderboard service.

Aggregates dependency checks (ranked store, cache) into one
health / readiness status. A failing critical check makes the
service unhealthy; a failing non-critical check only degrades it.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import structlog


logger = structlog.get_logger()


class HealthStatus(Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class HealthCheck:
    """Individual health check definition."""
    name: str
    check_func: Callable[[], Union[bool, Awaitable[bool]]]
    timeout: float = 5.0
    critical: bool = True
    description: Optional[str] = None


class HealthChecker:
    """Runs registered health checks and aggregates their status."""

    def __init__(self, config):
        self.config = config
        self.logger = structlog.get_logger("health-checker")
        self.checks: List[HealthCheck] = []
        self.last_check_time: Optional[float] = None
        self.last_status: Optional[HealthStatus] = None

        self.add_check(
            HealthCheck(
                name="config",
                check_func=self._check_config,
                description="Service configuration validation"
            )
        )

    def add_check(self, check: HealthCheck) -> None:
        """Add a health check."""
        self.checks.append(check)
        self.logger.debug("Added health check", name=check.name)

    async def check_health(self) -> Dict[str, Any]:
        """Perform all health checks and return aggregated status."""
        results = {}
        overall_status = HealthStatus.HEALTHY
        critical_failures = 0

        for check in self.checks:
            started = time.time()
            error: Optional[str] = None
            try:
                result = await asyncio.wait_for(self._run_check(check), timeout=check.timeout)
            except asyncio.TimeoutError:
                self.logger.warning("Health check timeout", name=check.name, timeout=check.timeout)
                result = False
                error = "timeout"

            results[check.name] = {
                "status": "healthy" if result else "unhealthy",
                "description": check.description,
                "critical": check.critical,
                "duration_ms": (time.time() - started) * 1000,
            }
            if error:
                results[check.name]["error"] = error

            if not result and check.critical:
                critical_failures += 1
                overall_status = HealthStatus.UNHEALTHY
            elif not result and overall_status == HealthStatus.HEALTHY:
                overall_status = HealthStatus.DEGRADED

        self.last_check_time = time.time()
        self.last_status = overall_status

        return {
            "healthy": overall_status != HealthStatus.UNHEALTHY,
            "status": overall_status.value,
            "checks": results,
            "critical_failures": critical_failures,
            "total_checks": len(self.checks),
            "timestamp": self.last_check_time,
        }

    async def check_readiness(self) -> Dict[str, Any]:
        """Check if service is ready to accept traffic."""
        health_result = await self.check_health()
        ready = health_result["critical_failures"] == 0

        return {
            "ready": ready,
            "status": "ready" if ready else "not_ready",
            "health": health_result,
            "timestamp": time.time(),
        }

    async def _run_check(self, check: HealthCheck) -> bool:
        """Run a single health check."""
        try:
            result = check.check_func()
            if inspect.isawaitable(result):
                result = await result
            return bool(result)
        except Exception as e:
            self.logger.error("Health check execution error", name=check.name, error=str(e))
            return False

    def _check_config(self) -> bool:
        return bool(self.config.service_name) and self.config.environment in ["local", "dev", "staging", "prod"]
