"""
Base AsyncService class for the leaderboard process.

Provides lifecycle management, HTTP server, health checks,
and graceful shutdown capabilities.
"""

import asyncio
import signal
from abc import ABC, abstractmethod
from typing import Optional

import aiohttp
from aiohttp import web
import structlog
import psutil

from .config import ServiceConfig
from .health import HealthChecker
from .metrics import MetricsCollector


logger = structlog.get_logger(__name__)


class AsyncService(ABC):
    """
    Base class for async services.

    Provides common functionality:
    - HTTP API server
    - Health checks
    - Metrics collection
    - Graceful shutdown
    """

    metrics_interval_seconds = 30

    def __init__(self, config: ServiceConfig):
        self.config = config
        self.logger = structlog.get_logger(self.config.service_name).bind(service=self.config.service_name)

        # Core components
        self.app: Optional[web.Application] = None
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None
        self.session: Optional[aiohttp.ClientSession] = None

        # Framework components
        self.health_checker = HealthChecker(self.config)
        self.metrics = MetricsCollector(self.config.service_name)

        # Shutdown event
        self.shutdown_event = asyncio.Event()
        self._shutdown_started = False

        # Metrics update task
        self.metrics_task: Optional[asyncio.Task] = None

    def _setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info("Received shutdown signal", signal=signum)
            self.shutdown_event.set()

        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, signal_handler, signum)

    def build_app(self) -> web.Application:
        """Create the web application with framework and service routes."""
        self.app = web.Application()
        self._setup_routes()
        return self.app

    async def startup(self) -> None:
        """Initialize service components."""
        self.logger.info("Starting service")

        # Initialize HTTP session
        self.session = aiohttp.ClientSession()

        self.build_app()

        # Initialize service-specific components
        await self._startup_hook()

        # Start metrics update task
        self.metrics_task = asyncio.create_task(self._update_metrics_periodically())

        # Start HTTP server
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        self.site = web.TCPSite(
            self.runner,
            host=self.config.observability.host,
            port=self.config.observability.port
        )
        await self.site.start()

        self.logger.info(
            "Service started",
            port=self.config.observability.port
        )

    async def shutdown(self) -> None:
        """Gracefully shutdown service."""
        if self._shutdown_started:
            return
        self._shutdown_started = True
        self.logger.info("Shutting down service")

        # Stop accepting new requests
        if self.site:
            await self.site.stop()

        # Shutdown service-specific components
        await self._shutdown_hook()

        # Stop metrics update task
        if self.metrics_task:
            self.metrics_task.cancel()
            try:
                await self.metrics_task
            except asyncio.CancelledError:
                pass

        # Cleanup HTTP components
        if self.runner:
            await self.runner.cleanup()

        if self.session:
            await self.session.close()

        # Signal shutdown complete
        self.shutdown_event.set()

        self.logger.info("Service shutdown complete")

    def _setup_routes(self) -> None:
        """Setup HTTP routes."""
        if not self.app:
            return

        # Health check endpoints
        self.app.router.add_get("/health", self._health_handler)
        self.app.router.add_get("/health/ready", self._readiness_handler)
        self.app.router.add_get("/health/live", self._liveness_handler)

        # Metrics endpoint
        self.app.router.add_get("/metrics", self._metrics_handler)

        # Service-specific routes
        self._setup_service_routes()

    def _setup_service_routes(self) -> None:
        """Setup service-specific HTTP routes. Override in subclasses."""
        pass

    async def _health_handler(self, request: web.Request) -> web.Response:
        """Health check handler."""
        health_status = await self.health_checker.check_health()
        status_code = 200 if health_status["healthy"] else 503

        return web.json_response(health_status, status=status_code)

    async def _readiness_handler(self, request: web.Request) -> web.Response:
        """Readiness check handler."""
        ready_status = await self.health_checker.check_readiness()
        status_code = 200 if ready_status["ready"] else 503

        return web.json_response(ready_status, status=status_code)

    async def _liveness_handler(self, request: web.Request) -> web.Response:
        """Liveness check handler."""
        return web.json_response({"alive": True})

    async def _metrics_handler(self, request: web.Request) -> web.Response:
        """Metrics handler."""
        metrics_data = self.metrics.get_metrics()
        # The exposition content type carries its own charset parameter
        return web.Response(
            body=metrics_data,
            headers={"Content-Type": self.metrics.get_content_type()}
        )

    @abstractmethod
    async def _startup_hook(self) -> None:
        """Service-specific startup logic. Override in subclasses."""
        pass

    @abstractmethod
    async def _shutdown_hook(self) -> None:
        """Service-specific shutdown logic. Override in subclasses."""
        pass

    async def _update_metrics_periodically(self) -> None:
        """Update metrics periodically."""
        while not self.shutdown_event.is_set():
            try:
                # Update service info
                self.metrics.update_service_info(
                    version=getattr(self.config, 'version', '1.0.0'),
                    environment=getattr(self.config, 'environment', 'local')
                )

                # Update health status
                health_status = await self.health_checker.check_health()
                self.metrics.set_health_status(health_status["healthy"])

                # Update memory usage
                try:
                    process = psutil.Process()
                    memory_info = process.memory_info()
                    self.metrics.set_memory_usage(memory_info.rss)
                except Exception as e:
                    logger.warning(f"Failed to update memory metrics: {e}")

                await asyncio.sleep(self.metrics_interval_seconds)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error updating metrics: {e}")
                await asyncio.sleep(self.metrics_interval_seconds)

    async def run(self) -> None:
        """Run the service until a shutdown signal arrives."""
        self._setup_signal_handlers()
        try:
            await self.startup()
            await self.shutdown_event.wait()
        except Exception as e:
            self.logger.error("Service error", error=str(e), exc_info=True)
            raise
        finally:
            await self.shutdown()
