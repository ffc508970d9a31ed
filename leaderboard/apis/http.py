"""HTTP and websocket API for the leaderboard."""

import time
import weakref
from datetime import datetime, timezone
from typing import Optional

import structlog
from aiohttp import WSCloseCode, web

from leaderboard.broadcast.hub import BroadcastHub
from leaderboard.broadcast.session import SubscriberSession, WebSocketTransport
from leaderboard.framework.metrics import MetricsCollector
from leaderboard.refresh.executor import RefreshExecutor
from leaderboard.serving.service import UNAVAILABLE_MESSAGE, LeaderboardService
from leaderboard.store.trader_repository import TraderRepository
from leaderboard.utils.errors import ServiceError, StoreError


logger = structlog.get_logger(__name__)

REFRESH_FAILED_MESSAGE = "Failed to refresh leaderboard"


def _error_response(error: ServiceError) -> web.Response:
    if error.client_error:
        return web.json_response({"error": error.message}, status=400)
    return web.json_response({"error": UNAVAILABLE_MESSAGE}, status=503)


def _param(request: web.Request, *names: str) -> Optional[str]:
    for name in names:
        if name in request.query:
            return request.query[name]
    return None


class LeaderboardAPI:
    """Public leaderboard routes, mounted on the service application."""

    def __init__(
        self,
        service: LeaderboardService,
        refresher: RefreshExecutor,
        hub: BroadcastHub,
        repository: Optional[TraderRepository] = None,
        metrics: Optional[MetricsCollector] = None,
        push_interval: float = 30.0,
        send_timeout: float = 10.0,
        heartbeat: Optional[float] = 30.0,
    ):
        self.service = service
        self.refresher = refresher
        self.hub = hub
        self.repository = repository
        self.metrics = metrics
        self.push_interval = push_interval
        self.send_timeout = send_timeout
        self.heartbeat = heartbeat
        self._websockets: "weakref.WeakSet[web.WebSocketResponse]" = weakref.WeakSet()

    def register(self, app: web.Application) -> None:
        """Add routes, request metrics and websocket shutdown to app."""
        if self.metrics:
            app.middlewares.append(self._metrics_middleware)

        app.router.add_get("/api/health", self.health)
        app.router.add_get("/api/leaderboard", self.get_leaderboard)
        app.router.add_get("/api/leaderboard/count", self.count)
        app.router.add_post("/api/leaderboard/refresh", self.refresh)
        app.router.add_get("/api/traders/{wallet}", self.get_trader)
        app.router.add_post("/api/traders", self.register_trader)
        app.router.add_get("/api/ws", self.websocket)

        app.on_shutdown.append(self.close_websockets)

    @web.middleware
    async def _metrics_middleware(self, request: web.Request, handler):
        started = time.perf_counter()
        status = 500
        try:
            response = await handler(request)
            status = response.status
            return response
        except web.HTTPException as e:
            status = e.status
            raise
        finally:
            route = request.match_info.route.resource
            endpoint = route.canonical if route is not None else "unmatched"
            self.metrics.record_request(request.method, endpoint, str(status), time.perf_counter() - started)

    async def health(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "leaderboard-api",
            "refresher": self.refresher.get_status(),
            "cache": self.service.cache.get_stats(),
            "broadcast": self.hub.get_stats(),
        })

    async def get_leaderboard(self, request: web.Request) -> web.Response:
        """Ranked page for limit, page or offset, sortBy and sortOrder."""
        shape = self.service.normalize(
            limit=_param(request, "limit"),
            page=_param(request, "page"),
            offset=_param(request, "offset"),
            sort_by=_param(request, "sortBy", "sort_by"),
            sort_order=_param(request, "sortOrder", "sort_order"),
        )
        try:
            entries = await self.service.get_leaderboard(shape)
        except ServiceError as e:
            return _error_response(e)

        return web.json_response([entry.to_dict() for entry in entries])

    async def count(self, request: web.Request) -> web.Response:
        try:
            total = await self.service.count_traders()
        except ServiceError as e:
            return _error_response(e)
        return web.json_response({"count": total})

    async def refresh(self, request: web.Request) -> web.Response:
        """Manual refresh. Concurrent calls share one cycle."""
        if not await self.refresher.refresh(trigger="manual"):
            return web.json_response({"error": REFRESH_FAILED_MESSAGE}, status=503)

        refreshed_at = self.refresher.refreshed_at
        return web.json_response({
            "status": "refreshed",
            "refreshedAt": refreshed_at.isoformat() if refreshed_at else None,
            "refreshCount": self.refresher.refresh_count,
        })

    async def get_trader(self, request: web.Request) -> web.Response:
        wallet = request.match_info["wallet"]
        try:
            entry = await self.service.get_trader(
                wallet,
                sort_by=_param(request, "sortBy", "sort_by"),
                sort_order=_param(request, "sortOrder", "sort_order"),
            )
        except ServiceError as e:
            return _error_response(e)

        if entry is None:
            return web.json_response({"error": "Trader not found"}, status=404)
        return web.json_response(entry.to_dict())

    async def register_trader(self, request: web.Request) -> web.Response:
        """Register a wallet. It is ranked once it has performance data and the view refreshes."""
        if self.repository is None:
            return web.json_response({"error": "Trader registration disabled"}, status=404)

        try:
            body = await request.json()
        except ValueError:
            return web.json_response({"error": "Request body must be JSON"}, status=400)

        wallet = body.get("walletAddress") if isinstance(body, dict) else None
        if not isinstance(wallet, str) or not wallet.strip():
            return web.json_response({"error": "walletAddress is required"}, status=400)

        wallet = wallet.strip()
        try:
            await self.repository.upsert_trader(wallet)
        except StoreError as e:
            logger.error("Trader registration failed", wallet=wallet, error=str(e))
            if not e.retryable:
                return web.json_response({"error": e.message}, status=400)
            return web.json_response({"error": UNAVAILABLE_MESSAGE}, status=503)

        return web.json_response({"walletAddress": wallet, "status": "registered"}, status=201)

    async def websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Live subscription: initial snapshot, freshness events, periodic updates."""
        ws = web.WebSocketResponse(autoping=False, heartbeat=self.heartbeat)
        await ws.prepare(request)
        self._websockets.add(ws)

        session = SubscriberSession(
            WebSocketTransport(ws),
            self.hub,
            self.service,
            push_interval=self.push_interval,
            send_timeout=self.send_timeout,
        )
        try:
            await session.run()
        finally:
            self._websockets.discard(ws)
            if not ws.closed:
                await ws.close()
        return ws

    async def close_websockets(self, app: web.Application) -> None:
        for ws in set(self._websockets):
            await ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")
