"""Integration tests for the leaderboard HTTP and websocket API."""

import asyncio
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

from aiohttp import WSCloseCode, WSMsgType, test_utils, web

from leaderboard.apis.http import REFRESH_FAILED_MESSAGE, LeaderboardAPI
from leaderboard.schemas.models import FRESHNESS_MARKER
from leaderboard.serving.service import UNAVAILABLE_MESSAGE
from leaderboard.utils.errors import PermanentStoreError, TransientStoreError
from tests.fixtures.mock_services import make_trader


pytestmark = pytest.mark.integration


@pytest.fixture
def repository():
    repo = MagicMock()
    repo.upsert_trader = AsyncMock()
    return repo


@pytest_asyncio.fixture
async def client(service, refresher, hub, repository, metrics):
    api = LeaderboardAPI(service, refresher, hub, repository=repository, metrics=metrics, push_interval=30.0)
    app = web.Application()
    api.register(app)

    client = test_utils.TestClient(test_utils.TestServer(app))
    await client.start_server()
    yield client
    await client.close()


class TestLeaderboardEndpoint:
    """GET /api/leaderboard"""

    @pytest.mark.asyncio
    async def test_default_page(self, client):
        response = await client.get("/api/leaderboard")
        assert response.status == 200

        body = await response.json()
        assert len(body) == 10
        assert [row["rank"] for row in body] == list(range(1, 11))
        assert set(body[0]) == {"rank", "traderWallet", "accountValue", "pnl", "roi", "volume", "lastUpdated"}

    @pytest.mark.asyncio
    async def test_page_and_sort(self, client):
        response = await client.get(
            "/api/leaderboard", params={"limit": "5", "page": "2", "sortBy": "pnl", "sortOrder": "desc"}
        )
        body = await response.json()

        assert [row["rank"] for row in body] == [6, 7, 8, 9, 10]
        assert body[0]["traderWallet"] == "0xwallet039"
        assert body[0]["pnl"] == "3900"

    @pytest.mark.asyncio
    async def test_bad_parameters_fall_back(self, client):
        response = await client.get(
            "/api/leaderboard", params={"limit": "500", "page": "-1", "sortBy": "rank", "sortOrder": "up"}
        )
        assert response.status == 200
        body = await response.json()
        assert len(body) == 30
        assert body[0]["rank"] == 1

    @pytest.mark.asyncio
    async def test_repeat_request_is_cached(self, client, ranked_store):
        await client.get("/api/leaderboard", params={"limit": "10"})
        await client.get("/api/leaderboard", params={"limit": "10", "page": "1"})
        assert ranked_store.query_calls == 1

    @pytest.mark.asyncio
    async def test_page_past_the_end_is_empty(self, client):
        response = await client.get("/api/leaderboard", params={"limit": "30", "page": "10"})
        assert response.status == 200
        assert await response.json() == []

    @pytest.mark.asyncio
    async def test_store_outage_is_503(self, client, ranked_store):
        ranked_store.fail_queries = TransientStoreError("connection refused")

        response = await client.get("/api/leaderboard")
        assert response.status == 503
        assert await response.json() == {"error": UNAVAILABLE_MESSAGE}

    @pytest.mark.asyncio
    async def test_rejected_query_is_400(self, client, ranked_store):
        ranked_store.fail_queries = PermanentStoreError("invalid input syntax")

        response = await client.get("/api/leaderboard")
        assert response.status == 400

    @pytest.mark.asyncio
    async def test_request_metrics(self, client, metrics):
        await client.get("/api/leaderboard")
        await client.get("/api/nowhere")

        assert metrics.request_count.labels(
            method="GET", endpoint="/api/leaderboard", status="200"
        )._value.get() == 1
        assert metrics.request_count.labels(method="GET", endpoint="unmatched", status="404")._value.get() == 1


class TestRefreshEndpoint:
    """POST /api/leaderboard/refresh"""

    @pytest.mark.asyncio
    async def test_refresh_invalidates_pages(self, client, ranked_store):
        first = await (await client.get("/api/leaderboard", params={"limit": "1"})).json()
        ranked_store.stage([make_trader("0xtop", pnl=1, roi=50, volume=1)])

        response = await client.post("/api/leaderboard/refresh")
        assert response.status == 200
        body = await response.json()
        assert body["status"] == "refreshed"
        assert body["refreshCount"] == 1
        assert body["refreshedAt"]

        second = await (await client.get("/api/leaderboard", params={"limit": "1"})).json()
        assert first[0]["traderWallet"] != "0xtop"
        assert second[0]["traderWallet"] == "0xtop"

    @pytest.mark.asyncio
    async def test_refresh_failure_is_503(self, client, ranked_store):
        ranked_store.fail_refresh = TransientStoreError("statement timeout")

        response = await client.post("/api/leaderboard/refresh")
        assert response.status == 503
        assert await response.json() == {"error": REFRESH_FAILED_MESSAGE}

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_share_one_cycle(self, client, ranked_store):
        ranked_store.refresh_gate = asyncio.Event()

        requests = [asyncio.create_task(client.post("/api/leaderboard/refresh")) for _ in range(3)]
        await ranked_store.refresh_started.wait()
        await asyncio.sleep(0.05)
        ranked_store.refresh_gate.set()

        responses = await asyncio.gather(*requests)
        assert [response.status for response in responses] == [200, 200, 200]
        assert ranked_store.refresh_calls == 1


class TestTraderEndpoints:
    """Trader lookup, count and registration."""

    @pytest.mark.asyncio
    async def test_get_trader(self, client):
        response = await client.get("/api/traders/0xwallet044", params={"sortBy": "pnl"})
        assert response.status == 200
        body = await response.json()
        assert body["traderWallet"] == "0xwallet044"
        assert body["rank"] == 1

    @pytest.mark.asyncio
    async def test_unknown_trader_is_404(self, client):
        response = await client.get("/api/traders/0xnobody")
        assert response.status == 404
        assert await response.json() == {"error": "Trader not found"}

    @pytest.mark.asyncio
    async def test_count(self, client):
        response = await client.get("/api/leaderboard/count")
        assert await response.json() == {"count": 45}

    @pytest.mark.asyncio
    async def test_register_trader(self, client, repository):
        response = await client.post("/api/traders", json={"walletAddress": " 0xnew "})
        assert response.status == 201
        assert await response.json() == {"walletAddress": "0xnew", "status": "registered"}
        repository.upsert_trader.assert_awaited_once_with("0xnew")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", ["not json", "[]", '{"walletAddress": ""}', "{}"])
    async def test_register_rejects_bad_body(self, client, repository, payload):
        response = await client.post(
            "/api/traders", data=payload, headers={"Content-Type": "application/json"}
        )
        assert response.status == 400
        repository.upsert_trader.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_register_store_outage(self, client, repository):
        repository.upsert_trader.side_effect = TransientStoreError("down")
        response = await client.post("/api/traders", json={"walletAddress": "0xnew"})
        assert response.status == 503

    @pytest.mark.asyncio
    async def test_health(self, client):
        await client.post("/api/leaderboard/refresh")

        response = await client.get("/api/health")
        body = await response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "leaderboard-api"
        assert body["refresher"]["state"] == "idle"
        assert body["refresher"]["refresh_count"] == 1
        assert body["broadcast"]["published"] == 1
        assert "hit_rate" in body["cache"]


class TestWebsocket:
    """GET /api/ws"""

    @pytest.mark.asyncio
    async def test_initial_snapshot_then_freshness_event(self, client, hub):
        ws = await client.ws_connect("/api/ws")

        initial = await asyncio.wait_for(ws.receive_json(), timeout=2)
        assert initial["type"] == "initial"
        assert len(initial["data"]) == 30
        assert hub.subscriber_count == 1

        response = await client.post("/api/leaderboard/refresh")
        assert response.status == 200
        assert await asyncio.wait_for(ws.receive_str(), timeout=2) == FRESHNESS_MARKER

        await ws.close()

    @pytest.mark.asyncio
    async def test_text_ping(self, client):
        ws = await client.ws_connect("/api/ws")
        await asyncio.wait_for(ws.receive_json(), timeout=2)

        await ws.send_str("ping")
        assert await asyncio.wait_for(ws.receive_str(), timeout=2) == "pong"

        await ws.close()

    @pytest.mark.asyncio
    async def test_every_subscriber_gets_the_event(self, client, hub):
        sockets = [await client.ws_connect("/api/ws") for _ in range(3)]
        for ws in sockets:
            await asyncio.wait_for(ws.receive_json(), timeout=2)

        await client.post("/api/leaderboard/refresh")

        for ws in sockets:
            assert await asyncio.wait_for(ws.receive_str(), timeout=2) == FRESHNESS_MARKER
            await ws.close()

    @pytest.mark.asyncio
    async def test_disconnect_detaches_subscriber(self, client, hub):
        ws = await client.ws_connect("/api/ws")
        await asyncio.wait_for(ws.receive_json(), timeout=2)

        await ws.close()
        for _ in range(100):
            if hub.subscriber_count == 0:
                break
            await asyncio.sleep(0.01)
        assert hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_server_shutdown_closes_sockets(self, service, refresher, hub):
        api = LeaderboardAPI(service, refresher, hub)
        app = web.Application()
        api.register(app)
        client = test_utils.TestClient(test_utils.TestServer(app))
        await client.start_server()

        try:
            ws = await client.ws_connect("/api/ws")
            await asyncio.wait_for(ws.receive_json(), timeout=2)

            closing = asyncio.create_task(api.close_websockets(app))
            msg = await asyncio.wait_for(ws.receive(), timeout=2)
            await asyncio.wait_for(closing, timeout=2)

            assert msg.type == WSMsgType.CLOSE
            assert msg.data == WSCloseCode.GOING_AWAY
            assert hub.subscriber_count == 0
        finally:
            await client.close()
