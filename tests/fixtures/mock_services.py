"""Mock services for testing."""

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from leaderboard.broadcast.session import ControlFrame, FrameKind
from leaderboard.schemas.models import (
    DEFAULT_SORT_ORDER,
    LeaderboardEntry,
    QueryShape,
    SortField,
    SortOrder,
)
from leaderboard.utils.errors import BroadcastSendFailure, StoreError


logger = logging.getLogger(__name__)

SAMPLE_TIMESTAMP = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_trader(wallet: str, pnl, roi, volume, account_value="1000") -> Dict[str, Any]:
    """Build one ranked-store row without a rank."""
    return {
        "trader_wallet": wallet,
        "account_value": Decimal(str(account_value)),
        "pnl": Decimal(str(pnl)),
        "roi": Decimal(str(roi)),
        "volume": Decimal(str(volume)),
        "last_updated": SAMPLE_TIMESTAMP,
    }


def make_traders(count: int) -> List[Dict[str, Any]]:
    """Deterministic dataset with a few tied roi values."""
    return [
        make_trader(
            f"0xwallet{i:03d}",
            pnl=i * 100,
            roi=Decimal(i // 2) / 10,
            volume=(count - i) * 1000,
        )
        for i in range(count)
    ]


class MockRankedStore:
    """
    In-memory ranked store.

    Rows staged with ``stage()`` only become visible after ``refresh()``,
    like a materialized view. ``refresh_gate`` lets a test hold a refresh
    open to exercise overlapping triggers. ``query_gate`` holds a query after
    it has read the visible rows, like a slow page read.
    """

    def __init__(self, traders: Optional[List[Dict[str, Any]]] = None):
        self.visible: List[Dict[str, Any]] = list(traders or [])
        self.staged: Optional[List[Dict[str, Any]]] = None
        self.query_calls = 0
        self.refresh_calls = 0
        self.refresh_completed = 0
        self.fail_queries: Optional[StoreError] = None
        self.fail_refresh: Optional[StoreError] = None
        self.refresh_gate: Optional[asyncio.Event] = None
        self.refresh_started = asyncio.Event()
        self.query_gate: Optional[asyncio.Event] = None
        self.query_started = asyncio.Event()

    def stage(self, traders: List[Dict[str, Any]]) -> None:
        self.staged = list(traders)

    def _ranked(self, sort_by: SortField, sort_order: SortOrder) -> List[LeaderboardEntry]:
        column = sort_by.value
        if sort_order == SortOrder.DESC:
            ordered = sorted(self.visible, key=lambda row: (-row[column], row["trader_wallet"]))
        else:
            ordered = sorted(self.visible, key=lambda row: (row[column], row["trader_wallet"]))
        return [LeaderboardEntry.from_row({**row, "rank": i + 1}) for i, row in enumerate(ordered)]

    async def query(self, shape: QueryShape) -> List[LeaderboardEntry]:
        self.query_calls += 1
        if self.fail_queries:
            raise self.fail_queries
        ranked = self._ranked(shape.sort_by, shape.sort_order)
        self.query_started.set()
        if self.query_gate is not None:
            await self.query_gate.wait()
        return ranked[shape.offset:shape.offset + shape.limit]

    async def get_trader(
        self,
        wallet_address: str,
        sort_by: SortField = SortField.ROI,
        sort_order: SortOrder = DEFAULT_SORT_ORDER,
    ) -> Optional[LeaderboardEntry]:
        if self.fail_queries:
            raise self.fail_queries
        for entry in self._ranked(sort_by, sort_order):
            if entry.trader_wallet == wallet_address:
                return entry
        return None

    async def count(self) -> int:
        if self.fail_queries:
            raise self.fail_queries
        return len(self.visible)

    async def refresh(self) -> None:
        self.refresh_calls += 1
        self.refresh_started.set()
        if self.refresh_gate is not None:
            await self.refresh_gate.wait()
        if self.fail_refresh:
            raise self.fail_refresh
        if self.staged is not None:
            self.visible, self.staged = self.staged, None
        self.refresh_completed += 1

    async def health_check(self) -> bool:
        return self.fail_queries is None


class FailingCacheBackend:
    """Cache backend whose every call fails like an unreachable Redis."""

    def __init__(self):
        self.calls = 0

    async def _fail(self, *args, **kwargs):
        self.calls += 1
        raise ConnectionError("Connection refused")

    get = _fail
    set = _fail
    delete = _fail
    incr = _fail
    keys = _fail

    async def health_check(self) -> bool:
        return False


class RecordingTransport:
    """Subscriber transport that records what the session sends."""

    def __init__(self, fail_sends: bool = False):
        self.sent: List[Any] = []
        self.pongs: List[bytes] = []
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.fail_sends = fail_sends
        self.message_sent = asyncio.Event()

    async def send_text(self, text: str) -> None:
        if self.fail_sends:
            raise BroadcastSendFailure("transport closed")
        self.sent.append(text)
        self.message_sent.set()

    async def send_json(self, payload: Dict[str, Any]) -> None:
        if self.fail_sends:
            raise BroadcastSendFailure("transport closed")
        self.sent.append(payload)
        self.message_sent.set()

    async def pong(self, data: bytes = b"") -> None:
        self.pongs.append(data)
        self.message_sent.set()

    async def receive(self) -> ControlFrame:
        return await self.inbound.get()

    def client_sends(self, kind: FrameKind, data: Any = None) -> None:
        self.inbound.put_nowait(ControlFrame(kind, data))

    async def wait_for(self, predicate, timeout: float = 2.0) -> None:
        """Wait until predicate(self) holds."""
        async def _poll():
            while not predicate(self):
                self.message_sent.clear()
                await self.message_sent.wait()
        await asyncio.wait_for(_poll(), timeout=timeout)

    def json_messages(self, kind: Optional[str] = None) -> List[Dict[str, Any]]:
        messages = [msg for msg in self.sent if isinstance(msg, dict)]
        if kind:
            return [msg for msg in messages if msg.get("type") == kind]
        return messages

    def text_messages(self) -> List[str]:
        return [msg for msg in self.sent if isinstance(msg, str)]


class StalledTransport(RecordingTransport):
    """Transport whose text sends never complete, like a peer that stopped reading."""

    async def send_text(self, text: str) -> None:
        await asyncio.Event().wait()


class ManualClock:
    """Controllable monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
