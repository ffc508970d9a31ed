"""
Live subscriber sessions.

A session pushes one snapshot on attach, then services three sources
until the client leaves: freshness events from the hub, its own
periodic timer, and control frames from the client. Every send is
bounded by ``send_timeout``; a send that does not finish in time ends
the session like a failed one.
"""

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import structlog
from aiohttp import WSMsgType, web

from leaderboard.schemas.models import FreshnessEvent, QueryShape
from leaderboard.serving.service import LeaderboardService
from leaderboard.utils.errors import BroadcastSendFailure, ServiceError
from leaderboard.utils.logging import add_subscriber_id

from .hub import BroadcastHub


DEFAULT_PUSH_INTERVAL = 30.0
DEFAULT_SEND_TIMEOUT = 10.0


class FrameKind(str, Enum):
    """Inbound client frame kinds the session reacts to."""
    PING = "ping"
    TEXT = "text"
    CLOSE = "close"
    OTHER = "other"


@dataclass(frozen=True)
class ControlFrame:
    """Inbound client frame."""
    kind: FrameKind
    data: Any = None


class WebSocketTransport:
    """Session transport over an aiohttp websocket."""

    def __init__(self, ws: web.WebSocketResponse):
        self.ws = ws

    async def send_text(self, text: str) -> None:
        try:
            await self.ws.send_str(text)
        except Exception as e:
            raise BroadcastSendFailure(f"Websocket send failed: {e}") from e

    async def send_json(self, payload: Dict[str, Any]) -> None:
        await self.send_text(json.dumps(payload))

    async def pong(self, data: bytes = b"") -> None:
        try:
            await self.ws.pong(data)
        except Exception as e:
            raise BroadcastSendFailure(f"Websocket pong failed: {e}") from e

    async def receive(self) -> ControlFrame:
        msg = await self.ws.receive()
        if msg.type == WSMsgType.PING:
            return ControlFrame(FrameKind.PING, msg.data)
        if msg.type == WSMsgType.TEXT:
            return ControlFrame(FrameKind.TEXT, msg.data)
        if msg.type in (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED, WSMsgType.ERROR):
            return ControlFrame(FrameKind.CLOSE, msg.data)
        return ControlFrame(FrameKind.OTHER, msg.data)


class SubscriberSession:
    """One live subscriber: its hub subscription, timer and transport."""

    def __init__(
        self,
        transport,
        hub: BroadcastHub,
        service: LeaderboardService,
        push_interval: float = DEFAULT_PUSH_INTERVAL,
        snapshot_shape: Optional[QueryShape] = None,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ):
        self.transport = transport
        self.hub = hub
        self.service = service
        self.push_interval = push_interval
        self.send_timeout = send_timeout
        self.snapshot_shape = snapshot_shape or service.normalize(limit=service.max_limit)
        self.subscriber_id: Optional[str] = None
        self.logger = structlog.get_logger("subscriber-session")
        self.pushes = 0
        self._tasks: Dict[str, asyncio.Task] = {}

    async def run(self) -> None:
        """Serve the subscriber until it disconnects or a send fails."""
        subscription = self.hub.subscribe()
        self.subscriber_id = subscription.subscriber_id
        self.logger = add_subscriber_id(self.logger, subscription.subscriber_id)
        self.logger.info("Subscriber session started")

        try:
            await self._push_snapshot("initial")

            self._tasks = {
                "event": asyncio.create_task(subscription.get()),
                "timer": asyncio.create_task(asyncio.sleep(self.push_interval)),
                "control": asyncio.create_task(self.transport.receive()),
            }

            while True:
                done, _ = await asyncio.wait(
                    set(self._tasks.values()), return_when=asyncio.FIRST_COMPLETED
                )

                if self._tasks["event"] in done:
                    await self._forward(self._tasks["event"].result())
                    self._tasks["event"] = asyncio.create_task(subscription.get())

                if self._tasks["timer"] in done:
                    await self._push_snapshot("periodic_update")
                    self._tasks["timer"] = asyncio.create_task(asyncio.sleep(self.push_interval))

                if self._tasks["control"] in done:
                    frame = self._tasks["control"].result()
                    if frame.kind == FrameKind.CLOSE:
                        self.logger.info("Subscriber closed the connection")
                        break
                    await self._handle_control(frame)
                    self._tasks["control"] = asyncio.create_task(self.transport.receive())

        except BroadcastSendFailure as e:
            self.logger.warning("Subscriber send failed, ending session", error=str(e))
        finally:
            await self._cancel_tasks()
            subscription.close()
            self.logger.info("Subscriber session ended", pushes=self.pushes, dropped=subscription.dropped)

    async def _send(self, send, payload: Any) -> None:
        # A peer that stops reading must not pin the session
        try:
            await asyncio.wait_for(send(payload), timeout=self.send_timeout)
        except asyncio.TimeoutError as e:
            raise BroadcastSendFailure(
                f"Send timed out after {self.send_timeout}s",
                subscriber_id=self.subscriber_id,
            ) from e

    async def _forward(self, message: Any) -> None:
        if isinstance(message, FreshnessEvent):
            await self._send(self.transport.send_text, message.to_message())
        elif isinstance(message, str):
            await self._send(self.transport.send_text, message)
        else:
            await self._send(self.transport.send_json, message)
        self.pushes += 1

    async def _push_snapshot(self, kind: str) -> None:
        try:
            entries = await self.service.get_leaderboard(self.snapshot_shape)
        except ServiceError as e:
            # Missing one push is fine; the next timer tick retries
            self.logger.warning("Snapshot unavailable, skipping push", kind=kind, error=str(e))
            return

        await self._send(self.transport.send_json, {"type": kind, "data": [entry.to_dict() for entry in entries]})
        self.pushes += 1

    async def _handle_control(self, frame: ControlFrame) -> None:
        if frame.kind == FrameKind.PING:
            await self._send(self.transport.pong, frame.data or b"")
        elif frame.kind == FrameKind.TEXT and str(frame.data).strip().lower() == "ping":
            await self._send(self.transport.send_text, "pong")

    async def _cancel_tasks(self) -> None:
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._tasks = {}
