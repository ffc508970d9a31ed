"""
Fan-out of freshness events to live subscribers.

Each subscriber owns a bounded queue. Publishing never awaits: a full
queue drops the new message for that subscriber only, so a slow or
stalled subscriber cannot hold up the publisher or its peers.
"""

import asyncio
import itertools
from typing import Any, Dict, Optional

import structlog

from leaderboard.framework.metrics import MetricsCollector


DEFAULT_QUEUE_SIZE = 100


class Subscription:
    """Receive handle into the hub. Owned by exactly one session."""

    def __init__(self, subscriber_id: str, hub: "BroadcastHub", queue_size: int):
        self.subscriber_id = subscriber_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0
        self._hub = hub

    async def get(self) -> Any:
        """Wait for the next message, in publish order."""
        return await self.queue.get()

    def pending(self) -> int:
        return self.queue.qsize()

    def close(self) -> None:
        self._hub.unsubscribe(self)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()


class BroadcastHub:
    """Single publish point for any number of subscribers."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE, metrics: Optional[MetricsCollector] = None):
        if queue_size < 1:
            raise ValueError("queue_size must be positive")
        self.queue_size = queue_size
        self.metrics = metrics
        self.logger = structlog.get_logger("broadcast-hub")
        self._subscriptions: Dict[str, Subscription] = {}
        self._ids = itertools.count(1)
        self.published = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self) -> Subscription:
        """Attach a new subscriber. It only sees messages published from now on."""
        subscription = Subscription(f"sub-{next(self._ids)}", self, self.queue_size)
        self._subscriptions[subscription.subscriber_id] = subscription
        self._update_gauge()
        self.logger.debug("Subscriber attached", subscriber_id=subscription.subscriber_id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Detach a subscriber. Safe to call more than once."""
        if self._subscriptions.pop(subscription.subscriber_id, None) is None:
            return
        self._update_gauge()
        self.logger.debug(
            "Subscriber detached",
            subscriber_id=subscription.subscriber_id,
            dropped=subscription.dropped,
        )

    def publish(self, message: Any) -> int:
        """
        Offer message to every attached subscriber without waiting.

        Returns the number of subscribers whose queue accepted it.
        """
        delivered = 0
        # Snapshot: subscribers may detach while we iterate
        for subscription in list(self._subscriptions.values()):
            try:
                subscription.queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                subscription.dropped += 1
                if self.metrics:
                    self.metrics.broadcast_dropped.inc()
                self.logger.warning(
                    "Subscriber queue full, message dropped",
                    subscriber_id=subscription.subscriber_id,
                    dropped=subscription.dropped,
                )

        self.published += 1
        if self.metrics:
            self.metrics.broadcast_published.inc()
        return delivered

    def _update_gauge(self) -> None:
        if self.metrics:
            self.metrics.subscribers.set(len(self._subscriptions))

    def get_stats(self) -> Dict[str, Any]:
        """Get hub statistics."""
        return {
            "subscribers": self.subscriber_count,
            "published": self.published,
            "queue_size": self.queue_size,
        }
