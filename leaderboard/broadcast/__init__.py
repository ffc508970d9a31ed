"""Broadcast hub and live subscriber sessions."""

from .hub import BroadcastHub, Subscription
from .session import ControlFrame, FrameKind, SubscriberSession, WebSocketTransport

__all__ = [
    "BroadcastHub",
    "ControlFrame",
    "FrameKind",
    "SubscriberSession",
    "Subscription",
    "WebSocketTransport",
]
