"""Real-time delivery: connection registry, event models, and publisher."""

from autotrade.realtime.events import (
    EventType,
    OutboundEvent,
    RealtimeEvent,
    conversation_id,
    conversation_participants,
)
from autotrade.realtime.publisher import RealtimePublisher
from autotrade.realtime.registry import Connection, ConnectionRegistry

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "EventType",
    "OutboundEvent",
    "RealtimeEvent",
    "RealtimePublisher",
    "conversation_id",
    "conversation_participants",
]
