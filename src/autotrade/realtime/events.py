"""Real-time event models and conversation addressing."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from autotrade.clock import utcnow


class EventType(StrEnum):
    """Type tags pushed to connected clients."""

    TRADE_CREATED = "TRADE_CREATED"
    TRADE_UPDATED = "TRADE_UPDATED"
    TRADE_COMPLETED = "TRADE_COMPLETED"
    LISTING_ADDED = "LISTING_ADDED"
    LISTING_UPDATED = "LISTING_UPDATED"
    LISTING_DELETED = "LISTING_DELETED"
    MESSAGE_RECEIVED = "MESSAGE_RECEIVED"
    VEHICLE_ADDED = "VEHICLE_ADDED"
    VEHICLE_UPDATED = "VEHICLE_UPDATED"
    USER_ONLINE = "USER_ONLINE"
    USER_OFFLINE = "USER_OFFLINE"
    TYPING_START = "TYPING_START"
    TYPING_STOP = "TYPING_STOP"


class RealtimeEvent(BaseModel):
    """A single pushed event: ``{"type", "data", "timestamp"}`` on the wire."""

    model_config = ConfigDict(frozen=True)

    type: EventType
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class OutboundEvent(BaseModel):
    """An event together with the users it is addressed to."""

    model_config = ConfigDict(frozen=True)

    event: RealtimeEvent
    recipients: tuple[str, ...]


def conversation_id(user_a: str, user_b: str) -> str:
    """Return the order-independent id of the conversation between two users."""
    return ":".join(sorted((user_a, user_b)))


def conversation_participants(conv_id: str) -> tuple[str, ...]:
    """Split a conversation id back into its participants."""
    return tuple(p for p in conv_id.split(":") if p)
