"""Best-effort delivery of real-time events to connected users.

Delivery is at-most-once and fire-and-forget: events go only to currently
registered connections, a failed send is logged and counted but never
retried, and nothing here can undo the mutation that produced the event.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from autotrade.observability.metrics import REALTIME_DELIVERY_FAILURES
from autotrade.realtime.events import OutboundEvent, RealtimeEvent, conversation_participants
from autotrade.realtime.registry import ConnectionRegistry

logger = structlog.get_logger()


class RealtimePublisher:
    """Push :class:`RealtimeEvent` payloads through a :class:`ConnectionRegistry`.

    Args:
        registry: The registry of live connections to deliver through.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    async def publish_to_user(self, user_id: str, event: RealtimeEvent) -> int:
        """Send *event* to every live connection of *user_id*.

        Returns:
            The number of connections the event was written to.
        """
        delivered = 0
        payload = event.to_wire()
        for connection in self._registry.connections_for(user_id):
            try:
                await connection.send_json(payload)
                delivered += 1
            except Exception:
                REALTIME_DELIVERY_FAILURES.inc()
                logger.warning(
                    "realtime_delivery_failed",
                    user_id=user_id,
                    event_type=event.type.value,
                    exc_info=True,
                )
        if delivered:
            logger.debug("realtime_event_sent", user_id=user_id, event_type=event.type.value)
        return delivered

    async def publish_to_users(
        self,
        user_ids: Iterable[str],
        event: RealtimeEvent,
        exclude: str | None = None,
    ) -> int:
        """Send *event* once to each distinct user, skipping *exclude*."""
        delivered = 0
        for user_id in dict.fromkeys(user_ids):
            if user_id != exclude:
                delivered += await self.publish_to_user(user_id, event)
        return delivered

    async def publish_to_conversation(
        self,
        conv_id: str,
        event: RealtimeEvent,
        exclude: str | None = None,
    ) -> int:
        """Send *event* to the participants of a conversation."""
        return await self.publish_to_users(conversation_participants(conv_id), event, exclude)

    async def broadcast(self, event: RealtimeEvent, exclude: str | None = None) -> int:
        """Send *event* to every connected user except *exclude*."""
        return await self.publish_to_users(self._registry.active_users(), event, exclude)

    async def publish_all(self, outbound: Iterable[OutboundEvent]) -> int:
        """Deliver a batch of addressed events, in order."""
        delivered = 0
        for item in outbound:
            delivered += await self.publish_to_users(item.recipients, item.event)
        return delivered
