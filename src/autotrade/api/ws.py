"""WebSocket endpoint delivering real-time events to a signed-in user.

Connect with ``/ws?token=<bearer token>``.  Client frames are JSON objects
with a ``type``:

- ``PING`` is answered with ``PONG``.
- ``TYPING_START`` / ``TYPING_STOP`` with ``data.conversation_id`` are relayed
  to the other participant of that conversation.

Presence events are broadcast only when ``BROADCAST_PRESENCE`` is enabled.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from autotrade.auth.identity import TokenIdentity
from autotrade.clock import utcnow
from autotrade.domain.errors import AuthenticationError
from autotrade.realtime.events import EventType, RealtimeEvent, conversation_participants
from autotrade.realtime.publisher import RealtimePublisher
from autotrade.realtime.registry import ConnectionRegistry

logger = structlog.get_logger()

router = APIRouter()

_TYPING = {EventType.TYPING_START.value, EventType.TYPING_STOP.value}


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json(
        {"type": "ERROR", "data": {"message": message}, "timestamp": utcnow().isoformat()}
    )


async def _handle_frame(
    websocket: WebSocket,
    user_id: str,
    frame: dict[str, Any],
    publisher: RealtimePublisher,
) -> None:
    kind = frame.get("type")
    if kind == "PING":
        await websocket.send_json({"type": "PONG", "data": {}, "timestamp": utcnow().isoformat()})
        return
    if kind in _TYPING:
        data = frame.get("data") or {}
        conv_id = data.get("conversation_id") if isinstance(data, dict) else None
        if not isinstance(conv_id, str) or user_id not in conversation_participants(conv_id):
            await _send_error(websocket, "Unknown conversation")
            return
        event = RealtimeEvent(
            type=EventType(kind),
            data={"conversation_id": conv_id, "user_id": user_id},
        )
        await publisher.publish_to_conversation(conv_id, event, exclude=user_id)
        return
    await _send_error(websocket, f"Unsupported message type: {kind}")


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str | None = None) -> None:
    services: dict[str, Any] = websocket.app.state.services
    identity: TokenIdentity = services["identity"]
    registry: ConnectionRegistry = services["registry"]
    publisher: RealtimePublisher = services["publisher"]
    broadcast_presence: bool = services["_settings"].broadcast_presence

    try:
        user_id = identity.resolve(token)
    except AuthenticationError:
        logger.info("websocket_rejected", reason="unauthenticated")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    first = registry.register(user_id, websocket)
    logger.info("websocket_connected", user_id=user_id, connections=len(registry))
    if first and broadcast_presence:
        await publisher.broadcast(
            RealtimeEvent(type=EventType.USER_ONLINE, data={"user_id": user_id}),
            exclude=user_id,
        )

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await _send_error(websocket, "Frames must be JSON objects")
                continue
            if not isinstance(frame, dict):
                await _send_error(websocket, "Frames must be JSON objects")
                continue
            await _handle_frame(websocket, user_id, frame, publisher)
    except WebSocketDisconnect:
        pass
    finally:
        last = registry.deregister(user_id, websocket)
        logger.info("websocket_disconnected", user_id=user_id, connections=len(registry))
        if last and broadcast_presence:
            await publisher.broadcast(
                RealtimeEvent(type=EventType.USER_OFFLINE, data={"user_id": user_id}),
                exclude=user_id,
            )
