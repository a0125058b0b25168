"""Messaging routes."""

from __future__ import annotations

from fastapi import APIRouter, Response

from autotrade.api.deps import CurrentUser, Services
from autotrade.api.schemas import SendMessageRequest
from autotrade.domain.models import Message
from autotrade.messages.service import ConversationSummary, MessageService
from autotrade.realtime.events import EventType, RealtimeEvent
from autotrade.realtime.publisher import RealtimePublisher

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.post("", status_code=201)
async def send_message(body: SendMessageRequest, user_id: CurrentUser, services: Services) -> Message:
    messages: MessageService = services["messages"]
    message = messages.send_message(
        user_id,
        body.receiver_id,
        body.content,
        trade_id=body.trade_id,
        listing_id=body.listing_id,
    )
    publisher: RealtimePublisher = services["publisher"]
    await publisher.publish_to_user(
        message.receiver_id,
        RealtimeEvent(type=EventType.MESSAGE_RECEIVED, data=message.model_dump(mode="json")),
    )
    return message


@router.get("/conversations")
async def list_conversations(user_id: CurrentUser, services: Services) -> list[ConversationSummary]:
    messages: MessageService = services["messages"]
    return messages.list_conversations(user_id)


@router.get("/unread")
async def unread_count(user_id: CurrentUser, services: Services) -> dict[str, int]:
    messages: MessageService = services["messages"]
    return {"unread": messages.unread_count(user_id)}


@router.get("/conversations/{other_id}")
async def get_conversation(other_id: str, user_id: CurrentUser, services: Services) -> list[Message]:
    messages: MessageService = services["messages"]
    return messages.get_conversation(user_id, other_id)


@router.post("/conversations/{other_id}/read")
async def mark_conversation_read(
    other_id: str, user_id: CurrentUser, services: Services
) -> dict[str, int]:
    messages: MessageService = services["messages"]
    return {"marked": messages.mark_conversation_read(user_id, other_id)}


@router.delete("/{message_id}", status_code=204)
async def delete_message(message_id: str, user_id: CurrentUser, services: Services) -> Response:
    messages: MessageService = services["messages"]
    messages.delete_message(message_id, user_id)
    return Response(status_code=204)
