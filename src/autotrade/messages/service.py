"""Direct messages between users, grouped into two-party conversations."""

from __future__ import annotations

from datetime import datetime

import structlog
from pydantic import BaseModel

from autotrade.clock import Clock, utcnow
from autotrade.domain.errors import ForbiddenError, ValidationFailedError
from autotrade.domain.models import Listing, Message, Trade, parse_model
from autotrade.realtime.events import conversation_id
from autotrade.state.store import DocumentStore

logger = structlog.get_logger()


class ConversationSummary(BaseModel):
    """One row of a user's inbox."""

    conversation_id: str
    partner_id: str
    last_message: Message
    unread_count: int = 0


class MessageService:
    """Send, read and delete messages.

    Args:
        store: The document store.
        clock: Source of message timestamps.
        max_length: Longest allowed message body, in characters.
    """

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock = utcnow,
        max_length: int = 2000,
    ) -> None:
        self._store = store
        self._clock = clock
        self._max_length = max_length

    def send_message(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        trade_id: str | None = None,
        listing_id: str | None = None,
    ) -> Message:
        """Store a message from *sender_id* to *receiver_id*.

        Raises:
            ValidationFailedError: Messaging yourself, or empty/oversized content.
            NotFoundError: The linked trade or listing does not exist.
            ForbiddenError: The sender is not a party to the linked trade.
        """
        if sender_id == receiver_id:
            raise ValidationFailedError("You cannot send a message to yourself")
        if len(content.strip()) > self._max_length:
            raise ValidationFailedError(
                f"Message must be at most {self._max_length} characters"
            )
        if trade_id is not None:
            trade = self._store.require(Trade, trade_id)
            if trade.party_of(sender_id) is None:
                raise ForbiddenError("You are not a party to this trade")
        if listing_id is not None:
            self._store.require(Listing, listing_id)

        message = parse_model(
            Message,
            {
                "sender_id": sender_id,
                "receiver_id": receiver_id,
                "content": content,
                "timestamp": self._clock(),
                "trade_id": trade_id,
                "listing_id": listing_id,
            },
        )
        self._store.insert(message)
        logger.info(
            "message_sent",
            message_id=message.id,
            conversation_id=conversation_id(sender_id, receiver_id),
        )
        return message

    def get_conversation(self, user_id: str, other_id: str) -> list[Message]:
        """Return every message between the two users, oldest first."""
        messages = [
            *self._store.find(Message, sender_id=user_id, receiver_id=other_id),
            *self._store.find(Message, sender_id=other_id, receiver_id=user_id),
        ]
        return sorted(messages, key=_sort_key)

    def list_conversations(self, user_id: str) -> list[ConversationSummary]:
        """Return one summary per conversation partner, most recent first."""
        latest: dict[str, Message] = {}
        unread: dict[str, int] = {}
        for message in self._messages_of(user_id):
            partner = message.receiver_id if message.sender_id == user_id else message.sender_id
            current = latest.get(partner)
            if current is None or _sort_key(message) >= _sort_key(current):
                latest[partner] = message
            if message.receiver_id == user_id and not message.read:
                unread[partner] = unread.get(partner, 0) + 1

        summaries = [
            ConversationSummary(
                conversation_id=conversation_id(user_id, partner),
                partner_id=partner,
                last_message=message,
                unread_count=unread.get(partner, 0),
            )
            for partner, message in latest.items()
        ]
        summaries.sort(key=lambda s: _sort_key(s.last_message), reverse=True)
        return summaries

    def mark_conversation_read(self, user_id: str, other_id: str) -> int:
        """Mark every unread message from *other_id* to *user_id* as read.

        Returns:
            The number of messages marked.
        """
        now = self._clock()
        marked = 0
        with self._store.transaction():
            for message in self._store.find(
                Message, sender_id=other_id, receiver_id=user_id, read=False
            ):
                message.read = True
                message.read_at = now
                self._store.save(message)
                marked += 1
        if marked:
            logger.info("conversation_read", user_id=user_id, other_id=other_id, marked=marked)
        return marked

    def unread_count(self, user_id: str) -> int:
        return len(self._store.find(Message, receiver_id=user_id, read=False))

    def delete_message(self, message_id: str, user_id: str) -> None:
        """Delete a message; only its sender may do so.

        Raises:
            NotFoundError: The message does not exist.
            ForbiddenError: Caller is not the sender.
        """
        message = self._store.require(Message, message_id)
        if message.sender_id != user_id:
            raise ForbiddenError("You can only delete messages you sent")
        self._store.delete(Message, message_id)
        logger.info("message_deleted", message_id=message_id)

    def _messages_of(self, user_id: str) -> list[Message]:
        return [
            *self._store.find(Message, sender_id=user_id),
            *self._store.find(Message, receiver_id=user_id),
        ]


def _sort_key(message: Message) -> datetime:
    return message.timestamp
