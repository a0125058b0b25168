"""Tests for direct messaging."""

import pytest
from conftest import BUYER, OTHER_BUYER, SELLER, STRANGER

from autotrade.domain.errors import ForbiddenError, NotFoundError, ValidationFailedError
from autotrade.domain.models import Message


class TestSendMessage:
    def test_stores_message(self, message_service, store, clock) -> None:
        msg = message_service.send_message(BUYER, SELLER, "  Is it still available?  ")
        assert msg.content == "Is it still available?"
        assert msg.timestamp == clock.now
        assert not msg.read
        assert store.require(Message, msg.id) == msg

    def test_cannot_message_yourself(self, message_service) -> None:
        with pytest.raises(ValidationFailedError, match="yourself"):
            message_service.send_message(BUYER, BUYER, "hi")

    def test_empty_content(self, message_service) -> None:
        with pytest.raises(ValidationFailedError, match="content"):
            message_service.send_message(BUYER, SELLER, "   ")

    def test_length_limit(self, message_service) -> None:
        message_service.send_message(BUYER, SELLER, "x" * 2000)
        with pytest.raises(ValidationFailedError, match="2000"):
            message_service.send_message(BUYER, SELLER, "x" * 2001)

    def test_linked_trade_must_include_sender(self, message_service, engine, listing) -> None:
        trade = engine.create_trade(listing.id, BUYER, {"cash_amount": "5"}).trade
        linked = message_service.send_message(BUYER, SELLER, "About the trade", trade_id=trade.id)
        assert linked.trade_id == trade.id
        with pytest.raises(ForbiddenError):
            message_service.send_message(STRANGER, SELLER, "me too", trade_id=trade.id)

    def test_linked_records_must_exist(self, message_service) -> None:
        with pytest.raises(NotFoundError):
            message_service.send_message(BUYER, SELLER, "hi", trade_id="nope")
        with pytest.raises(NotFoundError):
            message_service.send_message(BUYER, SELLER, "hi", listing_id="nope")


class TestConversations:
    def test_conversation_in_time_order(self, message_service, clock) -> None:
        first = message_service.send_message(BUYER, SELLER, "Offer sent")
        clock.advance(minutes=1)
        second = message_service.send_message(SELLER, BUYER, "Looking now")
        message_service.send_message(OTHER_BUYER, SELLER, "unrelated")

        assert [m.id for m in message_service.get_conversation(SELLER, BUYER)] == [first.id, second.id]

    def test_inbox_summaries(self, message_service, clock) -> None:
        message_service.send_message(BUYER, SELLER, "one")
        clock.advance(minutes=1)
        message_service.send_message(BUYER, SELLER, "two")
        clock.advance(minutes=1)
        latest = message_service.send_message(SELLER, OTHER_BUYER, "reply")

        summaries = message_service.list_conversations(SELLER)
        assert [s.partner_id for s in summaries] == [OTHER_BUYER, BUYER]
        assert summaries[0].last_message.id == latest.id
        assert summaries[0].unread_count == 0
        assert summaries[1].unread_count == 2
        assert summaries[1].conversation_id == f"{BUYER}:{SELLER}"

    def test_mark_read(self, message_service, clock) -> None:
        message_service.send_message(BUYER, SELLER, "one")
        message_service.send_message(BUYER, SELLER, "two")
        message_service.send_message(SELLER, BUYER, "mine")
        assert message_service.unread_count(SELLER) == 2

        clock.advance(minutes=5)
        assert message_service.mark_conversation_read(SELLER, BUYER) == 2
        assert message_service.unread_count(SELLER) == 0
        assert message_service.unread_count(BUYER) == 1
        assert all(
            m.read_at == clock.now
            for m in message_service.get_conversation(SELLER, BUYER)
            if m.receiver_id == SELLER
        )
        assert message_service.mark_conversation_read(SELLER, BUYER) == 0


class TestDeleteMessage:
    def test_sender_deletes(self, message_service, store) -> None:
        msg = message_service.send_message(BUYER, SELLER, "oops")
        message_service.delete_message(msg.id, BUYER)
        assert store.get(Message, msg.id) is None

    def test_receiver_cannot_delete(self, message_service) -> None:
        msg = message_service.send_message(BUYER, SELLER, "keep")
        with pytest.raises(ForbiddenError):
            message_service.delete_message(msg.id, SELLER)
