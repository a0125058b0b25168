"""Tests for the listing service: publish, edit history, renew, deactivate, browse."""

from datetime import timedelta
from decimal import Decimal

import pytest
from conftest import BUYER, OTHER_BUYER, SELLER, STRANGER

from autotrade.domain.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    RenewalCooldownError,
    ValidationFailedError,
)
from autotrade.domain.models import Listing, Trade, Vehicle
from autotrade.domain.types import TradeAction, TradeStatus


class TestCreateListing:
    def test_publishes_and_flags_vehicle(self, listing_service, store, add_vehicle, clock) -> None:
        vehicle = add_vehicle(SELLER)
        listing = listing_service.create_listing(
            SELLER,
            {"vehicle_id": vehicle.id, "title": "Supra", "price": Decimal("45000"), "tags": ["JDM"]},
        )

        assert listing.is_active
        assert listing.original_price == Decimal("45000")
        assert listing.last_renewed == clock.now
        assert listing.can_renew_after == clock.now + timedelta(hours=12)
        assert listing.tags == ["jdm"]

        flagged = store.require(Vehicle, vehicle.id)
        assert flagged.is_listed
        assert flagged.listing_id == listing.id

    def test_requires_vehicle_id(self, listing_service) -> None:
        with pytest.raises(ValidationFailedError, match="vehicle_id"):
            listing_service.create_listing(SELLER, {"title": "x", "price": Decimal("1")})

    def test_rejects_unknown_fields(self, listing_service, add_vehicle) -> None:
        vehicle = add_vehicle(SELLER)
        with pytest.raises(ValidationFailedError, match="views"):
            listing_service.create_listing(
                SELLER, {"vehicle_id": vehicle.id, "title": "x", "price": Decimal("1"), "views": 99}
            )

    def test_must_own_vehicle(self, listing_service, buyer_vehicle) -> None:
        with pytest.raises(ForbiddenError):
            listing_service.create_listing(
                SELLER, {"vehicle_id": buyer_vehicle.id, "title": "x", "price": Decimal("1")}
            )

    def test_vehicle_already_listed(self, listing_service, listing) -> None:
        with pytest.raises(ConflictError, match="listed for sale"):
            listing_service.create_listing(
                SELLER, {"vehicle_id": listing.vehicle_id, "title": "again", "price": Decimal("1")}
            )

    def test_vehicle_in_trade_cannot_be_listed(self, listing_service, engine, listing, buyer_vehicle) -> None:
        engine.create_trade(listing.id, BUYER, {"vehicle_ids": [buyer_vehicle.id]})
        with pytest.raises(ConflictError, match="another active trade"):
            listing_service.create_listing(
                BUYER, {"vehicle_id": buyer_vehicle.id, "title": "NSX", "price": Decimal("1")}
            )

    def test_missing_vehicle(self, listing_service) -> None:
        with pytest.raises(NotFoundError):
            listing_service.create_listing(SELLER, {"vehicle_id": "nope", "title": "x", "price": "1"})

    def test_invalid_listing_data_leaves_vehicle_unflagged(self, listing_service, store, add_vehicle) -> None:
        vehicle = add_vehicle(SELLER)
        with pytest.raises(ValidationFailedError, match="title"):
            listing_service.create_listing(
                SELLER, {"vehicle_id": vehicle.id, "title": " ", "price": Decimal("1")}
            )
        assert not store.require(Vehicle, vehicle.id).is_listed


class TestUpdateListing:
    def test_price_change_is_recorded(self, listing_service, listing, clock) -> None:
        clock.advance(hours=1)
        updated = listing_service.update_listing(listing.id, SELLER, {"price": Decimal("27500")})

        assert updated.price == Decimal("27500")
        assert updated.original_price == Decimal("30000")
        assert updated.price_changed
        assert updated.last_edited_at == clock.now
        [change] = updated.history
        assert change.field == "price"
        assert change.old_value == "30000"
        assert change.new_value == "27500"
        assert change.changed_at == clock.now

    def test_history_is_append_only(self, listing_service, listing) -> None:
        listing_service.update_listing(listing.id, SELLER, {"title": "Skyline GT-R"})
        updated = listing_service.update_listing(listing.id, SELLER, {"title": "Skyline R34"})
        assert [(c.old_value, c.new_value) for c in updated.history] == [
            ("1999 Nissan Skyline", "Skyline GT-R"),
            ("Skyline GT-R", "Skyline R34"),
        ]

    def test_list_fields_recorded(self, listing_service, listing) -> None:
        updated = listing_service.update_listing(listing.id, SELLER, {"problems": ["rust"]})
        assert updated.history[-1].old_value == []
        assert updated.history[-1].new_value == ["rust"]

    def test_no_op_edit_records_nothing(self, listing_service, store, listing) -> None:
        unchanged = listing_service.update_listing(listing.id, SELLER, {"price": Decimal("30000")})
        assert unchanged.history == []
        assert store.require(Listing, listing.id).version == listing.version

    def test_only_seller_may_edit(self, listing_service, listing) -> None:
        with pytest.raises(ForbiddenError):
            listing_service.update_listing(listing.id, STRANGER, {"price": Decimal("1")})

    def test_read_only_fields(self, listing_service, listing) -> None:
        with pytest.raises(ValidationFailedError, match="original_price"):
            listing_service.update_listing(listing.id, SELLER, {"original_price": Decimal("1")})

    def test_inactive_listing(self, listing_service, listing) -> None:
        listing_service.deactivate_listing(listing.id, SELLER)
        with pytest.raises(InvalidStateError):
            listing_service.update_listing(listing.id, SELLER, {"title": "new"})

    def test_invalid_value(self, listing_service, listing) -> None:
        with pytest.raises(ValidationFailedError, match="price"):
            listing_service.update_listing(listing.id, SELLER, {"price": Decimal("-1")})


class TestRenewListing:
    def test_cooldown_blocks_early_renewal(self, listing_service, listing, clock) -> None:
        clock.advance(hours=1)
        with pytest.raises(RenewalCooldownError, match="11 more hour"):
            listing_service.renew_listing(listing.id, SELLER)

    def test_renews_after_cooldown(self, listing_service, listing, clock) -> None:
        clock.advance(hours=12)
        renewed = listing_service.renew_listing(listing.id, SELLER)
        assert renewed.last_renewed == clock.now
        assert renewed.can_renew_after == clock.now + timedelta(hours=12)

        clock.advance(hours=6)
        with pytest.raises(RenewalCooldownError):
            listing_service.renew_listing(listing.id, SELLER)

    def test_only_seller(self, listing_service, listing, clock) -> None:
        clock.advance(hours=13)
        with pytest.raises(ForbiddenError):
            listing_service.renew_listing(listing.id, BUYER)


class TestDeactivateListing:
    def test_cancels_open_trades_and_unlists(self, listing_service, engine, store, listing, buyer_vehicle) -> None:
        trade = engine.create_trade(listing.id, BUYER, {"vehicle_ids": [buyer_vehicle.id]}).trade

        deactivated, cancelled = listing_service.deactivate_listing(listing.id, SELLER, "Sold elsewhere")

        assert not deactivated.is_active
        assert deactivated.deactivated_reason == "Sold elsewhere"
        assert [t.id for t in cancelled] == [trade.id]

        stored = store.require(Trade, trade.id)
        assert stored.status == TradeStatus.CANCELLED
        assert stored.history[-1].action == TradeAction.CANCELLED
        assert stored.history[-1].actor_id == SELLER
        assert not store.require(Vehicle, buyer_vehicle.id).in_trade
        assert not store.require(Vehicle, listing.vehicle_id).is_listed

    def test_closed_trades_are_left_alone(self, listing_service, engine, store, listing) -> None:
        trade = engine.create_trade(listing.id, BUYER, {"cash_amount": "5"}).trade
        engine.cancel_or_reject(trade.id, SELLER, "rejected")
        _, cancelled = listing_service.deactivate_listing(listing.id, SELLER)
        assert cancelled == []
        assert store.require(Trade, trade.id).status == TradeStatus.REJECTED

    def test_twice_is_invalid(self, listing_service, listing) -> None:
        listing_service.deactivate_listing(listing.id, SELLER)
        with pytest.raises(InvalidStateError):
            listing_service.deactivate_listing(listing.id, SELLER)


class TestDeleteListing:
    def test_deletes_and_unlists(self, listing_service, store, listing) -> None:
        listing_service.delete_listing(listing.id, SELLER)
        assert store.get(Listing, listing.id) is None
        assert not store.require(Vehicle, listing.vehicle_id).is_listed

    def test_open_trades_block_delete(self, listing_service, engine, listing) -> None:
        engine.create_trade(listing.id, BUYER, {"cash_amount": "5"})
        with pytest.raises(ConflictError, match="open trades"):
            listing_service.delete_listing(listing.id, SELLER)

    def test_deactivated_listing_can_be_deleted(self, listing_service, engine, store, listing) -> None:
        engine.create_trade(listing.id, BUYER, {"cash_amount": "5"})
        listing_service.deactivate_listing(listing.id, SELLER)
        listing_service.delete_listing(listing.id, SELLER)
        assert store.get(Listing, listing.id) is None


class TestViewsAndBrowse:
    def test_views_exclude_seller(self, listing_service, listing) -> None:
        listing_service.record_view(listing.id, BUYER)
        listing_service.record_view(listing.id, SELLER)
        assert listing_service.record_view(listing.id, OTHER_BUYER).views == 2

    def test_browse_orders_by_renewal(self, listing_service, add_listing, clock) -> None:
        older = add_listing(seller_id="a")
        clock.advance(hours=1)
        newer = add_listing(seller_id="b")
        assert [li.id for li in listing_service.browse_listings()] == [newer.id, older.id]

        clock.advance(hours=12)
        listing_service.renew_listing(older.id, "a")
        assert [li.id for li in listing_service.browse_listings()] == [older.id, newer.id]

    def test_browse_filters(self, listing_service, add_listing) -> None:
        cheap = add_listing(seller_id="a", price="5000", tags=["project"])
        dear = add_listing(seller_id="b", price="90000", tags=["JDM"])

        assert [li.id for li in listing_service.browse_listings(tag="jdm")] == [dear.id]
        assert [li.id for li in listing_service.browse_listings(max_price=Decimal("10000"))] == [cheap.id]
        assert [li.id for li in listing_service.browse_listings(min_price=Decimal("10000"))] == [dear.id]
        assert [li.id for li in listing_service.browse_listings(seller_id="a")] == [cheap.id]

    def test_browse_hides_inactive(self, listing_service, listing) -> None:
        listing_service.deactivate_listing(listing.id, SELLER)
        assert listing_service.browse_listings() == []
