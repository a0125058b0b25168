"""Sale listings: publish, edit with history, renew, deactivate, browse.

Edits to price and text fields are appended to the listing's ``history``
before they are applied, so the record of what a buyer saw is never lost.
Renewal bumps a listing to the top of the browse order but is rate-limited
by a cooldown.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import timedelta
from decimal import Decimal
from typing import Any

import structlog

from autotrade.clock import Clock, utcnow
from autotrade.domain.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    RenewalCooldownError,
    ValidationFailedError,
)
from autotrade.domain.models import Listing, ListingChange, Trade, Vehicle, parse_model
from autotrade.state.store import DocumentStore
from autotrade.trades.locks import (
    cancel_open_trades,
    check_lockable,
    observe_closed,
    open_trades_for_listing,
)

logger = structlog.get_logger()

# Fields a seller may edit after publishing.
EDITABLE_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "price",
    "tags",
    "problems",
    "additional_features",
)


def _history_value(value: Any) -> str | list[str] | None:
    if value is None:
        return None
    if isinstance(value, list):
        return [str(v) for v in value]
    return str(value)


class ListingService:
    """Manage the ``listings`` collection and the listed-vehicle flags.

    Args:
        store: The document store.
        clock: Source of "now".
        renewal_cooldown: Minimum time between two renewals of a listing.
    """

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock = utcnow,
        renewal_cooldown: timedelta = timedelta(hours=12),
    ) -> None:
        self._store = store
        self._clock = clock
        self._cooldown = renewal_cooldown

    def create_listing(self, seller_id: str, data: dict[str, Any]) -> Listing:
        """Publish a listing for a vehicle the seller owns.

        Raises:
            NotFoundError: The vehicle does not exist.
            ForbiddenError: The seller does not own the vehicle.
            ConflictError: The vehicle is already listed, auctioned or in a trade.
            ValidationFailedError: The listing data is malformed.
        """
        vehicle_id = data.get("vehicle_id")
        if not vehicle_id:
            raise ValidationFailedError("vehicle_id is required")
        unknown = sorted(set(data) - {"vehicle_id", *EDITABLE_FIELDS})
        if unknown:
            raise ValidationFailedError(f"Unknown listing field(s): {', '.join(unknown)}")

        vehicle = self._store.require(Vehicle, vehicle_id)
        if vehicle.owner_id != seller_id:
            raise ForbiddenError("You can only list vehicles you own")
        check_lockable(vehicle)

        now = self._clock()
        listing = parse_model(
            Listing,
            {
                **data,
                "seller_id": seller_id,
                "original_price": data.get("price"),
                "last_renewed": now,
                "can_renew_after": now + self._cooldown,
            },
        )

        with self._store.transaction():
            self._store.insert(listing)
            vehicle.is_listed = True
            vehicle.listing_id = listing.id
            self._store.save(vehicle)

        logger.info(
            "listing_created",
            listing_id=listing.id,
            vehicle_id=vehicle.id,
            seller_id=seller_id,
            price=str(listing.price),
        )
        return listing

    def get_listing(self, listing_id: str) -> Listing:
        return self._store.require(Listing, listing_id)

    def update_listing(self, listing_id: str, seller_id: str, changes: dict[str, Any]) -> Listing:
        """Edit an active listing, recording every changed field in history.

        Raises:
            NotFoundError: The listing does not exist.
            ForbiddenError: Caller is not the seller.
            InvalidStateError: The listing is no longer active.
            ValidationFailedError: The changes are malformed.
        """
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationFailedError(f"Field(s) cannot be edited: {', '.join(unknown)}")

        listing = self._active_owned(listing_id, seller_id)
        candidate = parse_model(Listing, {**listing.model_dump(), **changes})

        now = self._clock()
        changed: list[str] = []
        for field in EDITABLE_FIELDS:
            old, new = getattr(listing, field), getattr(candidate, field)
            if old == new:
                continue
            candidate.history.append(
                ListingChange(
                    field=field,
                    old_value=_history_value(old),
                    new_value=_history_value(new),
                    changed_at=now,
                )
            )
            changed.append(field)

        if not changed:
            return listing
        candidate.last_edited_at = now
        self._store.save(candidate)
        logger.info("listing_updated", listing_id=listing_id, fields=changed)
        return candidate

    def renew_listing(self, listing_id: str, seller_id: str) -> Listing:
        """Move a listing back to the top of the browse order.

        Raises:
            RenewalCooldownError: The cooldown since the last renewal has not
                elapsed yet.
        """
        listing = self._active_owned(listing_id, seller_id)
        now = self._clock()
        if listing.can_renew_after is not None and not listing.can_renew(now):
            raise RenewalCooldownError(listing.can_renew_after, now)

        listing.last_renewed = now
        listing.can_renew_after = now + self._cooldown
        self._store.save(listing)
        logger.info(
            "listing_renewed",
            listing_id=listing_id,
            can_renew_after=listing.can_renew_after.isoformat(),
        )
        return listing

    def deactivate_listing(
        self,
        listing_id: str,
        seller_id: str,
        reason: str = "Marked as sold",
    ) -> tuple[Listing, list[Trade]]:
        """Take a listing off the market for good.

        Open trades on the listing are cancelled and their locks released.

        Returns:
            The deactivated listing and the trades that were cancelled.
        """
        listing = self._active_owned(listing_id, seller_id)
        now = self._clock()

        with self._store.transaction():
            listing.is_active = False
            listing.sold_at = now
            listing.deactivated_at = now
            listing.deactivated_reason = reason
            self._store.save(listing)
            self._unlist_vehicle(listing)
            cancelled = cancel_open_trades(
                self._store,
                listing.id,
                seller_id,
                now,
                message="The listing was taken off the market",
            )

        observe_closed(cancelled)
        logger.info(
            "listing_deactivated",
            listing_id=listing_id,
            reason=reason,
            trades_cancelled=len(cancelled),
        )
        return listing, cancelled

    def delete_listing(self, listing_id: str, seller_id: str) -> None:
        """Delete a listing that no open trade refers to.

        Raises:
            ConflictError: Open trades still reference the listing.
        """
        listing = self._owned(listing_id, seller_id)
        if open_trades_for_listing(self._store, listing_id):
            raise ConflictError("This listing has open trades; cancel or deactivate it first")

        with self._store.transaction():
            self._unlist_vehicle(listing)
            self._store.delete(Listing, listing_id)
        logger.info("listing_deleted", listing_id=listing_id, seller_id=seller_id)

    def record_view(self, listing_id: str, viewer_id: str | None = None) -> Listing:
        """Count a view; the seller looking at their own listing does not count."""
        listing = self._store.require(Listing, listing_id)
        if viewer_id == listing.seller_id:
            return listing
        listing.views += 1
        return self._store.save(listing)

    def browse_listings(
        self,
        tag: str | None = None,
        min_price: Decimal | None = None,
        max_price: Decimal | None = None,
        seller_id: str | None = None,
    ) -> list[Listing]:
        """Return active listings matching the filters, most recently renewed first."""
        filters: dict[str, Any] = {"is_active": True}
        if seller_id is not None:
            filters["seller_id"] = seller_id
        listings: Iterable[Listing] = self._store.find(Listing, **filters)
        if tag is not None:
            wanted = tag.strip().lower()
            listings = (li for li in listings if wanted in li.tags)
        if min_price is not None:
            listings = (li for li in listings if li.price >= min_price)
        if max_price is not None:
            listings = (li for li in listings if li.price <= max_price)
        return sorted(
            listings,
            key=lambda li: li.last_renewed or li.created_at,
            reverse=True,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _owned(self, listing_id: str, seller_id: str) -> Listing:
        listing = self._store.require(Listing, listing_id)
        if listing.seller_id != seller_id:
            raise ForbiddenError("Only the seller can change this listing")
        return listing

    def _active_owned(self, listing_id: str, seller_id: str) -> Listing:
        listing = self._owned(listing_id, seller_id)
        if not listing.is_active:
            raise InvalidStateError("This listing is no longer active")
        return listing

    def _unlist_vehicle(self, listing: Listing) -> None:
        vehicle = self._store.get(Vehicle, listing.vehicle_id)
        if vehicle is not None and vehicle.listing_id == listing.id:
            vehicle.is_listed = False
            vehicle.listing_id = None
            self._store.save(vehicle)
