"""Listing routes: publish, browse, edit, renew, deactivate, delete."""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Response

from autotrade.api.deps import CurrentUser, Services
from autotrade.api.schemas import (
    DeactivateListingRequest,
    ListingCreateRequest,
    ListingUpdateRequest,
)
from autotrade.domain.models import Listing
from autotrade.listings.service import ListingService
from autotrade.realtime.events import EventType, RealtimeEvent
from autotrade.realtime.publisher import RealtimePublisher
from autotrade.trades.engine import trade_event

router = APIRouter(prefix="/api/listings", tags=["listings"])


async def _broadcast(services: Services, event_type: EventType, data: dict[str, object]) -> None:
    publisher: RealtimePublisher = services["publisher"]
    await publisher.broadcast(RealtimeEvent(type=event_type, data=data))


@router.post("", status_code=201)
async def create_listing(
    body: ListingCreateRequest,
    user_id: CurrentUser,
    services: Services,
) -> Listing:
    listings: ListingService = services["listings"]
    listing = listings.create_listing(user_id, body.model_dump(exclude_unset=True))
    await _broadcast(services, EventType.LISTING_ADDED, listing.model_dump(mode="json"))
    return listing


@router.get("")
async def browse_listings(
    services: Services,
    tag: str | None = None,
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
    seller_id: str | None = None,
) -> list[Listing]:
    listings: ListingService = services["listings"]
    return listings.browse_listings(
        tag=tag, min_price=min_price, max_price=max_price, seller_id=seller_id
    )


@router.get("/{listing_id}")
async def get_listing(listing_id: str, user_id: CurrentUser, services: Services) -> Listing:
    """Fetch a listing, counting the view."""
    listings: ListingService = services["listings"]
    return listings.record_view(listing_id, viewer_id=user_id)


@router.patch("/{listing_id}")
async def update_listing(
    listing_id: str,
    body: ListingUpdateRequest,
    user_id: CurrentUser,
    services: Services,
) -> Listing:
    listings: ListingService = services["listings"]
    listing = listings.update_listing(listing_id, user_id, body.model_dump(exclude_unset=True))
    await _broadcast(services, EventType.LISTING_UPDATED, listing.model_dump(mode="json"))
    return listing


@router.post("/{listing_id}/renew")
async def renew_listing(listing_id: str, user_id: CurrentUser, services: Services) -> Listing:
    listings: ListingService = services["listings"]
    listing = listings.renew_listing(listing_id, user_id)
    await _broadcast(services, EventType.LISTING_UPDATED, listing.model_dump(mode="json"))
    return listing


@router.post("/{listing_id}/deactivate")
async def deactivate_listing(
    listing_id: str,
    user_id: CurrentUser,
    services: Services,
    body: DeactivateListingRequest | None = None,
) -> Listing:
    listings: ListingService = services["listings"]
    reason = body.reason if body is not None else "Marked as sold"
    listing, cancelled = listings.deactivate_listing(listing_id, user_id, reason=reason)

    publisher: RealtimePublisher = services["publisher"]
    await publisher.publish_all(trade_event(EventType.TRADE_UPDATED, t) for t in cancelled)
    await _broadcast(services, EventType.LISTING_UPDATED, listing.model_dump(mode="json"))
    return listing


@router.delete("/{listing_id}", status_code=204)
async def delete_listing(listing_id: str, user_id: CurrentUser, services: Services) -> Response:
    listings: ListingService = services["listings"]
    listings.delete_listing(listing_id, user_id)
    await _broadcast(services, EventType.LISTING_DELETED, {"id": listing_id})
    return Response(status_code=204)
