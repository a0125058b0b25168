"""Reference-or-expanded union for entity fields in API views.

A trade stores only ids.  When a view is built, each referenced listing or
vehicle becomes either a :class:`Reference` (id only) or an ``Expanded*``
wrapper holding the full document.  The choice is made once, in
:func:`resolve_trade_view`.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from autotrade.domain.models import Listing, OfferTerms, Trade, TradeHistoryEntry, Vehicle
from autotrade.domain.types import Party, TradeStatus
from autotrade.state_machine.machine import TradeStateMachine

if TYPE_CHECKING:
    from autotrade.state.store import DocumentStore


class Reference(BaseModel):
    """A bare id pointing at another document."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["ref"] = "ref"
    id: str


class ExpandedVehicle(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["expanded"] = "expanded"
    entity: Vehicle


class ExpandedListing(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["expanded"] = "expanded"
    entity: Listing


VehicleRef = Annotated[Reference | ExpandedVehicle, Field(discriminator="kind")]
ListingRef = Annotated[Reference | ExpandedListing, Field(discriminator="kind")]


class SideView(BaseModel):
    """One side of a trade as presented to clients."""

    cash_amount: Decimal
    vehicles: list[VehicleRef]
    accepted: bool


class TradeView(BaseModel):
    """Client-facing representation of a trade."""

    id: str
    version: int
    status: TradeStatus
    turn: Party
    allowed_actions: list[str]
    listing: ListingRef
    offerer_id: str
    receiver_id: str
    offerer: SideView
    receiver: SideView
    last_countered_by: str | None
    message: str
    counter_message: str
    history: list[TradeHistoryEntry]
    created_at: datetime | None
    updated_at: datetime | None
    completed_at: datetime | None
    closed_at: datetime | None


def _vehicle_ref(store: DocumentStore, vehicle_id: str, expand: bool) -> Reference | ExpandedVehicle:
    if expand:
        vehicle = store.get(Vehicle, vehicle_id)
        if vehicle is not None:
            return ExpandedVehicle(entity=vehicle)
    return Reference(id=vehicle_id)


def _side(store: DocumentStore, terms: OfferTerms, accepted: bool, expand: bool) -> SideView:
    return SideView(
        cash_amount=terms.cash_amount,
        vehicles=[_vehicle_ref(store, vid, expand) for vid in terms.vehicle_ids],
        accepted=accepted,
    )


def resolve_trade_view(store: DocumentStore, trade: Trade, *, expand: bool = False) -> TradeView:
    """Build the client view of *trade*, expanding references when asked.

    Documents that no longer exist stay as plain references.

    Args:
        store: The document store to load referenced entities from.
        trade: The trade to present.
        expand: Load the listing and every referenced vehicle.

    Returns:
        The resolved :class:`TradeView`.
    """
    listing_ref: Reference | ExpandedListing = Reference(id=trade.listing_id)
    if expand:
        listing = store.get(Listing, trade.listing_id)
        if listing is not None:
            listing_ref = ExpandedListing(entity=listing)

    return TradeView(
        id=trade.id,
        version=trade.version,
        status=trade.status,
        turn=trade.turn,
        allowed_actions=[str(e) for e in TradeStateMachine(trade.status).get_valid_events()],
        listing=listing_ref,
        offerer_id=trade.offerer_id,
        receiver_id=trade.receiver_id,
        offerer=_side(store, trade.offerer, trade.offerer_accepted, expand),
        receiver=_side(store, trade.receiver, trade.receiver_accepted, expand),
        last_countered_by=trade.last_countered_by,
        message=trade.message,
        counter_message=trade.counter_message,
        history=list(trade.history),
        created_at=trade.created_at,
        updated_at=trade.updated_at,
        completed_at=trade.completed_at,
        closed_at=trade.closed_at,
    )
