"""Trade Negotiation Engine: offer, counter-offer, acceptance and completion.

Every mutating operation loads what it needs, validates everything, and only
then writes -- all inside one :meth:`DocumentStore.transaction` so a failure
leaves no partial change behind.  Operations return a :class:`TradeResult`
whose events the caller publishes after the commit.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from operator import attrgetter
from typing import Any

import structlog
from pydantic import BaseModel, Field

from autotrade.clock import Clock, utcnow
from autotrade.domain.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from autotrade.domain.models import (
    CounterProposal,
    Listing,
    OfferTerms,
    Trade,
    Vehicle,
    parse_model,
)
from autotrade.domain.types import CLOSING_ACTIONS, Party, TradeAction, TradeStatus
from autotrade.observability.metrics import ACTIVE_TRADES
from autotrade.realtime.events import EventType, OutboundEvent, RealtimeEvent
from autotrade.state.idempotency import IdempotencyLedger
from autotrade.state.store import DocumentStore
from autotrade.state_machine import TradeEvent, TradeStateMachine
from autotrade.trades.locks import (
    cancel_open_trades,
    check_lockable,
    lock_vehicles,
    observe_closed,
    release_vehicles,
)

logger = structlog.get_logger()

_CLOSING_EVENTS: dict[TradeAction, TradeEvent] = {
    TradeAction.REJECTED: TradeEvent.REJECT,
    TradeAction.CANCELLED: TradeEvent.CANCEL,
    TradeAction.DECLINED: TradeEvent.DECLINE,
}


class TradeResult(BaseModel):
    """Outcome of an engine operation.

    Attributes:
        trade: The trade as it stands after the operation.
        events: Real-time events to publish once the write has committed.
        replayed: True when the call was answered from an idempotency key
            or was a no-op, so nothing changed.
    """

    trade: Trade
    events: list[OutboundEvent] = Field(default_factory=list)
    replayed: bool = False


def trade_event(event_type: EventType, trade: Trade) -> OutboundEvent:
    """Address *event_type* carrying *trade* to both of its parties."""
    return OutboundEvent(
        event=RealtimeEvent(type=event_type, data=trade.model_dump(mode="json")),
        recipients=trade.participants,
    )


class TradeEngine:
    """Apply trade operations against a :class:`DocumentStore`.

    Args:
        store: The document store holding trades, listings and vehicles.
        ledger: Idempotency ledger; without one, keys are ignored.
        clock: Source of "now" for history entries and timestamps.
    """

    def __init__(
        self,
        store: DocumentStore,
        ledger: IdempotencyLedger | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._clock = clock

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_trade(
        self,
        listing_id: str,
        offerer_id: str,
        offer: OfferTerms | dict[str, Any],
        message: str = "",
        idempotency_key: str | None = None,
    ) -> TradeResult:
        """Open a trade against a listing.

        The receiver side starts as the listing's vehicle with no cash.
        Every offered vehicle is locked to the new trade.

        Raises:
            NotFoundError: Listing or an offered vehicle does not exist.
            InvalidStateError: The listing is no longer active.
            ForbiddenError: The offerer is the seller or does not own a vehicle.
            ConflictError: A vehicle is locked, listed or auctioned, or the
                offerer already has an open trade on this listing.
            ValidationFailedError: The offer is malformed or empty.
        """
        replay = self._replay(idempotency_key, offerer_id, "create", listing_id)
        if replay is not None:
            return replay

        offer = parse_model(OfferTerms, offer)
        listing = self._store.require(Listing, listing_id)
        if not listing.is_active:
            raise InvalidStateError("This listing is no longer active")
        if listing.seller_id == offerer_id:
            raise ForbiddenError("You cannot make an offer on your own listing")
        if offer.is_empty:
            raise ValidationFailedError("An offer must include cash or at least one vehicle")

        existing = [
            t
            for t in self._store.find(Trade, listing_id=listing_id, offerer_id=offerer_id)
            if not t.is_terminal
        ]
        if existing:
            raise ConflictError("You already have an active trade for this listing")

        vehicles = self._owned_vehicles(offer.vehicle_ids, offerer_id, "you")
        for vehicle in vehicles.values():
            check_lockable(vehicle)

        now = self._clock()
        trade = Trade(
            listing_id=listing.id,
            listing_vehicle_id=listing.vehicle_id,
            offerer_id=offerer_id,
            receiver_id=listing.seller_id,
            offerer=offer,
            receiver=OfferTerms(vehicle_ids=[listing.vehicle_id]),
            message=message,
        )
        trade.record(TradeAction.CREATED, offerer_id, now, message)

        with self._store.transaction():
            self._store.insert(trade)
            lock_vehicles(self._store, vehicles.values(), trade.id)
            self._remember(idempotency_key, offerer_id, "create", listing_id, trade.id)

        ACTIVE_TRADES.inc()
        logger.info(
            "trade_created",
            trade_id=trade.id,
            listing_id=listing.id,
            offerer_id=offerer_id,
            receiver_id=listing.seller_id,
            vehicle_count=len(vehicles),
        )
        return TradeResult(trade=trade, events=[trade_event(EventType.TRADE_CREATED, trade)])

    # ------------------------------------------------------------------
    # Counter
    # ------------------------------------------------------------------

    def counter_offer(
        self,
        trade_id: str,
        actor_id: str,
        proposal: CounterProposal | dict[str, Any],
        message: str = "",
        idempotency_key: str | None = None,
    ) -> TradeResult:
        """Replace one or both sides of the terms and hand the turn over.

        Both acceptance flags reset.  Vehicles no longer in the terms are
        released and newly added ones locked.

        Raises:
            NotFoundError: Trade or a proposed vehicle does not exist.
            ForbiddenError: Actor is not a party, or a vehicle is on the
                wrong side.
            InvalidStateError: The trade is terminal or it is not the
                actor's turn.
            ConflictError: A newly added vehicle is locked, listed elsewhere
                or auctioned.
            ValidationFailedError: The proposal revises neither side or would
                leave nothing on either side.
        """
        replay = self._replay(idempotency_key, actor_id, "counter", trade_id)
        if replay is not None:
            return replay

        proposal = parse_model(CounterProposal, proposal)
        trade = self._store.require(Trade, trade_id)
        party = self._require_party(trade, actor_id)

        status = TradeStateMachine(trade.status).trigger(TradeEvent.COUNTER)
        if trade.turn is not party:
            raise InvalidStateError("It is not your turn to counter this trade")

        offerer_terms = proposal.offerer or trade.offerer
        receiver_terms = proposal.receiver or trade.receiver
        if offerer_terms.is_empty and receiver_terms.is_empty:
            raise ValidationFailedError("A counter-offer must leave something on the table")

        vehicles = self._owned_vehicles(
            offerer_terms.vehicle_ids, trade.offerer_id, "the offerer"
        )
        vehicles.update(
            self._owned_vehicles(receiver_terms.vehicle_ids, trade.receiver_id, "the receiver")
        )

        held = set(trade.locked_vehicle_ids())
        trade.offerer = offerer_terms
        trade.receiver = receiver_terms
        wanted = set(trade.locked_vehicle_ids())
        to_lock = [vehicles[vid] for vid in trade.locked_vehicle_ids() if vid not in held]
        for vehicle in to_lock:
            check_lockable(vehicle)

        now = self._clock()
        trade.offerer_accepted = False
        trade.receiver_accepted = False
        trade.turn = party.other
        trade.last_countered_by = actor_id
        trade.counter_message = message
        trade.status = status
        trade.record(TradeAction.COUNTERED, actor_id, now, message)

        with self._store.transaction():
            release_vehicles(self._store, sorted(held - wanted), trade.id)
            lock_vehicles(self._store, to_lock, trade.id)
            self._store.save(trade)
            self._remember(idempotency_key, actor_id, "counter", trade.id, trade.id)

        logger.info(
            "trade_countered",
            trade_id=trade.id,
            actor_id=actor_id,
            turn=trade.turn.value,
            released=len(held - wanted),
            locked=len(to_lock),
        )
        return TradeResult(trade=trade, events=[trade_event(EventType.TRADE_UPDATED, trade)])

    # ------------------------------------------------------------------
    # Accept / complete
    # ------------------------------------------------------------------

    def accept_offer(
        self,
        trade_id: str,
        actor_id: str,
        idempotency_key: str | None = None,
    ) -> TradeResult:
        """Accept the current terms on behalf of the actor's side.

        When the other side has already accepted, the trade completes in the
        same operation.

        Raises:
            NotFoundError: Trade does not exist.
            ForbiddenError: Actor is not a party.
            InvalidStateError: The trade is terminal or the actor already
                accepted these terms.
        """
        replay = self._replay(idempotency_key, actor_id, "accept", trade_id)
        if replay is not None:
            return replay

        trade = self._store.require(Trade, trade_id)
        party = self._require_party(trade, actor_id)
        if trade.is_terminal:
            raise InvalidTransitionError(trade.status, TradeEvent.ACCEPT)
        if trade.accepted_by(party):
            raise InvalidStateError("You have already accepted these terms")

        now = self._clock()
        if trade.accepted_by(party.other):
            self._set_accepted(trade, party)
            return self._complete(trade, actor_id, now, idempotency_key, "accept")

        status = TradeStateMachine(trade.status).trigger(TradeEvent.ACCEPT)
        self._set_accepted(trade, party)
        trade.status = status
        trade.record(TradeAction.ACCEPTED, actor_id, now)

        with self._store.transaction():
            self._store.save(trade)
            self._remember(idempotency_key, actor_id, "accept", trade.id, trade.id)

        logger.info(
            "trade_accepted",
            trade_id=trade.id,
            actor_id=actor_id,
            party=party.value,
            awaiting=trade.user_for(party.other),
        )
        return TradeResult(trade=trade, events=[trade_event(EventType.TRADE_UPDATED, trade)])

    def complete_trade(self, trade_id: str, actor_id: str) -> TradeResult:
        """Complete a trade both parties have accepted.

        Calling this on an already completed trade returns it unchanged.

        Raises:
            NotFoundError: Trade does not exist.
            ForbiddenError: Actor is not a party.
            InvalidStateError: The trade is terminal or not yet accepted by
                both parties.
        """
        trade = self._store.require(Trade, trade_id)
        self._require_party(trade, actor_id)
        if trade.status == TradeStatus.COMPLETED:
            logger.info("trade_already_completed", trade_id=trade.id)
            return TradeResult(trade=trade, replayed=True)
        if trade.is_terminal:
            raise InvalidTransitionError(trade.status, TradeEvent.COMPLETE)
        if not (trade.offerer_accepted and trade.receiver_accepted):
            raise InvalidStateError("Both parties must accept before the trade can complete")
        return self._complete(trade, actor_id, self._clock())

    def _complete(
        self,
        trade: Trade,
        actor_id: str,
        now: datetime,
        idempotency_key: str | None = None,
        operation: str = "complete",
    ) -> TradeResult:
        status = TradeStateMachine(trade.status).trigger(TradeEvent.COMPLETE)

        to_receiver = self._owned_vehicles(
            trade.offerer.vehicle_ids, trade.offerer_id, "the offerer"
        )
        to_offerer = self._owned_vehicles(
            trade.receiver.vehicle_ids, trade.receiver_id, "the receiver"
        )
        listing = self._store.get(Listing, trade.listing_id)
        sold_price = trade.offerer.cash_amount + sum(
            (v.valuation for v in to_receiver.values()), Decimal("0")
        )

        with self._store.transaction():
            for vehicle in to_receiver.values():
                self._transfer(vehicle, trade.receiver_id)
            for vehicle in to_offerer.values():
                self._transfer(vehicle, trade.offerer_id)

            cancelled: list[Trade] = []
            if listing is not None:
                if listing.vehicle_id not in to_offerer:
                    self._unlist(listing.vehicle_id, listing.id)
                if listing.is_active:
                    listing.is_active = False
                    listing.sold_at = now
                    listing.sold_to = trade.offerer_id
                    listing.sold_price = sold_price
                    listing.deactivated_at = now
                    listing.deactivated_reason = f"Sold through trade {trade.id}"
                    self._store.save(listing)
                cancelled = cancel_open_trades(
                    self._store,
                    listing.id,
                    trade.receiver_id,
                    now,
                    exclude_trade_id=trade.id,
                    message="The listing was sold through another trade",
                )

            trade.status = status
            trade.completed_at = now
            trade.closed_at = now
            trade.record(TradeAction.COMPLETED, actor_id, now)
            self._store.save(trade)
            self._remember(idempotency_key, actor_id, operation, trade.id, trade.id)

        observe_closed([trade, *cancelled])
        logger.info(
            "trade_completed",
            trade_id=trade.id,
            listing_id=trade.listing_id,
            sold_price=str(sold_price),
            vehicles_transferred=len(to_receiver) + len(to_offerer),
            competing_cancelled=len(cancelled),
        )
        events = [trade_event(EventType.TRADE_COMPLETED, trade)]
        events.extend(trade_event(EventType.TRADE_UPDATED, t) for t in cancelled)
        return TradeResult(trade=trade, events=events)

    # ------------------------------------------------------------------
    # Reject / cancel / decline
    # ------------------------------------------------------------------

    def cancel_or_reject(
        self,
        trade_id: str,
        actor_id: str,
        action: TradeAction | str,
        message: str = "",
        idempotency_key: str | None = None,
    ) -> TradeResult:
        """Close a trade without completing it.

        Every vehicle locked by the trade is released; the listing stays
        active.

        Raises:
            NotFoundError: Trade does not exist.
            ForbiddenError: Actor is not a party.
            InvalidStateError: The transition is not allowed from the
                current status (e.g. declining before any acceptance).
            ValidationFailedError: *action* is not a closing action.
        """
        try:
            action = TradeAction(action)
        except ValueError:
            action = None
        if action not in CLOSING_ACTIONS:
            raise ValidationFailedError("Action must be one of: rejected, cancelled, declined")

        replay = self._replay(idempotency_key, actor_id, action.value, trade_id)
        if replay is not None:
            return replay

        trade = self._store.require(Trade, trade_id)
        party = self._require_party(trade, actor_id)
        status = TradeStateMachine(trade.status).trigger(_CLOSING_EVENTS[action])
        if action is TradeAction.DECLINED and trade.accepted_by(party):
            raise InvalidStateError("You already accepted these terms; cancel the trade instead")

        now = self._clock()
        trade.status = status
        trade.closed_at = now
        trade.record(action, actor_id, now, message)

        with self._store.transaction():
            released = release_vehicles(self._store, trade.locked_vehicle_ids(), trade.id)
            self._store.save(trade)
            self._remember(idempotency_key, actor_id, action.value, trade.id, trade.id)

        observe_closed([trade])
        logger.info(
            "trade_closed",
            trade_id=trade.id,
            actor_id=actor_id,
            status=status.value,
            released=len(released),
        )
        return TradeResult(trade=trade, events=[trade_event(EventType.TRADE_UPDATED, trade)])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_trade(self, trade_id: str, actor_id: str) -> Trade:
        """Return a trade visible to *actor_id*.

        Raises:
            NotFoundError: Trade does not exist.
            ForbiddenError: Actor is not a party.
        """
        trade = self._store.require(Trade, trade_id)
        self._require_party(trade, actor_id)
        return trade

    def list_trades(self, user_id: str, status: TradeStatus | str | None = None) -> list[Trade]:
        """Return every trade *user_id* is party to, newest first."""
        filters: dict[str, Any] = {}
        if status is not None:
            filters["status"] = TradeStatus(status).value
        trades = {
            t.id: t for t in self._store.find(Trade, offerer_id=user_id, **filters)
        }
        for t in self._store.find(Trade, receiver_id=user_id, **filters):
            trades.setdefault(t.id, t)
        ordered = list(trades.values())
        ordered.reverse()
        ordered.sort(key=attrgetter("created_at"), reverse=True)
        return ordered

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_party(trade: Trade, actor_id: str) -> Party:
        party = trade.party_of(actor_id)
        if party is None:
            raise ForbiddenError("You are not a party to this trade")
        return party

    @staticmethod
    def _set_accepted(trade: Trade, party: Party) -> None:
        if party is Party.OFFERER:
            trade.offerer_accepted = True
        else:
            trade.receiver_accepted = True

    def _owned_vehicles(self, vehicle_ids: list[str], owner_id: str, owner: str) -> dict[str, Vehicle]:
        """Load *vehicle_ids*, requiring each to exist and belong to *owner_id*."""
        found = self._store.get_many(Vehicle, vehicle_ids)
        for vehicle_id in vehicle_ids:
            vehicle = found.get(vehicle_id)
            if vehicle is None:
                raise NotFoundError("vehicle", vehicle_id)
            if vehicle.owner_id != owner_id:
                raise ForbiddenError(f"{vehicle.full_name} does not belong to {owner}")
        return found

    def _transfer(self, vehicle: Vehicle, new_owner_id: str) -> None:
        vehicle.owner_id = new_owner_id
        vehicle.in_trade = False
        vehicle.is_listed = False
        vehicle.is_auctioned = False
        vehicle.listing_id = None
        vehicle.trade_id = None
        self._store.save(vehicle)

    def _unlist(self, vehicle_id: str, listing_id: str) -> None:
        vehicle = self._store.get(Vehicle, vehicle_id)
        if vehicle is not None and vehicle.listing_id == listing_id:
            vehicle.is_listed = False
            vehicle.listing_id = None
            self._store.save(vehicle)

    def _replay(
        self, key: str | None, actor_id: str, operation: str, target: str
    ) -> TradeResult | None:
        if key is None or self._ledger is None:
            return None
        trade_id = self._ledger.lookup(key, actor_id, operation, target)
        if trade_id is None:
            return None
        trade = self._store.get(Trade, trade_id)
        if trade is None:
            return None
        return TradeResult(trade=trade, replayed=True)

    def _remember(
        self, key: str | None, actor_id: str, operation: str, target: str, trade_id: str
    ) -> None:
        if key is not None and self._ledger is not None:
            self._ledger.remember(key, actor_id, operation, target, trade_id)
