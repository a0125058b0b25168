"""Vehicle lock bookkeeping shared by the trade engine and listing service.

A vehicle is *locked* while ``in_trade`` is true; ``trade_id`` names the one
non-terminal trade holding the lock.  Helpers here only touch the store; the
caller owns the surrounding transaction.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

import structlog

from autotrade.domain.errors import ConflictError
from autotrade.domain.models import Trade, Vehicle
from autotrade.domain.types import TradeAction, TradeStatus
from autotrade.observability.metrics import ACTIVE_TRADES, TRADES_CLOSED, TRADES_COMPLETED
from autotrade.state.store import DocumentStore
from autotrade.state_machine import TradeEvent, TradeStateMachine

logger = structlog.get_logger()


def check_lockable(vehicle: Vehicle) -> None:
    """Ensure *vehicle* is free to be put into a trade.

    Raises:
        ConflictError: If it is auctioned, listed, or locked by another trade.
    """
    if vehicle.is_auctioned:
        raise ConflictError(f"{vehicle.full_name} is currently in an auction and cannot be traded")
    if vehicle.in_trade:
        raise ConflictError(f"{vehicle.full_name} is already part of another active trade")
    if vehicle.is_listed:
        raise ConflictError(
            f"{vehicle.full_name} is listed for sale; remove the listing before trading it"
        )


def lock_vehicles(store: DocumentStore, vehicles: Iterable[Vehicle], trade_id: str) -> list[str]:
    """Mark each vehicle as held by *trade_id*.

    Returns:
        The ids that were locked.
    """
    locked: list[str] = []
    for vehicle in vehicles:
        vehicle.in_trade = True
        vehicle.trade_id = trade_id
        store.save(vehicle)
        locked.append(vehicle.id)
    return locked


def release_vehicles(store: DocumentStore, vehicle_ids: Iterable[str], trade_id: str) -> list[str]:
    """Clear the lock on every vehicle currently held by *trade_id*.

    Vehicles that are missing, unlocked, or locked by a different trade are
    left alone.

    Returns:
        The ids that were released.
    """
    released: list[str] = []
    for vehicle_id in vehicle_ids:
        vehicle = store.get(Vehicle, vehicle_id)
        if vehicle is None or not vehicle.in_trade:
            continue
        if vehicle.trade_id not in (None, trade_id):
            continue
        vehicle.in_trade = False
        vehicle.trade_id = None
        store.save(vehicle)
        released.append(vehicle_id)
    return released


def open_trades_for_listing(store: DocumentStore, listing_id: str) -> list[Trade]:
    """Return every non-terminal trade made against *listing_id*."""
    return [t for t in store.find(Trade, listing_id=listing_id) if not t.is_terminal]


def cancel_open_trades(
    store: DocumentStore,
    listing_id: str,
    actor_id: str,
    now: datetime,
    *,
    exclude_trade_id: str | None = None,
    message: str = "",
) -> list[Trade]:
    """Cancel every open trade on a listing that is going away.

    Each trade gets its locks released and a ``cancelled`` history entry
    attributed to *actor_id*.

    Returns:
        The trades that were cancelled.
    """
    cancelled: list[Trade] = []
    for trade in open_trades_for_listing(store, listing_id):
        if trade.id == exclude_trade_id:
            continue
        sm = TradeStateMachine(trade.status)
        trade.status = sm.trigger(TradeEvent.CANCEL)
        trade.closed_at = now
        release_vehicles(store, trade.locked_vehicle_ids(), trade.id)
        trade.record(TradeAction.CANCELLED, actor_id, now, message)
        store.save(trade)
        cancelled.append(trade)
        logger.info("trade_cancelled_with_listing", trade_id=trade.id, listing_id=listing_id)
    return cancelled


def observe_closed(trades: Iterable[Trade]) -> None:
    """Update business metrics for trades that just reached a terminal status."""
    for trade in trades:
        ACTIVE_TRADES.dec()
        if trade.status == TradeStatus.COMPLETED:
            TRADES_COMPLETED.inc()
        else:
            TRADES_CLOSED.labels(status=trade.status.value).inc()
