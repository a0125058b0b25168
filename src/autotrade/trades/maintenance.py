"""Repair jobs run from the admin CLI.

Neither job is part of a request path.  Both are safe to run repeatedly.
"""

from __future__ import annotations

import structlog

from autotrade.domain.models import Listing, Trade, Vehicle
from autotrade.domain.types import TradeStatus
from autotrade.state.store import DocumentStore
from autotrade.trades.locks import release_vehicles

logger = structlog.get_logger()


def cleanup_orphaned_trades(store: DocumentStore, prune_cancelled: bool = False) -> list[str]:
    """Delete trades whose listing no longer exists.

    Locks held by an orphaned open trade are released first.  With
    *prune_cancelled*, cancelled trades are deleted as well.

    Returns:
        Ids of the deleted trades.
    """
    deleted: list[str] = []
    with store.transaction():
        for trade in store.find(Trade):
            orphaned = store.get(Listing, trade.listing_id) is None
            prunable = prune_cancelled and trade.status == TradeStatus.CANCELLED
            if not (orphaned or prunable):
                continue
            if not trade.is_terminal:
                release_vehicles(store, trade.locked_vehicle_ids(), trade.id)
            store.delete(Trade, trade.id)
            deleted.append(trade.id)
            logger.info(
                "trade_deleted",
                trade_id=trade.id,
                reason="orphaned" if orphaned else "cancelled",
            )
    return deleted


def reconcile_vehicle_flags(store: DocumentStore) -> list[str]:
    """Clear ``is_listed`` / ``in_trade`` flags that nothing backs any more.

    A listing flag is stale when no active listing for the vehicle exists; a
    trade flag is stale when the referenced trade is missing, terminal, or no
    longer includes the vehicle.

    Returns:
        Ids of the vehicles that were fixed.
    """
    fixed: list[str] = []
    with store.transaction():
        for vehicle in store.find(Vehicle):
            changed = False
            if vehicle.is_listed and not _has_active_listing(store, vehicle):
                vehicle.is_listed = False
                vehicle.listing_id = None
                changed = True
            if vehicle.in_trade and not _held_by_open_trade(store, vehicle):
                vehicle.in_trade = False
                vehicle.trade_id = None
                changed = True
            if changed:
                store.save(vehicle)
                fixed.append(vehicle.id)
                logger.info("vehicle_flags_reconciled", vehicle_id=vehicle.id)
    return fixed


def _has_active_listing(store: DocumentStore, vehicle: Vehicle) -> bool:
    return any(
        listing.is_active and listing.seller_id == vehicle.owner_id
        for listing in store.find(Listing, vehicle_id=vehicle.id)
    )


def _held_by_open_trade(store: DocumentStore, vehicle: Vehicle) -> bool:
    if vehicle.trade_id is None:
        return False
    trade = store.get(Trade, vehicle.trade_id)
    return (
        trade is not None
        and not trade.is_terminal
        and vehicle.id in trade.locked_vehicle_ids()
    )
