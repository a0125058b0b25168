"""Trade Negotiation Engine and the vehicle lock bookkeeping around it."""

from autotrade.trades.engine import TradeEngine, TradeResult, trade_event
from autotrade.trades.locks import (
    cancel_open_trades,
    check_lockable,
    lock_vehicles,
    observe_closed,
    open_trades_for_listing,
    release_vehicles,
)
from autotrade.trades.maintenance import cleanup_orphaned_trades, reconcile_vehicle_flags

__all__ = [
    "TradeEngine",
    "TradeResult",
    "cancel_open_trades",
    "check_lockable",
    "cleanup_orphaned_trades",
    "lock_vehicles",
    "observe_closed",
    "open_trades_for_listing",
    "reconcile_vehicle_flags",
    "release_vehicles",
    "trade_event",
]
