"""Trade status state machine with transition validation."""

from autotrade.state_machine.machine import TradeStateMachine
from autotrade.state_machine.transitions import (
    TERMINAL_STATES,
    TRANSITIONS,
    TradeEvent,
)

__all__ = [
    "TERMINAL_STATES",
    "TRANSITIONS",
    "TradeEvent",
    "TradeStateMachine",
]
