"""TradeStateMachine class with trigger and valid_events."""

from __future__ import annotations

from autotrade.domain.errors import InvalidTransitionError
from autotrade.domain.types import TradeStatus
from autotrade.state_machine.transitions import TERMINAL_STATES, TRANSITIONS


class TradeStateMachine:
    """Finite state machine governing a trade's status.

    Validates transitions against the transition map.  The engine builds one
    per operation from the stored status; the history lives on the trade
    document itself.

    Usage::

        sm = TradeStateMachine(TradeStatus.PENDING)
        sm.trigger("counter")    # -> COUNTERED
        sm.trigger("accept")     # -> PENDING_ACCEPTANCE
        sm.trigger("complete")   # -> COMPLETED (terminal)
    """

    def __init__(self, initial_state: TradeStatus = TradeStatus.PENDING) -> None:
        self._state: TradeStatus = initial_state

    @property
    def state(self) -> TradeStatus:
        """Return the current trade status."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Return True if the machine is in a terminal status."""
        return self._state in TERMINAL_STATES

    def can_trigger(self, event: str) -> bool:
        """Return True if *event* is valid from the current status."""
        return not self.is_terminal and (self._state, event) in TRANSITIONS

    def trigger(self, event: str) -> TradeStatus:
        """Apply an event to the current status and transition.

        Args:
            event: The event string (e.g. ``"counter"``).

        Returns:
            The new status after the transition.

        Raises:
            InvalidTransitionError: If the transition is not allowed from
                the current status, or if the machine is terminal.
        """
        if not self.can_trigger(event):
            raise InvalidTransitionError(self._state, event)

        self._state = TRANSITIONS[(self._state, event)]
        return self._state

    def get_valid_events(self) -> list[str]:
        """Return a sorted list of events valid from the current status.

        Returns an empty list if the machine is terminal.
        """
        if self.is_terminal:
            return []
        return sorted(event for state, event in TRANSITIONS if state == self._state)
