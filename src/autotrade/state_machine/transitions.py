"""Transition map defining all valid (status, event) -> status mappings."""

from enum import StrEnum

from autotrade.domain.types import TERMINAL_STATUSES, TradeStatus


class TradeEvent(StrEnum):
    """Events that can trigger status transitions on a trade."""

    COUNTER = "counter"
    ACCEPT = "accept"
    COMPLETE = "complete"
    REJECT = "reject"
    CANCEL = "cancel"
    DECLINE = "decline"


# All valid (current_status, event) -> next_status mappings.
# Any pair not in this dict is an invalid transition.
TRANSITIONS: dict[tuple[TradeStatus, str], TradeStatus] = {
    # From PENDING
    (TradeStatus.PENDING, TradeEvent.COUNTER): TradeStatus.COUNTERED,
    (TradeStatus.PENDING, TradeEvent.ACCEPT): TradeStatus.PENDING_ACCEPTANCE,
    (TradeStatus.PENDING, TradeEvent.REJECT): TradeStatus.REJECTED,
    (TradeStatus.PENDING, TradeEvent.CANCEL): TradeStatus.CANCELLED,
    # From COUNTERED
    (TradeStatus.COUNTERED, TradeEvent.COUNTER): TradeStatus.COUNTERED,
    (TradeStatus.COUNTERED, TradeEvent.ACCEPT): TradeStatus.PENDING_ACCEPTANCE,
    (TradeStatus.COUNTERED, TradeEvent.REJECT): TradeStatus.REJECTED,
    (TradeStatus.COUNTERED, TradeEvent.CANCEL): TradeStatus.CANCELLED,
    # From PENDING_ACCEPTANCE
    (TradeStatus.PENDING_ACCEPTANCE, TradeEvent.COUNTER): TradeStatus.COUNTERED,
    (TradeStatus.PENDING_ACCEPTANCE, TradeEvent.COMPLETE): TradeStatus.COMPLETED,
    (TradeStatus.PENDING_ACCEPTANCE, TradeEvent.DECLINE): TradeStatus.DECLINED,
    (TradeStatus.PENDING_ACCEPTANCE, TradeEvent.CANCEL): TradeStatus.CANCELLED,
    # From ACCEPTED
    (TradeStatus.ACCEPTED, TradeEvent.COMPLETE): TradeStatus.COMPLETED,
    (TradeStatus.ACCEPTED, TradeEvent.DECLINE): TradeStatus.DECLINED,
    (TradeStatus.ACCEPTED, TradeEvent.CANCEL): TradeStatus.CANCELLED,
}

# Statuses that reject all events -- no outgoing transitions allowed.
TERMINAL_STATES: frozenset[TradeStatus] = TERMINAL_STATUSES
