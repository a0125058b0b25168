"""Domain enumerations for the vehicle marketplace."""

from enum import StrEnum


class Transmission(StrEnum):
    """Gearbox types a vehicle can be catalogued with."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"


class TradeStatus(StrEnum):
    """States in the trade negotiation lifecycle."""

    PENDING = "pending"
    COUNTERED = "countered"
    PENDING_ACCEPTANCE = "pending_acceptance"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    REJECTED = "rejected"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class TradeAction(StrEnum):
    """Actions recorded in a trade's history log."""

    CREATED = "created"
    COUNTERED = "countered"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    REJECTED = "rejected"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class Party(StrEnum):
    """The two sides of a trade."""

    OFFERER = "offerer"
    RECEIVER = "receiver"

    @property
    def other(self) -> "Party":
        """Return the opposite side."""
        return Party.RECEIVER if self is Party.OFFERER else Party.OFFERER


# Closing actions a party may take, mapped to the status they leave the trade in.
CLOSING_ACTIONS: dict[TradeAction, TradeStatus] = {
    TradeAction.REJECTED: TradeStatus.REJECTED,
    TradeAction.CANCELLED: TradeStatus.CANCELLED,
    TradeAction.DECLINED: TradeStatus.DECLINED,
}

# Statuses from which no further transition is permitted.
TERMINAL_STATUSES: frozenset[TradeStatus] = frozenset(
    {
        TradeStatus.COMPLETED,
        TradeStatus.REJECTED,
        TradeStatus.DECLINED,
        TradeStatus.CANCELLED,
    }
)
