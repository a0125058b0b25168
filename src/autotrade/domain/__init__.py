"""Domain types, models, and errors for the vehicle marketplace."""

from autotrade.domain.errors import (
    AuthenticationError,
    ConcurrentModificationError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    MarketplaceError,
    NotFoundError,
    RenewalCooldownError,
    ValidationFailedError,
)
from autotrade.domain.models import (
    CounterProposal,
    Document,
    Listing,
    ListingChange,
    Message,
    OfferTerms,
    Trade,
    TradeHistoryEntry,
    Vehicle,
    parse_model,
)
from autotrade.domain.types import (
    CLOSING_ACTIONS,
    TERMINAL_STATUSES,
    Party,
    TradeAction,
    TradeStatus,
    Transmission,
)

__all__ = [
    "CLOSING_ACTIONS",
    "TERMINAL_STATUSES",
    "AuthenticationError",
    "ConcurrentModificationError",
    "ConflictError",
    "CounterProposal",
    "Document",
    "ForbiddenError",
    "InvalidStateError",
    "InvalidTransitionError",
    "Listing",
    "ListingChange",
    "MarketplaceError",
    "Message",
    "NotFoundError",
    "OfferTerms",
    "Party",
    "RenewalCooldownError",
    "Trade",
    "TradeAction",
    "TradeHistoryEntry",
    "TradeStatus",
    "Transmission",
    "ValidationFailedError",
    "Vehicle",
    "parse_model",
]
