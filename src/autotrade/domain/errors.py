"""Domain-specific exception classes for the marketplace.

Each concrete error carries a stable ``kind`` string used by the HTTP layer to
pick a status code and by clients to branch on failures.  The message is the
single human-readable sentence shown to the user.
"""

from datetime import datetime

from autotrade.domain.types import TradeStatus


class MarketplaceError(Exception):
    """Base class for all domain errors in the marketplace."""

    kind: str = "error"


class NotFoundError(MarketplaceError):
    """Raised when a trade, listing, vehicle or message id does not resolve.

    Attributes:
        entity: The entity name (``"trade"``, ``"listing"``, ...).
        entity_id: The id that failed to resolve.
    """

    kind = "not_found"

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} '{entity_id}' not found")


class ForbiddenError(MarketplaceError):
    """Raised when the actor is not a party to the trade or not the owner."""

    kind = "forbidden"


class InvalidStateError(MarketplaceError):
    """Raised when an operation is attempted against an entity in the wrong state."""

    kind = "invalid_state"


class InvalidTransitionError(InvalidStateError):
    """Raised when a trade status transition is not allowed.

    Attributes:
        current_state: The status the trade was in when the event was applied.
        event: The event that was rejected.
    """

    def __init__(self, current_state: TradeStatus, event: str) -> None:
        self.current_state = current_state
        self.event = event
        super().__init__(f"Cannot apply '{event}' to a trade that is '{current_state}'")


class RenewalCooldownError(InvalidStateError):
    """Raised when a listing is renewed before its cooldown has elapsed.

    Attributes:
        can_renew_after: The earliest moment the listing may be renewed.
    """

    def __init__(self, can_renew_after: datetime, now: datetime) -> None:
        self.can_renew_after = can_renew_after
        remaining = can_renew_after - now
        hours_left = max(1, -(-int(remaining.total_seconds()) // 3600))
        super().__init__(
            f"Cannot renew listing yet. Please wait {hours_left} more hour(s)."
        )


class ConflictError(MarketplaceError):
    """Raised when a referenced vehicle is already locked by a trade or listing."""

    kind = "conflict"


class ConcurrentModificationError(ConflictError):
    """Raised when a document changed between read and write.

    Attributes:
        collection: The collection the document belongs to.
        document_id: The document that was modified concurrently.
    """

    def __init__(self, collection: str, document_id: str) -> None:
        self.collection = collection
        self.document_id = document_id
        super().__init__(
            f"The {collection.rstrip('s')} was modified by another request; "
            "reload it and try again"
        )


class ValidationFailedError(MarketplaceError):
    """Raised when submitted data is malformed."""

    kind = "validation_failed"


class AuthenticationError(MarketplaceError):
    """Raised when a bearer credential cannot be resolved to a user."""

    kind = "unauthenticated"
