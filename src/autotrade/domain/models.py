"""Pydantic v2 document models for the vehicle marketplace.

Every persisted entity derives from :class:`Document`, which carries the id,
the optimistic-concurrency ``version`` and the store-managed timestamps.
Monetary fields use ``Decimal``; float inputs are rejected.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from autotrade.domain.errors import ValidationFailedError
from autotrade.domain.types import (
    TERMINAL_STATUSES,
    Party,
    TradeAction,
    TradeStatus,
    Transmission,
)

M = TypeVar("M", bound=BaseModel)


def new_id() -> str:
    """Return a fresh document id."""
    return uuid.uuid4().hex


def reject_float(v: object) -> object:
    """Reject float inputs for monetary fields to prevent precision errors."""
    if isinstance(v, float):
        raise ValueError("Use Decimal, int or string, not float, for monetary values")
    return v


def parse_model(model: type[M], data: M | dict[str, Any]) -> M:
    """Validate *data* into *model*, reporting the first problem as a domain error.

    Raises:
        ValidationFailedError: If *data* does not validate.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first["loc"])
        prefix = f"{where}: " if where else ""
        raise ValidationFailedError(f"{prefix}{first['msg']}") from None


class Document(BaseModel):
    """Base for every stored entity."""

    id: str = Field(default_factory=new_id)
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Vehicles
# ---------------------------------------------------------------------------


class Vehicle(Document):
    """A vehicle in a user's garage."""

    owner_id: str
    make: str
    model: str
    year: int
    vin: str
    mileage: int
    transmission: Transmission
    estimated_value: Decimal
    custom_price: Decimal | None = None
    images: list[str] = Field(default_factory=list)
    is_listed: bool = False
    is_auctioned: bool = False
    in_trade: bool = False
    listing_id: str | None = None
    trade_id: str | None = None

    @field_validator("make", "model")
    @classmethod
    def text_must_not_be_empty(cls, v: str) -> str:
        """Strip and require make/model."""
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("vin")
    @classmethod
    def normalize_vin(cls, v: str) -> str:
        """VINs are stored trimmed and upper-cased."""
        v = v.strip().upper()
        if not v:
            raise ValueError("vin must not be empty")
        return v

    @field_validator("year")
    @classmethod
    def year_in_range(cls, v: int) -> int:
        """Accept model years from 1900 up to next year."""
        latest = datetime.now(tz=UTC).year + 1
        if not 1900 <= v <= latest:
            raise ValueError(f"year must be between 1900 and {latest}")
        return v

    @field_validator("mileage")
    @classmethod
    def mileage_not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("mileage must not be negative")
        return v

    @field_validator("estimated_value", "custom_price", mode="before")
    @classmethod
    def money_rejects_float(cls, v: object) -> object:
        return reject_float(v)

    @field_validator("estimated_value", "custom_price")
    @classmethod
    def money_not_negative(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v < 0:
            raise ValueError("value must not be negative")
        return v

    @property
    def valuation(self) -> Decimal:
        """The owner's asking value if set, otherwise the estimated value."""
        return self.custom_price if self.custom_price is not None else self.estimated_value

    @property
    def full_name(self) -> str:
        return f"{self.year} {self.make} {self.model}"


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class ListingChange(BaseModel):
    """One entry of a listing's append-only change history."""

    model_config = ConfigDict(frozen=True)

    field: str
    old_value: str | list[str] | None = None
    new_value: str | list[str] | None = None
    changed_at: datetime


class Listing(Document):
    """A sale listing for a single vehicle.

    ``original_price`` is set once at creation.  Price and text edits are
    appended to ``history`` before being applied.
    """

    vehicle_id: str
    seller_id: str
    title: str
    description: str = ""
    price: Decimal
    original_price: Decimal | None = None
    tags: list[str] = Field(default_factory=list)
    problems: list[str] = Field(default_factory=list)
    additional_features: list[str] = Field(default_factory=list)
    history: list[ListingChange] = Field(default_factory=list)
    last_renewed: datetime | None = None
    can_renew_after: datetime | None = None
    last_edited_at: datetime | None = None
    is_active: bool = True
    views: int = 0
    sold_at: datetime | None = None
    sold_to: str | None = None
    sold_price: Decimal | None = None
    deactivated_at: datetime | None = None
    deactivated_reason: str | None = None

    @field_validator("title")
    @classmethod
    def title_length(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be empty")
        if len(v) > 200:
            raise ValueError("title must be at most 200 characters")
        return v

    @field_validator("description")
    @classmethod
    def description_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) > 2000:
            raise ValueError("description must be at most 2000 characters")
        return v

    @field_validator("price", "original_price", "sold_price", mode="before")
    @classmethod
    def money_rejects_float(cls, v: object) -> object:
        return reject_float(v)

    @field_validator("price")
    @classmethod
    def price_not_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("price must not be negative")
        return v

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        """Tags are trimmed, lower-cased and blank entries dropped."""
        return [t.strip().lower() for t in v if t.strip()]

    def can_renew(self, now: datetime) -> bool:
        return self.can_renew_after is None or now >= self.can_renew_after

    @property
    def price_changed(self) -> bool:
        return self.original_price is not None and self.price != self.original_price


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------


class OfferTerms(BaseModel):
    """One side of a trade: the cash and vehicles that party hands over.

    Cash may be negative, meaning that party asks for cash back.
    """

    model_config = ConfigDict(frozen=True)

    cash_amount: Decimal = Decimal("0")
    vehicle_ids: list[str] = Field(default_factory=list)

    @field_validator("cash_amount", mode="before")
    @classmethod
    def cash_rejects_float(cls, v: object) -> object:
        return reject_float(v)

    @field_validator("vehicle_ids")
    @classmethod
    def vehicle_ids_unique(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("vehicle_ids must not contain duplicates")
        return v

    @property
    def is_empty(self) -> bool:
        return self.cash_amount == 0 and not self.vehicle_ids


class CounterProposal(BaseModel):
    """Revised terms for one or both sides of a trade."""

    model_config = ConfigDict(frozen=True)

    offerer: OfferTerms | None = None
    receiver: OfferTerms | None = None

    @model_validator(mode="after")
    def at_least_one_side(self) -> CounterProposal:
        if self.offerer is None and self.receiver is None:
            raise ValueError("a counter-offer must revise at least one side")
        return self


class TradeHistoryEntry(BaseModel):
    """Immutable record of one trade transition with both sides' terms."""

    model_config = ConfigDict(frozen=True)

    action: TradeAction
    actor_id: str
    timestamp: datetime
    status: TradeStatus
    offerer: OfferTerms
    receiver: OfferTerms
    message: str = ""


class Trade(Document):
    """A negotiation between an offerer and a listing's seller."""

    listing_id: str
    listing_vehicle_id: str | None = None
    offerer_id: str
    receiver_id: str
    status: TradeStatus = TradeStatus.PENDING
    turn: Party = Party.RECEIVER
    offerer: OfferTerms = Field(default_factory=OfferTerms)
    receiver: OfferTerms = Field(default_factory=OfferTerms)
    offerer_accepted: bool = False
    receiver_accepted: bool = False
    last_countered_by: str | None = None
    message: str = ""
    counter_message: str = ""
    history: list[TradeHistoryEntry] = Field(default_factory=list)
    completed_at: datetime | None = None
    closed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def participants(self) -> tuple[str, str]:
        return (self.offerer_id, self.receiver_id)

    def party_of(self, user_id: str) -> Party | None:
        """Return which side *user_id* is on, or ``None`` for outsiders."""
        if user_id == self.offerer_id:
            return Party.OFFERER
        if user_id == self.receiver_id:
            return Party.RECEIVER
        return None

    def user_for(self, party: Party) -> str:
        return self.offerer_id if party is Party.OFFERER else self.receiver_id

    def accepted_by(self, party: Party) -> bool:
        return self.offerer_accepted if party is Party.OFFERER else self.receiver_accepted

    def vehicle_ids(self) -> list[str]:
        """Every vehicle referenced by either side's current terms."""
        return [*self.offerer.vehicle_ids, *self.receiver.vehicle_ids]

    def locked_vehicle_ids(self) -> list[str]:
        """Vehicles this trade holds ``in_trade`` locks on.

        The listing's own vehicle is guarded by its listing, not by a trade
        lock, so several offers can target it at once.
        """
        return [v for v in self.vehicle_ids() if v != self.listing_vehicle_id]

    def record(
        self,
        action: TradeAction,
        actor_id: str,
        timestamp: datetime,
        message: str = "",
    ) -> TradeHistoryEntry:
        """Append a history entry snapshotting both sides at this moment."""
        entry = TradeHistoryEntry(
            action=action,
            actor_id=actor_id,
            timestamp=timestamp,
            status=self.status,
            offerer=self.offerer,
            receiver=self.receiver,
            message=message,
        )
        self.history.append(entry)
        return entry


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class Message(Document):
    """A direct message between two users, optionally tied to a trade or listing."""

    sender_id: str
    receiver_id: str
    content: str
    timestamp: datetime
    read: bool = False
    read_at: datetime | None = None
    trade_id: str | None = None
    listing_id: str | None = None

    @field_validator("content")
    @classmethod
    def content_must_not_be_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("content must not be empty")
        return v


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


class Review(Document):
    """One user's rating of another; at most one per reviewer and reviewee."""

    reviewer_id: str
    reviewee_id: str
    rating: int = Field(ge=1, le=5)
    comment: str = Field(default="", max_length=1000)
    trade_id: str | None = None
    listing_id: str | None = None

    @field_validator("comment", mode="before")
    @classmethod
    def strip_comment(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def reviewer_is_not_reviewee(self) -> Review:
        if self.reviewer_id == self.reviewee_id:
            raise ValueError("You cannot review yourself")
        return self
