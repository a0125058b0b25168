"""Request bodies accepted by the HTTP surface."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from autotrade.domain.models import OfferTerms, reject_float
from autotrade.domain.types import Transmission


class _Body(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------


class CreateTradeRequest(_Body):
    listing_id: str
    offer: OfferTerms
    message: str = Field(default="", max_length=2000)


class CounterOfferRequest(_Body):
    offerer: OfferTerms | None = None
    receiver: OfferTerms | None = None
    message: str = Field(default="", max_length=2000)


class CloseTradeRequest(_Body):
    message: str = Field(default="", max_length=2000)


# ---------------------------------------------------------------------------
# Vehicles
# ---------------------------------------------------------------------------


class VehicleUpdateRequest(_Body):
    make: str | None = None
    model: str | None = None
    year: int | None = None
    vin: str | None = None
    mileage: int | None = None
    transmission: Transmission | None = None
    estimated_value: Decimal | None = None
    custom_price: Decimal | None = None
    images: list[str] | None = None

    @field_validator("estimated_value", "custom_price", mode="before")
    @classmethod
    def money_rejects_float(cls, v: object) -> object:
        return reject_float(v)


class VehicleCreateRequest(VehicleUpdateRequest):
    make: str
    model: str
    year: int
    vin: str
    mileage: int
    transmission: Transmission
    estimated_value: Decimal


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class ListingUpdateRequest(_Body):
    title: str | None = None
    description: str | None = None
    price: Decimal | None = None
    tags: list[str] | None = None
    problems: list[str] | None = None
    additional_features: list[str] | None = None

    @field_validator("price", mode="before")
    @classmethod
    def price_rejects_float(cls, v: object) -> object:
        return reject_float(v)


class ListingCreateRequest(ListingUpdateRequest):
    vehicle_id: str
    title: str
    price: Decimal


class DeactivateListingRequest(_Body):
    reason: str = Field(default="Marked as sold", max_length=200)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class SendMessageRequest(_Body):
    receiver_id: str
    content: str
    trade_id: str | None = None
    listing_id: str | None = None


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


class ReviewRequest(_Body):
    reviewee_id: str
    rating: int
    comment: str = ""
    trade_id: str | None = None
