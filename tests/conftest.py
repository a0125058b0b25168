"""Shared pytest fixtures for the marketplace test suite."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from autotrade.config import Settings
from autotrade.domain.models import Listing, Vehicle
from autotrade.listings.service import ListingService
from autotrade.messages.service import MessageService
from autotrade.state.idempotency import IdempotencyLedger
from autotrade.state.schema import init_marketplace_db
from autotrade.state.store import DocumentStore
from autotrade.trades.engine import TradeEngine
from autotrade.vehicles.service import VehicleService

SELLER = "seller"
BUYER = "buyer"
OTHER_BUYER = "other-buyer"
STRANGER = "stranger"

TEST_SECRET = "test-secret"


def make_settings(tmp_path: Path, **overrides: Any) -> Settings:
    """Settings isolated from any local ``.env`` and pointed at *tmp_path*."""
    values: dict[str, Any] = {
        "db_path": tmp_path / "marketplace.db",
        "token_secret": TEST_SECRET,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


class FakeClock:
    """A settable clock; call it for "now", advance it between steps."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def conn() -> Iterator[sqlite3.Connection]:
    """In-memory marketplace database with every table created."""
    connection = init_marketplace_db(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def store(conn: sqlite3.Connection, clock: FakeClock) -> DocumentStore:
    return DocumentStore(conn, clock=clock)


@pytest.fixture
def ledger(store: DocumentStore, clock: FakeClock) -> IdempotencyLedger:
    return IdempotencyLedger(store, window_seconds=600, clock=clock)


@pytest.fixture
def engine(store: DocumentStore, ledger: IdempotencyLedger, clock: FakeClock) -> TradeEngine:
    return TradeEngine(store, ledger, clock=clock)


@pytest.fixture
def listing_service(store: DocumentStore, clock: FakeClock) -> ListingService:
    return ListingService(store, clock=clock, renewal_cooldown=timedelta(hours=12))


@pytest.fixture
def vehicle_service(store: DocumentStore) -> VehicleService:
    return VehicleService(store)


@pytest.fixture
def message_service(store: DocumentStore, clock: FakeClock) -> MessageService:
    return MessageService(store, clock=clock, max_length=2000)


def vehicle_data(**overrides: Any) -> dict[str, Any]:
    """Valid vehicle fields for ``VehicleService.add_vehicle``."""
    data: dict[str, Any] = {
        "make": "Toyota",
        "model": "Supra",
        "year": 1998,
        "vin": "jt2ja82j0w0012345",
        "mileage": 120000,
        "transmission": "manual",
        "estimated_value": Decimal("45000"),
    }
    data.update(overrides)
    return data


@pytest.fixture
def add_vehicle(vehicle_service: VehicleService):
    """Factory: add a vehicle for an owner and return it."""

    def _add(owner_id: str, **overrides: Any) -> Vehicle:
        return vehicle_service.add_vehicle(owner_id, vehicle_data(**overrides))

    return _add


@pytest.fixture
def add_listing(listing_service: ListingService, add_vehicle):
    """Factory: add a vehicle for a seller and list it."""

    def _add(seller_id: str = SELLER, price: str = "30000", **overrides: Any) -> Listing:
        vehicle = add_vehicle(seller_id, make="Nissan", model="Skyline", vin=f"listed-{seller_id}")
        data = {"vehicle_id": vehicle.id, "title": "1999 Nissan Skyline", "price": Decimal(price)}
        data.update(overrides)
        return listing_service.create_listing(seller_id, data)

    return _add


@pytest.fixture
def listing(add_listing) -> Listing:
    """An active listing by SELLER."""
    return add_listing()


@pytest.fixture
def buyer_vehicle(add_vehicle) -> Vehicle:
    """A vehicle in BUYER's garage, free to trade."""
    return add_vehicle(BUYER, make="Honda", model="NSX", vin="buyer-nsx", estimated_value=Decimal("60000"))
