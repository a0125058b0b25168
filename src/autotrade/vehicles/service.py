"""Garage management: add, edit and remove a user's vehicles."""

from __future__ import annotations

from typing import Any

import structlog

from autotrade.domain.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    ValidationFailedError,
)
from autotrade.domain.models import Vehicle, parse_model
from autotrade.state.store import DocumentStore

logger = structlog.get_logger()

# Fields an owner may set; status flags and back references are engine-managed.
EDITABLE_FIELDS: frozenset[str] = frozenset(
    {
        "make",
        "model",
        "year",
        "vin",
        "mileage",
        "transmission",
        "estimated_value",
        "custom_price",
        "images",
    }
)

# Fields frozen while the vehicle is part of an open trade.
VALUE_FIELDS: frozenset[str] = frozenset({"estimated_value", "custom_price"})


def _check_fields(data: dict[str, Any]) -> None:
    unknown = sorted(set(data) - EDITABLE_FIELDS)
    if unknown:
        raise ValidationFailedError(f"Unknown or read-only vehicle field(s): {', '.join(unknown)}")


class VehicleService:
    """CRUD over the ``vehicles`` collection with ownership checks.

    Args:
        store: The document store.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def add_vehicle(self, owner_id: str, data: dict[str, Any]) -> Vehicle:
        """Add a vehicle to *owner_id*'s garage.

        Raises:
            ValidationFailedError: If *data* is malformed or sets a
                read-only field.
        """
        _check_fields(data)
        vehicle = parse_model(Vehicle, {**data, "owner_id": owner_id})
        self._store.insert(vehicle)
        logger.info("vehicle_added", vehicle_id=vehicle.id, owner_id=owner_id)
        return vehicle

    def get_vehicle(self, vehicle_id: str) -> Vehicle:
        return self._store.require(Vehicle, vehicle_id)

    def list_vehicles(self, owner_id: str) -> list[Vehicle]:
        return self._store.find(Vehicle, owner_id=owner_id)

    def update_vehicle(self, vehicle_id: str, owner_id: str, changes: dict[str, Any]) -> Vehicle:
        """Apply *changes* to a vehicle the caller owns.

        Raises:
            NotFoundError: Vehicle does not exist.
            ForbiddenError: Caller is not the owner.
            InvalidStateError: Value fields changed while in an open trade.
            ValidationFailedError: Changes are malformed.
        """
        _check_fields(changes)
        vehicle = self._owned(vehicle_id, owner_id)
        if vehicle.in_trade and VALUE_FIELDS & set(changes):
            raise InvalidStateError("A vehicle's value cannot change while it is part of a trade")

        updated = parse_model(Vehicle, {**vehicle.model_dump(), **changes})
        self._store.save(updated)
        logger.info("vehicle_updated", vehicle_id=vehicle_id, fields=sorted(changes))
        return updated

    def delete_vehicle(self, vehicle_id: str, owner_id: str) -> None:
        """Remove a vehicle that is neither listed nor part of a trade.

        Raises:
            NotFoundError: Vehicle does not exist.
            ForbiddenError: Caller is not the owner.
            ConflictError: The vehicle is listed, auctioned or in a trade.
        """
        vehicle = self._owned(vehicle_id, owner_id)
        if vehicle.is_listed or vehicle.in_trade or vehicle.is_auctioned:
            raise ConflictError(
                f"{vehicle.full_name} is listed or part of a trade and cannot be deleted"
            )
        self._store.delete(Vehicle, vehicle_id)
        logger.info("vehicle_deleted", vehicle_id=vehicle_id, owner_id=owner_id)

    def _owned(self, vehicle_id: str, owner_id: str) -> Vehicle:
        vehicle = self._store.require(Vehicle, vehicle_id)
        if vehicle.owner_id != owner_id:
            raise ForbiddenError("You do not own this vehicle")
        return vehicle
