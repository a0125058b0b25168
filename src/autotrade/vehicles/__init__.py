"""Vehicle garage service."""

from autotrade.vehicles.service import EDITABLE_FIELDS, VehicleService

__all__ = ["EDITABLE_FIELDS", "VehicleService"]
