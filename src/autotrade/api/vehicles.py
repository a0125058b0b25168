"""Garage routes for the calling user's vehicles."""

from __future__ import annotations

from fastapi import APIRouter, Response

from autotrade.api.deps import CurrentUser, Services
from autotrade.api.schemas import VehicleCreateRequest, VehicleUpdateRequest
from autotrade.domain.models import Vehicle
from autotrade.realtime.events import EventType, RealtimeEvent
from autotrade.realtime.publisher import RealtimePublisher
from autotrade.vehicles.service import VehicleService

router = APIRouter(prefix="/api/vehicles", tags=["vehicles"])


async def _notify_owner(services: Services, event_type: EventType, vehicle: Vehicle) -> None:
    publisher: RealtimePublisher = services["publisher"]
    event = RealtimeEvent(type=event_type, data=vehicle.model_dump(mode="json"))
    await publisher.publish_to_user(vehicle.owner_id, event)


@router.post("", status_code=201)
async def add_vehicle(body: VehicleCreateRequest, user_id: CurrentUser, services: Services) -> Vehicle:
    vehicles: VehicleService = services["vehicles"]
    vehicle = vehicles.add_vehicle(user_id, body.model_dump(exclude_unset=True))
    await _notify_owner(services, EventType.VEHICLE_ADDED, vehicle)
    return vehicle


@router.get("")
async def list_vehicles(user_id: CurrentUser, services: Services) -> list[Vehicle]:
    vehicles: VehicleService = services["vehicles"]
    return vehicles.list_vehicles(user_id)


@router.get("/{vehicle_id}")
async def get_vehicle(vehicle_id: str, user_id: CurrentUser, services: Services) -> Vehicle:
    vehicles: VehicleService = services["vehicles"]
    return vehicles.get_vehicle(vehicle_id)


@router.patch("/{vehicle_id}")
async def update_vehicle(
    vehicle_id: str,
    body: VehicleUpdateRequest,
    user_id: CurrentUser,
    services: Services,
) -> Vehicle:
    vehicles: VehicleService = services["vehicles"]
    vehicle = vehicles.update_vehicle(vehicle_id, user_id, body.model_dump(exclude_unset=True))
    await _notify_owner(services, EventType.VEHICLE_UPDATED, vehicle)
    return vehicle


@router.delete("/{vehicle_id}", status_code=204)
async def delete_vehicle(vehicle_id: str, user_id: CurrentUser, services: Services) -> Response:
    vehicles: VehicleService = services["vehicles"]
    vehicles.delete_vehicle(vehicle_id, user_id)
    return Response(status_code=204)
