"""
Vehicle endpoints
=================

POST   /api/v1/vehicles                      -- register a vehicle (available)
GET    /api/v1/vehicles                      -- list, filter by status / type / region
GET    /api/v1/vehicles/{vehicle_id}         -- one vehicle
PATCH  /api/v1/vehicles/{vehicle_id}         -- edit descriptive fields
PUT    /api/v1/vehicles/{vehicle_id}/status  -- manual status override
DELETE /api/v1/vehicles/{vehicle_id}         -- retire (soft delete)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fleetflow.api.dependencies import get_db, get_fleet_service
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import (
    ErrorResponse,
    VehicleCreateRequest,
    VehicleResponse,
    VehicleStatusRequest,
    VehicleUpdateRequest,
)
from fleetflow.config import settings
from fleetflow.domain.commands import (
    OverrideVehicleStatus,
    RegisterVehicle,
    RetireVehicle,
    UpdateVehicle,
)
from fleetflow.domain.enums import VehicleStatus, VehicleType
from fleetflow.domain.errors import NotFound, Reason
from fleetflow.infrastructure.repositories import VehicleRepository
from fleetflow.services.fleet import FleetService

router = APIRouter(prefix="/vehicles", tags=["vehicles"])

_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "",
    status_code=201,
    response_model=VehicleResponse,
    summary="Register a vehicle",
    responses={409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def register_vehicle(
    request: Request,
    body: VehicleCreateRequest,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.execute(RegisterVehicle(**body.model_dump()))


@router.get("", response_model=list[VehicleResponse], summary="List vehicles")
@limiter.limit(settings.rate_limit)
async def list_vehicles(
    request: Request,
    status: Optional[VehicleStatus] = None,
    type: Optional[VehicleType] = None,
    region: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    return await VehicleRepository(db).list(
        status=status, vehicle_type=type, region=region
    )


@router.get(
    "/{vehicle_id}",
    response_model=VehicleResponse,
    summary="Get one vehicle",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_vehicle(
    request: Request,
    vehicle_id: int,
    db: AsyncSession = Depends(get_db),
):
    vehicle = await VehicleRepository(db).get_by_id(vehicle_id)
    if not vehicle:
        raise NotFound(Reason.VEHICLE_NOT_FOUND, "Vehicle not found.")
    return vehicle


@router.patch(
    "/{vehicle_id}",
    response_model=VehicleResponse,
    summary="Edit vehicle details",
    description="Status is owned by the availability ledger and cannot be set here.",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def update_vehicle(
    request: Request,
    vehicle_id: int,
    body: VehicleUpdateRequest,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.execute(
        UpdateVehicle(vehicle_id=vehicle_id, changes=body.model_dump(exclude_unset=True))
    )


@router.put(
    "/{vehicle_id}/status",
    response_model=VehicleResponse,
    summary="Override vehicle status",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def override_vehicle_status(
    request: Request,
    vehicle_id: int,
    body: VehicleStatusRequest,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.execute(
        OverrideVehicleStatus(vehicle_id=vehicle_id, status=body.status)
    )


@router.delete(
    "/{vehicle_id}",
    response_model=VehicleResponse,
    summary="Retire a vehicle",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def retire_vehicle(
    request: Request,
    vehicle_id: int,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.execute(RetireVehicle(vehicle_id=vehicle_id))
