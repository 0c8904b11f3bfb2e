"""
Trip endpoints
==============

POST /api/v1/trips                 -- create a draft trip (201)
GET  /api/v1/trips                 -- list, filter by state / vehicle / driver
GET  /api/v1/trips/{trip_id}       -- one trip with vehicle and driver
POST /api/v1/trips/{trip_id}/dispatch  -- draft -> dispatched
POST /api/v1/trips/{trip_id}/complete  -- dispatched -> completed
POST /api/v1/trips/{trip_id}/cancel    -- draft | dispatched -> cancelled
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fleetflow.api.dependencies import get_db, get_fleet_service
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import (
    ErrorResponse,
    TripCompleteRequest,
    TripCreateRequest,
    TripResponse,
)
from fleetflow.config import settings
from fleetflow.domain.commands import CancelTrip, CompleteTrip, CreateTrip, DispatchTrip
from fleetflow.domain.enums import TripState
from fleetflow.domain.errors import NotFound, Reason
from fleetflow.infrastructure.repositories import TripRepository
from fleetflow.services.fleet import FleetService

router = APIRouter(prefix="/trips", tags=["trips"])

_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "",
    status_code=201,
    response_model=TripResponse,
    summary="Create a draft trip",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def create_trip(
    request: Request,
    body: TripCreateRequest,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.execute(CreateTrip(**body.model_dump()))


@router.get("", response_model=list[TripResponse], summary="List trips")
@limiter.limit(settings.rate_limit)
async def list_trips(
    request: Request,
    state: Optional[TripState] = None,
    vehicle_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    return await TripRepository(db).list(
        state=state, vehicle_id=vehicle_id, driver_id=driver_id
    )


@router.get(
    "/{trip_id}",
    response_model=TripResponse,
    summary="Get one trip",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_trip(
    request: Request,
    trip_id: int,
    db: AsyncSession = Depends(get_db),
):
    trip = await TripRepository(db).get_by_id(trip_id)
    if not trip:
        raise NotFound(Reason.TRIP_NOT_FOUND, "Trip not found.")
    return trip


@router.post(
    "/{trip_id}/dispatch",
    response_model=TripResponse,
    summary="Dispatch a draft trip",
    description=(
        "Re-validates vehicle and driver availability, then marks the trip "
        "dispatched, the vehicle on_trip and the driver on_duty in one "
        "transaction."
    ),
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def dispatch_trip(
    request: Request,
    trip_id: int,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.execute(DispatchTrip(trip_id=trip_id))


@router.post(
    "/{trip_id}/complete",
    response_model=TripResponse,
    summary="Complete a dispatched trip",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def complete_trip(
    request: Request,
    trip_id: int,
    body: Optional[TripCompleteRequest] = None,
    service: FleetService = Depends(get_fleet_service),
):
    odometer_end = body.odometer_end if body else None
    return await service.execute(CompleteTrip(trip_id=trip_id, odometer_end=odometer_end))


@router.post(
    "/{trip_id}/cancel",
    response_model=TripResponse,
    summary="Cancel a draft or dispatched trip",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def cancel_trip(
    request: Request,
    trip_id: int,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.execute(CancelTrip(trip_id=trip_id))
