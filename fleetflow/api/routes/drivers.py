"""
Driver endpoints
================

POST  /api/v1/drivers                        -- register a driver (off_duty)
GET   /api/v1/drivers                        -- list, filter by status
GET   /api/v1/drivers/{driver_id}            -- one driver
PATCH /api/v1/drivers/{driver_id}            -- edit profile and license data
POST  /api/v1/drivers/{driver_id}/suspend    -- off_duty -> suspended
POST  /api/v1/drivers/{driver_id}/reinstate  -- suspended -> off_duty
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fleetflow.api.dependencies import get_db, get_fleet_service
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import (
    DriverCreateRequest,
    DriverResponse,
    DriverUpdateRequest,
    ErrorResponse,
)
from fleetflow.config import settings
from fleetflow.domain.commands import (
    RegisterDriver,
    ReinstateDriver,
    SuspendDriver,
    UpdateDriver,
)
from fleetflow.domain.enums import DriverStatus
from fleetflow.domain.errors import NotFound, Reason
from fleetflow.infrastructure.repositories import DriverRepository
from fleetflow.services.fleet import FleetService

router = APIRouter(prefix="/drivers", tags=["drivers"])

_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post(
    "",
    status_code=201,
    response_model=DriverResponse,
    summary="Register a driver",
    responses={409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def register_driver(
    request: Request,
    body: DriverCreateRequest,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.execute(RegisterDriver(**body.model_dump()))


@router.get("", response_model=list[DriverResponse], summary="List drivers")
@limiter.limit(settings.rate_limit)
async def list_drivers(
    request: Request,
    status: Optional[DriverStatus] = None,
    db: AsyncSession = Depends(get_db),
):
    return await DriverRepository(db).list(status=status)


@router.get(
    "/{driver_id}",
    response_model=DriverResponse,
    summary="Get one driver",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_driver(
    request: Request,
    driver_id: int,
    db: AsyncSession = Depends(get_db),
):
    driver = await DriverRepository(db).get_by_id(driver_id)
    if not driver:
        raise NotFound(Reason.DRIVER_NOT_FOUND, "Driver not found.")
    return driver


@router.patch(
    "/{driver_id}",
    response_model=DriverResponse,
    summary="Edit driver details",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def update_driver(
    request: Request,
    driver_id: int,
    body: DriverUpdateRequest,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.execute(
        UpdateDriver(driver_id=driver_id, changes=body.model_dump(exclude_unset=True))
    )


@router.post(
    "/{driver_id}/suspend",
    response_model=DriverResponse,
    summary="Suspend a driver",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def suspend_driver(
    request: Request,
    driver_id: int,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.execute(SuspendDriver(driver_id=driver_id))


@router.post(
    "/{driver_id}/reinstate",
    response_model=DriverResponse,
    summary="Lift a driver suspension",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def reinstate_driver(
    request: Request,
    driver_id: int,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.execute(ReinstateDriver(driver_id=driver_id))
