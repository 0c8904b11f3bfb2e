"""
Maintenance endpoints
=====================

POST  /api/v1/maintenance                     -- open a work order (vehicle -> in_shop)
GET   /api/v1/maintenance                     -- list, filter by state / vehicle
PATCH /api/v1/maintenance/{order_id}          -- edit fields, scheduled -> in_progress
POST  /api/v1/maintenance/{order_id}/complete -- close, smart-revert the vehicle
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fleetflow.api.dependencies import get_db, get_fleet_service
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import (
    ErrorResponse,
    MaintenanceCreateRequest,
    MaintenanceResponse,
    MaintenanceUpdateRequest,
)
from fleetflow.config import settings
from fleetflow.domain.commands import (
    CompleteMaintenanceOrder,
    CreateMaintenanceOrder,
    UpdateMaintenanceOrder,
)
from fleetflow.domain.enums import MaintenanceState
from fleetflow.infrastructure.repositories import MaintenanceRepository
from fleetflow.services.fleet import FleetService

router = APIRouter(prefix="/maintenance", tags=["maintenance"])

_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "",
    status_code=201,
    response_model=MaintenanceResponse,
    summary="Open a maintenance order",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def create_order(
    request: Request,
    body: MaintenanceCreateRequest,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.execute(CreateMaintenanceOrder(**body.model_dump()))


@router.get("", response_model=list[MaintenanceResponse], summary="List maintenance orders")
@limiter.limit(settings.rate_limit)
async def list_orders(
    request: Request,
    state: Optional[MaintenanceState] = None,
    vehicle_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    return await MaintenanceRepository(db).list(state=state, vehicle_id=vehicle_id)


@router.patch(
    "/{order_id}",
    response_model=MaintenanceResponse,
    summary="Edit an open maintenance order",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def update_order(
    request: Request,
    order_id: int,
    body: MaintenanceUpdateRequest,
    service: FleetService = Depends(get_fleet_service),
):
    changes = body.model_dump(exclude_unset=True)
    state = changes.pop("state", None)
    return await service.execute(
        UpdateMaintenanceOrder(order_id=order_id, changes=changes, state=state)
    )


@router.post(
    "/{order_id}/complete",
    response_model=MaintenanceResponse,
    summary="Mark a maintenance order done",
    description=(
        "The vehicle returns to available only when no other open order "
        "references it."
    ),
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def complete_order(
    request: Request,
    order_id: int,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.execute(CompleteMaintenanceOrder(order_id=order_id))
