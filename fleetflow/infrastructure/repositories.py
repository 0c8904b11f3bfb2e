"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Repositories never commit; the caller that
owns the session decides when the unit of work ends.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import DriverModel, MaintenanceOrderModel, TripModel, VehicleModel
from fleetflow.domain.enums import (
    DriverStatus,
    MaintenanceState,
    TripState,
    VehicleStatus,
    VehicleType,
)


class VehicleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **fields: Any) -> VehicleModel:
        vehicle = VehicleModel(**fields)
        self.session.add(vehicle)
        await self.session.flush()
        return vehicle

    async def get_by_id(self, vehicle_id: int) -> Optional[VehicleModel]:
        return await self.session.get(VehicleModel, vehicle_id)

    async def list(
        self,
        status: Optional[VehicleStatus] = None,
        vehicle_type: Optional[VehicleType] = None,
        region: Optional[str] = None,
    ) -> list[VehicleModel]:
        query = select(VehicleModel).order_by(VehicleModel.id.desc())
        if status:
            query = query.where(VehicleModel.status == status)
        if vehicle_type:
            query = query.where(VehicleModel.type == vehicle_type)
        if region:
            query = query.where(VehicleModel.region.ilike(f"%{region}%"))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def all_ids(self) -> list[int]:
        result = await self.session.execute(
            select(VehicleModel.id).order_by(VehicleModel.id)
        )
        return list(result.scalars().all())


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **fields: Any) -> DriverModel:
        driver = DriverModel(**fields)
        self.session.add(driver)
        await self.session.flush()
        return driver

    async def get_by_id(self, driver_id: int) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id)

    async def list(self, status: Optional[DriverStatus] = None) -> list[DriverModel]:
        query = select(DriverModel).order_by(DriverModel.id.desc())
        if status:
            query = query.where(DriverModel.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def all_ids(self) -> list[int]:
        result = await self.session.execute(
            select(DriverModel.id).order_by(DriverModel.id)
        )
        return list(result.scalars().all())


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, trip: TripModel) -> TripModel:
        self.session.add(trip)
        await self.session.flush()
        return trip

    async def get_by_id(self, trip_id: int) -> Optional[TripModel]:
        return await self.session.get(TripModel, trip_id)

    async def list(
        self,
        state: Optional[TripState] = None,
        vehicle_id: Optional[int] = None,
        driver_id: Optional[int] = None,
    ) -> list[TripModel]:
        query = select(TripModel).order_by(TripModel.id.desc())
        if state:
            query = query.where(TripModel.state == state)
        if vehicle_id is not None:
            query = query.where(TripModel.vehicle_id == vehicle_id)
        if driver_id is not None:
            query = query.where(TripModel.driver_id == driver_id)
        result = await self.session.execute(query)
        return list(result.scalars().unique().all())

    async def active_for_vehicle(self, vehicle_id: int) -> Optional[TripModel]:
        """The dispatched trip currently holding *vehicle_id*, if any."""
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.vehicle_id == vehicle_id)
            .where(TripModel.state == TripState.DISPATCHED)
            .limit(1)
        )
        return result.scalars().first()

    async def count_active_for_vehicle(self, vehicle_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(TripModel)
            .where(TripModel.vehicle_id == vehicle_id)
            .where(TripModel.state == TripState.DISPATCHED)
        )
        return result.scalar() or 0

    async def count_active_for_driver(self, driver_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(TripModel)
            .where(TripModel.driver_id == driver_id)
            .where(TripModel.state == TripState.DISPATCHED)
        )
        return result.scalar() or 0


class MaintenanceRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **fields: Any) -> MaintenanceOrderModel:
        order = MaintenanceOrderModel(**fields)
        self.session.add(order)
        await self.session.flush()
        return order

    async def get_by_id(self, order_id: int) -> Optional[MaintenanceOrderModel]:
        return await self.session.get(MaintenanceOrderModel, order_id)

    async def list(
        self,
        state: Optional[MaintenanceState] = None,
        vehicle_id: Optional[int] = None,
    ) -> list[MaintenanceOrderModel]:
        query = select(MaintenanceOrderModel).order_by(MaintenanceOrderModel.id.desc())
        if state:
            query = query.where(MaintenanceOrderModel.state == state)
        if vehicle_id is not None:
            query = query.where(MaintenanceOrderModel.vehicle_id == vehicle_id)
        result = await self.session.execute(query)
        return list(result.scalars().unique().all())

    async def count_open_for_vehicle(
        self, vehicle_id: int, exclude_id: Optional[int] = None
    ) -> int:
        """Non-done orders on *vehicle_id*, optionally excluding one order."""
        query = (
            select(func.count())
            .select_from(MaintenanceOrderModel)
            .where(MaintenanceOrderModel.vehicle_id == vehicle_id)
            .where(MaintenanceOrderModel.state != MaintenanceState.DONE)
        )
        if exclude_id is not None:
            query = query.where(MaintenanceOrderModel.id != exclude_id)
        result = await self.session.execute(query)
        return result.scalar() or 0
