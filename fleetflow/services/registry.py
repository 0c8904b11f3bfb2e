"""Vehicle and driver registration and administration."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from .ledger import AvailabilityLedger
from fleetflow.domain import policy
from fleetflow.domain.commands import RegisterDriver, RegisterVehicle
from fleetflow.domain.enums import VehicleStatus
from fleetflow.domain.errors import NotFound, Reason
from fleetflow.infrastructure.models import DriverModel, VehicleModel
from fleetflow.infrastructure.repositories import (
    DriverRepository,
    TripRepository,
    VehicleRepository,
)

logger = logging.getLogger(__name__)

VEHICLE_FIELDS = frozenset(
    {"name", "license_plate", "max_capacity", "odometer", "region", "acquisition_cost"}
)
DRIVER_FIELDS = frozenset(
    {"name", "license_number", "license_category", "license_expiry",
     "safety_score", "phone", "email"}
)


class ResourceRegistry:
    def __init__(self, session: AsyncSession, ledger: AvailabilityLedger):
        self.session = session
        self.vehicles = VehicleRepository(session)
        self.drivers = DriverRepository(session)
        self.trips = TripRepository(session)
        self.ledger = ledger

    async def vehicle(self, vehicle_id: int) -> VehicleModel:
        vehicle = await self.vehicles.get_by_id(vehicle_id)
        if not vehicle:
            raise NotFound(Reason.VEHICLE_NOT_FOUND, "Vehicle not found.")
        return vehicle

    async def driver(self, driver_id: int) -> DriverModel:
        driver = await self.drivers.get_by_id(driver_id)
        if not driver:
            raise NotFound(Reason.DRIVER_NOT_FOUND, "Driver not found.")
        return driver

    # ── Vehicles ──────────────────────────────────────────────────────

    async def register_vehicle(self, command: RegisterVehicle) -> VehicleModel:
        vehicle = await self.vehicles.create(
            name=command.name,
            license_plate=command.license_plate,
            type=command.type,
            max_capacity=command.max_capacity,
            odometer=command.odometer,
            region=command.region,
            acquisition_cost=command.acquisition_cost,
        )
        logger.info("Vehicle %s registered (%s)", vehicle.id, vehicle.license_plate)
        return vehicle

    async def update_vehicle(self, vehicle_id: int, changes: dict) -> VehicleModel:
        vehicle = await self.vehicle(vehicle_id)
        for name, value in changes.items():
            if name in VEHICLE_FIELDS:
                setattr(vehicle, name, value)
        await self.session.flush()
        return vehicle

    async def override_vehicle_status(
        self, vehicle_id: int, status: VehicleStatus
    ) -> VehicleModel:
        vehicle = await self.vehicle(vehicle_id)
        active = await self.trips.active_for_vehicle(vehicle.id)
        policy.check_vehicle_override(
            vehicle.snapshot(), status, active.snapshot() if active else None
        )
        self.ledger.override_vehicle_status(vehicle, status)
        await self.session.flush()
        return vehicle

    async def retire_vehicle(self, vehicle_id: int) -> VehicleModel:
        vehicle = await self.vehicle(vehicle_id)
        active = await self.trips.active_for_vehicle(vehicle.id)
        policy.check_retire(vehicle.snapshot(), active.snapshot() if active else None)
        self.ledger.override_vehicle_status(vehicle, VehicleStatus.RETIRED)
        await self.session.flush()
        return vehicle

    # ── Drivers ───────────────────────────────────────────────────────

    async def register_driver(self, command: RegisterDriver) -> DriverModel:
        driver = await self.drivers.create(
            name=command.name,
            license_number=command.license_number,
            license_category=command.license_category,
            license_expiry=command.license_expiry,
            safety_score=command.safety_score,
            phone=command.phone,
            email=command.email,
        )
        logger.info("Driver %s registered (%s)", driver.id, driver.license_number)
        return driver

    async def update_driver(self, driver_id: int, changes: dict) -> DriverModel:
        driver = await self.driver(driver_id)
        for name, value in changes.items():
            if name in DRIVER_FIELDS:
                setattr(driver, name, value)
        await self.session.flush()
        return driver

    async def suspend_driver(self, driver_id: int) -> DriverModel:
        driver = await self.driver(driver_id)
        policy.check_suspend(driver.snapshot())
        self.ledger.suspend_driver(driver)
        await self.session.flush()
        logger.info("Driver %s suspended", driver.id)
        return driver

    async def reinstate_driver(self, driver_id: int) -> DriverModel:
        driver = await self.driver(driver_id)
        policy.check_reinstate(driver.snapshot())
        self.ledger.reinstate_driver(driver)
        await self.session.flush()
        logger.info("Driver %s reinstated", driver.id)
        return driver
