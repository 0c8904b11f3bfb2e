"""
Trip Lifecycle Manager
======================

State machine (terminal states: ``completed``, ``cancelled``)::

    draft --dispatch--> dispatched --complete--> completed
    draft --cancel----> cancelled
    dispatched --cancel--> cancelled

Every operation follows the same order: load fresh snapshots, run the
validation policy, mutate the trip, let the availability ledger update the
vehicle and driver, flush.  A policy failure raises before anything is
written, so the caller's transaction has nothing to roll back.

The manager assumes its caller already holds the per-entity locks and owns
the transaction (see :class:`fleetflow.services.fleet.FleetService`).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .ledger import AvailabilityLedger
from fleetflow.domain import policy
from fleetflow.domain.commands import CreateTrip
from fleetflow.domain.enums import TripState
from fleetflow.domain.errors import NotFound, Reason
from fleetflow.infrastructure.models import DriverModel, TripModel, VehicleModel
from fleetflow.infrastructure.repositories import (
    DriverRepository,
    MaintenanceRepository,
    TripRepository,
    VehicleRepository,
)

logger = logging.getLogger(__name__)


def format_trip_reference(year: int, trip_id: int) -> str:
    return f"TRIP-{year}-{trip_id:03d}"


class TripLifecycleManager:
    def __init__(
        self,
        session: AsyncSession,
        ledger: AvailabilityLedger,
        clock: Callable[[], datetime],
    ):
        self.trips = TripRepository(session)
        self.vehicles = VehicleRepository(session)
        self.drivers = DriverRepository(session)
        self.orders = MaintenanceRepository(session)
        self.ledger = ledger
        self.clock = clock

    # ── Loading ───────────────────────────────────────────────────────

    async def _vehicle(self, vehicle_id: int) -> VehicleModel:
        vehicle = await self.vehicles.get_by_id(vehicle_id)
        if not vehicle:
            raise NotFound(Reason.VEHICLE_NOT_FOUND, "Vehicle not found.")
        return vehicle

    async def _driver(self, driver_id: int) -> DriverModel:
        driver = await self.drivers.get_by_id(driver_id)
        if not driver:
            raise NotFound(Reason.DRIVER_NOT_FOUND, "Driver not found.")
        return driver

    async def get(self, trip_id: int) -> TripModel:
        trip = await self.trips.get_by_id(trip_id)
        if not trip:
            raise NotFound(Reason.TRIP_NOT_FOUND, "Trip not found.")
        return trip

    # ── Operations ────────────────────────────────────────────────────

    async def create(self, command: CreateTrip) -> TripModel:
        vehicle = await self._vehicle(command.vehicle_id)
        driver = await self._driver(command.driver_id)
        now = self.clock()

        policy.check_create_trip(
            vehicle.snapshot(), driver.snapshot(), command.cargo_weight, now.date()
        )

        trip = await self.trips.create(
            TripModel(
                vehicle=vehicle,
                driver=driver,
                origin=command.origin,
                destination=command.destination,
                cargo_weight=command.cargo_weight,
                date_start=command.date_start,
                odometer_start=command.odometer_start,
                notes=command.notes,
                state=TripState.DRAFT,
            )
        )
        # The reference needs the generated id, so it is set after the insert.
        trip.reference = format_trip_reference(now.year, trip.id)
        await self.trips.session.flush()

        logger.info(
            "Trip %s created (vehicle=%s driver=%s cargo=%.1fkg)",
            trip.reference, vehicle.id, driver.id, command.cargo_weight,
        )
        return trip

    async def dispatch(self, trip_id: int) -> TripModel:
        trip = await self.get(trip_id)
        vehicle, driver = trip.vehicle, trip.driver
        now = self.clock()

        policy.check_dispatch(
            trip.snapshot(), vehicle.snapshot(), driver.snapshot(), now.date()
        )

        trip.state = TripState.DISPATCHED
        if trip.date_start is None:
            trip.date_start = now
        self.ledger.on_dispatch(vehicle, driver)
        await self.trips.session.flush()

        logger.info(
            "Trip %s dispatched (vehicle=%s driver=%s)",
            trip.reference, vehicle.id, driver.id,
        )
        return trip

    async def complete(
        self, trip_id: int, odometer_end: Optional[float] = None
    ) -> TripModel:
        trip = await self.get(trip_id)
        policy.check_complete(trip.snapshot())

        trip.state = TripState.COMPLETED
        trip.date_end = self.clock()
        if odometer_end is not None:
            trip.odometer_end = odometer_end

        open_orders = await self.orders.count_open_for_vehicle(trip.vehicle_id)
        self.ledger.on_trip_closed(
            trip.vehicle,
            trip.driver,
            completed=True,
            open_orders=open_orders,
            odometer_end=odometer_end,
        )
        await self.trips.session.flush()

        logger.info("Trip %s completed (odometer_end=%s)", trip.reference, odometer_end)
        return trip

    async def cancel(self, trip_id: int) -> TripModel:
        trip = await self.get(trip_id)
        was_dispatched = policy.check_cancel(trip.snapshot())

        trip.state = TripState.CANCELLED
        trip.date_end = self.clock()

        if was_dispatched:
            open_orders = await self.orders.count_open_for_vehicle(trip.vehicle_id)
            self.ledger.on_trip_closed(
                trip.vehicle, trip.driver, completed=False, open_orders=open_orders
            )
        await self.trips.session.flush()

        logger.info(
            "Trip %s cancelled (resources released=%s)", trip.reference, was_dispatched
        )
        return trip
