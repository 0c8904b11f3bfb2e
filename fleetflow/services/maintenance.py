"""
Maintenance Work-Order Manager
==============================

``scheduled -> in_progress -> done`` (``scheduled -> done`` is allowed too).

* ``create``   -- opens an order and forces the vehicle ``in_shop``.
* ``update``   -- plain field patch; never touches vehicle or driver.
* ``complete`` -- closes the order, then applies the smart revert: the
  vehicle is released only when no *other* order on it is still open.
  The count runs after this order is marked done and excludes its id.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from .ledger import AvailabilityLedger
from fleetflow.domain import policy
from fleetflow.domain.commands import CreateMaintenanceOrder, UpdateMaintenanceOrder
from fleetflow.domain.enums import MaintenanceState
from fleetflow.domain.errors import NotFound, Reason
from fleetflow.infrastructure.models import MaintenanceOrderModel
from fleetflow.infrastructure.repositories import (
    MaintenanceRepository,
    TripRepository,
    VehicleRepository,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"description", "cost", "mechanic", "service_date"})


class MaintenanceOrderManager:
    def __init__(
        self,
        session: AsyncSession,
        ledger: AvailabilityLedger,
        clock: Callable[[], datetime],
        on_active_trip: str = "allow",
    ):
        self.orders = MaintenanceRepository(session)
        self.vehicles = VehicleRepository(session)
        self.trips = TripRepository(session)
        self.ledger = ledger
        self.clock = clock
        self.on_active_trip = on_active_trip

    async def get(self, order_id: int) -> MaintenanceOrderModel:
        order = await self.orders.get_by_id(order_id)
        if not order:
            raise NotFound(Reason.ORDER_NOT_FOUND, "Maintenance order not found.")
        return order

    async def create(self, command: CreateMaintenanceOrder) -> MaintenanceOrderModel:
        vehicle = await self.vehicles.get_by_id(command.vehicle_id)
        if not vehicle:
            raise NotFound(Reason.VEHICLE_NOT_FOUND, "Vehicle not found.")

        active = await self.trips.active_for_vehicle(vehicle.id)
        policy.check_create_maintenance(
            vehicle.snapshot(),
            active.snapshot() if active else None,
            self.on_active_trip,
        )
        if active is not None:
            # Opening the order overwrites the on_trip status of a running trip.
            logger.warning(
                "Maintenance opened on vehicle %s while trip %s is dispatched",
                vehicle.id, active.reference,
            )

        order = await self.orders.create(
            vehicle=vehicle,
            description=command.description,
            cost=command.cost,
            mechanic=command.mechanic,
            service_date=command.service_date or self.clock().date(),
            state=MaintenanceState.SCHEDULED,
        )
        self.ledger.on_maintenance_opened(vehicle)
        await self.orders.session.flush()

        logger.info("Maintenance order %s opened on vehicle %s", order.id, vehicle.id)
        return order

    async def update(self, command: UpdateMaintenanceOrder) -> MaintenanceOrderModel:
        order = await self.get(command.order_id)
        policy.check_update_maintenance(order.snapshot(), command.state)

        for name, value in command.changes.items():
            if name in UPDATABLE_FIELDS:
                setattr(order, name, value)
        if command.state is not None:
            order.state = command.state
        await self.orders.session.flush()
        return order

    async def complete(self, order_id: int) -> MaintenanceOrderModel:
        order = await self.get(order_id)
        policy.check_complete_maintenance(order.snapshot())

        order.state = MaintenanceState.DONE
        order.completed_at = self.clock()
        await self.orders.session.flush()

        other_open = await self.orders.count_open_for_vehicle(
            order.vehicle_id, exclude_id=order.id
        )
        active_trips = await self.trips.count_active_for_vehicle(order.vehicle_id)
        self.ledger.on_maintenance_closed(
            order.vehicle, other_open_orders=other_open, active_trips=active_trips
        )
        await self.orders.session.flush()

        logger.info(
            "Maintenance order %s done (vehicle=%s, other open=%d)",
            order.id, order.vehicle_id, other_open,
        )
        return order
