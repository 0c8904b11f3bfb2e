"""
Availability Ledger
===================

The only component allowed to write ``Vehicle.status``, ``Driver.status``
and ``Driver.trips_completed``.  Each method corresponds to one row of the
transition table below and writes exactly those fields:

======================================  ==============  =========  ===============
Transition                              Vehicle.status  Driver     trips_completed
======================================  ==============  =========  ===============
dispatch                                on_trip         on_duty    --
complete                                available [1]   off_duty   +1
cancel (was dispatched)                 available [1]   off_duty   --
cancel (was draft)                      --              --         --
maintenance opened                      in_shop         --         --
maintenance closed, 0 other open        available [2]   --         --
maintenance closed, >=1 other open      --              --         --
======================================  ==============  =========  ===============

[1] ``in_shop`` instead while a work order is open on the vehicle.
[2] ``on_trip`` instead when a dispatched trip still holds the vehicle.

Open work orders outrank a dispatched trip, so opening one on a vehicle
that is ``on_trip`` leaves it ``in_shop`` until the last order closes.
``retired`` and ``suspended`` are never derived away.

Writes happen inside :func:`~fleetflow.infrastructure.models.ledger_scope`;
the ORM rejects the same assignments anywhere else.
"""

from __future__ import annotations

import logging
from typing import Optional

from fleetflow.domain.enums import DriverStatus, VehicleStatus
from fleetflow.infrastructure.models import DriverModel, VehicleModel, ledger_scope

logger = logging.getLogger(__name__)

ADMINISTRATIVE_STATUSES = frozenset(
    {VehicleStatus.RETIRED, VehicleStatus.SUSPENDED}
)


def derive_vehicle_status(
    current: VehicleStatus, active_trips: int, open_orders: int
) -> VehicleStatus:
    """Status a vehicle should have given the trips and orders holding it.

    Precedence: ``retired`` / ``suspended`` (only an override changes them),
    then open work orders, then a dispatched trip.
    """
    if current in ADMINISTRATIVE_STATUSES:
        return current
    if open_orders:
        return VehicleStatus.IN_SHOP
    if active_trips:
        return VehicleStatus.ON_TRIP
    return VehicleStatus.AVAILABLE


def derive_driver_status(current: DriverStatus, active_trips: int) -> DriverStatus:
    if active_trips:
        return DriverStatus.ON_DUTY
    if current == DriverStatus.SUSPENDED:
        return current
    return DriverStatus.OFF_DUTY


class AvailabilityLedger:
    def _set_vehicle(self, vehicle: VehicleModel, status: VehicleStatus) -> None:
        if vehicle.status == status:
            return
        logger.debug("vehicle %s: %s -> %s", vehicle.id, vehicle.status, status)
        with ledger_scope():
            vehicle.status = status

    def _set_driver(self, driver: DriverModel, status: DriverStatus) -> None:
        if driver.status == status:
            return
        logger.debug("driver %s: %s -> %s", driver.id, driver.status, status)
        with ledger_scope():
            driver.status = status

    # ── Trip transitions ──────────────────────────────────────────────

    def on_dispatch(self, vehicle: VehicleModel, driver: DriverModel) -> None:
        self._set_vehicle(vehicle, VehicleStatus.ON_TRIP)
        self._set_driver(driver, DriverStatus.ON_DUTY)

    def on_trip_closed(
        self,
        vehicle: VehicleModel,
        driver: DriverModel,
        *,
        completed: bool,
        open_orders: int = 0,
        odometer_end: Optional[float] = None,
    ) -> None:
        """Release the resources of a dispatched trip that completed or was cancelled."""
        self._set_vehicle(
            vehicle, derive_vehicle_status(vehicle.status, 0, open_orders)
        )
        if odometer_end is not None:
            vehicle.odometer = odometer_end
        self._set_driver(driver, DriverStatus.OFF_DUTY)
        if completed:
            with ledger_scope():
                driver.trips_completed = (driver.trips_completed or 0) + 1

    # ── Maintenance transitions ───────────────────────────────────────

    def on_maintenance_opened(self, vehicle: VehicleModel) -> None:
        self._set_vehicle(vehicle, VehicleStatus.IN_SHOP)

    def on_maintenance_closed(
        self, vehicle: VehicleModel, *, other_open_orders: int, active_trips: int
    ) -> None:
        """Smart revert: only the last open order releases the vehicle."""
        if other_open_orders:
            return
        self._set_vehicle(
            vehicle, derive_vehicle_status(vehicle.status, active_trips, 0)
        )

    # ── Administration ────────────────────────────────────────────────

    def override_vehicle_status(
        self, vehicle: VehicleModel, status: VehicleStatus
    ) -> None:
        logger.info("vehicle %s status overridden to %s", vehicle.id, status.value)
        self._set_vehicle(vehicle, status)

    def suspend_driver(self, driver: DriverModel) -> None:
        self._set_driver(driver, DriverStatus.SUSPENDED)

    def reinstate_driver(self, driver: DriverModel) -> None:
        self._set_driver(driver, DriverStatus.OFF_DUTY)

    # ── Reconciliation ────────────────────────────────────────────────

    def reconcile_vehicle(
        self, vehicle: VehicleModel, *, active_trips: int, open_orders: int
    ) -> bool:
        """Repair *vehicle* if its status drifted.  True when a write happened."""
        expected = derive_vehicle_status(
            VehicleStatus(vehicle.status), active_trips, open_orders
        )
        if expected == vehicle.status:
            return False
        logger.warning(
            "vehicle %s status drift: %s, expected %s",
            vehicle.id, vehicle.status, expected,
        )
        self._set_vehicle(vehicle, expected)
        return True

    def reconcile_driver(self, driver: DriverModel, *, active_trips: int) -> bool:
        expected = derive_driver_status(DriverStatus(driver.status), active_trips)
        if expected == driver.status:
            return False
        logger.warning(
            "driver %s status drift: %s, expected %s",
            driver.id, driver.status, expected,
        )
        self._set_driver(driver, expected)
        return True
