"""
Validation Policy
=================

Pure, side-effect-free predicates over entity snapshots.  Each ``check_*``
function returns normally when the proposed transition is legal and raises
the matching :class:`~fleetflow.domain.errors.PolicyError` otherwise.

Callers must evaluate these *after* they hold the per-entity locks and
have re-read the snapshots, otherwise the answer can be stale by the time
the write lands.

Trip resource checks run in a fixed order and the first failure wins:

1. vehicle availability
2. cargo weight vs. capacity
3. driver suspension
4. driver already on duty
5. license expiry
6. license category vs. vehicle type
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from .entities import Driver, MaintenanceOrder, Trip, Vehicle
from .enums import (
    MAINTENANCE_TRANSITIONS,
    TRIP_TRANSITIONS,
    DriverStatus,
    MaintenanceState,
    TripState,
    VehicleStatus,
)
from .errors import (
    AlreadyTerminal,
    InvalidStateTransition,
    PolicyViolation,
    PreconditionFailed,
    Reason,
    StatusClass,
)


def can_transition(current: TripState, target: TripState) -> bool:
    return target in TRIP_TRANSITIONS.get(current, set())


def _ensure_trip_transition(trip: Trip, target: TripState, verb: str) -> None:
    if not can_transition(trip.state, target):
        raise InvalidStateTransition(
            Reason.INVALID_TRIP_STATE,
            f"Cannot {verb} a trip in state: {trip.state.value}",
        )


# ── Trips ─────────────────────────────────────────────────────────────


def check_trip_resources(
    vehicle: Vehicle, driver: Driver, cargo_weight: float, today: date
) -> None:
    """Run the five resource checks shared by create and dispatch."""
    if vehicle.status != VehicleStatus.AVAILABLE:
        raise PolicyViolation(
            Reason.VEHICLE_UNAVAILABLE,
            f"Vehicle is not available. Status: {vehicle.status.value}",
        )

    if cargo_weight > vehicle.max_capacity:
        raise PolicyViolation(
            Reason.CAPACITY_EXCEEDED,
            f"Cargo ({cargo_weight:g} kg) exceeds vehicle capacity "
            f"({vehicle.max_capacity:g} kg).",
            StatusClass.UNPROCESSABLE,
        )

    if driver.status == DriverStatus.SUSPENDED:
        raise PolicyViolation(Reason.DRIVER_SUSPENDED, "Driver is suspended.")

    if driver.status == DriverStatus.ON_DUTY:
        raise PolicyViolation(Reason.DRIVER_ON_DUTY, "Driver is already on duty.")

    if driver.license_expired(today):
        raise PolicyViolation(
            Reason.LICENSE_EXPIRED,
            f"Driver license expired on {driver.license_expiry.isoformat()}.",
        )

    # Exact match only: a truck license does not cover vans.
    if driver.license_category != vehicle.type:
        raise PolicyViolation(
            Reason.LICENSE_MISMATCH,
            f"Driver license ({driver.license_category.value}) doesn't match "
            f"vehicle type ({vehicle.type.value}).",
            StatusClass.UNPROCESSABLE,
        )


def check_create_trip(
    vehicle: Vehicle, driver: Driver, cargo_weight: float, today: date
) -> None:
    check_trip_resources(vehicle, driver, cargo_weight, today)


def check_dispatch(trip: Trip, vehicle: Vehicle, driver: Driver, today: date) -> None:
    """A draft trip whose resources still pass every creation check."""
    _ensure_trip_transition(trip, TripState.DISPATCHED, "dispatch")
    check_trip_resources(vehicle, driver, trip.cargo_weight, today)


def check_complete(trip: Trip) -> None:
    _ensure_trip_transition(trip, TripState.COMPLETED, "complete")


def check_cancel(trip: Trip) -> bool:
    """Validate a cancel and report whether resources must be released.

    The answer comes from the stored state only.
    """
    _ensure_trip_transition(trip, TripState.CANCELLED, "cancel")
    return trip.state == TripState.DISPATCHED


# ── Maintenance ───────────────────────────────────────────────────────


def check_create_maintenance(
    vehicle: Vehicle, active_trip: Optional[Trip], mode: str = "allow"
) -> None:
    """Orders may be opened against a vehicle in any state.

    With ``mode="reject"`` a vehicle held by a dispatched trip is refused.
    """
    if active_trip is not None and mode == "reject":
        raise PolicyViolation(
            Reason.VEHICLE_ON_TRIP,
            f"Vehicle is on trip {active_trip.reference}; complete or cancel it first.",
        )


def check_update_maintenance(
    order: MaintenanceOrder, new_state: Optional[MaintenanceState]
) -> None:
    if order.state == MaintenanceState.DONE:
        raise AlreadyTerminal(
            Reason.ORDER_ALREADY_DONE, "Maintenance order is already done."
        )
    if new_state is None or new_state == order.state:
        return
    if new_state == MaintenanceState.DONE:
        raise PreconditionFailed(
            Reason.INVALID_ORDER_STATE,
            "Use the complete operation to close a maintenance order.",
        )
    if new_state not in MAINTENANCE_TRANSITIONS[order.state]:
        raise InvalidStateTransition(
            Reason.INVALID_ORDER_STATE,
            f"Cannot move a maintenance order from {order.state.value} "
            f"to {new_state.value}",
        )


def check_complete_maintenance(order: MaintenanceOrder) -> None:
    if order.state == MaintenanceState.DONE:
        raise AlreadyTerminal(Reason.ORDER_ALREADY_DONE, "Already marked as done.")


# ── Administration ────────────────────────────────────────────────────


def check_vehicle_override(
    vehicle: Vehicle, target: VehicleStatus, active_trip: Optional[Trip]
) -> None:
    if target == VehicleStatus.ON_TRIP:
        raise PreconditionFailed(
            Reason.VEHICLE_ACTIVE,
            "Vehicles are put on trip by dispatching a trip, not by override.",
            StatusClass.UNPROCESSABLE,
        )
    if active_trip is not None:
        raise PreconditionFailed(
            Reason.VEHICLE_ACTIVE,
            f"Vehicle is on trip {active_trip.reference}.",
        )


def check_retire(vehicle: Vehicle, active_trip: Optional[Trip]) -> None:
    check_vehicle_override(vehicle, VehicleStatus.RETIRED, active_trip)


def check_suspend(driver: Driver) -> None:
    if driver.status == DriverStatus.ON_DUTY:
        raise PreconditionFailed(
            Reason.DRIVER_ACTIVE, "Driver is on duty; finish the trip first."
        )


def check_reinstate(driver: Driver) -> None:
    if driver.status != DriverStatus.SUSPENDED:
        raise PreconditionFailed(
            Reason.INVALID_DRIVER_STATE,
            f"Driver is not suspended. Status: {driver.status.value}",
        )
