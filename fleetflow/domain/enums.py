"""Domain enumerations and state-transition rules."""

import enum


class TripState(str, enum.Enum):
    DRAFT = "draft"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# State machine: maps current state -> set of valid next states
TRIP_TRANSITIONS: dict[TripState, set[TripState]] = {
    TripState.DRAFT: {TripState.DISPATCHED, TripState.CANCELLED},
    TripState.DISPATCHED: {TripState.COMPLETED, TripState.CANCELLED},
    TripState.COMPLETED: set(),
    TripState.CANCELLED: set(),
}


class MaintenanceState(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    DONE = "done"


MAINTENANCE_TRANSITIONS: dict[MaintenanceState, set[MaintenanceState]] = {
    MaintenanceState.SCHEDULED: {MaintenanceState.IN_PROGRESS, MaintenanceState.DONE},
    MaintenanceState.IN_PROGRESS: {MaintenanceState.DONE},
    MaintenanceState.DONE: set(),
}


class VehicleType(str, enum.Enum):
    TRUCK = "truck"
    VAN = "van"
    BIKE = "bike"


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "available"
    ON_TRIP = "on_trip"
    IN_SHOP = "in_shop"
    RETIRED = "retired"
    SUSPENDED = "suspended"


class DriverStatus(str, enum.Enum):
    OFF_DUTY = "off_duty"
    ON_DUTY = "on_duty"
    SUSPENDED = "suspended"
