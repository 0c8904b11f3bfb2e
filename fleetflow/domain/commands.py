"""
Commands accepted by :class:`fleetflow.services.fleet.FleetService`.

One frozen dataclass per operation.  The HTTP layer builds them from
validated pydantic bodies, so the service never sees raw request dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from .enums import MaintenanceState, VehicleStatus, VehicleType


# ── Trips ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CreateTrip:
    vehicle_id: int
    driver_id: int
    origin: str
    destination: str
    cargo_weight: float
    date_start: Optional[datetime] = None
    odometer_start: Optional[float] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class DispatchTrip:
    trip_id: int


@dataclass(frozen=True)
class CompleteTrip:
    trip_id: int
    odometer_end: Optional[float] = None


@dataclass(frozen=True)
class CancelTrip:
    trip_id: int


# ── Maintenance ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class CreateMaintenanceOrder:
    vehicle_id: int
    description: str
    service_date: Optional[date] = None
    cost: Optional[float] = None
    mechanic: Optional[str] = None


@dataclass(frozen=True)
class UpdateMaintenanceOrder:
    order_id: int
    changes: dict[str, Any] = field(default_factory=dict)
    state: Optional[MaintenanceState] = None


@dataclass(frozen=True)
class CompleteMaintenanceOrder:
    order_id: int


# ── Vehicles ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RegisterVehicle:
    name: str
    license_plate: str
    type: VehicleType
    max_capacity: float
    odometer: float = 0.0
    region: Optional[str] = None
    acquisition_cost: Optional[float] = None


@dataclass(frozen=True)
class UpdateVehicle:
    vehicle_id: int
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OverrideVehicleStatus:
    vehicle_id: int
    status: VehicleStatus


@dataclass(frozen=True)
class RetireVehicle:
    vehicle_id: int


# ── Drivers ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RegisterDriver:
    name: str
    license_number: str
    license_category: VehicleType
    license_expiry: date
    safety_score: float = 100.0
    phone: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class UpdateDriver:
    driver_id: int
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SuspendDriver:
    driver_id: int


@dataclass(frozen=True)
class ReinstateDriver:
    driver_id: int
