"""
Point-in-time snapshots of the stored records.

The validation policy only ever sees these frozen values, never live ORM
rows, so a check cannot observe a write made half-way through a command.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from .enums import (
    DriverStatus,
    MaintenanceState,
    TripState,
    VehicleStatus,
    VehicleType,
)


@dataclass(frozen=True)
class Vehicle:
    id: int
    type: VehicleType
    max_capacity: float
    odometer: float = 0.0
    status: VehicleStatus = VehicleStatus.AVAILABLE
    name: str = ""


@dataclass(frozen=True)
class Driver:
    id: int
    license_category: VehicleType
    license_expiry: date
    status: DriverStatus = DriverStatus.OFF_DUTY
    name: str = ""

    def license_expired(self, today: date) -> bool:
        return self.license_expiry < today


@dataclass(frozen=True)
class Trip:
    id: int
    vehicle_id: int
    driver_id: int
    cargo_weight: float
    state: TripState = TripState.DRAFT
    reference: Optional[str] = None
    date_start: Optional[datetime] = None


@dataclass(frozen=True)
class MaintenanceOrder:
    id: int
    vehicle_id: int
    state: MaintenanceState = MaintenanceState.SCHEDULED
