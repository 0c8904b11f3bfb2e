"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from fleetflow.domain.enums import (
    DriverStatus,
    MaintenanceState,
    TripState,
    VehicleStatus,
    VehicleType,
)


# ── Requests ──────────────────────────────────────────────────────────


def _required(value):
    # PATCH bodies may omit these fields but not clear them.
    if value is None:
        raise ValueError("Field cannot be null")
    return value


class TripCreateRequest(BaseModel):
    vehicle_id: int
    driver_id: int
    origin: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    cargo_weight: float = Field(..., ge=0)
    date_start: Optional[datetime] = None
    odometer_start: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class TripCompleteRequest(BaseModel):
    odometer_end: Optional[float] = Field(None, ge=0)


class MaintenanceCreateRequest(BaseModel):
    vehicle_id: int
    description: str = Field(..., min_length=1)
    service_date: Optional[date] = None
    cost: Optional[float] = Field(None, ge=0)
    mechanic: Optional[str] = Field(None, max_length=120)


class MaintenanceUpdateRequest(BaseModel):
    description: Optional[str] = Field(None, min_length=1)
    service_date: Optional[date] = None
    cost: Optional[float] = Field(None, ge=0)
    mechanic: Optional[str] = Field(None, max_length=120)
    state: Optional[MaintenanceState] = None

    @field_validator("description", "state")
    @classmethod
    def not_null(cls, v):
        return _required(v)


class VehicleCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    license_plate: str = Field(..., min_length=1, max_length=32)
    type: VehicleType
    max_capacity: float = Field(..., gt=0)
    odometer: float = Field(0.0, ge=0)
    region: Optional[str] = Field(None, max_length=64)
    acquisition_cost: Optional[float] = Field(None, ge=0)


class VehicleUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    license_plate: Optional[str] = Field(None, min_length=1, max_length=32)
    max_capacity: Optional[float] = Field(None, gt=0)
    odometer: Optional[float] = Field(None, ge=0)
    region: Optional[str] = Field(None, max_length=64)
    acquisition_cost: Optional[float] = Field(None, ge=0)

    @field_validator("name", "license_plate", "max_capacity", "odometer")
    @classmethod
    def not_null(cls, v):
        return _required(v)


class VehicleStatusRequest(BaseModel):
    status: VehicleStatus


class DriverCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    license_number: str = Field(..., min_length=1, max_length=64)
    license_category: VehicleType
    license_expiry: date
    safety_score: float = Field(100.0, ge=0, le=100)
    phone: Optional[str] = Field(None, max_length=32)
    email: Optional[str] = Field(None, max_length=255)


class DriverUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    license_number: Optional[str] = Field(None, min_length=1, max_length=64)
    license_category: Optional[VehicleType] = None
    license_expiry: Optional[date] = None
    safety_score: Optional[float] = Field(None, ge=0, le=100)
    phone: Optional[str] = Field(None, max_length=32)
    email: Optional[str] = Field(None, max_length=255)

    @field_validator(
        "name", "license_number", "license_category", "license_expiry", "safety_score"
    )
    @classmethod
    def not_null(cls, v):
        return _required(v)


# ── Responses ─────────────────────────────────────────────────────────


class VehicleResponse(BaseModel):
    id: int
    name: str
    license_plate: str
    type: VehicleType
    max_capacity: float
    odometer: float
    status: VehicleStatus
    region: Optional[str] = None
    acquisition_cost: Optional[float] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DriverResponse(BaseModel):
    id: int
    name: str
    license_number: str
    license_category: VehicleType
    license_expiry: date
    safety_score: float
    status: DriverStatus
    trips_completed: int
    phone: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class VehicleSummary(BaseModel):
    id: int
    name: str
    license_plate: str
    status: VehicleStatus
    odometer: float
    max_capacity: float

    model_config = {"from_attributes": True}


class DriverSummary(BaseModel):
    id: int
    name: str
    license_category: VehicleType
    status: DriverStatus
    trips_completed: int

    model_config = {"from_attributes": True}


class TripResponse(BaseModel):
    id: int
    reference: Optional[str] = None
    vehicle: VehicleSummary
    driver: DriverSummary
    origin: str
    destination: str
    cargo_weight: float
    state: TripState
    date_start: Optional[datetime] = None
    date_end: Optional[datetime] = None
    odometer_start: Optional[float] = None
    odometer_end: Optional[float] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MaintenanceResponse(BaseModel):
    id: int
    vehicle: VehicleSummary
    description: str
    cost: Optional[float] = None
    mechanic: Optional[str] = None
    state: MaintenanceState
    service_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ReconcileResponse(BaseModel):
    vehicles_checked: int
    drivers_checked: int
    vehicles_repaired: int
    drivers_repaired: int
    skipped: bool

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"
    database: str = "ok"
    lock_backend: str = "local"


class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None
    type: Optional[str] = None
