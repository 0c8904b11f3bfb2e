"""
SQLAlchemy ORM models.

Tables
------
* ``vehicles``            -- fleet vehicles and their derived status
* ``drivers``             -- licensed drivers and their derived status
* ``trips``               -- delivery trips (one vehicle + one driver)
* ``maintenance_orders``  -- work orders against a vehicle

Every table carries a ``version`` column used as SQLAlchemy's
``version_id_col``: an UPDATE whose row changed since it was read raises
``StaleDataError`` instead of silently overwriting.

Derived fields
--------------
``VehicleModel.status``, ``DriverModel.status`` and
``DriverModel.trips_completed`` may only be assigned inside
:func:`ledger_scope`, which the availability ledger opens around its
writes.  Any other assignment raises :class:`DerivedFieldWriteError`.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Iterator

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship, validates

from .database import Base
from fleetflow.domain.entities import Driver, MaintenanceOrder, Trip, Vehicle
from fleetflow.domain.enums import (
    DriverStatus,
    MaintenanceState,
    TripState,
    VehicleStatus,
    VehicleType,
)

_ledger_writes: ContextVar[bool] = ContextVar("ledger_writes", default=False)


class DerivedFieldWriteError(RuntimeError):
    """Raised when code outside the availability ledger writes a status."""


@contextmanager
def ledger_scope() -> Iterator[None]:
    token = _ledger_writes.set(True)
    try:
        yield
    finally:
        _ledger_writes.reset(token)


def _guard_derived(obj, key: str, value):
    if not _ledger_writes.get():
        raise DerivedFieldWriteError(
            f"{type(obj).__name__}.{key} is owned by the availability ledger"
        )
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum(enum_cls, name: str) -> Enum:
    # Persist the lowercase values, not the member names.
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
    )


_vehicle_type = _enum(VehicleType, "vehicletype")


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class VehicleModel(TimestampMixin, Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    license_plate = Column(String(32), unique=True, nullable=False)
    type = Column(_vehicle_type, nullable=False)
    max_capacity = Column(Float, nullable=False)
    odometer = Column(Float, default=0.0, nullable=False)
    status = Column(
        _enum(VehicleStatus, "vehiclestatus"),
        default=VehicleStatus.AVAILABLE,
        nullable=False,
    )
    region = Column(String(64), nullable=True)
    acquisition_cost = Column(Float, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        Index("idx_vehicles_status", "status"),
        Index("idx_vehicles_type", "type"),
    )

    @validates("status")
    def _validate_status(self, key, value):
        return _guard_derived(self, key, value)

    def snapshot(self) -> Vehicle:
        return Vehicle(
            id=self.id,
            type=VehicleType(self.type),
            max_capacity=self.max_capacity,
            odometer=self.odometer or 0.0,
            status=VehicleStatus(self.status),
            name=self.name,
        )


class DriverModel(TimestampMixin, Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    license_number = Column(String(64), unique=True, nullable=False)
    license_category = Column(_vehicle_type, nullable=False)
    license_expiry = Column(Date, nullable=False)
    safety_score = Column(Float, default=100.0, nullable=False)
    status = Column(
        _enum(DriverStatus, "driverstatus"),
        default=DriverStatus.OFF_DUTY,
        nullable=False,
    )
    trips_completed = Column(Integer, default=0, nullable=False)
    phone = Column(String(32), nullable=True)
    email = Column(String(255), nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (Index("idx_drivers_status", "status"),)

    @validates("status", "trips_completed")
    def _validate_derived(self, key, value):
        return _guard_derived(self, key, value)

    def snapshot(self) -> Driver:
        return Driver(
            id=self.id,
            license_category=VehicleType(self.license_category),
            license_expiry=self.license_expiry,
            status=DriverStatus(self.status),
            name=self.name,
        )


class TripModel(TimestampMixin, Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reference = Column(String(32), unique=True, nullable=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    origin = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    cargo_weight = Column(Float, nullable=False)
    state = Column(
        _enum(TripState, "tripstate"), default=TripState.DRAFT, nullable=False
    )
    date_start = Column(DateTime(timezone=True), nullable=True)
    date_end = Column(DateTime(timezone=True), nullable=True)
    odometer_start = Column(Float, nullable=True)
    odometer_end = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)

    vehicle = relationship("VehicleModel", lazy="joined")
    driver = relationship("DriverModel", lazy="joined")

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        Index("idx_trips_state", "state"),
        Index("idx_trips_vehicle", "vehicle_id"),
        Index("idx_trips_driver", "driver_id"),
    )

    @validates("reference")
    def _validate_reference(self, key, value):
        if self.reference is not None and value != self.reference:
            raise ValueError(f"Trip reference {self.reference} is immutable")
        return value

    def snapshot(self) -> Trip:
        return Trip(
            id=self.id,
            vehicle_id=self.vehicle_id,
            driver_id=self.driver_id,
            cargo_weight=self.cargo_weight,
            state=TripState(self.state),
            reference=self.reference,
            date_start=self.date_start,
        )


class MaintenanceOrderModel(TimestampMixin, Base):
    __tablename__ = "maintenance_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    description = Column(Text, nullable=False)
    cost = Column(Float, nullable=True)
    mechanic = Column(String(120), nullable=True)
    state = Column(
        _enum(MaintenanceState, "maintenancestate"),
        default=MaintenanceState.SCHEDULED,
        nullable=False,
    )
    service_date = Column(Date, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)

    vehicle = relationship("VehicleModel", lazy="joined")

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        Index("idx_maintenance_vehicle_state", "vehicle_id", "state"),
    )

    def snapshot(self) -> MaintenanceOrder:
        return MaintenanceOrder(
            id=self.id,
            vehicle_id=self.vehicle_id,
            state=MaintenanceState(self.state),
        )
