"""Availability ledger: derivation rules and the ownership guard."""

from datetime import date

import pytest

from fleetflow.domain.enums import DriverStatus, VehicleStatus, VehicleType
from fleetflow.infrastructure.models import (
    DerivedFieldWriteError,
    DriverModel,
    VehicleModel,
    ledger_scope,
)
from fleetflow.services.ledger import (
    AvailabilityLedger,
    derive_driver_status,
    derive_vehicle_status,
)


def _vehicle(status=VehicleStatus.AVAILABLE) -> VehicleModel:
    vehicle = VehicleModel(
        id=1, name="V", license_plate="P-1", type=VehicleType.TRUCK,
        max_capacity=1000.0, odometer=0.0,
    )
    with ledger_scope():
        vehicle.status = status
    return vehicle


def _driver(status=DriverStatus.OFF_DUTY, trips_completed=0) -> DriverModel:
    driver = DriverModel(
        id=1, name="D", license_number="L-1", license_category=VehicleType.TRUCK,
        license_expiry=date(2026, 1, 1),
    )
    with ledger_scope():
        driver.status = status
        driver.trips_completed = trips_completed
    return driver


class TestDerivation:
    @pytest.mark.parametrize(
        "current,trips,orders,expected",
        [
            (VehicleStatus.AVAILABLE, 1, 0, VehicleStatus.ON_TRIP),
            (VehicleStatus.IN_SHOP, 1, 1, VehicleStatus.IN_SHOP),
            (VehicleStatus.ON_TRIP, 1, 1, VehicleStatus.IN_SHOP),
            (VehicleStatus.IN_SHOP, 1, 0, VehicleStatus.ON_TRIP),
            (VehicleStatus.ON_TRIP, 0, 1, VehicleStatus.IN_SHOP),
            (VehicleStatus.ON_TRIP, 0, 0, VehicleStatus.AVAILABLE),
            (VehicleStatus.IN_SHOP, 0, 0, VehicleStatus.AVAILABLE),
            (VehicleStatus.RETIRED, 0, 0, VehicleStatus.RETIRED),
            (VehicleStatus.SUSPENDED, 0, 0, VehicleStatus.SUSPENDED),
            (VehicleStatus.RETIRED, 0, 2, VehicleStatus.RETIRED),
            (VehicleStatus.SUSPENDED, 0, 1, VehicleStatus.SUSPENDED),
        ],
    )
    def test_vehicle(self, current, trips, orders, expected):
        assert derive_vehicle_status(current, trips, orders) == expected

    def test_driver(self):
        assert derive_driver_status(DriverStatus.OFF_DUTY, 1) == DriverStatus.ON_DUTY
        assert derive_driver_status(DriverStatus.ON_DUTY, 0) == DriverStatus.OFF_DUTY
        assert derive_driver_status(DriverStatus.SUSPENDED, 0) == DriverStatus.SUSPENDED


class TestGuard:
    def test_direct_vehicle_status_write_is_rejected(self):
        vehicle = _vehicle()
        with pytest.raises(DerivedFieldWriteError):
            vehicle.status = VehicleStatus.ON_TRIP
        assert vehicle.status == VehicleStatus.AVAILABLE

    def test_direct_driver_writes_are_rejected(self):
        driver = _driver()
        with pytest.raises(DerivedFieldWriteError):
            driver.status = DriverStatus.ON_DUTY
        with pytest.raises(DerivedFieldWriteError):
            driver.trips_completed = 10

    def test_scope_is_closed_after_exit(self):
        vehicle = _vehicle()
        with ledger_scope():
            vehicle.status = VehicleStatus.IN_SHOP
        with pytest.raises(DerivedFieldWriteError):
            vehicle.status = VehicleStatus.AVAILABLE

    def test_descriptive_fields_are_free(self):
        vehicle = _vehicle()
        vehicle.odometer = 100.0
        vehicle.name = "Renamed"
        assert vehicle.odometer == 100.0


class TestLedger:
    def setup_method(self):
        self.ledger = AvailabilityLedger()

    def test_dispatch(self):
        vehicle, driver = _vehicle(), _driver()
        self.ledger.on_dispatch(vehicle, driver)
        assert vehicle.status == VehicleStatus.ON_TRIP
        assert driver.status == DriverStatus.ON_DUTY

    def test_complete_counts_trip_and_records_odometer(self):
        vehicle = _vehicle(VehicleStatus.ON_TRIP)
        driver = _driver(DriverStatus.ON_DUTY, trips_completed=4)
        self.ledger.on_trip_closed(vehicle, driver, completed=True, odometer_end=45000)
        assert vehicle.status == VehicleStatus.AVAILABLE
        assert vehicle.odometer == 45000
        assert driver.status == DriverStatus.OFF_DUTY
        assert driver.trips_completed == 5

    def test_cancel_does_not_count_trip(self):
        vehicle = _vehicle(VehicleStatus.ON_TRIP)
        driver = _driver(DriverStatus.ON_DUTY, trips_completed=4)
        self.ledger.on_trip_closed(vehicle, driver, completed=False)
        assert driver.trips_completed == 4

    def test_trip_closed_with_open_order_leaves_vehicle_in_shop(self):
        vehicle = _vehicle(VehicleStatus.IN_SHOP)
        self.ledger.on_trip_closed(vehicle, _driver(DriverStatus.ON_DUTY),
                                   completed=True, open_orders=1)
        assert vehicle.status == VehicleStatus.IN_SHOP

    def test_smart_revert(self):
        vehicle = _vehicle(VehicleStatus.IN_SHOP)
        self.ledger.on_maintenance_closed(vehicle, other_open_orders=1, active_trips=0)
        assert vehicle.status == VehicleStatus.IN_SHOP
        self.ledger.on_maintenance_closed(vehicle, other_open_orders=0, active_trips=0)
        assert vehicle.status == VehicleStatus.AVAILABLE

    def test_reconcile_repairs_drift(self):
        vehicle = _vehicle(VehicleStatus.AVAILABLE)
        assert self.ledger.reconcile_vehicle(vehicle, active_trips=1, open_orders=0)
        assert vehicle.status == VehicleStatus.ON_TRIP
        assert not self.ledger.reconcile_vehicle(vehicle, active_trips=1, open_orders=0)

        driver = _driver(DriverStatus.ON_DUTY)
        assert self.ledger.reconcile_driver(driver, active_trips=0)
        assert driver.status == DriverStatus.OFF_DUTY
