"""Maintenance work orders and the smart revert rule."""

from datetime import date

import pytest

from fleetflow.config import Settings
from fleetflow.domain.commands import (
    CompleteMaintenanceOrder,
    CompleteTrip,
    CreateMaintenanceOrder,
    CreateTrip,
    DispatchTrip,
    RetireVehicle,
    UpdateMaintenanceOrder,
)
from fleetflow.domain.enums import MaintenanceState, VehicleStatus
from fleetflow.domain.errors import (
    AlreadyTerminal,
    InvalidStateTransition,
    NotFound,
    PolicyViolation,
    PreconditionFailed,
    Reason,
)
from fleetflow.infrastructure.models import VehicleModel
from fleetflow.services.fleet import FleetService
from tests.conftest import fixed_clock, reload


def _order(vehicle, description="Brake pads") -> CreateMaintenanceOrder:
    return CreateMaintenanceOrder(vehicle_id=vehicle.id, description=description)


async def _vehicle_status(session_factory, vehicle_id):
    return (await reload(session_factory, VehicleModel, vehicle_id)).status


class TestSmartRevert:
    @pytest.mark.asyncio
    async def test_create_forces_in_shop(self, service, fleet, session_factory):
        vehicle = await fleet.vehicle()
        order = await service.execute(_order(vehicle))

        assert order.state == MaintenanceState.SCHEDULED
        assert order.service_date == date(2025, 6, 1)
        assert await _vehicle_status(session_factory, vehicle.id) == VehicleStatus.IN_SHOP

    @pytest.mark.asyncio
    async def test_two_orders_need_two_completions(self, service, fleet, session_factory):
        vehicle = await fleet.vehicle()
        first = await service.execute(_order(vehicle, "Brake pads"))
        second = await service.execute(_order(vehicle, "Oil change"))

        await service.execute(CompleteMaintenanceOrder(order_id=first.id))
        assert await _vehicle_status(session_factory, vehicle.id) == VehicleStatus.IN_SHOP

        await service.execute(CompleteMaintenanceOrder(order_id=second.id))
        assert await _vehicle_status(session_factory, vehicle.id) == VehicleStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_in_progress_order_still_holds_vehicle(
        self, service, fleet, session_factory
    ):
        vehicle = await fleet.vehicle()
        first = await service.execute(_order(vehicle))
        second = await service.execute(_order(vehicle))
        await service.execute(
            UpdateMaintenanceOrder(
                order_id=second.id, changes={}, state=MaintenanceState.IN_PROGRESS
            )
        )

        await service.execute(CompleteMaintenanceOrder(order_id=first.id))
        assert await _vehicle_status(session_factory, vehicle.id) == VehicleStatus.IN_SHOP

    @pytest.mark.asyncio
    async def test_complete_twice_is_already_terminal(self, service, fleet):
        vehicle = await fleet.vehicle()
        order = await service.execute(_order(vehicle))
        done = await service.execute(CompleteMaintenanceOrder(order_id=order.id))
        assert done.state == MaintenanceState.DONE
        assert done.completed_at is not None

        with pytest.raises(AlreadyTerminal) as exc:
            await service.execute(CompleteMaintenanceOrder(order_id=order.id))
        assert exc.value.message == "Already marked as done."

    @pytest.mark.asyncio
    async def test_unknown_order_is_not_found(self, service):
        with pytest.raises(NotFound) as exc:
            await service.execute(CompleteMaintenanceOrder(order_id=42))
        assert exc.value.reason == Reason.ORDER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_retired_vehicle_stays_retired(self, service, fleet, session_factory):
        vehicle = await fleet.vehicle()
        order = await service.execute(_order(vehicle))
        await service.execute(RetireVehicle(vehicle_id=vehicle.id))
        await service.execute(CompleteMaintenanceOrder(order_id=order.id))

        assert await _vehicle_status(session_factory, vehicle.id) == VehicleStatus.RETIRED

    @pytest.mark.asyncio
    async def test_order_on_retired_vehicle_releases_it(
        self, service, fleet, session_factory
    ):
        vehicle = await fleet.vehicle()
        await service.execute(RetireVehicle(vehicle_id=vehicle.id))

        order = await service.execute(_order(vehicle))
        assert await _vehicle_status(session_factory, vehicle.id) == VehicleStatus.IN_SHOP

        await service.execute(CompleteMaintenanceOrder(order_id=order.id))
        assert await _vehicle_status(session_factory, vehicle.id) == VehicleStatus.AVAILABLE


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_patches_fields_only(self, service, fleet, session_factory):
        vehicle = await fleet.vehicle()
        order = await service.execute(_order(vehicle))

        updated = await service.execute(
            UpdateMaintenanceOrder(
                order_id=order.id,
                changes={"cost": 320.0, "mechanic": "Ravi", "vehicle_id": 999},
            )
        )

        assert updated.cost == 320.0
        assert updated.mechanic == "Ravi"
        assert updated.vehicle_id == vehicle.id
        assert await _vehicle_status(session_factory, vehicle.id) == VehicleStatus.IN_SHOP

    @pytest.mark.asyncio
    async def test_update_cannot_close_order(self, service, fleet):
        vehicle = await fleet.vehicle()
        order = await service.execute(_order(vehicle))

        with pytest.raises(PreconditionFailed):
            await service.execute(
                UpdateMaintenanceOrder(
                    order_id=order.id, changes={}, state=MaintenanceState.DONE
                )
            )

    @pytest.mark.asyncio
    async def test_update_cannot_move_backwards(self, service, fleet):
        vehicle = await fleet.vehicle()
        order = await service.execute(_order(vehicle))
        await service.execute(
            UpdateMaintenanceOrder(
                order_id=order.id, changes={}, state=MaintenanceState.IN_PROGRESS
            )
        )

        with pytest.raises(InvalidStateTransition):
            await service.execute(
                UpdateMaintenanceOrder(
                    order_id=order.id, changes={}, state=MaintenanceState.SCHEDULED
                )
            )

    @pytest.mark.asyncio
    async def test_update_done_order_rejected(self, service, fleet):
        vehicle = await fleet.vehicle()
        order = await service.execute(_order(vehicle))
        await service.execute(CompleteMaintenanceOrder(order_id=order.id))

        with pytest.raises(AlreadyTerminal):
            await service.execute(
                UpdateMaintenanceOrder(order_id=order.id, changes={"cost": 10.0})
            )


class TestActiveTrip:
    async def _dispatched(self, service, fleet):
        vehicle = await fleet.vehicle()
        driver = await fleet.driver()
        trip = await service.execute(
            CreateTrip(
                vehicle_id=vehicle.id, driver_id=driver.id,
                origin="A", destination="B", cargo_weight=100,
            )
        )
        await service.execute(DispatchTrip(trip_id=trip.id))
        return vehicle, trip

    @pytest.mark.asyncio
    async def test_allow_mode_overrides_on_trip(self, service, fleet, session_factory):
        vehicle, trip = await self._dispatched(service, fleet)

        await service.execute(_order(vehicle))
        assert await _vehicle_status(session_factory, vehicle.id) == VehicleStatus.IN_SHOP

        # Closing the trip while the order is open keeps the vehicle in the shop.
        await service.execute(CompleteTrip(trip_id=trip.id))
        assert await _vehicle_status(session_factory, vehicle.id) == VehicleStatus.IN_SHOP

    @pytest.mark.asyncio
    async def test_closing_order_restores_running_trip(
        self, service, fleet, session_factory
    ):
        vehicle, _ = await self._dispatched(service, fleet)
        order = await service.execute(_order(vehicle))
        assert await _vehicle_status(session_factory, vehicle.id) == VehicleStatus.IN_SHOP

        await service.execute(CompleteMaintenanceOrder(order_id=order.id))
        assert await _vehicle_status(session_factory, vehicle.id) == VehicleStatus.ON_TRIP

    @pytest.mark.asyncio
    async def test_reject_mode(self, session_factory, locks, fleet):
        strict = FleetService(
            session_factory,
            locks,
            clock=fixed_clock,
            settings=Settings(maintenance_on_active_trip="reject"),
        )
        vehicle, _ = await self._dispatched(fleet.service, fleet)

        with pytest.raises(PolicyViolation) as exc:
            await strict.execute(_order(vehicle))
        assert exc.value.reason == Reason.VEHICLE_ON_TRIP
        assert await _vehicle_status(session_factory, vehicle.id) == VehicleStatus.ON_TRIP
