"""
Fleet Service -- the command bus of the dispatch core.

Execution of one command
------------------------
1. Resolve which records the command touches.  Trip and order commands
   read the trip/order once, outside any lock, only to learn its vehicle
   and driver ids (those references never change).
2. Acquire the per-entity locks for all of them, in sorted key order.
3. Open one session / transaction (the unit of work).
4. Run the manager: it re-reads every record *inside* the lock, validates,
   mutates, and lets the availability ledger update vehicle/driver status.
5. Commit, then release the locks.

Any failure rolls the whole transaction back, so a trip can never be
persisted without the matching vehicle/driver writes.  A write that loses
an optimistic version check (``StaleDataError``) surfaces as
:class:`~fleetflow.domain.errors.Conflict`; so does a lock wait that runs
out of time.  The service never retries on its own.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from .ledger import AvailabilityLedger
from .maintenance import MaintenanceOrderManager
from .registry import ResourceRegistry
from .trips import TripLifecycleManager
from fleetflow.config import Settings, settings as default_settings
from fleetflow.domain import commands as cmd
from fleetflow.domain.errors import Conflict, NotFound, Reason
from fleetflow.infrastructure.locks import LockNotAcquired, LockRegistry, lock_key
from fleetflow.infrastructure.repositories import MaintenanceRepository, TripRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FleetService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        locks: LockRegistry,
        clock: Callable[[], datetime] = utcnow,
        settings: Optional[Settings] = None,
    ):
        self.session_factory = session_factory
        self.locks = locks
        self.clock = clock
        self.settings = settings or default_settings
        self.ledger = AvailabilityLedger()
        self._handlers: dict[type, Callable[[Any], Awaitable[Any]]] = {
            cmd.CreateTrip: self._create_trip,
            cmd.DispatchTrip: self._dispatch_trip,
            cmd.CompleteTrip: self._complete_trip,
            cmd.CancelTrip: self._cancel_trip,
            cmd.CreateMaintenanceOrder: self._create_order,
            cmd.UpdateMaintenanceOrder: self._update_order,
            cmd.CompleteMaintenanceOrder: self._complete_order,
            cmd.RegisterVehicle: self._register_vehicle,
            cmd.UpdateVehicle: self._update_vehicle,
            cmd.OverrideVehicleStatus: self._override_vehicle,
            cmd.RetireVehicle: self._retire_vehicle,
            cmd.RegisterDriver: self._register_driver,
            cmd.UpdateDriver: self._update_driver,
            cmd.SuspendDriver: self._suspend_driver,
            cmd.ReinstateDriver: self._reinstate_driver,
        }

    async def execute(self, command: Any) -> Any:
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unsupported command: {type(command).__name__}")
        return await handler(command)

    # ── Unit of work ──────────────────────────────────────────────────

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[AsyncSession]:
        """Yield a session; commit on success, rollback on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except StaleDataError as exc:
                await session.rollback()
                logger.warning("Optimistic version check failed: %s", exc)
                raise Conflict(
                    Reason.CONCURRENT_MODIFICATION,
                    "The record was modified concurrently; reload and retry.",
                ) from exc
            except Exception:
                await session.rollback()
                raise

    async def _run(
        self, keys: tuple[str, ...], work: Callable[[AsyncSession], Awaitable[T]]
    ) -> T:
        try:
            async with self.locks.hold(*keys):
                async with self._unit_of_work() as session:
                    return await work(session)
        except LockNotAcquired as exc:
            raise Conflict(
                Reason.LOCK_TIMEOUT,
                f"{exc.key} is busy with another command; retry later.",
            ) from exc

    async def _trip_keys(self, trip_id: int) -> tuple[str, ...]:
        async with self.session_factory() as session:
            trip = await TripRepository(session).get_by_id(trip_id)
        if not trip:
            raise NotFound(Reason.TRIP_NOT_FOUND, "Trip not found.")
        return (
            lock_key("trip", trip.id),
            lock_key("vehicle", trip.vehicle_id),
            lock_key("driver", trip.driver_id),
        )

    async def _order_keys(self, order_id: int) -> tuple[str, ...]:
        async with self.session_factory() as session:
            order = await MaintenanceRepository(session).get_by_id(order_id)
        if not order:
            raise NotFound(Reason.ORDER_NOT_FOUND, "Maintenance order not found.")
        return (lock_key("maintenance", order.id), lock_key("vehicle", order.vehicle_id))

    def _trip_manager(self, session: AsyncSession) -> TripLifecycleManager:
        return TripLifecycleManager(session, self.ledger, self.clock)

    def _order_manager(self, session: AsyncSession) -> MaintenanceOrderManager:
        return MaintenanceOrderManager(
            session,
            self.ledger,
            self.clock,
            on_active_trip=self.settings.maintenance_on_active_trip,
        )

    # ── Trips ─────────────────────────────────────────────────────────

    async def _create_trip(self, command: cmd.CreateTrip):
        keys = (
            lock_key("vehicle", command.vehicle_id),
            lock_key("driver", command.driver_id),
        )
        return await self._run(keys, lambda s: self._trip_manager(s).create(command))

    async def _dispatch_trip(self, command: cmd.DispatchTrip):
        keys = await self._trip_keys(command.trip_id)
        return await self._run(
            keys, lambda s: self._trip_manager(s).dispatch(command.trip_id)
        )

    async def _complete_trip(self, command: cmd.CompleteTrip):
        keys = await self._trip_keys(command.trip_id)
        return await self._run(
            keys,
            lambda s: self._trip_manager(s).complete(
                command.trip_id, command.odometer_end
            ),
        )

    async def _cancel_trip(self, command: cmd.CancelTrip):
        keys = await self._trip_keys(command.trip_id)
        return await self._run(
            keys, lambda s: self._trip_manager(s).cancel(command.trip_id)
        )

    # ── Maintenance ───────────────────────────────────────────────────

    async def _create_order(self, command: cmd.CreateMaintenanceOrder):
        keys = (lock_key("vehicle", command.vehicle_id),)
        return await self._run(keys, lambda s: self._order_manager(s).create(command))

    async def _update_order(self, command: cmd.UpdateMaintenanceOrder):
        keys = await self._order_keys(command.order_id)
        return await self._run(keys, lambda s: self._order_manager(s).update(command))

    async def _complete_order(self, command: cmd.CompleteMaintenanceOrder):
        keys = await self._order_keys(command.order_id)
        return await self._run(
            keys, lambda s: self._order_manager(s).complete(command.order_id)
        )

    # ── Vehicles ──────────────────────────────────────────────────────

    async def _register_vehicle(self, command: cmd.RegisterVehicle):
        return await self._run(
            (), lambda s: ResourceRegistry(s, self.ledger).register_vehicle(command)
        )

    async def _update_vehicle(self, command: cmd.UpdateVehicle):
        return await self._run(
            (lock_key("vehicle", command.vehicle_id),),
            lambda s: ResourceRegistry(s, self.ledger).update_vehicle(
                command.vehicle_id, command.changes
            ),
        )

    async def _override_vehicle(self, command: cmd.OverrideVehicleStatus):
        return await self._run(
            (lock_key("vehicle", command.vehicle_id),),
            lambda s: ResourceRegistry(s, self.ledger).override_vehicle_status(
                command.vehicle_id, command.status
            ),
        )

    async def _retire_vehicle(self, command: cmd.RetireVehicle):
        return await self._run(
            (lock_key("vehicle", command.vehicle_id),),
            lambda s: ResourceRegistry(s, self.ledger).retire_vehicle(command.vehicle_id),
        )

    # ── Drivers ───────────────────────────────────────────────────────

    async def _register_driver(self, command: cmd.RegisterDriver):
        return await self._run(
            (), lambda s: ResourceRegistry(s, self.ledger).register_driver(command)
        )

    async def _update_driver(self, command: cmd.UpdateDriver):
        return await self._run(
            (lock_key("driver", command.driver_id),),
            lambda s: ResourceRegistry(s, self.ledger).update_driver(
                command.driver_id, command.changes
            ),
        )

    async def _suspend_driver(self, command: cmd.SuspendDriver):
        return await self._run(
            (lock_key("driver", command.driver_id),),
            lambda s: ResourceRegistry(s, self.ledger).suspend_driver(command.driver_id),
        )

    async def _reinstate_driver(self, command: cmd.ReinstateDriver):
        return await self._run(
            (lock_key("driver", command.driver_id),),
            lambda s: ResourceRegistry(s, self.ledger).reinstate_driver(
                command.driver_id
            ),
        )
