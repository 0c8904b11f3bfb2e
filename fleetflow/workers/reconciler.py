"""
Background Reconciliation Worker
================================

Runs every ``RECONCILE_INTERVAL_SECONDS`` (default 300 s, 0 disables it).

Transitions commit trip, vehicle and driver together, so the core itself
never leaves a partial write behind.  This worker is the compensating job
for drift introduced from outside (manual SQL, a crashed process of an
older release, a restored backup): it re-derives every vehicle and driver
status from the non-terminal trips and work orders that reference it and
repairs mismatches through the availability ledger.

Concurrency safety
------------------
* The ``reconciler`` lock ensures only one instance runs a cycle at a time
  (across processes when the Redis lock backend is configured).
* Each vehicle / driver is repaired under its own entity lock, in its own
  transaction, so commands keep flowing while a cycle runs.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetflow.config import settings
from fleetflow.infrastructure.locks import LockNotAcquired, LockRegistry, lock_key
from fleetflow.infrastructure.repositories import (
    DriverRepository,
    MaintenanceRepository,
    TripRepository,
    VehicleRepository,
)
from fleetflow.services.ledger import AvailabilityLedger

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


@dataclass
class ReconcileReport:
    vehicles_checked: int = 0
    drivers_checked: int = 0
    vehicles_repaired: int = 0
    drivers_repaired: int = 0
    skipped: bool = False


# ── Public API ────────────────────────────────────────────────────────


async def start_reconcile_loop(
    session_factory: async_sessionmaker[AsyncSession], locks: LockRegistry
) -> None:
    global _task, _stop_event
    if settings.reconcile_interval_seconds <= 0:
        logger.info("Reconciliation worker disabled")
        return
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(session_factory, locks))
    logger.info(
        "Reconciliation worker started (interval=%ds)",
        settings.reconcile_interval_seconds,
    )


async def stop_reconcile_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Reconciliation worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop(
    session_factory: async_sessionmaker[AsyncSession], locks: LockRegistry
) -> None:
    """Periodic loop: run a reconciliation cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_reconcile_cycle(session_factory, locks)
        except Exception:
            logger.exception("Unhandled error in reconciliation cycle")
        # Wait for the interval or until stop is signalled
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.reconcile_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def run_reconcile_cycle(
    session_factory: async_sessionmaker[AsyncSession],
    locks: LockRegistry,
    ledger: Optional[AvailabilityLedger] = None,
) -> ReconcileReport:
    """Execute one reconciliation cycle over every vehicle and driver."""
    ledger = ledger or AvailabilityLedger()
    report = ReconcileReport()

    try:
        async with locks.hold("reconciler", wait_seconds=0):
            async with session_factory() as session:
                vehicle_ids = await VehicleRepository(session).all_ids()
                driver_ids = await DriverRepository(session).all_ids()

            for vehicle_id in vehicle_ids:
                repaired = await _under_entity_lock(
                    locks, lock_key("vehicle", vehicle_id),
                    _reconcile_vehicle(session_factory, ledger, vehicle_id),
                )
                report.vehicles_repaired += repaired
                report.vehicles_checked += 1

            for driver_id in driver_ids:
                repaired = await _under_entity_lock(
                    locks, lock_key("driver", driver_id),
                    _reconcile_driver(session_factory, ledger, driver_id),
                )
                report.drivers_repaired += repaired
                report.drivers_checked += 1
    except LockNotAcquired:
        logger.debug("Lock held by another worker – skipping cycle")
        report.skipped = True
        return report

    if report.vehicles_repaired or report.drivers_repaired:
        logger.info(
            "Reconciliation cycle: %d vehicles, %d drivers repaired",
            report.vehicles_repaired, report.drivers_repaired,
        )
    return report


async def _under_entity_lock(locks: LockRegistry, key: str, repair) -> bool:
    """Repair under the entity lock; a busy entity is left for the next cycle."""
    try:
        async with locks.hold(key, wait_seconds=0):
            return await repair
    except LockNotAcquired:
        repair.close()
        logger.info("%s busy, left for the next reconciliation cycle", key)
        return False


async def _reconcile_vehicle(
    session_factory: async_sessionmaker[AsyncSession],
    ledger: AvailabilityLedger,
    vehicle_id: int,
) -> bool:
    async with session_factory() as session:
        vehicle = await VehicleRepository(session).get_by_id(vehicle_id)
        if vehicle is None:
            return False
        active = await TripRepository(session).count_active_for_vehicle(vehicle_id)
        open_orders = await MaintenanceRepository(session).count_open_for_vehicle(
            vehicle_id
        )
        changed = ledger.reconcile_vehicle(
            vehicle, active_trips=active, open_orders=open_orders
        )
        await session.commit()
        return changed


async def _reconcile_driver(
    session_factory: async_sessionmaker[AsyncSession],
    ledger: AvailabilityLedger,
    driver_id: int,
) -> bool:
    async with session_factory() as session:
        driver = await DriverRepository(session).get_by_id(driver_id)
        if driver is None:
            return False
        active = await TripRepository(session).count_active_for_driver(driver_id)
        changed = ledger.reconcile_driver(driver, active_trips=active)
        await session.commit()
        return changed
