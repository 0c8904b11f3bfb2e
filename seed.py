"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 8 sample vehicles (trucks, vans, bikes)
  - 6 sample drivers (one with an expired license)
  - 4 sample trips (mix of draft, dispatched, completed)
  - 2 sample maintenance orders against the same van

Everything goes through :class:`FleetService`, so vehicle and driver
statuses are written by the availability ledger exactly as in production.
"""

import asyncio
from datetime import date, timedelta

from sqlalchemy import text

from fleetflow.config import settings
from fleetflow.domain.commands import (
    CompleteTrip,
    CreateMaintenanceOrder,
    CreateTrip,
    DispatchTrip,
    RegisterDriver,
    RegisterVehicle,
)
from fleetflow.domain.enums import VehicleType
from fleetflow.infrastructure.database import async_session_factory, engine
from fleetflow.infrastructure.locks import build_lock_registry
from fleetflow.services.fleet import FleetService

TODAY = date.today()

VEHICLES = [
    {"name": "Volvo FH16", "license_plate": "MH-01-AB-1001", "type": VehicleType.TRUCK, "max_capacity": 18000, "odometer": 45000, "region": "West"},
    {"name": "Tata Prima", "license_plate": "MH-01-AB-1002", "type": VehicleType.TRUCK, "max_capacity": 12000, "odometer": 81200, "region": "West"},
    {"name": "Ashok Leyland Ecomet", "license_plate": "KA-05-CD-2001", "type": VehicleType.TRUCK, "max_capacity": 9000, "odometer": 30550, "region": "South"},
    {"name": "Ford Transit", "license_plate": "KA-05-CD-2002", "type": VehicleType.VAN, "max_capacity": 1500, "odometer": 22000, "region": "South"},
    {"name": "Mercedes Sprinter", "license_plate": "DL-03-EF-3001", "type": VehicleType.VAN, "max_capacity": 2000, "odometer": 15400, "region": "North"},
    {"name": "Maruti Eeco Cargo", "license_plate": "DL-03-EF-3002", "type": VehicleType.VAN, "max_capacity": 700, "odometer": 9800, "region": "North"},
    {"name": "Hero Splendor", "license_plate": "DL-03-EF-3003", "type": VehicleType.BIKE, "max_capacity": 40, "odometer": 5100, "region": "North"},
    {"name": "Bajaj Pulsar", "license_plate": "MH-01-AB-1003", "type": VehicleType.BIKE, "max_capacity": 35, "odometer": 7300, "region": "West"},
]

DRIVERS = [
    {"name": "Aarav Sharma", "license_number": "DL-TRK-0001", "license_category": VehicleType.TRUCK, "license_expiry": TODAY + timedelta(days=700), "safety_score": 96.5},
    {"name": "Priya Patel", "license_number": "DL-TRK-0002", "license_category": VehicleType.TRUCK, "license_expiry": TODAY + timedelta(days=300), "safety_score": 92.0},
    {"name": "Rohan Mehta", "license_number": "DL-VAN-0003", "license_category": VehicleType.VAN, "license_expiry": TODAY + timedelta(days=450), "safety_score": 88.0},
    {"name": "Sneha Gupta", "license_number": "DL-VAN-0004", "license_category": VehicleType.VAN, "license_expiry": TODAY + timedelta(days=120), "safety_score": 99.0},
    {"name": "Vikram Singh", "license_number": "DL-BIK-0005", "license_category": VehicleType.BIKE, "license_expiry": TODAY + timedelta(days=900), "safety_score": 85.5},
    # Expired license: any trip assignment is rejected
    {"name": "Karan Joshi", "license_number": "DL-TRK-0006", "license_category": VehicleType.TRUCK, "license_expiry": TODAY - timedelta(days=30), "safety_score": 78.0},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM vehicles"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

    service = FleetService(async_session_factory, build_lock_registry(settings))

    # ── Vehicles & drivers ────────────────────────────────────────────
    vehicles = [await service.execute(RegisterVehicle(**v)) for v in VEHICLES]
    print(f"  Created {len(vehicles)} vehicles")
    drivers = [await service.execute(RegisterDriver(**d)) for d in DRIVERS]
    print(f"  Created {len(drivers)} drivers")

    # ── Trips ─────────────────────────────────────────────────────────
    completed = await service.execute(
        CreateTrip(
            vehicle_id=vehicles[0].id, driver_id=drivers[0].id,
            origin="Mumbai Port", destination="Pune Warehouse",
            cargo_weight=12500, odometer_start=45000,
        )
    )
    await service.execute(DispatchTrip(trip_id=completed.id))
    await service.execute(CompleteTrip(trip_id=completed.id, odometer_end=45180))

    dispatched = await service.execute(
        CreateTrip(
            vehicle_id=vehicles[1].id, driver_id=drivers[1].id,
            origin="Nashik Depot", destination="Surat Hub",
            cargo_weight=9800,
        )
    )
    await service.execute(DispatchTrip(trip_id=dispatched.id))

    await service.execute(
        CreateTrip(
            vehicle_id=vehicles[4].id, driver_id=drivers[2].id,
            origin="Gurgaon DC", destination="Noida Store 14",
            cargo_weight=1200, notes="Fragile, handle with care",
        )
    )
    await service.execute(
        CreateTrip(
            vehicle_id=vehicles[6].id, driver_id=drivers[4].id,
            origin="Connaught Place", destination="Karol Bagh",
            cargo_weight=12,
        )
    )
    print("  Created 4 trips (1 completed, 1 dispatched, 2 draft)")

    # ── Maintenance ───────────────────────────────────────────────────
    for description in ("Brake pad replacement", "Oil change"):
        await service.execute(
            CreateMaintenanceOrder(
                vehicle_id=vehicles[3].id, description=description, mechanic="Ravi Auto Works"
            )
        )
    print("  Created 2 maintenance orders (vehicle in_shop)")

    print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
