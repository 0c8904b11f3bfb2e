"""
Shared test fixtures.

Uses a file-backed SQLite database (via aiosqlite) per test so tests run
without Docker / PostgreSQL / Redis.  The production models are created
as-is; every command session gets its own connection, which is what the
concurrency tests need.
"""

import itertools
from datetime import date, datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fleetflow.config import Settings
from fleetflow.domain.commands import RegisterDriver, RegisterVehicle
from fleetflow.domain.enums import VehicleType
from fleetflow.infrastructure.database import Base
from fleetflow.infrastructure.locks import LocalLockRegistry
from fleetflow.infrastructure import models  # noqa: F401  (registers tables)
from fleetflow.services.fleet import FleetService

# Fixed "now" for every command; licenses in the fixtures are relative to it.
NOW = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)
VALID_LICENSE = date(2026, 12, 31)


def fixed_clock() -> datetime:
    return NOW


# ── Test DB (SQLite file per test) ────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables, yield the engine, then dispose of it."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'fleetflow.db'}", echo=False
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def locks() -> LocalLockRegistry:
    return LocalLockRegistry(wait_seconds=2.0)


@pytest.fixture
def service(session_factory, locks) -> FleetService:
    return FleetService(
        session_factory, locks, clock=fixed_clock, settings=Settings()
    )


# ── Fleet factory ─────────────────────────────────────────────────────


class FleetFactory:
    """Registers vehicles and drivers through the service with sane defaults."""

    def __init__(self, service: FleetService):
        self.service = service
        self._seq = itertools.count(1)

    async def vehicle(self, **fields):
        n = next(self._seq)
        params = {
            "name": f"Vehicle {n}",
            "license_plate": f"TEST-{n:04d}",
            "type": VehicleType.TRUCK,
            "max_capacity": 1000.0,
        }
        params.update(fields)
        return await self.service.execute(RegisterVehicle(**params))

    async def driver(self, **fields):
        n = next(self._seq)
        params = {
            "name": f"Driver {n}",
            "license_number": f"LIC-{n:04d}",
            "license_category": VehicleType.TRUCK,
            "license_expiry": VALID_LICENSE,
        }
        params.update(fields)
        return await self.service.execute(RegisterDriver(**params))


@pytest.fixture
def fleet(service) -> FleetFactory:
    return FleetFactory(service)


async def reload(session_factory, model, pk):
    """Read a fresh copy of a row in a new session."""
    async with session_factory() as session:
        return await session.get(model, pk)
