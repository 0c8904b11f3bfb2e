"""FastAPI dependency injection helpers."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetflow.infrastructure.database import async_session_factory
from fleetflow.services.fleet import FleetService


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_factory


async def get_db(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncSession:  # type: ignore[misc]
    """Yield a read-only DB session for queries."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


def get_fleet_service(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> FleetService:
    """Commands open their own sessions under the app-wide lock registry."""
    return FleetService(session_factory, request.app.state.locks)
