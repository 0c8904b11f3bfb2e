"""
FastAPI application factory.

* Registers routes for trips, maintenance, vehicles, drivers and admin.
* Starts / stops the background reconciliation worker via lifespan events.
* Applies rate-limiting middleware and the JSON error contract.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from fleetflow.api.errors import register_exception_handlers
from fleetflow.api.middleware import limiter
from fleetflow.api.routes import admin, drivers, maintenance, trips, vehicles
from fleetflow.config import settings
from fleetflow.infrastructure.database import async_session_factory
from fleetflow.infrastructure.locks import build_lock_registry
from fleetflow.workers import reconciler as _reconciler

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the reconciliation worker on startup; stop on shutdown."""
    await _reconciler.start_reconcile_loop(async_session_factory, app.state.locks)
    yield
    await _reconciler.stop_reconcile_loop()


def create_app() -> FastAPI:
    app = FastAPI(
        title="FleetFlow Dispatch API",
        description=(
            "Dispatches trips and maintenance work orders against a fleet of "
            "vehicles and drivers.  Vehicle and driver availability is derived "
            "from trip and work-order transitions, committed atomically, and "
            "guarded by per-entity locks."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # One lock registry per process; every command shares it
    app.state.locks = build_lock_registry(settings)

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_exception_handlers(app)

    # Routers
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(maintenance.router, prefix="/api/v1")
    app.include_router(vehicles.router, prefix="/api/v1")
    app.include_router(drivers.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
