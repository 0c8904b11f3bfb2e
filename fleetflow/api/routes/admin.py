"""
Admin / observability endpoints
===============================

GET  /api/v1/admin/health    -- database and lock-backend health check
POST /api/v1/admin/reconcile -- run one reconciliation cycle now
"""

import logging

from fastapi import APIRouter, Depends, Request
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetflow.api.dependencies import get_db, get_session_factory
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import HealthResponse, ReconcileResponse
from fleetflow.config import settings
from fleetflow.infrastructure.redis_client import get_redis
from fleetflow.workers.reconciler import run_reconcile_cycle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(db: AsyncSession = Depends(get_db)):
    result = HealthResponse(lock_backend=settings.lock_backend)
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        result.database = "unavailable"
        result.status = "degraded"

    if settings.lock_backend == "redis":
        try:
            redis = await get_redis()
            await redis.ping()
        except RedisError:
            logger.exception("Health check: redis unreachable")
            result.lock_backend = "redis (unavailable)"
            result.status = "degraded"
    return result


@router.post(
    "/reconcile",
    response_model=ReconcileResponse,
    summary="Re-derive vehicle and driver statuses now",
    description=(
        "Runs one reconciliation cycle in-request.  Returns skipped=true when "
        "another cycle already holds the reconciler lock."
    ),
)
@limiter.limit("10/minute")
async def reconcile(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await run_reconcile_cycle(session_factory, request.app.state.locks)
