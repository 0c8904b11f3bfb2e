"""Exception handlers translating core errors into JSON responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from fleetflow.domain.errors import PolicyError, StatusClass

logger = logging.getLogger(__name__)

HTTP_STATUS = {
    StatusClass.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    StatusClass.CONFLICT: status.HTTP_409_CONFLICT,
    StatusClass.UNPROCESSABLE: 422,
}


async def policy_error_handler(request: Request, exc: PolicyError) -> JSONResponse:
    """Every core error carries its own status class and reason code."""
    logger.info(
        "%s %s rejected: %s (%s)",
        request.method, request.url.path, exc.reason.value, exc.message,
    )
    return JSONResponse(
        status_code=HTTP_STATUS[exc.status_class],
        content={"detail": exc.message, "code": exc.reason.value, "type": exc.kind},
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Unique-constraint violations (license plate / license number)."""
    logger.warning("IntegrityError on %s %s: %s", request.method, request.url, exc.orig)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "detail": "A record with this data already exists.",
            "code": "DUPLICATE_ENTRY",
            "type": "IntegrityError",
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the full traceback, return a safe 500 response."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "An unexpected error occurred. Please try again later.",
            "code": "INTERNAL_SERVER_ERROR",
            "type": None,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PolicyError, policy_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
