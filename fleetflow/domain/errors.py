"""
Typed errors raised by the dispatch core.

Every error carries a machine-readable ``reason``, a human-readable
``message`` and a ``status_class`` the transport maps to an HTTP status.
None of them is fatal: each is scoped to the single command that raised it.
"""

from __future__ import annotations

import enum
from typing import Optional


class StatusClass(str, enum.Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNPROCESSABLE = "unprocessable"


class Reason(str, enum.Enum):
    # Not found
    VEHICLE_NOT_FOUND = "VEHICLE_NOT_FOUND"
    DRIVER_NOT_FOUND = "DRIVER_NOT_FOUND"
    TRIP_NOT_FOUND = "TRIP_NOT_FOUND"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"

    # State ordering
    INVALID_TRIP_STATE = "INVALID_TRIP_STATE"
    INVALID_ORDER_STATE = "INVALID_ORDER_STATE"
    INVALID_DRIVER_STATE = "INVALID_DRIVER_STATE"
    VEHICLE_ACTIVE = "VEHICLE_ACTIVE"
    DRIVER_ACTIVE = "DRIVER_ACTIVE"

    # Business policy
    VEHICLE_UNAVAILABLE = "VEHICLE_UNAVAILABLE"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    DRIVER_SUSPENDED = "DRIVER_SUSPENDED"
    DRIVER_ON_DUTY = "DRIVER_ON_DUTY"
    LICENSE_EXPIRED = "LICENSE_EXPIRED"
    LICENSE_MISMATCH = "LICENSE_MISMATCH"
    VEHICLE_ON_TRIP = "VEHICLE_ON_TRIP"

    # Concurrency
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    LOCK_TIMEOUT = "LOCK_TIMEOUT"

    # Terminal records
    ORDER_ALREADY_DONE = "ORDER_ALREADY_DONE"


class PolicyError(Exception):
    """Base class for every recoverable error of the dispatch core."""

    default_status = StatusClass.CONFLICT

    def __init__(
        self,
        reason: Reason,
        message: str,
        status_class: Optional[StatusClass] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.status_class = status_class or self.default_status

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return f"{self.kind}({self.reason.value}: {self.message})"


class NotFound(PolicyError):
    """A referenced vehicle, driver, trip or order does not exist."""

    default_status = StatusClass.NOT_FOUND


class PreconditionFailed(PolicyError):
    """The record is not in a state that allows the requested transition."""


class InvalidStateTransition(PreconditionFailed):
    """Raised when a status change violates a state machine."""


class PolicyViolation(PolicyError):
    """Capacity, license or availability rules reject the request."""


class Conflict(PolicyError):
    """A concurrent command won the race for the same records."""


class AlreadyTerminal(PolicyError):
    """The record already reached its terminal state."""
