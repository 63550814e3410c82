"""
Centralized error handling for the scheduling engine and its API.

The engine returns a SchedulingError value instead of raising; routes turn it into an
HTTPException with scheduling_error_to_http so they stay thin and new kinds are easy to add.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar, Union

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# Error kinds and user-facing messages
# ---------------------------------------------------------------------------


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION_ERROR = "validation_error"
    LEAD_TIME_VIOLATION = "lead_time_violation"
    BAD_REQUEST = "bad_request"


MSG_NOT_FOUND = "Appointment: {appointment_id} not found, please confirm the appointment id and try again."
MSG_HELD_BY_OTHER = "Appointment: {appointment_id} is already scheduled for another client. Please choose a new time."
MSG_LEAD_TIME = "Appointments must be made {lead_time_hours:g} hours in advance. Difference: {difference:.2f} Hours"
MSG_CONFIRM_AVAILABLE = (
    "Appointment: {appointment_id} is currently available, cannot confirm an available appointment. "
    "Reserve it before confirming."
)
MSG_INSUFFICIENT_AVAILABILITY = (
    "Insufficient availability: provider must submit enough availability for at least one {duration}-minute appointment."
)
MSG_AVAILABILITY_EXISTS = (
    "Availability already exists for provider {provider} on {day}. Pass overwrite=true to replace it."
)


@dataclass(frozen=True)
class SchedulingError:
    """A failed engine operation. Callers check with is_error() and return it unchanged."""

    kind: ErrorKind
    message: str


T = TypeVar("T")
Result = Union[T, SchedulingError]


def is_error(result: object) -> bool:
    return isinstance(result, SchedulingError)


def fail(logger: logging.Logger, kind: ErrorKind, message: str) -> SchedulingError:
    """Log the failure where it happens and hand it back to the caller."""
    logger.warning("%s: %s", kind.value, message)
    return SchedulingError(kind, message)


# ---------------------------------------------------------------------------
# HTTP mapping: one status code per error kind
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_UNPROCESSABLE = 422

ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: STATUS_NOT_FOUND,
    ErrorKind.CONFLICT: STATUS_CONFLICT,
    ErrorKind.VALIDATION_ERROR: STATUS_UNPROCESSABLE,
    ErrorKind.LEAD_TIME_VIOLATION: STATUS_UNPROCESSABLE,
    ErrorKind.BAD_REQUEST: STATUS_BAD_REQUEST,
}


def scheduling_error_to_http(error: SchedulingError) -> HTTPException:
    """
    Map an engine failure into an HTTPException.
    detail carries both the kind (for clients that branch on it) and the message.
    """
    status_code = ERROR_STATUS_CODES.get(error.kind, STATUS_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail={"error": error.kind.value, "message": error.message})
