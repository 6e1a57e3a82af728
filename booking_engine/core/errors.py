"""
Scheduling error hierarchy.

Each subclass carries a stable ``code`` and an HTTP status so callers can
tell "try a different time" (OUTSIDE_WORKING_HOURS, SCHEDULING_CONFLICT)
from "this booking can never be edited" (INVALID_STATE) from "bad input"
(VALIDATION_ERROR).
"""


class SchedulingError(Exception):
    """Base class for all scheduling-level errors."""

    code = "SCHEDULING_ERROR"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(SchedulingError):
    """Raised when a booking, professional or linked record does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class Forbidden(SchedulingError):
    """Raised when the caller does not own the resource."""

    code = "FORBIDDEN"
    status_code = 403


class InvalidState(SchedulingError):
    """Raised for operations on a cancelled or otherwise ineligible booking."""

    code = "INVALID_STATE"
    status_code = 409


class OutsideWorkingHours(SchedulingError):
    """Raised when a proposed window does not fit the professional's hours."""

    code = "OUTSIDE_WORKING_HOURS"
    status_code = 422


class SchedulingConflict(SchedulingError):
    """Raised when a proposed window overlaps another active booking."""

    code = "SCHEDULING_CONFLICT"
    status_code = 409


class ValidationError(SchedulingError):
    """Raised for malformed dates, durations or window ordering."""

    code = "VALIDATION_ERROR"
    status_code = 400
