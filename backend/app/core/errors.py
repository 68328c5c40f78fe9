"""
Centralized error handling for booking rejections.

Domain errors are expected outcomes (4xx with a readable reason). Anything else that
escapes a route is an infrastructure failure and is answered with a 500 by main.py.
"""
from __future__ import annotations

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# Constants: status codes
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_FORBIDDEN = 403
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_INTERNAL_ERROR = 500

MSG_INTERNAL_ERROR = "Internal error. Please try again."


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------


class BookingError(Exception):
    """Base for expected booking rejections. `code` is stable; `detail` is for humans."""

    code = "booking_error"
    status_code = STATUS_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationFailed(BookingError):
    code = "validation_error"
    status_code = STATUS_BAD_REQUEST


class NotFound(BookingError):
    code = "not_found"
    status_code = STATUS_NOT_FOUND


class SlotUnavailable(BookingError):
    code = "slot_unavailable"
    status_code = STATUS_CONFLICT

    def __init__(self, detail: str, reason: str | None = None):
        super().__init__(detail)
        self.reason = reason


class LeadTimeViolation(BookingError):
    code = "lead_time_violation"
    status_code = STATUS_FORBIDDEN

    def __init__(self, detail: str, required_hours: int, hours_until: float):
        super().__init__(detail)
        self.required_hours = required_hours
        self.hours_until = hours_until


class InvalidStateForTransition(BookingError):
    code = "invalid_state"
    status_code = STATUS_CONFLICT

    def __init__(self, detail: str, current_status: str | None = None):
        super().__init__(detail)
        self.current_status = current_status


def booking_error_to_http(exc: BookingError) -> HTTPException:
    """Map a domain error to an HTTPException; detail carries both message and code."""
    return HTTPException(
        status_code=exc.status_code,
        detail={"detail": exc.detail, "code": exc.code},
    )
