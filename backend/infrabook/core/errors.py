"""
Typed engine errors and their HTTP mapping.

Services raise these; routes never build error responses by hand. The single
exception handler registered in main.py turns any BookingError into JSON.
"""
from __future__ import annotations

from typing import Any, Iterable

from fastapi import Request
from fastapi.responses import JSONResponse

STATUS_BAD_REQUEST = 400
STATUS_FORBIDDEN = 403
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_UNPROCESSABLE = 422
STATUS_TOO_MANY_REQUESTS = 429


class BookingError(Exception):
    """Base for every refusal the engine returns to a caller."""

    status_code = STATUS_BAD_REQUEST
    code = "booking_error"
    default_message = "Booking operation failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.code, "message": self.message}


class NotFound(BookingError):
    status_code = STATUS_NOT_FOUND
    code = "not_found"
    default_message = "Not found"


class InvalidRequest(BookingError):
    status_code = STATUS_BAD_REQUEST
    code = "invalid_request"
    default_message = "Invalid request"


class SlotUnavailable(BookingError):
    """Lost a race or the slot is no longer open. Re-query and pick another slot."""

    status_code = STATUS_CONFLICT
    code = "slot_unavailable"
    default_message = "Timeslot not found or not available"


class SlotConflict(BookingError):
    status_code = STATUS_CONFLICT
    code = "slot_conflict"
    default_message = "Timeslot overlaps an existing timeslot or booking"


class InvalidTransition(BookingError):
    status_code = STATUS_CONFLICT
    code = "invalid_transition"
    default_message = "Status change not allowed from the current status"


class MissingRequiredAnswers(BookingError):
    status_code = STATUS_UNPROCESSABLE
    code = "missing_required_answers"
    default_message = "Not all required questions were answered"

    def __init__(self, question_ids: Iterable[int], message: str | None = None):
        super().__init__(message)
        self.question_ids = sorted(question_ids)

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["question_ids"] = self.question_ids
        return out


class WithinCancellationWindow(BookingError):
    status_code = STATUS_BAD_REQUEST
    code = "within_cancellation_window"
    default_message = "Bookings this close to their start time cannot be canceled"


class Forbidden(BookingError):
    status_code = STATUS_FORBIDDEN
    code = "forbidden"
    default_message = "Forbidden"


class InvalidToken(BookingError):
    status_code = STATUS_BAD_REQUEST
    code = "invalid_token"
    default_message = "Invalid or expired token"


class RateLimited(BookingError):
    status_code = STATUS_TOO_MANY_REQUESTS
    code = "rate_limited"
    default_message = "You have already made a booking today. Try again tomorrow."


def booking_error_to_response(exc: BookingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    return booking_error_to_response(exc)
