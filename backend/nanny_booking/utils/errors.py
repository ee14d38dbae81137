from typing import Dict, Optional
from fastapi import HTTPException, status
import logging

from ..exceptions import BookingCreationError, BookingEngineError, BookingValidationError

logger = logging.getLogger(__name__)


def error_response(
    message: str,
    field_errors: Optional[Dict[str, str]] = None,
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details."""
    field_errors = dict(field_errors or {})
    logger.error("%s %s", message, field_errors)
    detail = {"message": message, "field_errors": field_errors}
    return HTTPException(status_code=code, detail=detail)


def booking_error_response(exc: BookingEngineError, authenticated: bool = True) -> HTTPException:
    """Map a booking engine failure onto the shared error shape.

    Validation problems are 422, an unauthenticated submission is 400 and a
    failed hand-off to booking creation is 502.
    """
    if isinstance(exc, BookingValidationError):
        return error_response(exc.message, exc.field_errors)
    if isinstance(exc, BookingCreationError):
        if not authenticated:
            return error_response(str(exc), {"session": "unauthenticated"}, status.HTTP_400_BAD_REQUEST)
        return error_response(str(exc), {"booking": "creation_failed"}, status.HTTP_502_BAD_GATEWAY)
    return error_response(str(exc) or "Booking request failed", {}, status.HTTP_500_INTERNAL_SERVER_ERROR)
