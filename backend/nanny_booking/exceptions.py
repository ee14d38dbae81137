from typing import Dict, Optional


class BookingEngineError(Exception):
    """Base class for booking engine failures."""


class BookingValidationError(BookingEngineError):
    """Required booking-type fields are missing at submission time."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.field_errors = dict(field_errors or {})


class BookingCreationError(BookingEngineError):
    """The booking-creation service rejected or failed the submission."""


class RecoverableLoadFailure(BookingEngineError):
    """Remote profile read failed at the transport level (network/timeout)."""


class PersistenceWarning(BookingEngineError):
    """Remote profile write failed; the local document stays the working copy.

    Delivered to a warning callback rather than raised.
    """

    user_message = "Failed to save your profile. Please try again."
