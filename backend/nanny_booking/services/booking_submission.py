"""Validate the wizard's preferences and hand them to booking creation."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, ContextManager, Dict, Optional

from sqlalchemy.orm import Session

from ..crud import create_booking_from_preferences
from ..database import get_db_session
from ..exceptions import BookingCreationError, BookingValidationError
from ..schemas.preferences import DurationType, UserPreferences
from .preference_store import PreferenceStore

logger = logging.getLogger(__name__)

CreateBooking = Callable[[Dict[str, Any], str, str], Any]


def create_booking_record(
    payload: Dict[str, Any],
    provider_id: str,
    client_id: str,
    session_factory: Callable[[], ContextManager[Session]] = get_db_session,
) -> Any:
    """Default booking-creation service backed by the ``bookings`` table."""
    with session_factory() as db:
        return create_booking_from_preferences(db, payload, provider_id, client_id)


def validate_for_submission(prefs: UserPreferences) -> None:
    if prefs.duration_type != DurationType.SHORT_TERM:
        return
    field_errors: Dict[str, str] = {}
    if prefs.booking_sub_type is None:
        field_errors["bookingSubType"] = "Short-term booking requires a booking type selection"
    if not prefs.selected_dates:
        field_errors["selectedDates"] = "Short-term booking requires date selection"
    if not prefs.time_slots:
        field_errors["timeSlots"] = "Short-term booking requires time slot selection"
    if field_errors:
        raise BookingValidationError("Booking details are incomplete", field_errors)


def resolve_duration_type(prefs: UserPreferences) -> DurationType:
    if prefs.duration_type is not None:
        return prefs.duration_type
    return DurationType.SHORT_TERM if prefs.booking_sub_type is not None else DurationType.LONG_TERM


class BookingSubmissionGateway:
    """Turns a store's preferences into a booking, one submission at a time."""

    def __init__(self, store: PreferenceStore, create_booking: Optional[CreateBooking] = None):
        self.store = store
        self.create_booking = create_booking or create_booking_record
        self._in_flight = threading.Lock()

    @property
    def is_submitting(self) -> bool:
        return self._in_flight.locked()

    def submit(self, provider_id: str) -> Any:
        """Create a booking for ``provider_id``.

        Returns ``None`` when another submission is already in flight.
        """
        if not self._in_flight.acquire(blocking=False):
            logger.warning("Booking creation already in progress, skipping duplicate")
            return None
        try:
            return self._submit(provider_id)
        finally:
            self._in_flight.release()

    def _submit(self, provider_id: str) -> Any:
        session = self.store.session
        if not session.is_authenticated:
            logger.warning("Rejected booking submission without an authenticated user")
            raise BookingCreationError("User not authenticated")

        prefs = self.store.preferences
        validate_for_submission(prefs)

        payload = prefs.model_copy(update={"duration_type": resolve_duration_type(prefs)}).to_document()
        logger.info(
            "Creating %s booking for provider %s (client %s)",
            payload["durationType"],
            provider_id,
            session.user_id,
        )
        try:
            booking = self.create_booking(payload, provider_id, session.user_id)
        except Exception as exc:
            logger.error("Booking creation failed for client %s: %s", session.user_id, exc)
            raise BookingCreationError(str(exc) or "Failed to create booking") from exc

        self.store.reset()
        return booking
