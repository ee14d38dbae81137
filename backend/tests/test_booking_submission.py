import functools
import threading

import pytest

from nanny_booking.crud import booking as crud_booking, client_profile
from nanny_booking.exceptions import BookingCreationError, BookingValidationError
from nanny_booking.models import BookingStatus
from nanny_booking.schemas.session import BookingSession
from nanny_booking.services.booking_submission import BookingSubmissionGateway, create_booking_record
from nanny_booking.services.persistence import PreferencePersistenceAdapter
from nanny_booking.services.preference_store import PreferenceStore


def _store(session_factory, scheduler, user_id="client-1"):
    adapter = PreferencePersistenceAdapter(session_factory=session_factory)
    return PreferenceStore(BookingSession(user_id=user_id, role="client"), adapter=adapter, scheduler=scheduler)


def _short_term(store):
    store.apply_update(
        {
            "durationType": "short_term",
            "bookingSubType": "date_night",
            "selectedDates": ["2024-03-01"],
            "timeSlots": [{"start": "18:00", "end": "22:00"}],
        }
    )


def test_short_term_missing_fields_reports_each_field(session_factory, scheduler):
    store = _store(session_factory, scheduler)
    store.apply_update({"durationType": "short_term"})
    gateway = BookingSubmissionGateway(store, create_booking=lambda *a: pytest.fail("should not be called"))
    with pytest.raises(BookingValidationError) as exc:
        gateway.submit("nanny-1")
    assert set(exc.value.field_errors) == {"bookingSubType", "selectedDates", "timeSlots"}


def test_unauthenticated_submission_is_rejected(session_factory, scheduler):
    adapter = PreferencePersistenceAdapter(session_factory=session_factory)
    store = PreferenceStore(BookingSession(), adapter=adapter, scheduler=scheduler)
    gateway = BookingSubmissionGateway(store, create_booking=lambda *a: {"id": 1})
    with pytest.raises(BookingCreationError):
        gateway.submit("nanny-1")


def test_duration_type_falls_back_from_sub_type(session_factory, scheduler):
    store = _store(session_factory, scheduler)
    calls = []
    store.apply_update({"bookingSubType": "emergency"})
    gateway = BookingSubmissionGateway(store, create_booking=lambda *a: calls.append(a) or {"id": 7})
    assert gateway.submit("nanny-1") == {"id": 7}
    payload, provider_id, client_id = calls[0]
    assert payload["durationType"] == "short_term"
    assert (provider_id, client_id) == ("nanny-1", "client-1")


def test_duration_type_defaults_to_long_term(session_factory, scheduler):
    store = _store(session_factory, scheduler)
    calls = []
    gateway = BookingSubmissionGateway(store, create_booking=lambda *a: calls.append(a) or {"id": 8})
    gateway.submit("nanny-1")
    assert calls[0][0]["durationType"] == "long_term"


def test_success_resets_store(session_factory, scheduler):
    store = _store(session_factory, scheduler)
    _short_term(store)
    gateway = BookingSubmissionGateway(store, create_booking=lambda *a: {"id": 1})
    gateway.submit("nanny-1")
    assert store.preferences.duration_type is None
    assert store.preferences.selected_dates == []


def test_failure_wraps_cause_and_keeps_store(session_factory, scheduler):
    store = _store(session_factory, scheduler)
    _short_term(store)

    def broken(*args):
        raise ValueError("provider unavailable")

    gateway = BookingSubmissionGateway(store, create_booking=broken)
    with pytest.raises(BookingCreationError) as exc:
        gateway.submit("nanny-1")
    assert isinstance(exc.value.__cause__, ValueError)
    assert store.preferences.booking_sub_type.value == "date_night"


def test_duplicate_submission_while_in_flight(session_factory, scheduler):
    store = _store(session_factory, scheduler)
    _short_term(store)
    entered = threading.Event()
    release = threading.Event()

    def slow(*args):
        entered.set()
        release.wait(2)
        return {"id": 1}

    gateway = BookingSubmissionGateway(store, create_booking=slow)
    results = []
    worker = threading.Thread(target=lambda: results.append(gateway.submit("nanny-1")))
    worker.start()
    assert entered.wait(2)
    assert gateway.is_submitting
    assert gateway.submit("nanny-1") is None
    release.set()
    worker.join(2)
    assert results == [{"id": 1}]
    assert not gateway.is_submitting


def test_default_creation_stores_pending_booking(session_factory, scheduler, Session):
    store = _store(session_factory, scheduler)
    _short_term(store)
    gateway = BookingSubmissionGateway(
        store, create_booking=functools.partial(create_booking_record, session_factory=session_factory)
    )
    booking = gateway.submit("nanny-1")
    assert booking.status is BookingStatus.PENDING
    assert booking.booking_type == "short_term"
    assert booking.total_price is None
    stored = crud_booking.get_bookings_by_client(Session(), "client-1")
    assert [b.id for b in stored] == [booking.id]
    assert stored[0].preferences["bookingSubType"] == "date_night"


def test_long_term_needs_home_size_on_profile(session_factory, scheduler, Session):
    store = _store(session_factory, scheduler)
    store.apply_update({"durationType": "long_term", "homeSize": "family_hub"})
    gateway = BookingSubmissionGateway(
        store, create_booking=functools.partial(create_booking_record, session_factory=session_factory)
    )
    with pytest.raises(BookingCreationError, match="profile is incomplete"):
        gateway.submit("nanny-1")

    client_profile.upsert_profile(Session(), "client-1", {"homeSize": "grand_retreat"})
    booking = gateway.submit("nanny-1")
    assert booking.booking_type == "long_term"
    assert booking.preferences["homeSize"] == "grand_retreat"
