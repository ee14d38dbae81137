from fastapi.testclient import TestClient
import pytest

from nanny_booking.api.dependencies import get_registry
from nanny_booking.main import app
from nanny_booking.services.session_registry import BookingSessionRegistry

CLIENT_HEADERS = {"X-User-Id": "client-1", "X-User-Role": "client"}
PREFIX = "/api/v1/booking"


@pytest.fixture
def registry(session_factory, scheduler):
    sessions = BookingSessionRegistry(session_factory=session_factory, scheduler=scheduler)
    app.dependency_overrides[get_registry] = lambda: sessions
    yield sessions
    sessions.close_all()
    app.dependency_overrides.pop(get_registry, None)


@pytest.fixture
def client(registry):
    return TestClient(app)


def test_patch_and_read_preferences(client):
    res = client.patch(
        f"{PREFIX}/preferences",
        json={"durationType": "long-term", "householdSupport": ["food-prep"], "bookingSubType": "emergency"},
        headers=CLIENT_HEADERS,
    )
    assert res.status_code == 200
    prefs = res.json()["preferences"]
    assert prefs["durationType"] == "long_term"
    assert prefs["bookingSubType"] is None
    assert prefs["cooking"] is True
    assert res.json()["warnings"] == []

    res = client.get(f"{PREFIX}/preferences", headers=CLIENT_HEADERS)
    assert res.json()["preferences"]["cooking"] is True


def test_sessions_are_isolated(client):
    client.patch(f"{PREFIX}/preferences", json={"city": "Durban"}, headers=CLIENT_HEADERS)
    other = {"X-User-Id": "client-2", "X-User-Role": "client"}
    res = client.get(f"{PREFIX}/preferences", headers=other)
    assert res.json()["preferences"]["city"] is None


def test_pricing_endpoint(client):
    client.patch(
        f"{PREFIX}/preferences",
        json={"durationType": "short_term", "bookingSubType": "emergency", "cooking": True},
        headers=CLIENT_HEADERS,
    )
    res = client.get(f"{PREFIX}/pricing", headers=CLIENT_HEADERS)
    assert res.status_code == 200
    body = res.json()
    assert body["isHourly"] is True
    assert body["effectiveHourlyRate"] == "92.00"
    assert body["total"] == "495.00"
    assert body["currency"] == "ZAR"


def test_provider_selection_and_pricing(client):
    client.patch(
        f"{PREFIX}/preferences",
        json={"homeSize": "pocket_palace", "livingArrangement": "live-out"},
        headers=CLIENT_HEADERS,
    )
    res = client.put(f"{PREFIX}/provider", json={"id": "nanny-1"}, headers=CLIENT_HEADERS)
    assert res.status_code == 200
    assert res.json()["timestamp"] is not None

    res = client.get(f"{PREFIX}/pricing/provider", headers=CLIENT_HEADERS)
    assert res.json()["total"] == "4800.00"

    res = client.delete(f"{PREFIX}/provider", headers=CLIENT_HEADERS)
    assert res.status_code == 204
    res = client.get(f"{PREFIX}/preferences", headers=CLIENT_HEADERS)
    assert res.json()["selectedProvider"] is None


def test_submit_validation_error(client):
    client.patch(f"{PREFIX}/preferences", json={"durationType": "short_term"}, headers=CLIENT_HEADERS)
    res = client.post(f"{PREFIX}/submit", json={"providerId": "nanny-1"}, headers=CLIENT_HEADERS)
    assert res.status_code == 422
    detail = res.json()["detail"]
    assert set(detail["field_errors"]) == {"bookingSubType", "selectedDates", "timeSlots"}


def test_submit_requires_provider(client):
    res = client.post(f"{PREFIX}/submit", json={}, headers=CLIENT_HEADERS)
    assert res.status_code == 422
    assert res.json()["detail"]["field_errors"] == {"providerId": "required"}


def test_submit_unauthenticated(client):
    res = client.post(f"{PREFIX}/submit", json={"providerId": "nanny-1"})
    assert res.status_code == 400


def test_submit_creates_booking_and_resets(client):
    client.patch(
        f"{PREFIX}/preferences",
        json={
            "durationType": "short_term",
            "bookingSubType": "date_night",
            "selectedDates": ["2024-03-01"],
            "timeSlots": [{"start": "18:00", "end": "22:00"}],
        },
        headers=CLIENT_HEADERS,
    )
    client.put(f"{PREFIX}/provider", json={"id": "nanny-7"}, headers=CLIENT_HEADERS)
    res = client.post(f"{PREFIX}/submit", json={}, headers=CLIENT_HEADERS)
    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "pending"
    assert body["providerId"] == "nanny-7"
    assert body["bookingType"] == "short_term"

    res = client.get(f"{PREFIX}/preferences", headers=CLIENT_HEADERS)
    assert res.json()["preferences"]["bookingSubType"] is None


def test_submit_long_term_without_profile_is_bad_gateway(client):
    client.patch(f"{PREFIX}/preferences", json={"durationType": "long_term"}, headers=CLIENT_HEADERS)
    res = client.post(f"{PREFIX}/submit", json={"providerId": "nanny-1"}, headers=CLIENT_HEADERS)
    assert res.status_code == 502
    assert "incomplete" in res.json()["detail"]["message"]


def test_load_profile_after_session_closed(client, scheduler):
    client.patch(f"{PREFIX}/preferences", json={"cooking": True}, headers=CLIENT_HEADERS)
    scheduler.run_pending()
    client.delete(f"{PREFIX}/session", headers=CLIENT_HEADERS)
    res = client.post(f"{PREFIX}/preferences/load", headers=CLIENT_HEADERS)
    assert res.status_code == 200
    assert res.json()["loaded"] is True
    assert res.json()["preferences"]["cooking"] is True


def test_close_session(client, registry):
    client.patch(f"{PREFIX}/preferences", json={"city": "Durban"}, headers=CLIENT_HEADERS)
    res = client.delete(f"{PREFIX}/session", headers=CLIENT_HEADERS)
    assert res.status_code == 204
    res = client.get(f"{PREFIX}/preferences", headers=CLIENT_HEADERS)
    assert res.json()["preferences"]["city"] is None


def test_persist_failure_surfaces_warning(client, registry, scheduler, monkeypatch):
    from nanny_booking.crud import client_profile

    def broken(*args, **kwargs):
        raise RuntimeError("write failed")

    monkeypatch.setattr(client_profile, "upsert_profile", broken)
    client.patch(f"{PREFIX}/preferences", json={"cooking": True}, headers=CLIENT_HEADERS)
    scheduler.run_pending()
    res = client.get(f"{PREFIX}/preferences", headers=CLIENT_HEADERS)
    assert res.json()["warnings"] == ["Failed to save your profile. Please try again."]
