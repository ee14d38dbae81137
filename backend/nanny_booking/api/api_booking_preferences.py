from fastapi import APIRouter, Body, Depends, status
from typing import Any, Dict, Optional
import logging

from ..exceptions import BookingEngineError
from ..schemas.provider import SelectedProvider
from ..schemas.session import BookingSession
from ..services.preference_store import PreferenceStore
from ..services.session_registry import BookingSessionRegistry
from ..utils import booking_error_response, error_response
from .dependencies import get_booking_session, get_preference_store, get_registry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Booking Preferences"])


def _with_warnings(
    body: Dict[str, Any],
    session: BookingSession,
    sessions: BookingSessionRegistry,
) -> Dict[str, Any]:
    body["warnings"] = sessions.drain_warnings(session)
    return body


def _preferences_body(store: PreferenceStore) -> Dict[str, Any]:
    provider = store.selected_provider
    return {
        "preferences": store.preferences.to_document(),
        "selectedProvider": provider.model_dump(mode="json", by_alias=True) if provider else None,
    }


@router.get("/preferences")
def read_preferences(
    session: BookingSession = Depends(get_booking_session),
    store: PreferenceStore = Depends(get_preference_store),
    sessions: BookingSessionRegistry = Depends(get_registry),
) -> Any:
    """Current wizard document for the calling session."""
    return _with_warnings(_preferences_body(store), session, sessions)


@router.patch("/preferences")
def update_preferences(
    updates: Dict[str, Any] = Body(...),
    session: BookingSession = Depends(get_booking_session),
    store: PreferenceStore = Depends(get_preference_store),
    sessions: BookingSessionRegistry = Depends(get_registry),
) -> Any:
    """Merge a partial update; invalid values keep their previous state."""
    store.apply_update(updates)
    return _with_warnings(_preferences_body(store), session, sessions)


@router.post("/preferences/load")
def load_preferences(
    session: BookingSession = Depends(get_booking_session),
    store: PreferenceStore = Depends(get_preference_store),
    sessions: BookingSessionRegistry = Depends(get_registry),
) -> Any:
    loaded = store.load_profile()
    body = _preferences_body(store)
    body["loaded"] = loaded
    return _with_warnings(body, session, sessions)


@router.put("/provider")
def select_provider(
    provider: SelectedProvider,
    store: PreferenceStore = Depends(get_preference_store),
) -> Any:
    selected = store.select_provider(provider)
    return selected.model_dump(mode="json", by_alias=True)


@router.delete("/provider", status_code=status.HTTP_204_NO_CONTENT)
def clear_provider(store: PreferenceStore = Depends(get_preference_store)) -> None:
    store.clear_provider()


@router.get("/pricing")
def read_pricing(store: PreferenceStore = Depends(get_preference_store)) -> Any:
    """Preview pricing routed on the stored duration type."""
    return store.pricing().model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/pricing/provider")
def read_provider_pricing(
    provider_id: Optional[str] = None,
    store: PreferenceStore = Depends(get_preference_store),
) -> Any:
    """Monthly preview for the selected (or named) provider."""
    provider = store.selected_provider
    if provider_id and (provider is None or provider.id != provider_id):
        provider = SelectedProvider(id=provider_id)
    return store.provider_pricing(provider).model_dump(mode="json", by_alias=True, exclude_none=True)


@router.post("/submit", status_code=status.HTTP_201_CREATED)
def submit_booking(
    provider_id: Optional[str] = Body(default=None, embed=True, alias="providerId"),
    session: BookingSession = Depends(get_booking_session),
    sessions: BookingSessionRegistry = Depends(get_registry),
) -> Any:
    store = sessions.get_or_create(session)
    provider_id = provider_id or (store.selected_provider.id if store.selected_provider else None)
    if not provider_id:
        raise error_response(
            "A provider must be selected before booking.",
            {"providerId": "required"},
        )
    try:
        booking = sessions.gateway(session).submit(provider_id)
    except BookingEngineError as exc:
        raise booking_error_response(exc, authenticated=session.is_authenticated)
    if booking is None:
        raise error_response(
            "Booking creation already in progress.",
            {"booking": "in_progress"},
            status.HTTP_409_CONFLICT,
        )
    return {
        "id": booking.id,
        "status": booking.status.value,
        "bookingType": booking.booking_type,
        "bookingSubType": booking.booking_sub_type,
        "providerId": booking.provider_id,
        "clientId": booking.client_id,
    }


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
def close_session(
    session: BookingSession = Depends(get_booking_session),
    sessions: BookingSessionRegistry = Depends(get_registry),
) -> None:
    sessions.close(session)
