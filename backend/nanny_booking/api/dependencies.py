from typing import Optional

from fastapi import Depends, Header

from ..schemas.session import BookingSession
from ..services.preference_store import PreferenceStore
from ..services.session_registry import BookingSessionRegistry, registry


def get_registry() -> BookingSessionRegistry:
    return registry


def get_booking_session(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> BookingSession:
    """Caller identity as forwarded by the upstream auth layer.

    Missing headers yield an anonymous session: reads and pricing still
    work, persistence and submission do not.
    """
    user_id = (x_user_id or "").strip() or None
    role = (x_user_role or "").strip().lower() or None
    return BookingSession(user_id=user_id, role=role)


def get_preference_store(
    session: BookingSession = Depends(get_booking_session),
    sessions: BookingSessionRegistry = Depends(get_registry),
) -> PreferenceStore:
    return sessions.get_or_create(session)


__all__ = ["get_booking_session", "get_preference_store", "get_registry"]
