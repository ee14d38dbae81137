from sqlalchemy.orm import Session
from typing import Any, Dict, List, Type

from .. import models
from ..models.booking import BookingStatus
from .crud_client_profile import client_profile


class CRUDBooking:
    def get_bookings_by_client(
        self, db: Session, client_id: str, skip: int = 0, limit: int = 100
    ) -> List[Type[models.Booking]]:
        return (
            db.query(models.Booking)
            .filter(models.Booking.client_id == client_id)
            .order_by(models.Booking.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )


booking = CRUDBooking()


def create_booking_from_preferences(
    db: Session,
    preferences: Dict[str, Any],
    provider_id: str,
    client_id: str,
) -> models.Booking:
    """Create a pending booking from a submitted preference document.

    Pricing is left empty; the financial record is computed server-side
    after creation. Long-term bookings need a home size on the client's
    stored profile, which also takes precedence in the snapshot.
    """
    booking_type = preferences.get("durationType") or "long_term"
    stored = client_profile.get_profile_data(db, client_id) or {}
    home_size = stored.get("homeSize")
    if booking_type == "long_term" and not home_size:
        raise ValueError(
            "Client profile is incomplete. Please update your home size in your profile settings."
        )

    snapshot = dict(preferences)
    if home_size:
        snapshot["homeSize"] = home_size

    db_booking = models.Booking(
        client_id=client_id,
        provider_id=str(provider_id),
        booking_type=booking_type,
        booking_sub_type=preferences.get("bookingSubType"),
        status=BookingStatus.PENDING,
        preferences=snapshot,
    )
    db.add(db_booking)
    db.commit()
    db.refresh(db_booking)
    return db_booking
