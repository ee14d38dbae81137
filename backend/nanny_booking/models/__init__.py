from .client_profile import ClientProfile
from .booking import Booking, BookingStatus

__all__ = [
    "ClientProfile",
    "Booking",
    "BookingStatus",
]
