from .crud_client_profile import client_profile
from .crud_booking import booking, create_booking_from_preferences
