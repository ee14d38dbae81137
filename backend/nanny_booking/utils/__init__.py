from .errors import booking_error_response, error_response
from .value_utils import clean_preferences
