from .preferences import (
    ADDRESS_FIELDS,
    EPHEMERAL_FIELDS,
    HOURLY_SUB_TYPES,
    BookingSubType,
    DurationType,
    ExperienceLevel,
    HomeSize,
    LivingArrangement,
    TimeSlot,
    UserPreferences,
    WeeklySchedule,
)
from .pricing import AddOn, PricingBreakdown
from .provider import SelectedProvider
from .session import BookingSession
