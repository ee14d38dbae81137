import enum

from sqlalchemy import Column, Integer, String, Numeric, JSON, Enum

from .base import BaseModel


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Booking(BaseModel):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(String, nullable=False, index=True)
    provider_id = Column(String, nullable=False, index=True)
    booking_type = Column(String, nullable=False, index=True)  # short_term|long_term
    booking_sub_type = Column(String, nullable=True)
    status = Column(
        Enum(BookingStatus, values_callable=lambda enum_cls: [e.value for e in enum_cls]),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    # Snapshot of the normalized preferences the booking was created from
    preferences = Column(JSON, nullable=False, default=dict)
    # Filled by the server-side financial calculation, never by preview pricing
    total_price = Column(Numeric(10, 2), nullable=True)
