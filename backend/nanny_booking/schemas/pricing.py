from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from .preferences import CamelModel


class AddOn(CamelModel):
    name: str
    price: Decimal


class PricingBreakdown(CamelModel):
    """Preview pricing for the booking wizard.

    Estimates only. The booking service recomputes the authoritative figures
    after a booking is created and nothing here is ever written back over
    them.
    """

    base_rate: Decimal
    add_ons: List[AddOn] = Field(default_factory=list)
    total: Decimal
    total_hours: Optional[Decimal] = None
    is_hourly: Optional[bool] = None
    subtotal: Optional[Decimal] = None
    service_fee: Optional[Decimal] = None
    effective_hourly_rate: Optional[Decimal] = None
    currency: str = "ZAR"
