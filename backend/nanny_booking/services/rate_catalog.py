"""Static rate tables for preview pricing.

Add-on prices are kept per taxonomy rather than shared: the same service is
billed per hour for hourly bookings, per day for temporary support and
per month for long-term placements.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional

from ..schemas.preferences import (
    HOURLY_SUB_TYPES,
    BookingSubType,
    DurationType,
    ExperienceLevel,
    HomeSize,
    LivingArrangement,
)


class PricingTaxonomy(str, enum.Enum):
    HOURLY = "hourly"
    TEMPORARY_SUPPORT = "temporary_support"
    DAILY = "daily"
    LONG_TERM = "long_term"


def taxonomy_for(duration_type: Any, booking_sub_type: Any) -> PricingTaxonomy:
    if duration_type != DurationType.SHORT_TERM:
        return PricingTaxonomy.LONG_TERM
    if booking_sub_type in HOURLY_SUB_TYPES:
        return PricingTaxonomy.HOURLY
    if booking_sub_type == BookingSubType.TEMPORARY_SUPPORT:
        return PricingTaxonomy.TEMPORARY_SUPPORT
    return PricingTaxonomy.DAILY


@dataclass(frozen=True)
class AddOnRate:
    name: str
    # None means the price depends on home size (light housekeeping)
    price: Optional[Decimal]


@dataclass(frozen=True)
class RateInfo:
    base: Decimal
    description: str


# ─── Age / dependent parsing ──────────────────────────────────────────────────
_AGE_NUMBER = re.compile(r"\d+(?:\.\d+)?")
MAX_CHILD_AGE_YEARS = Decimal("18")
MAX_CHILD_AGE_MONTHS = Decimal("216")
DEPENDENT_THRESHOLD = 3


def parse_age(token: Any) -> tuple[Decimal, str]:
    """Return ``(value, unit)`` for an age string; unparseable ages are 0 years."""
    text = str(token or "").lower()
    match = _AGE_NUMBER.search(text)
    value = Decimal(match.group(0)) if match else Decimal("0")
    unit = "months" if "month" in text else "years"
    return value, unit


def is_child(token: Any) -> bool:
    value, unit = parse_age(token)
    limit = MAX_CHILD_AGE_MONTHS if unit == "months" else MAX_CHILD_AGE_YEARS
    return value <= limit


def count_children(children_ages: Iterable[Any]) -> int:
    return sum(1 for age in (children_ages or []) if is_child(age))


def count_dependents(children_ages: Iterable[Any], other_dependents: int = 0) -> int:
    return count_children(children_ages) + max(0, int(other_dependents or 0))


def extra_dependents(children_ages: Iterable[Any], other_dependents: int = 0) -> int:
    return max(0, count_dependents(children_ages, other_dependents) - DEPENDENT_THRESHOLD)


# ─── Tables ───────────────────────────────────────────────────────────────────
D = Decimal

HOURLY_BASE_RATES: Dict[BookingSubType, Decimal] = {
    BookingSubType.EMERGENCY: D("80"),
    BookingSubType.DATE_NIGHT: D("120"),
}

# Hours assumed per selected date when no time slots were picked
DEFAULT_HOURS_PER_DATE: Dict[BookingSubType, Decimal] = {
    BookingSubType.DATE_NIGHT: D("4"),
    BookingSubType.EMERGENCY: D("5"),
    BookingSubType.DATE_DAY: D("8"),
    BookingSubType.SCHOOL_HOLIDAY: D("8"),
}
DEFAULT_HOURS_FALLBACK = D("8")
EMERGENCY_MIN_HOURS = D("5")

SHORT_TERM_SERVICE_FEE = D("35")

TEMPORARY_SUPPORT_WEEKDAY_RATE = D("280")
TEMPORARY_SUPPORT_PREMIUM_RATE = D("350")
# date.weekday(): Friday, Saturday, Sunday
PREMIUM_WEEKDAYS = frozenset({4, 5, 6})

DAILY_BASE_RATE = D("450")

LONG_TERM_BASE_RATES: Dict[HomeSize, Dict[LivingArrangement, Decimal]] = {
    HomeSize.POCKET_PALACE: {LivingArrangement.LIVE_IN: D("4500"), LivingArrangement.LIVE_OUT: D("4800")},
    HomeSize.FAMILY_HUB: {LivingArrangement.LIVE_IN: D("6000"), LivingArrangement.LIVE_OUT: D("6800")},
    HomeSize.GRAND_RETREAT: {LivingArrangement.LIVE_IN: D("7000"), LivingArrangement.LIVE_OUT: D("7800")},
    HomeSize.EPIC_ESTATES: {LivingArrangement.LIVE_IN: D("10000"), LivingArrangement.LIVE_OUT: D("11000")},
}
LONG_TERM_EXTRA_DEPENDENT_RATE = D("500")

LIGHT_HOUSEKEEPING_DAILY_RATES: Dict[HomeSize, Decimal] = {
    HomeSize.POCKET_PALACE: D("80"),
    HomeSize.FAMILY_HUB: D("150"),
    HomeSize.GRAND_RETREAT: D("200"),
    HomeSize.EPIC_ESTATES: D("300"),
}

EXPERIENCE_SURCHARGES: Dict[PricingTaxonomy, Dict[ExperienceLevel, Decimal]] = {
    PricingTaxonomy.DAILY: {ExperienceLevel.THREE_TO_SIX: D("50"), ExperienceLevel.SIX_PLUS: D("100")},
    PricingTaxonomy.LONG_TERM: {ExperienceLevel.THREE_TO_SIX: D("250"), ExperienceLevel.SIX_PLUS: D("500")},
}

ADD_ON_RATES: Dict[PricingTaxonomy, Dict[str, AddOnRate]] = {
    # per hour of coverage
    PricingTaxonomy.HOURLY: {
        "cooking": AddOnRate("Cooking/Food-prep", D("12")),
        "special_needs": AddOnRate("Diverse needs support", D("0")),
        "light_housekeeping": AddOnRate("Light Housekeeping", None),
        "driving_support": AddOnRate("Driving Support", D("25")),
    },
    # per day
    PricingTaxonomy.TEMPORARY_SUPPORT: {
        "cooking": AddOnRate("Cooking/Food-prep", D("120")),
        "special_needs": AddOnRate("Diverse needs support", D("200")),
        "driving_support": AddOnRate("Driving Support", D("200")),
    },
    # per day
    PricingTaxonomy.DAILY: {
        "extra_child": AddOnRate("Extra Children", D("50")),
        "driving_support": AddOnRate("Driving Support", D("100")),
        "special_needs": AddOnRate("Diverse Ability Support", D("100")),
    },
    # per month; light housekeeping is part of the monthly base
    PricingTaxonomy.LONG_TERM: {
        "driving_support": AddOnRate("Driving Support", D("2000")),
        "cooking": AddOnRate("Food Prep", D("1500")),
        "special_needs": AddOnRate("Diverse Ability Support", D("1500")),
        "ecd_training": AddOnRate("ECD Training", D("500")),
        "montessori": AddOnRate("Montessori Training", D("450")),
        "backup_nanny": AddOnRate("Backup Nanny Service", D("100")),
        "driving_required": AddOnRate("Transportation Service", D("2000")),
    },
}


def _copy_add_ons() -> Dict[PricingTaxonomy, Dict[str, AddOnRate]]:
    return {taxonomy: dict(rows) for taxonomy, rows in ADD_ON_RATES.items()}


@dataclass(frozen=True)
class RateCatalog:
    """Lookup surface over the tables above.

    Calculators take a catalog argument so tests (and future rate cards) can
    swap tables without touching module state.
    """

    hourly_base_rates: Mapping[BookingSubType, Decimal] = field(default_factory=lambda: dict(HOURLY_BASE_RATES))
    default_hours_per_date: Mapping[BookingSubType, Decimal] = field(default_factory=lambda: dict(DEFAULT_HOURS_PER_DATE))
    emergency_min_hours: Decimal = EMERGENCY_MIN_HOURS
    service_fee: Decimal = SHORT_TERM_SERVICE_FEE
    temporary_weekday_rate: Decimal = TEMPORARY_SUPPORT_WEEKDAY_RATE
    temporary_premium_rate: Decimal = TEMPORARY_SUPPORT_PREMIUM_RATE
    daily_base_rate: Decimal = DAILY_BASE_RATE
    long_term_base_rates: Mapping[HomeSize, Mapping[LivingArrangement, Decimal]] = field(
        default_factory=lambda: {size: dict(row) for size, row in LONG_TERM_BASE_RATES.items()}
    )
    long_term_extra_dependent_rate: Decimal = LONG_TERM_EXTRA_DEPENDENT_RATE
    light_housekeeping_rates: Mapping[HomeSize, Decimal] = field(
        default_factory=lambda: dict(LIGHT_HOUSEKEEPING_DAILY_RATES)
    )
    experience_surcharges: Mapping[PricingTaxonomy, Mapping[ExperienceLevel, Decimal]] = field(
        default_factory=lambda: {t: dict(row) for t, row in EXPERIENCE_SURCHARGES.items()}
    )
    add_on_rates: Mapping[PricingTaxonomy, Mapping[str, AddOnRate]] = field(default_factory=_copy_add_ons)

    def add_ons_for(self, taxonomy: PricingTaxonomy) -> Dict[str, AddOnRate]:
        return dict(self.add_on_rates.get(taxonomy, {}))

    def light_housekeeping_rate(self, home_size: Any) -> Decimal:
        size = HomeSize.parse(home_size)
        if not isinstance(size, HomeSize):
            size = HomeSize.FAMILY_HUB
        return self.light_housekeeping_rates[size]

    def experience_surcharge(self, taxonomy: PricingTaxonomy, level: Any) -> Decimal:
        if not level:
            return D("0")
        try:
            level = ExperienceLevel(level)
        except ValueError:
            return D("0")
        return self.experience_surcharges.get(taxonomy, {}).get(level, D("0"))

    def default_hours(self, booking_sub_type: Any, number_of_dates: int = 1) -> Decimal:
        days = D(max(1, int(number_of_dates or 0)))
        per_date = self.default_hours_per_date.get(booking_sub_type, DEFAULT_HOURS_FALLBACK)
        hours = per_date * days
        if booking_sub_type == BookingSubType.EMERGENCY:
            hours = max(self.emergency_min_hours, hours)
        return hours

    def temporary_day_rate(self, day: date) -> Decimal:
        if day.weekday() in PREMIUM_WEEKDAYS:
            return self.temporary_premium_rate
        return self.temporary_weekday_rate

    def long_term_rate(self, home_size: Any, living_arrangement: Any) -> Decimal:
        size = HomeSize.parse(home_size)
        if not isinstance(size, HomeSize):
            size = HomeSize.FAMILY_HUB
        arrangement = living_arrangement
        if isinstance(arrangement, str) and not isinstance(arrangement, LivingArrangement):
            arrangement = arrangement.strip().lower().replace("_", "-")
        try:
            arrangement = LivingArrangement(arrangement)
        except ValueError:
            arrangement = LivingArrangement.LIVE_OUT
        return self.long_term_base_rates[size][arrangement]

    def base_rate_for(
        self,
        booking_type: Any,
        home_size: Any = None,
        living_arrangement: Any = None,
        children_ages: Iterable[Any] = (),
        other_dependents: int = 0,
        services: Optional[Mapping[str, bool]] = None,
    ) -> RateInfo:
        """Base rate for a booking type (a sub type, or ``long_term``).

        Long-term rates depend on home size, living arrangement and the
        dependent bracket; requested services are listed in the description
        and charged as add-ons by the calculator.
        """
        if booking_type in (DurationType.LONG_TERM, PricingTaxonomy.LONG_TERM):
            base = self.long_term_rate(home_size, living_arrangement)
            extra = extra_dependents(children_ages, other_dependents)
            base += self.long_term_extra_dependent_rate * extra
            description = f"Base: R{base}/month"
            if extra:
                description += f" (incl. {extra} extra dependent{'s' if extra != 1 else ''})"
            requested = sorted(k for k, v in (services or {}).items() if v)
            if requested:
                description += f"; services: {', '.join(requested)}"
            return RateInfo(base, description)

        if booking_type == BookingSubType.TEMPORARY_SUPPORT:
            return RateInfo(self.temporary_weekday_rate, f"From R{self.temporary_weekday_rate}/day")

        if booking_type in self.hourly_base_rates:
            rate = self.hourly_base_rates[booking_type]
            return RateInfo(rate, f"R{rate}/hour")

        if booking_type in (BookingSubType.DATE_DAY, BookingSubType.SCHOOL_HOLIDAY):
            return RateInfo(self.daily_base_rate, f"R{self.daily_base_rate}/day")

        return RateInfo(D("0"), "Custom")


DEFAULT_CATALOG = RateCatalog()
