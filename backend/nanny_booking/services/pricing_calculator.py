"""Preview pricing for the booking wizard.

Everything here is a pure function of ``(preferences, catalog)``. Results are
estimates shown before a booking exists; the booking service computes the
authoritative financial record after creation.
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional


from ..core.config import settings
from ..schemas.pricing import AddOn, PricingBreakdown
from ..schemas.preferences import DurationType, TimeSlot, UserPreferences
from ..schemas.provider import SelectedProvider
from ..utils.value_utils import clean_preferences
from .rate_catalog import DEFAULT_CATALOG, PricingTaxonomy, RateCatalog, extra_dependents, taxonomy_for

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")
_ZERO = Decimal("0")


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _hours(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def prepare_preferences(preferences: Any) -> UserPreferences:
    """Clean and re-validate a preference document before any arithmetic.

    Wrapped values are unwrapped and cyclic or non-serializable members are
    dropped. Fields that still fail validation fall back to their defaults.
    """
    document = clean_preferences(preferences) or {}
    prefs, replaced = UserPreferences.lenient(document)
    if replaced:
        logger.warning("Pricing ignoring invalid preference fields: %s", sorted(set(replaced)))
    return prefs


def calculate_total_hours(time_slots: Iterable[TimeSlot], number_of_dates: int) -> Decimal:
    """Daily slot hours times the number of dates."""
    daily = sum((slot.hours for slot in time_slots), _ZERO)
    return daily * Decimal(int(number_of_dates or 0))


def _add_on(name: str, price: Decimal) -> AddOn:
    return AddOn(name=name, price=_money(price))


def _wants_food_prep(prefs: UserPreferences) -> bool:
    return prefs.cooking or prefs.has_tag("food-prep")


def _wants_light_housekeeping(prefs: UserPreferences) -> bool:
    return prefs.light_house_keeping or prefs.has_tag("light-housekeeping")


# ─── Short term ───────────────────────────────────────────────────────────────
def _hourly_breakdown(prefs: UserPreferences, catalog: RateCatalog) -> PricingBreakdown:
    sub_type = prefs.booking_sub_type
    base = catalog.hourly_base_rates[sub_type]
    rates = catalog.add_ons_for(PricingTaxonomy.HOURLY)
    add_ons: List[AddOn] = []

    if _wants_food_prep(prefs) and "cooking" in rates:
        add_ons.append(_add_on(rates["cooking"].name, rates["cooking"].price))
    if prefs.special_needs and "special_needs" in rates:
        add_ons.append(_add_on(rates["special_needs"].name, rates["special_needs"].price))
    # Housekeeping is only priced once the home size is known
    if _wants_light_housekeeping(prefs) and prefs.home_size and "light_housekeeping" in rates:
        add_ons.append(_add_on(rates["light_housekeeping"].name, catalog.light_housekeeping_rate(prefs.home_size)))
    if prefs.driving_support and "driving_support" in rates:
        add_ons.append(_add_on(rates["driving_support"].name, rates["driving_support"].price))

    number_of_dates = len(prefs.selected_dates)
    if prefs.time_slots:
        total_hours = calculate_total_hours(prefs.time_slots, number_of_dates)
    else:
        total_hours = catalog.default_hours(sub_type, number_of_dates)

    effective_rate = base + sum((a.price for a in add_ons), _ZERO)
    subtotal = effective_rate * total_hours
    service_fee = catalog.service_fee
    return PricingBreakdown(
        base_rate=_money(base),
        add_ons=add_ons,
        total=_money(subtotal + service_fee),
        total_hours=_hours(total_hours),
        is_hourly=True,
        subtotal=_money(subtotal),
        service_fee=_money(service_fee),
        effective_hourly_rate=_money(effective_rate),
        currency=settings.DEFAULT_CURRENCY,
    )


def _temporary_support_breakdown(prefs: UserPreferences, catalog: RateCatalog) -> PricingBreakdown:
    rates = catalog.add_ons_for(PricingTaxonomy.TEMPORARY_SUPPORT)
    add_ons: List[AddOn] = []
    if _wants_food_prep(prefs) and "cooking" in rates:
        add_ons.append(_add_on(rates["cooking"].name, rates["cooking"].price))
    if prefs.special_needs and "special_needs" in rates:
        add_ons.append(_add_on(rates["special_needs"].name, rates["special_needs"].price))
    if prefs.driving_support and "driving_support" in rates:
        add_ons.append(_add_on(rates["driving_support"].name, rates["driving_support"].price))

    days = prefs.dates()
    day_total = sum((catalog.temporary_day_rate(d) for d in days), _ZERO)
    add_on_total = sum((a.price for a in add_ons), _ZERO)
    total = day_total + add_on_total * len(days)
    base_rate = day_total / len(days) if days else _ZERO
    return PricingBreakdown(
        base_rate=_money(base_rate),
        add_ons=add_ons,
        total=_money(total),
        currency=settings.DEFAULT_CURRENCY,
    )


def _daily_breakdown(prefs: UserPreferences, catalog: RateCatalog) -> PricingBreakdown:
    daily_rate = catalog.daily_base_rate + catalog.experience_surcharge(PricingTaxonomy.DAILY, prefs.experience_level)
    rates = catalog.add_ons_for(PricingTaxonomy.DAILY)
    add_ons: List[AddOn] = []

    extra = extra_dependents(prefs.children_ages, prefs.other_dependents)
    if extra and "extra_child" in rates:
        row = rates["extra_child"]
        add_ons.append(_add_on(f"{row.name} ({extra})", row.price * extra))
    if prefs.driving_support and "driving_support" in rates:
        add_ons.append(_add_on(rates["driving_support"].name, rates["driving_support"].price))
    if prefs.special_needs and "special_needs" in rates:
        add_ons.append(_add_on(rates["special_needs"].name, rates["special_needs"].price))

    days = len(prefs.selected_dates)
    add_on_total = sum((a.price for a in add_ons), _ZERO)
    return PricingBreakdown(
        base_rate=_money(daily_rate),
        add_ons=add_ons,
        total=_money((daily_rate + add_on_total) * days),
        currency=settings.DEFAULT_CURRENCY,
    )


def calculate_short_term_pricing(preferences: Any, catalog: RateCatalog = DEFAULT_CATALOG) -> PricingBreakdown:
    prefs = prepare_preferences(preferences)
    taxonomy = taxonomy_for(DurationType.SHORT_TERM, prefs.booking_sub_type)
    if taxonomy is PricingTaxonomy.HOURLY:
        return _hourly_breakdown(prefs, catalog)
    if taxonomy is PricingTaxonomy.TEMPORARY_SUPPORT:
        return _temporary_support_breakdown(prefs, catalog)
    return _daily_breakdown(prefs, catalog)


# ─── Long term ────────────────────────────────────────────────────────────────
def _long_term_breakdown(prefs: UserPreferences, catalog: RateCatalog) -> PricingBreakdown:
    services = {
        "cooking": _wants_food_prep(prefs),
        "special_needs": prefs.special_needs,
        "driving_support": prefs.driving_support,
        "ecd_training": prefs.ecd_training,
        "montessori": prefs.montessori,
        "backup_nanny": prefs.backup_nanny,
    }
    rate_info = catalog.base_rate_for(
        DurationType.LONG_TERM,
        prefs.home_size,
        prefs.living_arrangement,
        prefs.children_ages,
        prefs.other_dependents,
        services,
    )
    base_rate = rate_info.base + catalog.experience_surcharge(PricingTaxonomy.LONG_TERM, prefs.experience_level)

    rates = catalog.add_ons_for(PricingTaxonomy.LONG_TERM)
    wanted = {
        "driving_support": prefs.driving_support,
        "cooking": _wants_food_prep(prefs),
        "special_needs": prefs.special_needs,
        "ecd_training": prefs.ecd_training,
        "montessori": prefs.montessori,
        "backup_nanny": prefs.backup_nanny,
        "driving_required": prefs.driving_required,
    }
    add_ons = [
        _add_on(rates[key].name, rates[key].price)
        for key, selected in wanted.items()
        if selected and key in rates and rates[key].price is not None
    ]
    total = base_rate + sum((a.price for a in add_ons), _ZERO)
    return PricingBreakdown(
        base_rate=_money(base_rate),
        add_ons=add_ons,
        total=_money(total),
        currency=settings.DEFAULT_CURRENCY,
    )


def calculate_long_term_pricing(preferences: Any, catalog: RateCatalog = DEFAULT_CATALOG) -> PricingBreakdown:
    return _long_term_breakdown(prepare_preferences(preferences), catalog)


# ─── Entry points ─────────────────────────────────────────────────────────────
def calculate_pricing(preferences: Any, catalog: RateCatalog = DEFAULT_CATALOG) -> PricingBreakdown:
    """Route on duration type: short_term prices per hour/day, anything else monthly."""
    prefs = prepare_preferences(preferences)
    if prefs.duration_type == DurationType.SHORT_TERM:
        return calculate_short_term_pricing(prefs, catalog)
    return _long_term_breakdown(prefs, catalog)


def calculate_provider_pricing(
    preferences: Any,
    provider: Optional[SelectedProvider] = None,
    catalog: RateCatalog = DEFAULT_CATALOG,
) -> PricingBreakdown:
    """Monthly preview for one candidate, before a duration type is committed.

    Always priced as long-term regardless of the stored duration type. With
    no candidate this is the regular routed preview.
    """
    if provider is None:
        return calculate_pricing(preferences, catalog)
    return _long_term_breakdown(prepare_preferences(preferences), catalog)

