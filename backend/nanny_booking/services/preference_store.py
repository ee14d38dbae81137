"""Per-session preference document for the booking wizard.

Every mutation goes through :meth:`PreferenceStore.apply_update`, which
merges, validates field by field, reconciles service tags into flags and
enforces the long-term rule before anything is mirrored or persisted.
Updates never raise; invalid fields keep their previous values.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..core.config import settings
from ..exceptions import RecoverableLoadFailure
from ..schemas.preferences import DurationType, UserPreferences
from ..schemas.pricing import PricingBreakdown
from ..schemas.provider import SelectedProvider
from ..schemas.session import BookingSession
from ..utils.debounce import DebouncedScheduler
from ..utils.value_utils import clean_preferences
from . import pricing_calculator
from .persistence import PreferencePersistenceAdapter
from .rate_catalog import DEFAULT_CATALOG, RateCatalog

logger = logging.getLogger(__name__)

# Service tag -> flag it switches on
TAG_FLAGS = (
    ("food-prep", "cooking"),
    ("light-housekeeping", "light_house_keeping"),
    ("errand-runs", "errand_runs"),
)

_LONG_TERM_CLEARED = {"booking_sub_type": None, "selected_dates": [], "time_slots": []}

PreferenceUpdate = Union[UserPreferences, Mapping[str, Any], None]


def _partial_fields(partial: PreferenceUpdate) -> Dict[str, Any]:
    """Field-name keyed view of an update; unknown keys are dropped."""
    if partial is None:
        return {}
    if isinstance(partial, UserPreferences):
        return partial.model_dump(exclude_unset=True)
    fields: Dict[str, Any] = {}
    for key, value in dict(partial).items():
        name = UserPreferences.field_key(str(key))
        if name is None:
            logger.debug("Ignoring unknown preference field %s", key)
            continue
        fields[name] = value
    return fields


def reconcile_tags(prefs: UserPreferences, explicit: Mapping[str, Any] = ()) -> UserPreferences:
    """Switch on flags implied by service tags unless set explicitly."""
    derived = {
        flag: True
        for tag, flag in TAG_FLAGS
        if flag not in explicit and not getattr(prefs, flag) and prefs.has_tag(tag)
    }
    return prefs.model_copy(update=derived) if derived else prefs


def enforce_duration_rules(prefs: UserPreferences) -> UserPreferences:
    if prefs.duration_type == DurationType.LONG_TERM and (
        prefs.booking_sub_type is not None or prefs.selected_dates or prefs.time_slots
    ):
        return prefs.model_copy(update=_LONG_TERM_CLEARED)
    return prefs


class PreferenceStore:
    """Single writer for one session's :class:`UserPreferences`."""

    def __init__(
        self,
        session: BookingSession,
        adapter: Optional[PreferencePersistenceAdapter] = None,
        scheduler: Optional[DebouncedScheduler] = None,
        catalog: RateCatalog = DEFAULT_CATALOG,
        persist_delay: Optional[float] = None,
        cooking_persist_delay: Optional[float] = None,
    ):
        self.session = session
        self.adapter = adapter or PreferencePersistenceAdapter()
        self.scheduler = scheduler or DebouncedScheduler()
        self.catalog = catalog
        self.persist_delay = settings.PERSIST_DEBOUNCE_SECONDS if persist_delay is None else persist_delay
        self.cooking_persist_delay = (
            settings.COOKING_PERSIST_DEBOUNCE_SECONDS
            if cooking_persist_delay is None
            else cooking_persist_delay
        )
        self._lock = threading.RLock()
        self._prefs = UserPreferences()
        self._revision = 0
        self._pricing_memo: Dict[Tuple[Any, ...], PricingBreakdown] = {}
        self._provider: Optional[SelectedProvider] = self.adapter.recover_selected_provider()

    @property
    def persist_key(self) -> str:
        return f"profile:{self.session.key}"

    @property
    def preferences(self) -> UserPreferences:
        with self._lock:
            return self._prefs.model_copy(deep=True)

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def selected_provider(self) -> Optional[SelectedProvider]:
        return self._provider

    # ─── mutation ───────────────────────────────────────────────────────────
    def _merge(self, fields: Dict[str, Any], explicit: Mapping[str, Any] = ()) -> UserPreferences:
        current = self._prefs.model_dump(mode="json")
        cleaned = clean_preferences(fields) or {}
        for name in fields:
            if name not in cleaned:
                logger.warning("Dropping unserializable value for %s", name)
        prefs, replaced = UserPreferences.lenient({**current, **cleaned}, fallback=current)
        if replaced:
            logger.warning("Invalid preference values kept previous state: %s", sorted(set(replaced)))
        prefs = enforce_duration_rules(prefs)
        prefs = reconcile_tags(prefs, explicit=explicit)
        self._prefs = prefs
        self._revision += 1
        self._pricing_memo.clear()
        return prefs

    def apply_update(self, partial: PreferenceUpdate) -> UserPreferences:
        fields = _partial_fields(partial)
        with self._lock:
            prefs = self._merge(fields, explicit=fields)
        self.adapter.mirror_local(prefs)
        delay = self.cooking_persist_delay if "cooking" in fields else self.persist_delay
        self.scheduler.schedule(self.persist_key, delay, self.flush)
        return prefs.model_copy(deep=True)

    def flush(self) -> bool:
        """Write the current document to the remote profile now."""
        return self.adapter.persist(self.session, self.preferences)

    def load_profile(self) -> bool:
        """Merge the stored profile into the working document.

        Transport failures fall back to the recovery cache; when that is
        empty the in-memory document is kept as is.
        """
        if not self.session.is_authenticated:
            logger.debug("Skipping profile load: no authenticated user")
            return False
        try:
            loaded = self.adapter.load(self.session.user_id)
        except RecoverableLoadFailure:
            loaded = self.adapter.recover_preferences()
            if not loaded:
                logger.info("Profile unavailable and nothing cached; keeping current preferences")
                return False
            logger.info("Profile unavailable; restored preferences from the recovery cache")
        if not loaded:
            return False
        # Stored flags come back defaulted, so tags always win on load
        with self._lock:
            prefs = self._merge(_partial_fields(loaded))
        self.adapter.mirror_local(prefs)
        return True

    # ─── provider selection ─────────────────────────────────────────────────
    def select_provider(self, provider: Union[SelectedProvider, Mapping[str, Any]]) -> SelectedProvider:
        if not isinstance(provider, SelectedProvider):
            provider = SelectedProvider.model_validate(dict(provider))
        provider = self.adapter.remember_provider(provider.stamped())
        self._provider = provider
        return provider

    def clear_provider(self) -> None:
        self._provider = None
        self.adapter.forget_provider()

    # ─── pricing ────────────────────────────────────────────────────────────
    def pricing(self) -> PricingBreakdown:
        with self._lock:
            key = ("routed", self._revision)
            if key not in self._pricing_memo:
                self._pricing_memo[key] = pricing_calculator.calculate_pricing(self._prefs, self.catalog)
            return self._pricing_memo[key]

    def provider_pricing(self, provider: Optional[SelectedProvider] = None) -> PricingBreakdown:
        provider = provider or self._provider
        with self._lock:
            key = ("provider", self._revision, provider.id if provider else None)
            if key not in self._pricing_memo:
                self._pricing_memo[key] = pricing_calculator.calculate_provider_pricing(
                    self._prefs, provider, self.catalog
                )
            return self._pricing_memo[key]

    # ─── lifecycle ──────────────────────────────────────────────────────────
    def reset(self) -> None:
        """Back to defaults; drops any pending write and the cached document."""
        self.scheduler.cancel(self.persist_key)
        with self._lock:
            self._prefs = UserPreferences()
            self._revision += 1
            self._pricing_memo.clear()
        self.adapter.forget_preferences()

    def close(self) -> None:
        if self.scheduler.cancel(self.persist_key):
            logger.debug("Cancelled pending profile write for %s", self.session.key)
