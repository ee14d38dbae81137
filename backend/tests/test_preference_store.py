import time

import pytest

from nanny_booking.crud import client_profile
from nanny_booking.schemas.preferences import DurationType, UserPreferences
from nanny_booking.schemas.session import BookingSession
from nanny_booking.services.persistence import PreferencePersistenceAdapter
from nanny_booking.services.preference_store import PreferenceStore
from nanny_booking.utils import recovery_cache


@pytest.fixture
def store(session_factory, scheduler):
    adapter = PreferencePersistenceAdapter(session_factory=session_factory)
    return PreferenceStore(
        BookingSession(user_id="client-1", role="client"),
        adapter=adapter,
        scheduler=scheduler,
        persist_delay=0.5,
        cooking_persist_delay=0.1,
    )


def test_long_term_clears_short_term_fields_in_same_update(store):
    prefs = store.apply_update(
        {
            "durationType": "long-term",
            "bookingSubType": "date_night",
            "selectedDates": ["2024-03-01"],
            "timeSlots": [{"start": "18:00", "end": "22:00"}],
        }
    )
    assert prefs.duration_type is DurationType.LONG_TERM
    assert prefs.booking_sub_type is None
    assert prefs.selected_dates == []
    assert prefs.time_slots == []


def test_switching_to_long_term_clears_earlier_short_term_fields(store):
    store.apply_update({"durationType": "short_term", "bookingSubType": "emergency"})
    store.apply_update({"selectedDates": ["2024-03-01"]})
    prefs = store.apply_update({"durationType": "long_term"})
    assert prefs.booking_sub_type is None
    assert prefs.selected_dates == []


def test_food_prep_tag_turns_cooking_on(store):
    prefs = store.apply_update({"childcareFocusAreas": ["Food-Prep"]})
    assert prefs.cooking is True


def test_explicit_cooking_in_same_update_wins(store):
    prefs = store.apply_update({"householdSupport": ["food-prep"], "cooking": False})
    assert prefs.cooking is False


def test_other_tags_reconcile_into_flags(store):
    prefs = store.apply_update({"householdSupport": ["light-housekeeping", "errand-runs", "errand-runs"]})
    assert prefs.light_house_keeping is True
    assert prefs.errand_runs is True
    assert prefs.household_support == ["light-housekeeping", "errand-runs"]


def test_invalid_value_keeps_previous_state(store):
    store.apply_update({"numberOfChildren": 2, "homeSize": "family_hub"})
    prefs = store.apply_update({"numberOfChildren": "many", "homeSize": "castle", "city": "Durban"})
    assert prefs.number_of_children == 2
    assert prefs.home_size.value == "family_hub"
    assert prefs.city == "Durban"


def test_negative_dependents_clamp_to_zero(store):
    assert store.apply_update({"otherDependents": -3}).other_dependents == 0


def test_unknown_keys_are_ignored(store):
    prefs = store.apply_update({"favouriteColour": "blue", "petsInHome": "cat"})
    assert prefs.pets_in_home == "cat"
    assert "favouriteColour" not in prefs.to_document()


def test_model_update_only_applies_set_fields(store):
    store.apply_update({"childrenAges": ["4"]})
    prefs = store.apply_update(UserPreferences(cooking=True))
    assert prefs.children_ages == ["4"]
    assert prefs.cooking is True


def test_cooking_update_uses_short_debounce(store, scheduler):
    store.apply_update({"cooking": True})
    store.apply_update({"city": "Cape Town"})
    assert scheduler.calls == [(store.persist_key, 0.1), (store.persist_key, 0.5)]


def test_update_mirrors_local_cache(store):
    store.apply_update({"childrenAges": ["2 years"], "experienceLevel": "6+"})
    cached = recovery_cache.get_cached_preferences()
    assert cached["childrenAges"] == ["2 years"]
    assert cached["experienceLevel"] == "6+"


def test_debounced_write_reaches_profile(store, scheduler, Session):
    store.apply_update({"cooking": True, "homeSize": "Grand Estate"})
    assert scheduler.run_pending() == [True]
    db = Session()
    data = client_profile.get_profile_data(db, "client-1")
    assert data["cooking"] is True
    assert data["homeSize"] == "grand_retreat"
    assert "experienceLevel" not in data


def test_load_profile_merges_stored_document(store, Session):
    db = Session()
    client_profile.upsert_profile(db, "client-1", {"childrenAges": ["5"], "cooking": True})
    store.apply_update({"experienceLevel": "3-6"})
    assert store.load_profile() is True
    prefs = store.preferences
    assert prefs.children_ages == ["5"]
    assert prefs.cooking is True
    assert prefs.experience_level.value == "3-6"


def test_load_profile_derives_flags_from_stored_tags(store, Session):
    db = Session()
    client_profile.upsert_profile(
        db,
        "client-1",
        {"householdSupport": ["food-prep", "errand-runs"], "childcareFocusAreas": ["light-housekeeping"]},
    )
    assert store.load_profile() is True
    prefs = store.preferences
    assert prefs.household_support == ["food-prep", "errand-runs"]
    assert prefs.cooking is True
    assert prefs.errand_runs is True
    assert prefs.light_house_keeping is True


def test_same_update_twice_gives_same_state(store):
    update = {
        "durationType": "short-term",
        "bookingSubType": "date_night",
        "householdSupport": ["food-prep", "food-prep"],
        "childrenAges": ["3", "7"],
        "otherDependents": -1,
        "numberOfChildren": 2,
    }
    first = store.apply_update(update)
    second = store.apply_update(update)
    assert first == second
    assert second.duration_type is DurationType.SHORT_TERM
    assert second.household_support == ["food-prep"]
    assert second.cooking is True
    assert second.other_dependents == 0


def test_load_profile_without_stored_profile(store):
    assert store.load_profile() is False


def _failing_factory(exc):
    def factory():
        raise exc

    return factory


def test_transport_failure_falls_back_to_cache(scheduler):
    recovery_cache.cache_preferences({"childrenAges": ["7"], "city": "Pretoria"})
    adapter = PreferencePersistenceAdapter(session_factory=_failing_factory(TimeoutError("read timed out")))
    store = PreferenceStore(BookingSession(user_id="client-1", role="client"), adapter=adapter, scheduler=scheduler)
    assert store.load_profile() is True
    assert store.preferences.children_ages == ["7"]
    assert store.preferences.city == "Pretoria"


def test_transport_failure_without_cache_keeps_memory(scheduler):
    adapter = PreferencePersistenceAdapter(
        session_factory=_failing_factory(RuntimeError("Network request failed"))
    )
    store = PreferenceStore(BookingSession(user_id="client-1", role="client"), adapter=adapter, scheduler=scheduler)
    store.apply_update({"city": "Durban"})
    recovery_cache.clear_cached_preferences()
    assert store.load_profile() is False
    assert store.preferences.city == "Durban"


def test_pricing_memoized_per_revision(store):
    store.apply_update({"durationType": "short_term", "bookingSubType": "emergency"})
    first = store.pricing()
    assert store.pricing() is first
    store.apply_update({"cooking": True})
    assert store.pricing() is not first
    assert store.pricing().effective_hourly_rate == 92


def test_provider_pricing_uses_selected_provider(store):
    store.apply_update({"homeSize": "family_hub", "livingArrangement": "live-in"})
    store.select_provider({"id": "nanny-9"})
    assert store.provider_pricing().total == 6000


def test_reset_restores_defaults_and_cancels_pending_write(store, scheduler):
    store.apply_update({"city": "Durban"})
    store.reset()
    assert store.preferences == UserPreferences()
    assert not scheduler.is_pending(store.persist_key)
    assert recovery_cache.get_cached_preferences() is None


def test_preferences_is_a_copy(store):
    store.apply_update({"childrenAges": ["1"]})
    copy = store.preferences
    copy.children_ages.append("9")
    assert store.preferences.children_ages == ["1"]


def test_selected_provider_recovered_at_init(session_factory, scheduler):
    recovery_cache.cache_selected_provider({"id": "nanny-1", "timestamp": time.time() - 60})
    adapter = PreferencePersistenceAdapter(session_factory=session_factory)
    store = PreferenceStore(BookingSession(user_id="client-1", role="client"), adapter=adapter, scheduler=scheduler)
    assert store.selected_provider.id == "nanny-1"
