"""Remote profile record and local recovery cache for booking preferences."""

from __future__ import annotations

import logging
from typing import Any, Callable, ContextManager, Dict, Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from ..core.config import settings
from ..crud import client_profile
from ..database import get_db_session
from ..exceptions import PersistenceWarning, RecoverableLoadFailure
from ..schemas.preferences import ADDRESS_FIELDS, EPHEMERAL_FIELDS, UserPreferences
from ..schemas.provider import SelectedProvider
from ..schemas.session import BookingSession
from ..utils import recovery_cache

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (
    sa_exc.OperationalError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,
    TimeoutError,
    ConnectionError,
)
_TRANSPORT_MARKERS = ("timeout", "timed out", "network", "connection", "fetch")


def is_transport_failure(error: BaseException) -> bool:
    """Network/timeout class failures, by type or by message."""
    if isinstance(error, _TRANSPORT_ERRORS):
        return True
    message = str(error).lower()
    return any(marker in message for marker in _TRANSPORT_MARKERS)


def _alias(name: str) -> str:
    return UserPreferences.model_fields[name].alias or name


_ADDRESS_KEYS = tuple(_alias(name) for name in ADDRESS_FIELDS)


class PreferencePersistenceAdapter:
    """Mirrors the preference document to the client profile and the cache.

    Remote writes are best-effort: a failure is logged, handed to ``notify``
    as a :class:`PersistenceWarning` and never raised.
    """

    def __init__(
        self,
        session_factory: Callable[[], ContextManager[Session]] = get_db_session,
        notify: Optional[Callable[[PersistenceWarning], None]] = None,
        provider_ttl_hours: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.notify = notify
        self.provider_ttl_hours = (
            settings.SELECTED_PROVIDER_TTL_HOURS if provider_ttl_hours is None else provider_ttl_hours
        )

    # ─── Remote profile ─────────────────────────────────────────────────────
    @staticmethod
    def build_payload(prefs: UserPreferences) -> Dict[str, Any]:
        """camelCase document without runtime-only fields.

        Address keys are left out entirely when every one of them is blank,
        so an upsert never wipes an address captured elsewhere.
        """
        payload = prefs.to_document(exclude=set(EPHEMERAL_FIELDS))
        has_address = any(
            isinstance(payload.get(key), str) and payload[key].strip() for key in _ADDRESS_KEYS
        )
        if not has_address:
            for key in _ADDRESS_KEYS:
                payload.pop(key, None)
        return payload

    def persist(self, session: BookingSession, prefs: UserPreferences) -> bool:
        if not session.is_authenticated:
            logger.debug("Skipping profile save: no authenticated user")
            return False
        if not session.is_client:
            logger.debug("Skipping profile save for role %s", session.role)
            return False

        payload = self.build_payload(prefs)
        try:
            with self.session_factory() as db:
                client_profile.upsert_profile(db, session.user_id, payload)
        except Exception as exc:
            logger.error("Failed to save profile for %s: %s", session.user_id, exc)
            warning = PersistenceWarning(str(exc))
            if self.notify is not None:
                try:
                    self.notify(warning)
                except Exception:
                    logger.exception("Persistence warning callback failed")
            return False
        logger.debug("Saved profile for %s (%d fields)", session.user_id, len(payload))
        return True

    def load(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Read the stored profile as a complete preference mapping.

        Returns ``None`` when no profile exists yet or the read failed for a
        non-transport reason. Transport failures raise
        :class:`RecoverableLoadFailure`.
        """
        try:
            with self.session_factory() as db:
                data = client_profile.get_profile_data(db, user_id)
        except Exception as exc:
            if is_transport_failure(exc):
                logger.warning("Profile load for %s hit a transport failure: %s", user_id, exc)
                raise RecoverableLoadFailure(str(exc)) from exc
            logger.error("Failed to load profile for %s: %s", user_id, exc)
            return None
        if data is None:
            logger.info("No stored profile for %s yet", user_id)
            return None

        prefs, replaced = UserPreferences.lenient(data)
        if replaced:
            logger.warning("Stored profile for %s has invalid fields: %s", user_id, sorted(set(replaced)))
        return prefs.to_document(exclude=set(EPHEMERAL_FIELDS))

    # ─── Local recovery cache ───────────────────────────────────────────────
    def mirror_local(self, prefs: UserPreferences) -> bool:
        return recovery_cache.cache_preferences(prefs.to_document())

    def recover_preferences(self) -> Optional[Dict[str, Any]]:
        return recovery_cache.get_cached_preferences()

    def forget_preferences(self) -> None:
        recovery_cache.clear_cached_preferences()

    def remember_provider(self, provider: SelectedProvider) -> SelectedProvider:
        stamped = provider if provider.timestamp is not None else provider.stamped()
        recovery_cache.cache_selected_provider(stamped.model_dump(mode="json", by_alias=True))
        return stamped

    def recover_selected_provider(self, now: Optional[float] = None) -> Optional[SelectedProvider]:
        """Cached selection, if present and younger than the provider TTL.

        Stale, unstamped or unreadable entries are deleted.
        """
        document = recovery_cache.get_cached_selected_provider()
        if document is None:
            return None
        try:
            provider = SelectedProvider.model_validate(document)
        except ValueError as exc:
            logger.warning("Discarding unreadable provider selection: %s", exc)
            recovery_cache.clear_selected_provider()
            return None
        if not provider.is_fresh(self.provider_ttl_hours * 3600, now=now):
            logger.info("Discarding expired provider selection %s", provider.id)
            recovery_cache.clear_selected_provider()
            return None
        logger.info("Recovered provider selection %s", provider.id)
        return provider

    def forget_provider(self) -> None:
        recovery_cache.clear_selected_provider()
