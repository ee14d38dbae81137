"""One preference store and submission gateway per booking session."""

from __future__ import annotations

import functools
import logging
import threading
import time
from typing import Callable, ContextManager, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..database import get_db_session
from ..exceptions import PersistenceWarning
from ..schemas.session import BookingSession
from ..utils.debounce import DebouncedScheduler
from .booking_submission import BookingSubmissionGateway, create_booking_record
from .persistence import PreferencePersistenceAdapter
from .preference_store import PreferenceStore

logger = logging.getLogger(__name__)


class BookingSessionRegistry:
    def __init__(
        self,
        session_factory: Callable[[], ContextManager[Session]] = get_db_session,
        scheduler: Optional[DebouncedScheduler] = None,
        idle_timeout: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.scheduler = scheduler or DebouncedScheduler()
        self.idle_timeout = settings.SESSION_IDLE_TIMEOUT_SECONDS if idle_timeout is None else idle_timeout
        self._stores: Dict[str, PreferenceStore] = {}
        self._gateways: Dict[str, BookingSubmissionGateway] = {}
        self._warnings: Dict[str, List[str]] = {}
        self._last_seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _build(self, session: BookingSession) -> PreferenceStore:
        key = session.key

        def notify(warning: PersistenceWarning) -> None:
            with self._lock:
                self._warnings.setdefault(key, []).append(warning.user_message)

        adapter = PreferencePersistenceAdapter(session_factory=self.session_factory, notify=notify)
        store = PreferenceStore(session, adapter=adapter, scheduler=self.scheduler)
        self._gateways[key] = BookingSubmissionGateway(
            store,
            create_booking=functools.partial(create_booking_record, session_factory=self.session_factory),
        )
        return store

    def get_or_create(self, session: BookingSession) -> PreferenceStore:
        self.evict_idle()
        with self._lock:
            store = self._stores.get(session.key)
            if store is None or store.session.role != session.role:
                if store is not None:
                    store.close()
                store = self._build(session)
                self._stores[session.key] = store
                logger.debug("Opened booking session %s", session.key)
            self._last_seen[session.key] = time.monotonic()
            return store

    def evict_idle(self) -> int:
        """Close sessions untouched for longer than ``idle_timeout``.

        Sessions with a submission in flight are kept.
        """
        if self.idle_timeout <= 0:
            return 0
        cutoff = time.monotonic() - self.idle_timeout
        evicted: List[PreferenceStore] = []
        with self._lock:
            for key, seen in list(self._last_seen.items()):
                if seen > cutoff:
                    continue
                gateway = self._gateways.get(key)
                if gateway is not None and gateway.is_submitting:
                    continue
                store = self._stores.pop(key, None)
                self._gateways.pop(key, None)
                self._warnings.pop(key, None)
                self._last_seen.pop(key, None)
                if store is not None:
                    evicted.append(store)
        for store in evicted:
            store.close()
        if evicted:
            logger.info("Evicted %d idle booking session(s)", len(evicted))
        return len(evicted)

    def gateway(self, session: BookingSession) -> BookingSubmissionGateway:
        self.get_or_create(session)
        with self._lock:
            return self._gateways[session.key]

    def drain_warnings(self, session: BookingSession) -> List[str]:
        with self._lock:
            return self._warnings.pop(session.key, [])

    def close(self, session: BookingSession) -> bool:
        with self._lock:
            store = self._stores.pop(session.key, None)
            self._gateways.pop(session.key, None)
            self._warnings.pop(session.key, None)
            self._last_seen.pop(session.key, None)
        if store is None:
            return False
        store.close()
        logger.debug("Closed booking session %s", session.key)
        return True

    def close_all(self) -> None:
        with self._lock:
            stores = list(self._stores.values())
            self._stores.clear()
            self._gateways.clear()
            self._warnings.clear()
            self._last_seen.clear()
        for store in stores:
            store.close()


registry = BookingSessionRegistry()
