"""Keyed debounce timers for fire-and-forget persistence.

Each key has at most one pending callback. Scheduling again replaces the
pending one instead of queueing behind it, so a burst of wizard updates
collapses into a single write. When the caller runs inside an event loop the
timer is an ``asyncio`` handle on that loop; otherwise a daemon
``threading.Timer`` is used.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)


class _Pending:
    __slots__ = ("handle",)

    def __init__(self) -> None:
        self.handle: Any = None

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()


class DebouncedScheduler:
    def __init__(self) -> None:
        self._pending: Dict[str, _Pending] = {}
        self._lock = threading.Lock()

    def schedule(self, key: str, delay: float, callback: Callable[[], Any]) -> None:
        """Run ``callback`` after ``delay`` seconds unless rescheduled or cancelled."""
        token = _Pending()
        with self._lock:
            previous = self._pending.pop(key, None)
            if previous is not None:
                previous.cancel()
            self._pending[key] = token
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                timer = threading.Timer(max(0.0, delay), self._fire, args=(key, token, callback))
                timer.daemon = True
                token.handle = timer
                timer.start()
            else:
                token.handle = loop.call_later(max(0.0, delay), self._fire, key, token, callback)

    def _fire(self, key: str, token: _Pending, callback: Callable[[], Any]) -> None:
        with self._lock:
            # A replaced timer that slipped past cancel() must not fire
            if self._pending.get(key) is not token:
                return
            del self._pending[key]
        try:
            callback()
        except Exception:
            logger.exception("Debounced task for %s failed", key)

    def cancel(self, key: str) -> bool:
        with self._lock:
            token = self._pending.pop(key, None)
        if token is None:
            return False
        token.cancel()
        return True

    def cancel_all(self) -> int:
        with self._lock:
            tokens = list(self._pending.values())
            self._pending.clear()
        for token in tokens:
            token.cancel()
        return len(tokens)

    def is_pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending
