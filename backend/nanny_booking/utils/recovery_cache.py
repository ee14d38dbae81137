"""Local recovery cache for the booking wizard.

Two independent entries, neither scoped to a user: the last preference
document (last write wins) and the selected provider (carries a
``timestamp`` for the expiry check). Everything here is best-effort: Redis
errors are logged and reported as cache misses.
"""

import json
import logging
from typing import Any, Optional

import redis

from nanny_booking.core.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


class _NullRedis:
    """No-op Redis client used when Redis is disabled or unavailable.

    Methods mirror the minimal surface used in this module so callers can
    proceed without needing try/except around get_redis_client().
    """

    def get(self, key: str):
        return None

    def setex(self, key: str, expire: int, value: str):
        return None

    def delete(self, key: str):
        return 0

    def close(self):
        return None


def get_redis_client() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        url = (getattr(settings, "REDIS_URL", "") or "").strip()
        # Allow disabling via empty/none/disabled/false
        if not url or url.lower() in {"none", "disabled", "false", "0"}:
            _redis_client = _NullRedis()  # type: ignore[assignment]
            return _redis_client
        try:
            # Conservative socket timeouts: the cache sits on the update path
            # and must never stall a wizard step.
            _redis_client = redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            )
        except (redis.exceptions.RedisError, ValueError) as exc:
            logger.warning("Recovery cache disabled, could not create Redis client: %s", exc)
            _redis_client = _NullRedis()  # type: ignore[assignment]
    return _redis_client


def preferences_key() -> str:
    return f"{settings.RECOVERY_CACHE_PREFIX}:preferences"


def selected_provider_key() -> str:
    return f"{settings.RECOVERY_CACHE_PREFIX}:selected_provider"


def _read_json(key: str) -> Optional[dict]:
    client = get_redis_client()
    try:
        data = client.get(key)
    except redis.exceptions.RedisError as exc:
        logger.warning("Redis unavailable: %s", exc)
        return None
    if not data:
        return None
    try:
        parsed = json.loads(data)
    except (TypeError, ValueError) as exc:
        # Corrupted entries are treated as misses
        logger.warning("Could not decode recovery cache entry %s: %s", key, exc)
        return None
    return parsed if isinstance(parsed, dict) else None


def _write_json(key: str, payload: Any, expire: Optional[int] = None) -> bool:
    client = get_redis_client()
    ttl = int(expire if expire is not None else settings.RECOVERY_CACHE_TTL_SECONDS)
    try:
        client.setex(key, ttl, json.dumps(payload, separators=(",", ":")))
    except (redis.exceptions.RedisError, TypeError, ValueError) as exc:
        logger.warning("Could not write recovery cache entry %s: %s", key, exc)
        return False
    return True


def _delete(key: str) -> None:
    client = get_redis_client()
    try:
        client.delete(key)
    except redis.exceptions.RedisError as exc:
        logger.warning("Could not clear recovery cache entry %s: %s", key, exc)


def cache_preferences(document: dict) -> bool:
    """Back up the preference document (camelCase mapping)."""
    return _write_json(preferences_key(), document)


def get_cached_preferences() -> Optional[dict]:
    return _read_json(preferences_key())


def clear_cached_preferences() -> None:
    _delete(preferences_key())


def cache_selected_provider(document: dict) -> bool:
    return _write_json(selected_provider_key(), document)


def get_cached_selected_provider() -> Optional[dict]:
    return _read_json(selected_provider_key())


def clear_selected_provider() -> None:
    _delete(selected_provider_key())


def close_redis_client() -> None:
    """Close the global Redis client if it exists."""
    global _redis_client
    if _redis_client is not None:
        try:
            _redis_client.close()
        except redis.exceptions.RedisError as exc:  # pragma: no cover - best effort
            logger.warning("Error closing Redis client: %s", exc)
        finally:
            _redis_client = None
