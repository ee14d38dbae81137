"""Helpers for cleaning preference documents before any arithmetic."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel

_DROP = object()


def is_wrapped_value(value: Any) -> bool:
    return isinstance(value, Mapping) and "_type" in value and "value" in value


def unwrap_value(value: Any, _seen: frozenset[int] = frozenset()) -> Any:
    """Return a plain, JSON-shaped copy of ``value``.

    ``{"_type": ..., "value": ...}`` wrappers are replaced by their payload,
    containers already on the current path (cycles) and objects with no JSON
    form are dropped.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True)
    if id(value) in _seen:
        return _DROP
    if isinstance(value, Mapping):
        path = _seen | {id(value)}
        if is_wrapped_value(value):
            return unwrap_value(value["value"], path)
        out = {}
        for key, val in value.items():
            cleaned = unwrap_value(val, path)
            if cleaned is not _DROP:
                out[str(key)] = cleaned
        return out
    if isinstance(value, (list, tuple, set, frozenset)):
        path = _seen | {id(value)}
        items = (unwrap_value(v, path) for v in value)
        return [v for v in items if v is not _DROP]
    return _DROP


def clean_preferences(preferences: Any) -> dict | None:
    """Unwrap and de-cycle a preference document; ``None`` stays ``None``."""
    if preferences is None:
        return None
    cleaned = unwrap_value(preferences)
    return cleaned if isinstance(cleaned, dict) else {}
