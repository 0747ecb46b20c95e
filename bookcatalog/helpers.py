from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from functools import wraps
from typing import Any, Callable


def _format_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (bytes, memoryview)):
        return bytes(value).decode("utf-8", "replace")
    return value


def _format_dict(d: dict) -> dict:
    result = {}
    for key, value in d.items():
        if isinstance(value, dict):
            result[key] = _format_dict(value)
        elif isinstance(value, (list, tuple, set)):
            result[key] = _format_list(value)
        else:
            result[key] = _format_value(value)
    return result


def _format_list(lst) -> list:
    result = []
    for item in lst:
        if isinstance(item, dict):
            result.append(_format_dict(item))
        elif isinstance(item, (list, tuple, set)):
            result.append(_format_list(item))
        else:
            result.append(_format_value(item))
    return result


def jsonable(value: Any) -> Any:
    """Turn store rows (dicts, lists, timestamps, decimals) into JSON-safe values."""
    if isinstance(value, dict):
        return _format_dict(value)
    if isinstance(value, (list, tuple, set)):
        return _format_list(value)
    return _format_value(value)


def format_result(fn: Callable) -> Callable:
    """
    Decorator that makes a handler's return value JSON-safe.

    Usage:
      @format_result
      def f(...): ...
    """

    @wraps(fn)
    def wrapper(*args, **kwargs) -> Any:
        return jsonable(fn(*args, **kwargs))

    return wrapper


def parse_since(value: str | None) -> datetime | None:
    """Parse an ISO-8601 `since` parameter; empty means a cold cache."""
    value = (value or "").strip()
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)
