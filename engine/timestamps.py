from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from .errors import InvalidInput

# Documents written by older clients carry instants in three shapes: native
# datetimes (or store timestamp objects), {"seconds", "nanoseconds"} maps, and
# plain millisecond numbers. Everything inside the engine is integer ms.


def now_ms() -> int:
    return int(time.time() * 1000)


def to_millis(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidInput("Timestamp cannot be a boolean")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            raise InvalidInput(f"Unrecognised timestamp mapping: {dict(value)!r}")
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
        return int(seconds) * 1000 + int(nanos) // 1_000_000
    to_datetime = getattr(value, "to_datetime", None)
    if callable(to_datetime):
        return to_millis(to_datetime())
    to_date = getattr(value, "toDate", None)
    if callable(to_date):
        return to_millis(to_date())
    as_timestamp = getattr(value, "timestamp", None)
    if callable(as_timestamp):
        return int(as_timestamp() * 1000)
    raise InvalidInput(f"Unrecognised timestamp: {value!r}")
