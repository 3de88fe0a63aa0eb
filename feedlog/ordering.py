"""
Record ordering shared by the gateway and the client.

Newest first: date, then time of day, then creation timestamp. The
comparator tolerates malformed records so one bad entry cannot break a
listing.
"""

from __future__ import annotations

from functools import cmp_to_key
from numbers import Real
from typing import Any, Iterable, Mapping

DEFAULT_DISPLAY_TIME = "00:00"


def time_to_minutes(display_time: Any) -> int:
    """Convert ``"HH:MM"`` to minutes since midnight; bad input counts as 0."""
    if not isinstance(display_time, str) or not display_time:
        display_time = DEFAULT_DISPLAY_TIME
    parts = display_time.split(":")
    try:
        hours = int(parts[0])
        minutes = int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        return 0
    return hours * 60 + minutes


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def compare_records(a: Mapping[str, Any], b: Mapping[str, Any]) -> int:
    """Comparator returning a negative value when ``a`` sorts before ``b``."""
    date_a = a.get("dateString") or None
    date_b = b.get("dateString") or None
    if date_a != date_b:
        # Records without a date go last.
        if date_a is None:
            return 1
        if date_b is None:
            return -1
        date_a, date_b = str(date_a), str(date_b)
        if date_a != date_b:
            return -1 if date_a > date_b else 1

    minutes_a = time_to_minutes(a.get("displayTime"))
    minutes_b = time_to_minutes(b.get("displayTime"))
    if minutes_a != minutes_b:
        return minutes_b - minutes_a

    ts_a = a.get("timestamp")
    ts_b = b.get("timestamp")
    if _is_number(ts_a) and _is_number(ts_b) and ts_a != ts_b:
        return -1 if ts_a > ts_b else 1

    return 0


def sort_records(records: Iterable[Mapping[str, Any]]) -> list:
    """Return a new list ordered newest first. Ties keep their input order."""
    return sorted(records, key=cmp_to_key(compare_records))
