"""
Derived views over the record list.

Everything here is a pure function of its arguments; callers pass the
current instant explicitly instead of reading the clock.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Mapping, Union

from feedlog.ordering import sort_records

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"
TREND_DAYS = 15

NO_RECORDS_TEXT = "No feedings yet"
MISSING_TIME_TEXT = "Time unknown"
INVALID_TIME_TEXT = "Invalid time"
FUTURE_TEXT = "In the future"
JUST_NOW_TEXT = "Just now"


@dataclass(frozen=True)
class TrendPoint:
    date: str
    label: str
    total: Union[int, float]


def format_date(value: Union[date, datetime]) -> str:
    """Local calendar date, ``YYYY-MM-DD``."""
    return value.strftime(DATE_FORMAT)


def format_time(value: datetime) -> str:
    """Local wall-clock time, ``HH:MM``."""
    return value.strftime(TIME_FORMAT)


def parse_date(date_string: str) -> date:
    return datetime.strptime(date_string, DATE_FORMAT).date()


def shift_date(date_string: str, offset: int) -> str:
    return format_date(parse_date(date_string) + timedelta(days=offset))


def amount_of(record: Mapping[str, Any]) -> Union[int, float]:
    """Numeric amount of a record; anything unparsable counts as zero."""
    value = record.get("amount")
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(number) if number.is_integer() else number


def day_records(records: Iterable[Mapping], date_string: str) -> list:
    return [r for r in records if r.get("dateString") == date_string]


def day_total(records: Iterable[Mapping], date_string: str) -> Union[int, float]:
    return sum(amount_of(r) for r in day_records(records, date_string))


def day_count(records: Iterable[Mapping], date_string: str) -> int:
    return len(day_records(records, date_string))


def time_since_last_feed(records: Iterable[Mapping], now: datetime) -> str:
    """
    Human-readable time since the most recent feeding.

    The most recent record is the first one in sort order; its instant is
    rebuilt from ``dateString`` and ``displayTime`` rather than
    ``timestamp`` so back-dated entries are honoured.
    """
    ordered = sort_records(records)
    if not ordered:
        return NO_RECORDS_TEXT
    latest = ordered[0]
    date_string = latest.get("dateString")
    display_time = latest.get("displayTime")
    if not date_string or not display_time:
        return MISSING_TIME_TEXT
    try:
        fed_at = datetime.strptime(f"{date_string} {display_time}", f"{DATE_FORMAT} {TIME_FORMAT}")
    except (TypeError, ValueError):
        return INVALID_TIME_TEXT

    elapsed = now - fed_at
    if elapsed < timedelta(0):
        return FUTURE_TEXT
    total_minutes = int(elapsed.total_seconds() // 60)
    if total_minutes < 1:
        return JUST_NOW_TEXT
    hours, minutes = divmod(total_minutes, 60)
    if hours == 0:
        return f"{minutes}m ago"
    return f"{hours}h {minutes}m ago"


def daily_totals(records: Iterable[Mapping]) -> list[tuple[str, Union[int, float]]]:
    """Totals for every date that has records, newest date first."""
    totals: dict[str, Union[int, float]] = defaultdict(int)
    for record in records:
        date_string = record.get("dateString")
        if not date_string:
            continue
        totals[date_string] += amount_of(record)
    return sorted(totals.items(), key=lambda item: item[0], reverse=True)


def trend(
    records: Iterable[Mapping], today: Union[date, datetime], days: int = TREND_DAYS
) -> list[TrendPoint]:
    """Trailing ``days`` window ending today, oldest first, zero-filled."""
    if isinstance(today, datetime):
        today = today.date()
    totals = dict(daily_totals(records))
    points = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        key = format_date(day)
        points.append(
            TrendPoint(date=key, label=f"{day.month}/{day.day}", total=totals.get(key, 0))
        )
    return points
