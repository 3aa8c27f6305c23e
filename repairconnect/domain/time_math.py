"""
Time-of-day arithmetic used by the availability engine.

Times of day travel through the system as zero-padded ``"HH:MM"`` strings
(the persisted format) and are converted to minutes since midnight for any
comparison. ``"24:00"`` is accepted as the end of a day.
"""

from __future__ import annotations

import re
from datetime import date as stdlib_date
from datetime import datetime as stdlib_datetime
from datetime import time as stdlib_time
from typing import Iterable, List, Tuple, Union

import pendulum
from pendulum import Date, DateTime

from .exceptions import ValidationError

MINUTES_PER_DAY = 24 * 60

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

TimeLike = Union[str, int, stdlib_time]


def parse_time(value: str) -> int:
    """
    Parse an ``HH:MM`` string into minutes since midnight.

    Raises:
        ValidationError: If the string is not a valid time of day
    """
    if not isinstance(value, str):
        raise ValidationError(f"Invalid time value: {value!r}")

    value = value.strip()
    if value == "24:00":
        return MINUTES_PER_DAY

    match = _TIME_PATTERN.match(value)
    if not match:
        raise ValidationError(f"Invalid time format {value!r}. Use HH:MM format")

    return int(match.group(1)) * 60 + int(match.group(2))


def to_minutes(value: TimeLike) -> int:
    """Normalise a time of day (``HH:MM``, minutes, or ``datetime.time``) to minutes."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid time value: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, stdlib_time):
        return value.hour * 60 + value.minute
    return parse_time(value)


def format_minutes(minutes: int, wrap: bool = True) -> str:
    """
    Format minutes since midnight as ``HH:MM``.

    With ``wrap`` the value is reduced modulo one day; without it, exactly
    one full day is rendered as ``24:00`` (a closing time).
    """
    if wrap or minutes != MINUTES_PER_DAY:
        minutes = minutes % MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(value: TimeLike, minutes: Union[int, float]) -> str:
    """
    Add (or subtract) minutes to a time of day, wrapping past midnight.

    Example: ``add_minutes("23:30", 60) == "00:30"``
    """
    total = to_minutes(value) + int(round(minutes))
    return format_minutes(total % MINUTES_PER_DAY)


def ranges_overlap(
    start_a: TimeLike,
    end_a: TimeLike,
    start_b: TimeLike,
    end_b: TimeLike,
) -> bool:
    """
    Half-open overlap test.

    Back-to-back ranges, where one ends exactly when the other starts, do
    not overlap.
    """
    return to_minutes(start_a) < to_minutes(end_b) and to_minutes(end_a) > to_minutes(start_b)


def peak_concurrency(
    start: int,
    end: int,
    ranges: Iterable[Tuple[int, int]],
) -> int:
    """
    Return the largest number of ``ranges`` active at the same instant
    inside the half-open window ``[start, end)``.
    """
    events: List[Tuple[int, int]] = []

    for range_start, range_end in ranges:
        clipped_start = max(range_start, start)
        clipped_end = min(range_end, end)
        if clipped_start >= clipped_end:
            continue
        events.append((clipped_start, 1))
        events.append((clipped_end, -1))

    # Ends sort before starts at the same minute (half-open ranges)
    events.sort()

    active = 0
    peak = 0
    for _, delta in events:
        active += delta
        peak = max(peak, active)

    return peak


def as_date(value: Union[str, stdlib_date, stdlib_datetime]) -> Date:
    """Coerce a ``YYYY-MM-DD`` string, date or datetime to a pendulum ``Date``."""
    if isinstance(value, str):
        try:
            parsed = pendulum.parse(value)
        except ValueError as exc:
            raise ValidationError(f"Invalid date {value!r}: {exc}") from exc
        if isinstance(parsed, stdlib_datetime):
            parsed = parsed.date()
        return pendulum.date(parsed.year, parsed.month, parsed.day)

    if isinstance(value, stdlib_datetime):
        value = value.date()

    return pendulum.date(value.year, value.month, value.day)


def combine(day: stdlib_date, value: TimeLike, tz: str) -> DateTime:
    """
    Build a timezone-aware datetime for a calendar day and a wall-clock time.

    The result keeps its wall-clock time on daylight-saving transition days.
    ``24:00`` is midnight of the following day.
    """
    minutes = to_minutes(value)
    if minutes == MINUTES_PER_DAY:
        following = pendulum.date(day.year, day.month, day.day).add(days=1)
        return pendulum.datetime(following.year, following.month, following.day, tz=tz)
    return pendulum.datetime(day.year, day.month, day.day, minutes // 60, minutes % 60, tz=tz)


def weekday_name(day: stdlib_date) -> str:
    """Return the lowercase English weekday name (``monday`` .. ``sunday``)."""
    return WEEKDAYS[day.weekday()]
