"""
Core business logic for computing appointment availability.

Pure domain logic: no store access, no clock reads. Everything the
calculation depends on (settings, workshop hours, existing appointments,
"now") is passed in, so the same inputs always produce the same slots.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from pendulum import DateTime

from .exceptions import ValidationError
from .models import Appointment, DayAvailability, DayWindow, Slot, Workshop
from .settings import AppointmentSettings
from .time_math import (
    as_date,
    combine,
    format_minutes,
    parse_time,
    peak_concurrency,
    ranges_overlap,
    weekday_name,
)

logger = logging.getLogger(__name__)

MIN_DURATION_HOURS = 0.5
MAX_DURATION_HOURS = 24.0

CLOSED_DAY_REASON = "Workshop is closed on this day"
CONFLICT_REASON = "Time slot conflicts with existing appointment"
CAPACITY_REASON = "Maximum concurrent appointments reached"


def validate_duration(
    duration_hours: float,
    minimum: float = MIN_DURATION_HOURS,
    maximum: float = MAX_DURATION_HOURS,
) -> int:
    """
    Validate a requested duration in hours and return it in minutes.

    Raises:
        ValidationError: If the duration is not a number inside ``[minimum, maximum]``
    """
    if isinstance(duration_hours, bool) or not isinstance(duration_hours, (int, float)):
        raise ValidationError(f"Duration must be a number of hours, got {duration_hours!r}")
    if not minimum <= duration_hours <= maximum:
        raise ValidationError(
            f"Duration must be between {minimum:g} and {maximum:g} hours",
            context={"duration": duration_hours},
        )
    return int(round(duration_hours * 60))


def _window(
    start: str,
    end: str,
    break_start: Optional[str],
    break_end: Optional[str],
) -> DayWindow:
    if break_start is not None and break_end is not None:
        return DayWindow(
            open=parse_time(start),
            close=parse_time(end),
            break_start=parse_time(break_start),
            break_end=parse_time(break_end),
        )
    return DayWindow(open=parse_time(start), close=parse_time(end))


def resolve_day_window(
    settings: AppointmentSettings,
    workshop: Workshop,
    day: date,
) -> Tuple[Optional[DayWindow], Optional[str]]:
    """
    Resolve the opening window of ``day``.

    Returns ``(window, None)`` for an open day and ``(None, reason)`` for a
    closed one. An exception registered for the date wins over the weekly
    hours: ``closed`` and hour-less ``holiday`` exceptions close the day,
    ``modified_hours`` (or a holiday with hours) replaces the window.
    """
    exception = settings.exception_for(day)
    if exception is not None:
        if exception.closes_day():
            return None, exception.reason or CLOSED_DAY_REASON
        hours = exception.modified_hours
        return _window(hours.start, hours.end, hours.break_start, hours.break_end), None

    weekday = weekday_name(day)

    if settings.use_operating_hours:
        day_hours = workshop.hours_for(weekday)
        if day_hours is None or day_hours.closed:
            return None, CLOSED_DAY_REASON
        return _window(day_hours.open, day_hours.close, day_hours.break_start, day_hours.break_end), None

    custom = settings.custom_availability.get(weekday)
    if custom is None or not custom.enabled:
        return None, CLOSED_DAY_REASON
    return _window(custom.start, custom.end, custom.break_start, custom.break_end), None


def blocking_ranges(
    day: date,
    appointments: Iterable[Appointment],
    buffer_minutes: int,
) -> List[Tuple[str, int, int]]:
    """
    Return ``(appointment_id, start, end)`` for every blocking appointment
    on ``day``, with ``end`` padded by the buffer time.
    """
    ranges: List[Tuple[str, int, int]] = []
    for appointment in appointments:
        if appointment.scheduled_date != day or not appointment.is_blocking:
            continue
        start, end = appointment.minutes()
        ranges.append((appointment.id, start, end + buffer_minutes))
    return ranges


def conflict_reason(
    settings: AppointmentSettings,
    start: int,
    end: int,
    ranges: Sequence[Tuple[str, int, int]],
) -> Tuple[Optional[str], List[str]]:
    """
    Apply the conflict rule to ``[start, end)``.

    Returns the rejection reason (``None`` when free) together with the ids
    of every overlapping appointment. With overlapping disallowed any
    overlap rejects the slot; otherwise the slot is rejected once the peak
    number of simultaneously running appointments reaches the limit.
    """
    conflicting = [
        appointment_id
        for appointment_id, range_start, range_end in ranges
        if ranges_overlap(start, end, range_start, range_end)
    ]
    if not conflicting:
        return None, []

    slot_settings = settings.slot_settings
    if not slot_settings.allow_overlapping:
        return CONFLICT_REASON, conflicting

    peak = peak_concurrency(start, end, [(s, e) for _, s, e in ranges])
    if peak >= slot_settings.effective_max_concurrent:
        return CAPACITY_REASON, conflicting

    return None, conflicting


def advance_reason(
    settings: AppointmentSettings,
    appointment_start: DateTime,
    now: DateTime,
) -> Optional[str]:
    """Check the advance-booking window; return the rejection reason, if any."""
    booking = settings.booking_settings
    hours_advance = (appointment_start - now).total_seconds() / 3600

    if hours_advance < booking.min_advance_booking:
        return f"Minimum {booking.min_advance_booking:g} hours advance booking required"
    if hours_advance / 24 > booking.max_advance_booking:
        return f"Maximum {booking.max_advance_booking} days advance booking allowed"
    return None


class AvailabilityCalculator:
    """
    Produces per-day candidate slots for a workshop.

    Algorithm, per calendar day:
    1. Resolve the opening window (weekly hours, custom availability, exceptions)
    2. Generate slot starts every ``slot_interval`` minutes from opening
    3. Drop slots that run past closing or touch the break
    4. Mark remaining slots unavailable when they conflict with appointments,
       exceed the concurrency limit, or fall outside the advance-booking window
    """

    def __init__(
        self,
        settings: AppointmentSettings,
        workshop: Workshop,
        timezone: str = "UTC",
    ):
        self.settings = settings
        self.workshop = workshop
        self.timezone = timezone

    def compute(
        self,
        start_date: date,
        end_date: date,
        duration_hours: float,
        appointments: Sequence[Appointment] = (),
        now: Optional[DateTime] = None,
        not_before: Optional[DateTime] = None,
        not_after: Optional[DateTime] = None,
    ) -> List[DayAvailability]:
        """
        Compute availability for every day in ``[start_date, end_date]``.

        Args:
            start_date: First day (inclusive)
            end_date: Last day (inclusive)
            duration_hours: Requested appointment length in hours (0.5-24)
            appointments: Existing appointments of the workshop
            now: Reference time for the advance-booking window; skipped when ``None``
            not_before: Slots starting earlier are marked unavailable
            not_after: Slots starting later are marked unavailable

        Returns:
            One ``DayAvailability`` per calendar day, ordered by date
        """
        duration = validate_duration(duration_hours)
        first = as_date(start_date)
        last = as_date(end_date)
        if last < first:
            raise ValidationError(
                f"End date {last.isoformat()} is before start date {first.isoformat()}"
            )

        days: List[DayAvailability] = []
        current = first
        while current <= last:
            days.append(
                self.compute_day(
                    current,
                    duration,
                    appointments,
                    now=now,
                    not_before=not_before,
                    not_after=not_after,
                )
            )
            current = current.add(days=1)

        logger.debug(
            "Computed availability for %s: %d day(s), %d available slot(s)",
            self.workshop.id,
            len(days),
            sum(len(day.available_slots()) for day in days),
        )
        return days

    def compute_day(
        self,
        day: date,
        duration_minutes: int,
        appointments: Sequence[Appointment] = (),
        now: Optional[DateTime] = None,
        not_before: Optional[DateTime] = None,
        not_after: Optional[DateTime] = None,
    ) -> DayAvailability:
        """Compute the candidate slots of a single day."""
        window, closed_reason = resolve_day_window(self.settings, self.workshop, day)
        if window is None:
            return DayAvailability(date=day, window=None, closed_reason=closed_reason)

        ranges = blocking_ranges(day, appointments, self.settings.slot_settings.buffer_time)
        slots = [
            self._evaluate_slot(day, start, start + duration_minutes, ranges, now, not_before, not_after)
            for start in self._candidate_starts(window, duration_minutes)
        ]
        return DayAvailability(date=day, window=window, slots=slots)

    def _candidate_starts(self, window: DayWindow, duration_minutes: int) -> List[int]:
        """Slot starts whose full duration fits the window without touching the break."""
        interval = self.settings.slot_settings.slot_interval
        starts: List[int] = []

        start = window.open
        while start + duration_minutes <= window.close:
            if window.contains(start, start + duration_minutes):
                starts.append(start)
            start += interval

        return starts

    def _evaluate_slot(
        self,
        day: date,
        start: int,
        end: int,
        ranges: Sequence[Tuple[str, int, int]],
        now: Optional[DateTime],
        not_before: Optional[DateTime],
        not_after: Optional[DateTime],
    ) -> Slot:
        start_time = format_minutes(start)
        end_time = format_minutes(end, wrap=False)

        reason: Optional[str] = None

        if now is not None or not_before is not None or not_after is not None:
            slot_start = combine(day, start, self.timezone)
            if now is not None:
                reason = advance_reason(self.settings, slot_start, now)
            if reason is None and not_before is not None and slot_start < not_before:
                reason = "Slot starts before the requested range"
            if reason is None and not_after is not None and slot_start > not_after:
                reason = "Slot starts after the requested range"

        if reason is None:
            reason, _ = conflict_reason(self.settings, start, end, ranges)

        return Slot(
            date=day,
            start_time=start_time,
            end_time=end_time,
            available=reason is None,
            reason=reason,
        )
