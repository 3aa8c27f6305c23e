"""
Validation of a single requested appointment slot.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional, Sequence

from pendulum import DateTime

from .availability import (
    advance_reason,
    blocking_ranges,
    conflict_reason,
    resolve_day_window,
    validate_duration,
)
from .models import Appointment, SlotCheck, Workshop
from .settings import AppointmentSettings
from .time_math import as_date, combine, format_minutes, parse_time

logger = logging.getLogger(__name__)

DISABLED_REASON = "Appointment booking is disabled"


def estimate_duration(settings: AppointmentSettings, service_types: Iterable[str]) -> float:
    """
    Estimate the appointment length in hours for a set of services.

    Each service contributes its configured duration (the default duration
    for unknown types). The total never drops below one default duration,
    and an empty request yields exactly the default.
    """
    slot_settings = settings.slot_settings
    total = sum(slot_settings.duration_for(service_type) for service_type in service_types)
    return max(total, slot_settings.default_duration) / 60


class BookingValidator:
    """
    Decides whether one (date, start time, duration) request is bookable.

    Checks run in a fixed order and the first failure wins:
    booking enabled, opening hours, advance-booking window, conflicts.
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

    def check(
        self,
        day: date,
        start_time: str,
        duration_hours: float,
        appointments: Sequence[Appointment],
        now: DateTime,
    ) -> SlotCheck:
        """
        Validate the requested slot.

        Raises:
            ValidationError: If the date, start time or duration is malformed
        """
        day = as_date(day)
        duration = validate_duration(duration_hours)
        start = parse_time(start_time)
        end = start + duration

        if not self.settings.enabled:
            return SlotCheck(available=False, reason=DISABLED_REASON)

        window, closed_reason = resolve_day_window(self.settings, self.workshop, day)
        if window is None:
            return SlotCheck(available=False, reason=closed_reason)

        if start < window.open or start >= window.close:
            return SlotCheck(
                available=False,
                reason=f"Requested time is outside working hours ({window.describe()})",
            )
        if end > window.close:
            return SlotCheck(
                available=False,
                reason=f"Appointment must end by closing time ({format_minutes(window.close, wrap=False)})",
            )
        if not window.contains(start, end):
            return SlotCheck(
                available=False,
                reason=f"Appointment overlaps the break ({window.describe()})",
            )

        reason = advance_reason(self.settings, combine(day, start, self.timezone), now)
        if reason is not None:
            return SlotCheck(available=False, reason=reason)

        ranges = blocking_ranges(day, appointments, self.settings.slot_settings.buffer_time)
        reason, conflicting = conflict_reason(self.settings, start, end, ranges)
        if reason is not None:
            logger.debug(
                "Slot %s %s rejected for %s: %s (%s)",
                day.isoformat(),
                start_time,
                self.workshop.id,
                reason,
                ", ".join(conflicting),
            )
            return SlotCheck(
                available=False,
                reason=reason,
                conflicting_appointment_ids=conflicting,
            )

        return SlotCheck(available=True, conflicting_appointment_ids=conflicting)


def notice_reason(
    appointment: Appointment,
    deadline_hours: float,
    action: str,
    now: DateTime,
    timezone: str = "UTC",
) -> Optional[str]:
    """
    Check that a change to ``appointment`` comes early enough.

    ``action`` is the past participle used in the message ("rescheduled",
    "cancelled"). Returns the rejection reason, or ``None``.
    """
    start = combine(appointment.scheduled_date, appointment.start_time, timezone)
    hours_until = (start - now).total_seconds() / 3600
    if hours_until < deadline_hours:
        return f"Appointments can only be {action} with at least {deadline_hours:g} hours notice"
    return None
