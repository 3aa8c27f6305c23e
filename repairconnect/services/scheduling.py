"""
Application service for appointment availability and booking.

The service loads workshops, settings and appointments through a store
adapter and delegates every decision to the domain-level
``AvailabilityCalculator`` and ``BookingValidator``. The store dependency is
expressed as a protocol so tests can use the in-memory adapter directly.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, Union

import pendulum
from pendulum import DateTime
from pydantic import ValidationError as PydanticValidationError

from ..config import AppConfig
from ..domain.availability import AvailabilityCalculator, resolve_day_window, validate_duration
from ..domain.booking_validator import (
    DISABLED_REASON,
    BookingValidator,
    estimate_duration,
    notice_reason,
)
from ..domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..domain.models import (
    CHANGEABLE_STATUSES,
    Appointment,
    AppointmentStatus,
    DayAvailability,
    OptimalSlots,
    Slot,
    SlotCheck,
    Workshop,
    WorkshopComparison,
    WorkshopStatus,
)
from ..domain.settings import (
    AppointmentSettings,
    AvailabilityException,
    DayHours,
    create_default_settings,
)
from ..domain.time_math import WEEKDAYS, add_minutes, as_date, parse_time

logger = logging.getLogger(__name__)

DateLike = Union[str, date]
TimeRange = Tuple[str, str]

DEFAULT_PREFERRED_RANGES: List[TimeRange] = [("09:00", "17:00")]

# Below this many preferred slots, fallbacks from the coming days are added.
MIN_PREFERRED_SLOTS = 3


class SchedulingStoreProtocol(Protocol):
    """Store behaviour needed by the scheduling service."""

    def add_workshop(self, workshop: Workshop) -> None:
        """Insert or replace the workshop."""

    def get_workshop(self, workshop_id: str) -> Workshop:
        """Return the workshop or raise ``NotFoundError``."""

    def get_or_create_settings(
        self,
        workshop_id: str,
        factory: Callable[[str], AppointmentSettings],
    ) -> AppointmentSettings:
        """Return the settings, creating defaults on first access."""

    def save_settings(self, settings: AppointmentSettings) -> AppointmentSettings:
        """Persist the settings."""

    def list_appointments(
        self,
        workshop_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Appointment]:
        """Return the workshop's appointments inside the date range."""

    def insert_appointment_if(
        self,
        appointment: Appointment,
        check: Callable[[List[Appointment]], SlotCheck],
    ) -> SlotCheck:
        """Insert the appointment atomically if ``check`` accepts it."""

    def get_appointment(self, workshop_id: str, appointment_id: str) -> Appointment:
        """Return the appointment or raise ``NotFoundError``."""

    def replace_appointment_if(
        self,
        original: Appointment,
        replacement: Appointment,
        check: Optional[Callable[[List[Appointment]], SlotCheck]] = None,
    ) -> SlotCheck:
        """Overwrite an unchanged appointment if ``check`` accepts the replacement."""


class SchedulingService:
    """
    Availability queries, slot validation, duration estimates and booking.

    Stateless apart from its collaborators; safe to share between threads.
    """

    def __init__(
        self,
        store: SchedulingStoreProtocol,
        config: Optional[AppConfig] = None,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._store = store
        self._config = config or AppConfig()
        self._clock = clock or (lambda: pendulum.now(self._config.timezone))

    @property
    def timezone(self) -> str:
        return self._config.timezone

    # --- Workshops -----------------------------------------------------------

    def register_workshop(
        self,
        workshop_id: str,
        name: str,
        operating_hours: Optional[Dict[str, DayHours]] = None,
    ) -> Workshop:
        """
        Add a workshop. Without ``operating_hours`` it gets the default week;
        weekdays missing from ``operating_hours`` are closed.

        Raises:
            ConflictError: If the id is already taken
            ValidationError: If the id or name is blank, or a weekday is unknown
        """
        if not workshop_id.strip() or not name.strip():
            raise ValidationError("Workshop id and name are required")
        if operating_hours is not None:
            unknown = sorted(day for day in operating_hours if day not in WEEKDAYS)
            if unknown:
                raise ValidationError(
                    f"Unknown weekday(s) in operating hours: {', '.join(unknown)}",
                    context={"weekdays": unknown},
                )
            operating_hours = {
                day: operating_hours.get(day, DayHours(closed=True)) for day in WEEKDAYS
            }

        try:
            self._store.get_workshop(workshop_id)
        except NotFoundError:
            pass
        else:
            raise ConflictError(
                f"Workshop {workshop_id} already exists",
                context={"workshop_id": workshop_id},
            )

        workshop = Workshop(id=workshop_id, name=name.strip())
        if operating_hours is not None:
            workshop.operating_hours = operating_hours
        self._store.add_workshop(workshop)
        logger.info("Registered workshop %s (%s)", workshop_id, workshop.name)
        return workshop

    # --- Settings ------------------------------------------------------------

    def get_settings(self, workshop_id: str) -> AppointmentSettings:
        """Return the workshop's settings, creating the defaults on first access."""
        self._store.get_workshop(workshop_id)
        return self._store.get_or_create_settings(workshop_id, create_default_settings)

    def update_settings(
        self,
        workshop_id: str,
        caller_id: str,
        changes: Dict[str, Any],
    ) -> AppointmentSettings:
        """
        Apply a partial update to the workshop's settings.

        Nested sections (``slot_settings``, ``booking_settings``) are merged
        key by key; the result is validated as a whole.

        Raises:
            ForbiddenError: If the caller is not the workshop
            ValidationError: If the merged settings are invalid
        """
        self._ensure_owner(workshop_id, caller_id)
        if "workshop_id" in changes and changes["workshop_id"] != workshop_id:
            raise ValidationError("workshop_id cannot be changed")

        current = self.get_settings(workshop_id)
        document = _merge(current.model_dump(), changes)
        document["updated_at"] = self._clock()
        settings = self._validate_settings(document)

        saved = self._store.save_settings(settings)
        logger.info("Updated appointment settings for %s", workshop_id)
        return saved

    def add_exception(
        self,
        workshop_id: str,
        caller_id: str,
        exception: Union[AvailabilityException, Dict[str, Any]],
    ) -> AppointmentSettings:
        """Register a closure, holiday or modified-hours day."""
        self._ensure_owner(workshop_id, caller_id)
        if not isinstance(exception, AvailabilityException):
            try:
                exception = AvailabilityException.model_validate(exception)
            except PydanticValidationError as exc:
                raise ValidationError(f"Invalid availability exception: {exc}") from exc

        current = self.get_settings(workshop_id)
        if any(existing.id == exception.id for existing in current.availability_exceptions):
            raise ValidationError(
                f"Availability exception {exception.id} already exists",
                context={"exception_id": exception.id},
            )

        document = current.model_dump()
        document["availability_exceptions"].append(exception.model_dump())
        document["updated_at"] = self._clock()
        return self._store.save_settings(self._validate_settings(document))

    def remove_exception(self, workshop_id: str, caller_id: str, exception_id: str) -> AppointmentSettings:
        self._ensure_owner(workshop_id, caller_id)
        current = self.get_settings(workshop_id)

        remaining = [
            exception for exception in current.availability_exceptions if exception.id != exception_id
        ]
        if len(remaining) == len(current.availability_exceptions):
            raise NotFoundError(
                f"Availability exception {exception_id} not found",
                context={"workshop_id": workshop_id, "exception_id": exception_id},
            )

        settings = current.model_copy(
            update={"availability_exceptions": remaining, "updated_at": self._clock()}
        )
        return self._store.save_settings(settings)

    # --- Queries -------------------------------------------------------------

    def estimate_duration(self, workshop_id: str, service_types: Iterable[str]) -> float:
        """Estimated appointment length in hours for the requested services."""
        return estimate_duration(self.get_settings(workshop_id), list(service_types))

    def compute_availability(
        self,
        workshop_id: str,
        start_date: DateLike,
        end_date: Optional[DateLike] = None,
        duration: Optional[float] = None,
    ) -> List[DayAvailability]:
        """
        Per-day candidate slots between ``start_date`` and ``end_date`` (inclusive).

        ``end_date`` defaults to ``availability_default_days`` days from the
        start; ``duration`` (hours) defaults to the workshop's default duration.
        """
        first = as_date(start_date)
        last = as_date(end_date) if end_date is not None else first.add(
            days=self._config.scheduling.availability_default_days - 1
        )
        if last < first:
            raise ValidationError(
                f"End date {last.isoformat()} is before start date {first.isoformat()}"
            )
        if duration is not None:
            self._validate_duration(duration)

        workshop = self._store.get_workshop(workshop_id)
        settings = self.get_settings(workshop_id)
        hours = duration if duration is not None else settings.slot_settings.default_duration / 60

        if not settings.enabled:
            return _disabled_days(first, last)

        appointments = self._store.list_appointments(workshop_id, first, last)
        calculator = AvailabilityCalculator(settings, workshop, self.timezone)
        return calculator.compute(first, last, hours, appointments, now=self._clock())

    def next_available_slots(
        self,
        workshop_id: str,
        duration: Optional[float] = None,
        days: Optional[int] = None,
        limit: int = 10,
    ) -> List[Slot]:
        """Earliest available slots from today, looking ``days`` ahead."""
        days = days or self._config.scheduling.availability_default_days
        today = self._clock().date()
        availability = self.compute_availability(
            workshop_id,
            today,
            today.add(days=days - 1),
            duration,
        )
        return _first_available(availability, limit)

    def validate_slot(
        self,
        workshop_id: str,
        day: DateLike,
        start_time: str,
        duration: float,
        include_alternatives: bool = True,
    ) -> SlotCheck:
        """
        Check whether one slot is bookable.

        Unavailability is reported in the returned ``SlotCheck``; with
        ``include_alternatives`` it carries up to a handful of bookable slots.

        Raises:
            ValidationError: If the date, start time or duration is malformed
        """
        day = as_date(day)
        parse_time(start_time)
        self._validate_duration(duration)

        workshop = self._store.get_workshop(workshop_id)
        settings = self.get_settings(workshop_id)
        now = self._clock()

        validator = BookingValidator(settings, workshop, self.timezone)
        appointments = self._store.list_appointments(workshop_id, day, day)
        result = validator.check(day, start_time, duration, appointments, now)

        if not result.available and include_alternatives and settings.enabled:
            result.alternatives = self._find_alternatives(workshop, settings, day, duration, now)

        return result

    def find_optimal_slots(
        self,
        workshop_id: str,
        preferred_dates: Sequence[DateLike],
        duration: Optional[float] = None,
        preferred_time_ranges: Optional[Sequence[TimeRange]] = None,
        limit: Optional[int] = None,
    ) -> OptimalSlots:
        """
        Match free slots against the customer's preferred days and times.

        Free slots on a preferred date whose start lies inside one of the
        ``(start, end)`` ranges (both inclusive) are preferred; the others
        become alternatives. With fewer than ``MIN_PREFERRED_SLOTS``
        preferred slots, free slots of the coming days are added to the
        alternatives. Both lists hold at most ``limit`` slots.
        """
        limit = limit or self._config.scheduling.max_alternatives
        ranges = _parse_ranges(preferred_time_ranges or DEFAULT_PREFERRED_RANGES)
        days = list(dict.fromkeys(as_date(day) for day in preferred_dates))
        if duration is None:
            duration = self.get_settings(workshop_id).slot_settings.default_duration / 60

        result = OptimalSlots()
        for day in days:
            availability = self.compute_availability(workshop_id, day, day, duration)[0]
            for slot in availability.available_slots():
                start = parse_time(slot.start_time)
                if any(first <= start <= last for first, last in ranges):
                    result.preferred.append(slot)
                else:
                    result.alternatives.append(slot)

        if len(result.preferred) < MIN_PREFERRED_SLOTS:
            today = self._clock().date()
            upcoming = self.compute_availability(
                workshop_id,
                today,
                today.add(days=self._config.scheduling.alternatives_lookahead_days - 1),
                duration,
            )
            for day in upcoming:
                if day.date in days:
                    continue
                result.alternatives.extend(day.available_slots())
                if len(result.alternatives) >= limit:
                    break

        result.preferred = result.preferred[:limit]
        result.alternatives = result.alternatives[:limit]
        return result

    def compare_workshop_availability(
        self,
        workshop_ids: Sequence[str],
        duration: Optional[float] = None,
        start_date: Optional[DateLike] = None,
        days: int = 7,
    ) -> List[WorkshopComparison]:
        """
        Summarise availability of several workshops, earliest first.

        Unknown and inactive workshops are left out of the result.
        """
        if days < 1:
            raise ValidationError("days must be at least 1", context={"days": days})
        first = as_date(start_date) if start_date is not None else self._clock().date()
        last = first.add(days=days - 1)

        comparisons = []
        for workshop_id in workshop_ids:
            try:
                workshop = self._store.get_workshop(workshop_id)
            except NotFoundError:
                logger.debug("Skipping unknown workshop %s in comparison", workshop_id)
                continue
            if not workshop.is_active:
                continue

            availability = self.compute_availability(workshop_id, first, last, duration)
            free_days = [index for index, day in enumerate(availability) if day.available_slots()]
            next_slot = availability[free_days[0]].available_slots()[0] if free_days else None
            comparisons.append(
                WorkshopComparison(
                    workshop_id=workshop.id,
                    workshop_name=workshop.name,
                    next_slot=next_slot,
                    available_slots=sum(len(day.available_slots()) for day in availability),
                    wait_days=free_days[0] if free_days else days,
                )
            )

        return sorted(comparisons, key=lambda comparison: comparison.wait_days)

    def workshop_current_status(self, workshop_id: str) -> WorkshopStatus:
        """Report whether the workshop is open right now and how today's one-hour slots are filled."""
        workshop = self._store.get_workshop(workshop_id)
        settings = self.get_settings(workshop_id)
        now = self._clock().in_timezone(self.timezone)
        today = now.date()
        minute = now.hour * 60 + now.minute

        window, _ = resolve_day_window(settings, workshop, today)
        appointments = self._store.list_appointments(workshop_id, today, today)
        status = WorkshopStatus(is_open=window is not None and window.contains(minute, minute + 1))

        for appointment in appointments:
            start, end = appointment.minutes()
            if appointment.is_blocking and start <= minute < end:
                status.current_appointment = appointment
                break

        if window is not None and settings.enabled:
            calculator = AvailabilityCalculator(settings, workshop, self.timezone)
            day = calculator.compute(today, today, 1, appointments)[0]
            status.available_today = len(day.available_slots())
            status.booked_today = len(day.slots) - status.available_today

        upcoming = self.next_available_slots(workshop_id, limit=1)
        status.next_slot = upcoming[0] if upcoming else None
        return status

    # --- Booking -------------------------------------------------------------

    def book_appointment(
        self,
        workshop_id: str,
        customer_id: str,
        day: DateLike,
        start_time: str,
        duration: Optional[float] = None,
        services: Optional[Sequence[str]] = None,
        quotation_id: Optional[str] = None,
        quote_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        """
        Create an appointment if the slot is still free.

        The slot is re-validated inside the store's critical section, so two
        concurrent bookings of the last free slot produce one appointment and
        one ``ConflictError``.

        Raises:
            ValidationError: If the input is malformed or a required service is missing
            ConflictError: If the slot is not bookable; ``context`` carries the reason
        """
        day = as_date(day)
        start = parse_time(start_time)
        services = list(services or [])
        if duration is not None:
            self._validate_duration(duration)

        workshop = self._store.get_workshop(workshop_id)
        settings = self.get_settings(workshop_id)

        if settings.require_service_selection and not services:
            raise ValidationError("At least one service must be selected")
        unknown = [service for service in services if service not in settings.enabled_services]
        if settings.enabled_services and unknown:
            raise ValidationError(
                f"Services not offered by this workshop: {', '.join(unknown)}",
                context={"services": unknown},
            )

        if duration is None:
            duration = estimate_duration(settings, services)
            self._validate_duration(duration)

        now = self._clock()
        appointment = Appointment(
            id=uuid.uuid4().hex,
            workshop_id=workshop_id,
            customer_id=customer_id,
            scheduled_date=day,
            start_time=start_time.strip(),
            end_time=_end_time(start, duration),
            status=(
                AppointmentStatus.REQUESTED
                if settings.booking_settings.require_confirmation
                else AppointmentStatus.CONFIRMED
            ),
            services=services,
            quotation_id=quotation_id,
            quote_id=quote_id,
            notes=notes,
            created_at=now,
        )

        validator = BookingValidator(settings, workshop, self.timezone)
        result = self._store.insert_appointment_if(
            appointment,
            lambda existing: validator.check(day, start_time, duration, existing, now),
        )
        if not result.available:
            logger.info(
                "Booking %s %s at %s rejected: %s",
                day.isoformat(),
                start_time,
                workshop_id,
                result.reason,
            )
            raise ConflictError(
                result.reason or "Time slot is not available",
                context={
                    "workshop_id": workshop_id,
                    "date": day.isoformat(),
                    "start_time": start_time,
                    "reason": result.reason,
                    "conflicting_appointment_ids": result.conflicting_appointment_ids,
                },
            )

        logger.info("Booked appointment %s at %s on %s %s", appointment.id, workshop_id, day, start_time)
        return appointment

    def cancel_appointment(
        self,
        workshop_id: str,
        appointment_id: str,
        caller_id: str,
        reason: Optional[str] = None,
    ) -> Appointment:
        """
        Cancel an appointment, freeing its slot.

        Customers must cancel at least ``cancellation_deadline`` hours ahead;
        the workshop may cancel at any time.

        Raises:
            ForbiddenError: If the caller is neither the customer nor the workshop
            InvalidStateError: If the appointment is already under way or closed
            ConflictError: If the notice is too short or the appointment changed concurrently
        """
        appointment, settings, now = self._load_for_change(
            workshop_id, appointment_id, caller_id, "cancelled"
        )
        if caller_id == appointment.customer_id:
            self._ensure_notice(
                appointment, settings.booking_settings.cancellation_deadline, "cancelled", now
            )

        cancelled = dataclasses.replace(
            appointment,
            status=AppointmentStatus.CANCELLED,
            cancellation_reason=reason,
            updated_at=now,
        )
        self._store.replace_appointment_if(appointment, cancelled)
        logger.info("Cancelled appointment %s at %s", appointment_id, workshop_id)
        return cancelled

    def reschedule_appointment(
        self,
        workshop_id: str,
        appointment_id: str,
        caller_id: str,
        day: DateLike,
        start_time: str,
    ) -> Appointment:
        """
        Move an appointment to a new date and start time, keeping its length.

        Customers must reschedule at least ``reschedule_deadline`` hours
        ahead. The new slot is validated like a fresh booking, ignoring the
        appointment being moved; when confirmation is required the moved
        appointment goes back to ``requested``.

        Raises:
            ForbiddenError: If the caller is neither the customer nor the workshop
            InvalidStateError: If the appointment is already under way or closed
            ConflictError: If the notice is too short or the new slot is not bookable
        """
        day = as_date(day)
        start = parse_time(start_time)
        appointment, settings, now = self._load_for_change(
            workshop_id, appointment_id, caller_id, "rescheduled"
        )
        if caller_id == appointment.customer_id:
            self._ensure_notice(
                appointment, settings.booking_settings.reschedule_deadline, "rescheduled", now
            )

        first, last = appointment.minutes()
        duration = (last - first) / 60
        moved = dataclasses.replace(
            appointment,
            scheduled_date=day,
            start_time=start_time.strip(),
            end_time=_end_time(start, duration),
            status=(
                AppointmentStatus.REQUESTED
                if settings.booking_settings.require_confirmation
                else appointment.status
            ),
            updated_at=now,
        )

        workshop = self._store.get_workshop(workshop_id)
        validator = BookingValidator(settings, workshop, self.timezone)
        result = self._store.replace_appointment_if(
            appointment,
            moved,
            lambda existing: validator.check(day, start_time, duration, existing, now),
        )
        if not result.available:
            raise ConflictError(
                result.reason or "Time slot is not available",
                context={
                    "appointment_id": appointment_id,
                    "date": day.isoformat(),
                    "start_time": start_time,
                    "reason": result.reason,
                    "conflicting_appointment_ids": result.conflicting_appointment_ids,
                },
            )

        logger.info(
            "Rescheduled appointment %s at %s to %s %s", appointment_id, workshop_id, day, start_time
        )
        return moved

    # --- Helpers -------------------------------------------------------------

    def _find_alternatives(
        self,
        workshop: Workshop,
        settings: AppointmentSettings,
        day: date,
        duration: float,
        now: DateTime,
    ) -> List[Slot]:
        """
        Same-day available slots first; if there are none, the earliest slots
        of the following days.
        """
        limits = self._config.scheduling
        calculator = AvailabilityCalculator(settings, workshop, self.timezone)

        same_day = calculator.compute(
            day,
            day,
            duration,
            self._store.list_appointments(workshop.id, day, day),
            now=now,
        )
        alternatives = _first_available(same_day, limits.same_day_alternatives)
        if alternatives:
            return alternatives

        first = max(now.date(), day.add(days=1))
        last = first.add(days=limits.alternatives_lookahead_days - 1)
        upcoming = calculator.compute(
            first,
            last,
            duration,
            self._store.list_appointments(workshop.id, first, last),
            now=now,
        )
        return _first_available(upcoming, limits.max_alternatives)

    def _load_for_change(
        self,
        workshop_id: str,
        appointment_id: str,
        caller_id: str,
        action: str,
    ) -> Tuple[Appointment, AppointmentSettings, DateTime]:
        appointment = self._store.get_appointment(workshop_id, appointment_id)
        if caller_id not in (appointment.customer_id, appointment.workshop_id):
            raise ForbiddenError(
                f"Only the customer or the workshop may change appointment {appointment_id}",
                context={"appointment_id": appointment_id, "caller_id": caller_id},
            )
        if appointment.status not in CHANGEABLE_STATUSES:
            raise InvalidStateError(
                f"This appointment cannot be {action}",
                context={"appointment_id": appointment_id, "status": appointment.status.value},
            )
        return appointment, self.get_settings(workshop_id), self._clock()

    def _ensure_notice(
        self,
        appointment: Appointment,
        deadline_hours: float,
        action: str,
        now: DateTime,
    ) -> None:
        reason = notice_reason(appointment, deadline_hours, action, now, self.timezone)
        if reason is not None:
            raise ConflictError(
                reason,
                context={"appointment_id": appointment.id, "reason": reason},
            )

    def _validate_duration(self, duration: float) -> int:
        limits = self._config.scheduling
        return validate_duration(duration, limits.min_duration_hours, limits.max_duration_hours)

    @staticmethod
    def _validate_settings(document: Dict[str, Any]) -> AppointmentSettings:
        try:
            return AppointmentSettings.model_validate(document)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid appointment settings: {exc}") from exc

    @staticmethod
    def _ensure_owner(workshop_id: str, caller_id: str) -> None:
        if caller_id != workshop_id:
            raise ForbiddenError(
                f"Only workshop {workshop_id} may change its appointment settings",
                context={"workshop_id": workshop_id, "caller_id": caller_id},
            )


def _merge(base: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``changes`` into a copy of ``base`` (dicts only)."""
    merged = dict(base)
    for key, value in changes.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _end_time(start: int, duration: float) -> str:
    # A slot ending exactly at midnight is stored as 24:00
    if start + round(duration * 60) == 24 * 60:
        return "24:00"
    return add_minutes(start, duration * 60)


def _parse_ranges(ranges: Sequence[TimeRange]) -> List[Tuple[int, int]]:
    parsed = []
    for start, end in ranges:
        first, last = parse_time(start), parse_time(end)
        if first > last:
            raise ValidationError(
                f"Preferred time range {start}-{end} ends before it starts",
                context={"start": start, "end": end},
            )
        parsed.append((first, last))
    return parsed


def _first_available(days: Sequence[DayAvailability], limit: int) -> List[Slot]:
    slots: List[Slot] = []
    for day in days:
        for slot in day.available_slots():
            if len(slots) >= limit:
                return slots
            slots.append(slot)
    return slots


def _disabled_days(first: date, last: date) -> List[DayAvailability]:
    days: List[DayAvailability] = []
    current = first
    while current <= last:
        days.append(DayAvailability(date=current, window=None, closed_reason=DISABLED_REASON))
        current = current.add(days=1)
    return days
