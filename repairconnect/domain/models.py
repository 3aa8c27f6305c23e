"""
Domain models for workshops, appointments and computed availability.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple

import pendulum
from pendulum import DateTime

from .settings import DayHours, default_operating_hours
from .time_math import format_minutes, to_minutes


class AppointmentStatus(str, Enum):
    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Appointments in these statuses occupy workshop capacity.
BLOCKING_STATUSES = frozenset(
    {
        AppointmentStatus.REQUESTED,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.IN_PROGRESS,
    }
)

# Appointments in these statuses may still be moved or cancelled by the customer.
CHANGEABLE_STATUSES = frozenset(
    {
        AppointmentStatus.REQUESTED,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.SCHEDULED,
    }
)


@dataclass
class Workshop:
    """
    Read-only view of a workshop.

    Workshops that never configured operating hours get the default week.
    """
    id: str
    name: str
    is_active: bool = True
    operating_hours: Dict[str, DayHours] = field(default_factory=default_operating_hours)

    def hours_for(self, weekday: str) -> Optional[DayHours]:
        return self.operating_hours.get(weekday)


@dataclass
class Appointment:
    """
    A booked appointment on a single day.

    Times are ``HH:MM`` strings; ``end_time`` may be ``24:00``.
    """
    id: str
    workshop_id: str
    customer_id: str
    scheduled_date: date
    start_time: str
    end_time: str
    status: AppointmentStatus = AppointmentStatus.REQUESTED
    services: List[str] = field(default_factory=list)
    quotation_id: Optional[str] = None
    quote_id: Optional[str] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: DateTime = field(default_factory=lambda: pendulum.now("UTC"))
    updated_at: Optional[DateTime] = None

    @property
    def is_blocking(self) -> bool:
        return self.status in BLOCKING_STATUSES

    def minutes(self) -> Tuple[int, int]:
        """Return ``(start, end)`` in minutes since midnight."""
        return to_minutes(self.start_time), to_minutes(self.end_time)


@dataclass(frozen=True)
class DayWindow:
    """
    Resolved opening window of one day, in minutes since midnight.

    Invariant: open is before close; a break, when present, lies inside.
    """
    open: int
    close: int
    break_start: Optional[int] = None
    break_end: Optional[int] = None

    def __post_init__(self):
        if self.open >= self.close:
            raise ValueError(f"Window open {self.open} must be before close {self.close}")

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None

    def contains(self, start: int, end: int) -> bool:
        """True when ``[start, end)`` fits inside the window without touching the break."""
        if start < self.open or end > self.close:
            return False
        if self.has_break and start < self.break_end and end > self.break_start:
            return False
        return True

    def describe(self) -> str:
        text = f"{format_minutes(self.open)}-{format_minutes(self.close, wrap=False)}"
        if self.has_break:
            text += (
                f" (break {format_minutes(self.break_start)}"
                f"-{format_minutes(self.break_end, wrap=False)})"
            )
        return text


@dataclass(frozen=True)
class Slot:
    """A candidate appointment slot on one day."""
    date: date
    start_time: str
    end_time: str
    available: bool = True
    reason: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.date.isoformat()} {self.start_time}-{self.end_time}"


@dataclass
class DayAvailability:
    """All candidate slots of a single day (empty when the workshop is closed)."""
    date: date
    window: Optional[DayWindow]
    slots: List[Slot] = field(default_factory=list)
    closed_reason: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.window is not None

    def available_slots(self) -> List[Slot]:
        return [slot for slot in self.slots if slot.available]


@dataclass
class SlotCheck:
    """Outcome of validating a single requested slot."""
    available: bool
    reason: Optional[str] = None
    conflicting_appointment_ids: List[str] = field(default_factory=list)
    alternatives: List[Slot] = field(default_factory=list)


@dataclass(frozen=True)
class Vehicle:
    make: str
    model: str
    year: Optional[int] = None

    @property
    def summary(self) -> str:
        """``make model``, used in notification messages."""
        return f"{self.make} {self.model}"

    @property
    def title(self) -> str:
        """``year make model`` (year omitted when unknown)."""
        if self.year is None:
            return self.summary
        return f"{self.year} {self.make} {self.model}"


@dataclass
class OptimalSlots:
    """Slots matching the customer's preferred days and times, plus fallbacks."""
    preferred: List[Slot] = field(default_factory=list)
    alternatives: List[Slot] = field(default_factory=list)


@dataclass
class WorkshopComparison:
    """
    Availability summary of one workshop over a comparison period.

    ``wait_days`` counts the days from the period start to the first day
    with a free slot; it equals the period length when nothing is free.
    """
    workshop_id: str
    workshop_name: str
    next_slot: Optional[Slot]
    available_slots: int
    wait_days: int


@dataclass
class WorkshopStatus:
    is_open: bool
    current_appointment: Optional[Appointment] = None
    next_slot: Optional[Slot] = None
    available_today: int = 0
    booked_today: int = 0

    @property
    def total_today(self) -> int:
        return self.available_today + self.booked_today
