"""
Per-workshop appointment configuration.

Every default the scheduling engine relies on lives here, in one explicit
structure, so the availability calculator and the booking validator never
reach for ambient constants.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Literal, Optional

import pendulum
from pydantic import BaseModel, Field, field_validator, model_validator

from .time_math import WEEKDAYS, parse_time

# Minutes per service type. Unknown service types fall back to
# ``SlotSettings.default_duration``.
DEFAULT_SERVICE_DURATIONS: Dict[str, int] = {
    "oil_change": 30,
    "brake_service": 60,
    "engine_repair": 240,
    "transmission_repair": 360,
    "diagnostic": 60,
    "maintenance": 90,
    "bodywork": 480,
    "paint": 720,
}

DEFAULT_ENABLED_SERVICES: List[str] = [
    "oil_change",
    "brake_service",
    "engine_repair",
    "transmission_repair",
    "diagnostic",
    "maintenance",
]


def _validate_window(
    start: str,
    end: str,
    break_start: Optional[str],
    break_end: Optional[str],
) -> None:
    """Ensure a window opens before it closes and any break sits inside it."""
    start_minutes = parse_time(start)
    end_minutes = parse_time(end)
    if end_minutes <= start_minutes:
        raise ValueError(f"Window must open before it closes, got {start}-{end}")

    if (break_start is None) != (break_end is None):
        raise ValueError("break_start and break_end must be given together")

    if break_start is not None and break_end is not None:
        break_start_minutes = parse_time(break_start)
        break_end_minutes = parse_time(break_end)
        if not start_minutes <= break_start_minutes < break_end_minutes <= end_minutes:
            raise ValueError(
                f"Break {break_start}-{break_end} must lie inside {start}-{end}"
            )


class DayHours(BaseModel):
    """Workshop operating hours for one weekday."""
    open: str = "08:00"
    close: str = "17:00"
    closed: bool = False
    break_start: Optional[str] = None
    break_end: Optional[str] = None

    @model_validator(mode="after")
    def validate_window(self) -> "DayHours":
        """Validate the window unless the day is closed."""
        if not self.closed:
            _validate_window(self.open, self.close, self.break_start, self.break_end)
        return self


def default_operating_hours() -> Dict[str, DayHours]:
    """Operating hours assumed for workshops that never configured theirs."""
    hours = {day: DayHours() for day in WEEKDAYS[:5]}
    hours["saturday"] = DayHours(open="08:00", close="15:00")
    hours["sunday"] = DayHours(open="00:00", close="00:00", closed=True)
    return hours


class CustomDayHours(BaseModel):
    """Custom weekly availability for one weekday (overrides operating hours)."""
    enabled: bool = True
    start: str = "09:00"
    end: str = "17:00"
    break_start: Optional[str] = None
    break_end: Optional[str] = None

    @model_validator(mode="after")
    def validate_window(self) -> "CustomDayHours":
        if self.enabled:
            _validate_window(self.start, self.end, self.break_start, self.break_end)
        return self


class ModifiedHours(BaseModel):
    """Replacement window used by a ``modified_hours`` exception."""
    start: str
    end: str
    break_start: Optional[str] = None
    break_end: Optional[str] = None

    @model_validator(mode="after")
    def validate_window(self) -> "ModifiedHours":
        _validate_window(self.start, self.end, self.break_start, self.break_end)
        return self


class AvailabilityException(BaseModel):
    """A date-scoped override of the weekly hours (closure, holiday, modified hours)."""
    id: str
    date: date
    type: Literal["closed", "modified_hours", "holiday"]
    reason: Optional[str] = None
    modified_hours: Optional[ModifiedHours] = None

    @model_validator(mode="after")
    def validate_modified_hours(self) -> "AvailabilityException":
        """A modified_hours exception is meaningless without the new hours."""
        if self.type == "modified_hours" and self.modified_hours is None:
            raise ValueError("modified_hours exceptions require modified_hours")
        return self

    def closes_day(self) -> bool:
        """True when the exception removes the whole day."""
        return self.modified_hours is None and self.type in ("closed", "holiday")


class SlotSettings(BaseModel):
    """Slot geometry and capacity. Durations and intervals are in minutes."""
    default_duration: int = Field(default=120, gt=0)
    slot_interval: int = Field(default=60, gt=0)
    buffer_time: int = Field(default=15, ge=0)
    service_durations: Dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_SERVICE_DURATIONS)
    )
    max_concurrent_appointments: int = Field(default=3, ge=0)
    allow_overlapping: bool = False

    @field_validator("service_durations")
    @classmethod
    def validate_service_durations(cls, value: Dict[str, int]) -> Dict[str, int]:
        """Ensure every configured service duration is positive."""
        invalid = sorted(name for name, minutes in value.items() if minutes <= 0)
        if invalid:
            raise ValueError(f"Service durations must be positive: {invalid}")
        return value

    @model_validator(mode="after")
    def validate_concurrency(self) -> "SlotSettings":
        if self.allow_overlapping and self.max_concurrent_appointments < 1:
            raise ValueError(
                "max_concurrent_appointments must be >= 1 when overlapping is allowed"
            )
        return self

    @property
    def effective_max_concurrent(self) -> int:
        """Concurrency limit actually enforced (1 when overlapping is disallowed)."""
        if not self.allow_overlapping:
            return 1
        return self.max_concurrent_appointments

    def duration_for(self, service_type: str) -> int:
        """Minutes configured for a service type, or the default duration."""
        return self.service_durations.get(service_type, self.default_duration)


class BookingSettings(BaseModel):
    """Advance-booking window, cancellation policy, confirmation and reminders."""
    min_advance_booking: float = Field(default=2, ge=0)  # hours
    max_advance_booking: int = Field(default=90, gt=0)  # days
    cancellation_deadline: int = Field(default=24, ge=0)  # hours
    reschedule_deadline: int = Field(default=12, ge=0)  # hours
    require_confirmation: bool = True
    auto_confirm_within: int = Field(default=60, ge=0)  # minutes
    enable_reminders: bool = True
    reminder_times: List[float] = Field(default_factory=lambda: [24, 2])  # hours
    reminder_methods: List[Literal["email", "sms", "push"]] = Field(
        default_factory=lambda: ["email"]
    )

    @model_validator(mode="after")
    def validate_advance_window(self) -> "BookingSettings":
        """Ensure the minimum advance does not exceed the maximum."""
        if self.min_advance_booking > self.max_advance_booking * 24:
            raise ValueError(
                "min_advance_booking (hours) must not exceed max_advance_booking (days)"
            )
        return self


class AppointmentSettings(BaseModel):
    """Scheduling configuration owned by a single workshop."""
    workshop_id: str
    enabled: bool = False
    slot_settings: SlotSettings = Field(default_factory=SlotSettings)
    booking_settings: BookingSettings = Field(default_factory=BookingSettings)
    use_operating_hours: bool = True
    custom_availability: Dict[str, CustomDayHours] = Field(default_factory=dict)
    availability_exceptions: List[AvailabilityException] = Field(default_factory=list)
    enabled_services: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ENABLED_SERVICES)
    )
    require_service_selection: bool = True
    require_deposit: bool = False
    deposit_amount: Optional[float] = Field(default=None, ge=0)
    deposit_type: Optional[Literal["flat", "percentage"]] = None
    created_at: datetime = Field(default_factory=lambda: pendulum.now("UTC"))
    updated_at: datetime = Field(default_factory=lambda: pendulum.now("UTC"))

    @field_validator("custom_availability")
    @classmethod
    def validate_weekdays(cls, value: Dict[str, CustomDayHours]) -> Dict[str, CustomDayHours]:
        """Normalise weekday keys and reject unknown ones."""
        normalized = {day.lower(): hours for day, hours in value.items()}
        unknown = sorted(day for day in normalized if day not in WEEKDAYS)
        if unknown:
            raise ValueError(f"Unknown weekday(s) in custom_availability: {unknown}")
        return normalized

    @field_validator("availability_exceptions")
    @classmethod
    def validate_unique_exceptions(
        cls, value: List[AvailabilityException]
    ) -> List[AvailabilityException]:
        """Keep exceptions ordered by date with unique ids."""
        ids = [exception.id for exception in value]
        duplicates = sorted({exception_id for exception_id in ids if ids.count(exception_id) > 1})
        if duplicates:
            raise ValueError(f"Duplicate availability exception id(s): {duplicates}")
        return sorted(value, key=lambda exception: exception.date)

    @model_validator(mode="after")
    def validate_deposit(self) -> "AppointmentSettings":
        if self.require_deposit:
            if self.deposit_amount is None or self.deposit_type is None:
                raise ValueError("Deposits require deposit_amount and deposit_type")
            if self.deposit_type == "percentage" and self.deposit_amount > 100:
                raise ValueError("Percentage deposits cannot exceed 100")
        return self

    def exception_for(self, day: date) -> Optional[AvailabilityException]:
        """Return the exception registered for ``day``, if any."""
        for exception in self.availability_exceptions:
            if exception.date == day:
                return exception
        return None


def create_default_settings(workshop_id: str) -> AppointmentSettings:
    """Settings created lazily on a workshop's first access (booking disabled)."""
    return AppointmentSettings(workshop_id=workshop_id)
