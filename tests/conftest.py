"""Shared test fixtures and helpers."""

from typing import Dict, List, Optional

import pendulum
import pytest

from repairconnect.adapters.memory_store import InMemoryStore
from repairconnect.config import AppConfig
from repairconnect.domain.models import Appointment, AppointmentStatus, Vehicle, Workshop
from repairconnect.domain.quotation import Quotation
from repairconnect.domain.settings import AppointmentSettings, DayHours, SlotSettings

# Monday
NOW = pendulum.datetime(2030, 6, 3, 6, 0, tz="UTC")
MONDAY = pendulum.date(2030, 6, 3)
TUESDAY = pendulum.date(2030, 6, 4)
SATURDAY = pendulum.date(2030, 6, 8)
SUNDAY = pendulum.date(2030, 6, 9)


class MutableClock:
    """Clock that tests can move forward."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now.add(**kwargs)


def weekday_hours(open_: str = "09:00", close: str = "17:00", **extra) -> Dict[str, DayHours]:
    """Mon-Fri open with the given hours, weekend closed."""
    hours = {
        day: DayHours(open=open_, close=close, **extra)
        for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
    }
    hours["saturday"] = DayHours(closed=True)
    hours["sunday"] = DayHours(closed=True)
    return hours


def make_workshop(
    workshop_id: str = "w1",
    name: str = "Alpha Motors",
    operating_hours: Optional[Dict[str, DayHours]] = None,
) -> Workshop:
    return Workshop(
        id=workshop_id,
        name=name,
        operating_hours=operating_hours if operating_hours is not None else weekday_hours(),
    )


def make_settings(
    workshop_id: str = "w1",
    enabled: bool = True,
    slot_settings: Optional[Dict] = None,
    booking_settings: Optional[Dict] = None,
    **overrides,
) -> AppointmentSettings:
    """Enabled settings with 60-minute slots and no buffer unless overridden."""
    slots = {"default_duration": 120, "slot_interval": 60, "buffer_time": 0}
    slots.update(slot_settings or {})
    return AppointmentSettings(
        workshop_id=workshop_id,
        enabled=enabled,
        slot_settings=SlotSettings(**slots),
        booking_settings=booking_settings or {},
        **overrides,
    )


def make_appointment(
    start: str,
    end: str,
    day=TUESDAY,
    appointment_id: str = "a1",
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
    workshop_id: str = "w1",
) -> Appointment:
    return Appointment(
        id=appointment_id,
        workshop_id=workshop_id,
        customer_id="c-existing",
        scheduled_date=day,
        start_time=start,
        end_time=end,
        status=status,
    )


def make_quotation(
    targets: Optional[List[str]] = None,
    customer_id: str = "c1",
    expires_at=None,
) -> Quotation:
    return Quotation(
        id="qt1",
        customer_id=customer_id,
        vehicle=Vehicle(make="Toyota", model="Camry", year=2019),
        target_workshop_ids=targets or ["w1", "w2", "w3"],
        requested_services=["brake_service"],
        created_at=NOW,
        updated_at=NOW,
        expires_at=expires_at,
    )


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def config():
    return AppConfig(timezone="UTC", currency="AED")


@pytest.fixture
def store():
    store = InMemoryStore(timeout_seconds=1.0)
    store.add_workshop(make_workshop("w1", "Alpha Motors"))
    store.add_workshop(make_workshop("w2", "Beta Garage"))
    store.add_workshop(make_workshop("w3", "Gamma Auto"))
    return store
