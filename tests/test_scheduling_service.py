"""
Tests for the SchedulingService orchestration layer.
"""

import threading

import pendulum
import pytest

from repairconnect.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from repairconnect.domain.models import AppointmentStatus, SlotCheck
from repairconnect.domain.settings import DayHours
from repairconnect.services.scheduling import SchedulingService

from tests.conftest import (
    MONDAY,
    SATURDAY,
    TUESDAY,
    make_appointment,
    make_settings,
    make_workshop,
)

WEDNESDAY = TUESDAY.add(days=1)


@pytest.fixture
def service(store, config, clock):
    return SchedulingService(store, config, clock=clock)


@pytest.fixture
def enabled(store):
    """Enable booking for w1 with 60-minute slots and no buffer."""
    store.save_settings(make_settings("w1"))
    return store


class TestSettings:
    """Tests for settings management."""

    def test_defaults_created_on_first_access(self, service, store):
        assert store.get_settings("w1") is None

        settings = service.get_settings("w1")

        assert settings.enabled is False
        assert store.get_settings("w1") is not None

    def test_unknown_workshop(self, service):
        with pytest.raises(NotFoundError):
            service.get_settings("nope")

    def test_update_merges_nested_sections(self, service):
        updated = service.update_settings(
            "w1",
            "w1",
            {"enabled": True, "slot_settings": {"buffer_time": 30}},
        )

        assert updated.enabled is True
        assert updated.slot_settings.buffer_time == 30
        assert updated.slot_settings.default_duration == 120
        assert service.get_settings("w1").slot_settings.buffer_time == 30

    def test_update_by_other_workshop_forbidden(self, service):
        with pytest.raises(ForbiddenError):
            service.update_settings("w1", "w2", {"enabled": True})

    def test_invalid_update_rejected(self, service):
        with pytest.raises(ValidationError):
            service.update_settings(
                "w1", "w1", {"booking_settings": {"min_advance_booking": 500, "max_advance_booking": 1}}
            )

    def test_add_and_remove_exception(self, service):
        settings = service.add_exception(
            "w1", "w1", {"id": "eid", "date": "2030-06-04", "type": "closed", "reason": "Eid"}
        )
        assert [e.id for e in settings.availability_exceptions] == ["eid"]

        with pytest.raises(ValidationError):
            service.add_exception("w1", "w1", {"id": "eid", "date": "2030-06-05", "type": "closed"})

        settings = service.remove_exception("w1", "w1", "eid")
        assert settings.availability_exceptions == []

        with pytest.raises(NotFoundError):
            service.remove_exception("w1", "w1", "eid")


class TestAvailability:
    """Tests for availability queries."""

    def test_compute_availability(self, service, enabled):
        days = service.compute_availability("w1", TUESDAY, TUESDAY, 2)

        assert [slot.start_time for slot in days[0].available_slots()] == [
            "09:00", "10:00", "11:00", "12:00", "13:00", "14:00", "15:00",
        ]

    def test_default_range_and_duration(self, service, enabled):
        days = service.compute_availability("w1", TUESDAY)

        assert len(days) == 14
        assert days[0].slots[0].end_time == "11:00"

    def test_disabled_workshop_has_no_slots(self, service):
        days = service.compute_availability("w1", TUESDAY, TUESDAY, 1)

        assert days[0].slots == []
        assert days[0].closed_reason == "Appointment booking is disabled"

    def test_existing_appointments_block_slots(self, service, enabled):
        service.book_appointment("w1", "c1", TUESDAY, "10:00", duration=1, services=["diagnostic"])

        day = service.compute_availability("w1", TUESDAY, TUESDAY, 1)[0]

        assert "10:00" not in [slot.start_time for slot in day.available_slots()]

    def test_next_available_slots(self, service, enabled):
        slots = service.next_available_slots("w1", duration=2, limit=3)

        # NOW is Monday 06:00; 09:00 is three hours ahead
        assert [str(slot) for slot in slots] == [
            "2030-06-03 09:00-11:00",
            "2030-06-03 10:00-12:00",
            "2030-06-03 11:00-13:00",
        ]

    def test_invalid_duration(self, service):
        """Test the duration is validated before any store access."""
        with pytest.raises(ValidationError):
            service.compute_availability("unknown-workshop", TUESDAY, TUESDAY, 30)


class TestValidateSlot:
    """Tests for single-slot validation with alternatives."""

    def test_available_slot(self, service, enabled):
        result = service.validate_slot("w1", TUESDAY, "10:00", 2)

        assert result.available
        assert result.alternatives == []

    def test_too_soon_offers_later_same_day_slots(self, service, enabled, clock):
        """Test a slot one hour ahead fails the minimum and offers same-day alternatives."""
        clock.now = pendulum.datetime(2030, 6, 4, 10, 0, tz="UTC")

        result = service.validate_slot("w1", TUESDAY, "11:00", 1)

        assert not result.available
        assert "2 hours" in result.reason
        assert [slot.start_time for slot in result.alternatives] == [
            "12:00", "13:00", "14:00", "15:00", "16:00",
        ]
        assert all(slot.date == TUESDAY for slot in result.alternatives)

    def test_alternatives_from_following_days(self, service, enabled):
        """Test a closed day falls back to the next open days."""
        result = service.validate_slot("w1", SATURDAY, "10:00", 2)

        assert result.reason == "Workshop is closed on this day"
        assert len(result.alternatives) == 5
        assert result.alternatives[0].date == pendulum.date(2030, 6, 10)
        assert result.alternatives[0].start_time == "09:00"

    def test_alternatives_capped_by_config(self, store, config, clock, enabled):
        config.scheduling.same_day_alternatives = 2
        service = SchedulingService(store, config, clock=clock)
        store.insert_appointment_if(make_appointment("10:00", "11:00"), lambda existing: SlotCheck(available=True))

        result = service.validate_slot("w1", TUESDAY, "10:00", 1)

        assert result.reason == "Time slot conflicts with existing appointment"
        assert result.conflicting_appointment_ids == ["a1"]
        assert [slot.start_time for slot in result.alternatives] == ["09:00", "11:00"]

    def test_no_alternatives_when_not_requested(self, service, enabled):
        result = service.validate_slot("w1", SATURDAY, "10:00", 2, include_alternatives=False)
        assert result.alternatives == []

    def test_disabled_workshop(self, service):
        result = service.validate_slot("w1", TUESDAY, "10:00", 2)

        assert result.reason == "Appointment booking is disabled"
        assert result.alternatives == []

    def test_malformed_input(self, service):
        with pytest.raises(ValidationError):
            service.validate_slot("w1", "2030-13-45", "10:00", 2)
        with pytest.raises(ValidationError):
            service.validate_slot("w1", TUESDAY, "10h", 2)


class TestEstimateDuration:
    """Tests for duration estimates through the service."""

    def test_estimate_uses_workshop_settings(self, service, store):
        store.save_settings(make_settings("w1", slot_settings={"default_duration": 30}))

        assert service.estimate_duration("w1", ["oil_change"]) == 0.5
        assert service.estimate_duration("w1", ["oil_change", "diagnostic"]) == 1.5
        assert service.estimate_duration("w1", []) == 0.5


class TestBookAppointment:
    """Tests for atomic booking."""

    def test_book(self, service, enabled, store):
        appointment = service.book_appointment(
            "w1", "c1", TUESDAY, "10:00", services=["diagnostic", "oil_change"]
        )

        assert appointment.start_time == "10:00"
        assert appointment.end_time == "12:00"
        assert appointment.status == AppointmentStatus.REQUESTED
        assert [a.id for a in store.list_appointments("w1", TUESDAY, TUESDAY)] == [appointment.id]

    def test_auto_confirmed_without_confirmation(self, service, store):
        store.save_settings(make_settings("w1", booking_settings={"require_confirmation": False}))

        appointment = service.book_appointment("w1", "c1", TUESDAY, "10:00", services=["diagnostic"])

        assert appointment.status == AppointmentStatus.CONFIRMED

    def test_double_booking_conflicts(self, service, enabled):
        service.book_appointment("w1", "c1", TUESDAY, "10:00", duration=2, services=["diagnostic"])

        with pytest.raises(ConflictError) as exc_info:
            service.book_appointment("w1", "c2", TUESDAY, "11:00", duration=1, services=["diagnostic"])

        assert exc_info.value.context["reason"] == "Time slot conflicts with existing appointment"

    def test_unavailable_slot_conflicts(self, service, enabled):
        with pytest.raises(ConflictError):
            service.book_appointment("w1", "c1", SATURDAY, "10:00", services=["diagnostic"])

    def test_service_selection_required(self, service, enabled):
        with pytest.raises(ValidationError):
            service.book_appointment("w1", "c1", TUESDAY, "10:00", duration=1)

    def test_service_must_be_offered(self, service, enabled):
        with pytest.raises(ValidationError):
            service.book_appointment("w1", "c1", TUESDAY, "10:00", services=["paint"])

    def test_concurrent_bookings_single_success(self, service, enabled, store):
        """Test two customers racing for the same slot produce one appointment."""
        customers = ["c1", "c2", "c3", "c4"]
        barrier = threading.Barrier(len(customers))
        booked = []
        conflicts = []

        def book(customer_id):
            barrier.wait()
            try:
                booked.append(
                    service.book_appointment(
                        "w1", customer_id, MONDAY.add(days=1), "14:00", duration=2, services=["diagnostic"]
                    )
                )
            except ConflictError:
                conflicts.append(customer_id)

        threads = [threading.Thread(target=book, args=(customer,)) for customer in customers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(booked) == 1
        assert len(conflicts) == 3
        assert len(store.list_appointments("w1", TUESDAY, TUESDAY)) == 1

    def test_booking_respects_advance_window(self, service, enabled, clock):
        clock.now = pendulum.datetime(2030, 6, 4, 8, 0, tz="UTC")

        with pytest.raises(ConflictError) as exc_info:
            service.book_appointment("w1", "c1", TUESDAY, "09:00", duration=1, services=["diagnostic"])

        assert exc_info.value.context["reason"] == "Minimum 2 hours advance booking required"


class TestFindOptimalSlots:
    """Tests for matching slots against customer preferences."""

    def test_preferred_range_splits_slots(self, service, enabled):
        result = service.find_optimal_slots(
            "w1", [TUESDAY], duration=1, preferred_time_ranges=[("13:00", "15:00")]
        )

        assert [slot.start_time for slot in result.preferred] == ["13:00", "14:00", "15:00"]
        assert [slot.start_time for slot in result.alternatives] == [
            "09:00", "10:00", "11:00", "12:00", "16:00",
        ]

    def test_default_range_and_duration(self, service, enabled):
        result = service.find_optimal_slots("w1", [TUESDAY, TUESDAY.isoformat()])

        assert [str(slot) for slot in result.preferred] == [
            "2030-06-04 09:00-11:00",
            "2030-06-04 10:00-12:00",
            "2030-06-04 11:00-13:00",
            "2030-06-04 12:00-14:00",
            "2030-06-04 13:00-15:00",
        ]
        assert result.alternatives == []

    def test_few_preferred_adds_upcoming_days(self, service, enabled):
        """Test upcoming days fill the alternatives without repeating the preferred date."""
        result = service.find_optimal_slots(
            "w1", [MONDAY], duration=1, preferred_time_ranges=[("16:00", "16:00")], limit=10
        )

        assert [str(slot) for slot in result.preferred] == ["2030-06-03 16:00-17:00"]
        assert [str(slot) for slot in result.alternatives] == [
            "2030-06-03 09:00-10:00",
            "2030-06-03 10:00-11:00",
            "2030-06-03 11:00-12:00",
            "2030-06-03 12:00-13:00",
            "2030-06-03 13:00-14:00",
            "2030-06-03 14:00-15:00",
            "2030-06-03 15:00-16:00",
            "2030-06-04 09:00-10:00",
            "2030-06-04 10:00-11:00",
            "2030-06-04 11:00-12:00",
        ]

    def test_closed_preferred_date(self, service, enabled):
        result = service.find_optimal_slots("w1", [SATURDAY], duration=1)

        assert result.preferred == []
        assert [str(slot) for slot in result.alternatives][:2] == [
            "2030-06-03 09:00-10:00",
            "2030-06-03 10:00-11:00",
        ]
        assert len(result.alternatives) == 5

    def test_inverted_range_rejected(self, service, enabled):
        with pytest.raises(ValidationError):
            service.find_optimal_slots("w1", [TUESDAY], preferred_time_ranges=[("15:00", "10:00")])


class TestCompareWorkshopAvailability:
    """Tests for side-by-side workshop availability."""

    def test_sorted_by_wait(self, service, store, enabled):
        all_week = {
            day: DayHours(open="09:00", close="17:00")
            for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
        }
        store.add_workshop(make_workshop("w4", "Delta Cars", operating_hours=all_week))
        store.save_settings(make_settings("w4"))
        inactive = make_workshop("w5", "Shut Garage")
        inactive.is_active = False
        store.add_workshop(inactive)
        store.save_settings(make_settings("w5"))

        results = service.compare_workshop_availability(
            ["w1", "w3", "w4", "w5", "nope"], duration=1, start_date=SATURDAY, days=7
        )

        assert [(r.workshop_id, r.wait_days, r.available_slots) for r in results] == [
            ("w4", 0, 56),
            ("w1", 2, 40),
            ("w3", 7, 0),
        ]
        assert results[0].workshop_name == "Delta Cars"
        assert str(results[1].next_slot) == "2030-06-10 09:00-10:00"
        assert results[2].next_slot is None

    def test_defaults_to_today(self, service, enabled):
        results = service.compare_workshop_availability(["w1"], duration=1)

        assert results[0].wait_days == 0
        assert str(results[0].next_slot) == "2030-06-03 09:00-10:00"

    def test_days_must_be_positive(self, service):
        with pytest.raises(ValidationError):
            service.compare_workshop_availability(["w1"], days=0)


class TestWorkshopCurrentStatus:
    """Tests for the live status of a workshop."""

    def test_open_with_current_appointment(self, service, store, enabled, clock):
        clock.now = pendulum.datetime(2030, 6, 4, 10, 30, tz="UTC")
        store.insert_appointment_if(make_appointment("10:00", "11:00"), lambda existing: SlotCheck(available=True))

        status = service.workshop_current_status("w1")

        assert status.is_open
        assert status.current_appointment.id == "a1"
        assert (status.available_today, status.booked_today, status.total_today) == (7, 1, 8)
        assert str(status.next_slot) == "2030-06-04 13:00-15:00"

    def test_before_opening(self, service, enabled, clock):
        clock.now = pendulum.datetime(2030, 6, 4, 8, 0, tz="UTC")

        status = service.workshop_current_status("w1")

        assert not status.is_open
        assert status.current_appointment is None
        assert status.total_today == 8

    def test_closed_day(self, service, enabled, clock):
        clock.now = pendulum.datetime(2030, 6, 8, 10, 0, tz="UTC")

        status = service.workshop_current_status("w1")

        assert not status.is_open
        assert status.total_today == 0
        assert str(status.next_slot) == "2030-06-10 09:00-11:00"


@pytest.fixture
def booked(service, enabled):
    """A two-hour Tuesday 10:00 appointment, 28 hours after NOW."""
    return service.book_appointment("w1", "c1", TUESDAY, "10:00", duration=2, services=["diagnostic"])


class TestCancelAppointment:
    """Tests for cancellation and its notice period."""

    def test_customer_cancels(self, service, store, booked):
        cancelled = service.cancel_appointment("w1", booked.id, "c1", reason="Car sold")

        assert cancelled.status == AppointmentStatus.CANCELLED
        stored = store.get_appointment("w1", booked.id)
        assert stored.status == AppointmentStatus.CANCELLED
        assert stored.cancellation_reason == "Car sold"
        assert stored.updated_at is not None
        day = service.compute_availability("w1", TUESDAY, TUESDAY, 2)[0]
        assert "10:00" in [slot.start_time for slot in day.available_slots()]

    def test_customer_too_late(self, service, store, booked, clock):
        clock.advance(hours=5)

        with pytest.raises(ConflictError) as exc_info:
            service.cancel_appointment("w1", booked.id, "c1")

        assert exc_info.value.context["reason"] == (
            "Appointments can only be cancelled with at least 24 hours notice"
        )
        assert store.get_appointment("w1", booked.id).status == AppointmentStatus.REQUESTED

    def test_workshop_may_cancel_late(self, service, booked, clock):
        clock.advance(hours=27)

        assert service.cancel_appointment("w1", booked.id, "w1").status == AppointmentStatus.CANCELLED

    def test_stranger_forbidden(self, service, booked):
        with pytest.raises(ForbiddenError):
            service.cancel_appointment("w1", booked.id, "c9")

    def test_cancel_twice(self, service, booked):
        service.cancel_appointment("w1", booked.id, "c1")

        with pytest.raises(InvalidStateError):
            service.cancel_appointment("w1", booked.id, "c1")

    def test_unknown_appointment(self, service, enabled):
        with pytest.raises(NotFoundError):
            service.cancel_appointment("w1", "missing", "c1")

    def test_stale_copy_conflicts(self, service, store, booked):
        stale = store.get_appointment("w1", booked.id)
        service.cancel_appointment("w1", booked.id, "c1")

        with pytest.raises(ConflictError):
            store.replace_appointment_if(stale, stale)


class TestRescheduleAppointment:
    """Tests for moving appointments."""

    def test_reschedule_keeps_length(self, service, store, booked):
        moved = service.reschedule_appointment("w1", booked.id, "c1", WEDNESDAY, "14:00")

        assert (moved.scheduled_date, moved.start_time, moved.end_time) == (WEDNESDAY, "14:00", "16:00")
        assert moved.status == AppointmentStatus.REQUESTED
        stored = store.get_appointment("w1", booked.id)
        assert (stored.scheduled_date, stored.start_time) == (WEDNESDAY, "14:00")
        assert store.list_appointments("w1", TUESDAY, TUESDAY) == []

    def test_overlap_with_itself_allowed(self, service, booked):
        moved = service.reschedule_appointment("w1", booked.id, "c1", TUESDAY, "11:00")

        assert (moved.start_time, moved.end_time) == ("11:00", "13:00")

    def test_taken_slot_conflicts(self, service, store, booked):
        service.book_appointment("w1", "c2", WEDNESDAY, "14:00", duration=1, services=["diagnostic"])

        with pytest.raises(ConflictError) as exc_info:
            service.reschedule_appointment("w1", booked.id, "c1", WEDNESDAY, "14:00")

        assert exc_info.value.context["reason"] == "Time slot conflicts with existing appointment"
        assert store.get_appointment("w1", booked.id).scheduled_date == TUESDAY

    def test_customer_too_late(self, service, booked, clock):
        clock.now = pendulum.datetime(2030, 6, 4, 0, 0, tz="UTC")

        with pytest.raises(ConflictError) as exc_info:
            service.reschedule_appointment("w1", booked.id, "c1", WEDNESDAY, "14:00")

        assert exc_info.value.message == (
            "Appointments can only be rescheduled with at least 12 hours notice"
        )

    def test_in_progress_cannot_move(self, service, store, enabled):
        store.insert_appointment_if(
            make_appointment("10:00", "11:00", status=AppointmentStatus.IN_PROGRESS),
            lambda existing: SlotCheck(available=True),
        )

        with pytest.raises(InvalidStateError):
            service.reschedule_appointment("w1", "a1", "c-existing", WEDNESDAY, "14:00")
