"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityCalculator
from .booking_validator import BookingValidator, estimate_duration
from .models import Appointment, AppointmentStatus, DayAvailability, Slot, SlotCheck, Vehicle, Workshop
from .quotation import AcceptOutcome, Quotation, QuotationStatus, Quote, QuoteStatus
from .settings import AppointmentSettings, create_default_settings

__all__ = [
    "AcceptOutcome",
    "Appointment",
    "AppointmentSettings",
    "AppointmentStatus",
    "AvailabilityCalculator",
    "BookingValidator",
    "DayAvailability",
    "Quotation",
    "QuotationStatus",
    "Quote",
    "QuoteStatus",
    "Slot",
    "SlotCheck",
    "Vehicle",
    "Workshop",
    "create_default_settings",
    "estimate_duration",
]
