"""
Mapping between domain objects and persisted documents.

Documents are plain dicts of str/int/float/bool/list/dict/None so they can
be written to YAML (or any document store) as-is. Money is stored as a
decimal string, timestamps as ISO-8601 strings, dates as ``YYYY-MM-DD``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

import pendulum
from pendulum import DateTime

from ..domain.models import Appointment, AppointmentStatus, Vehicle, Workshop
from ..domain.notifications import Notification, NotificationType
from ..domain.quotation import Quotation, QuotationStatus, Quote, QuoteStatus
from ..domain.settings import AppointmentSettings, DayHours
from ..domain.time_math import as_date

Document = Dict[str, Any]


def _dump_datetime(value: Optional[DateTime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _load_datetime(value: Any) -> Optional[DateTime]:
    if value is None:
        return None
    if isinstance(value, str):
        return pendulum.parse(value)
    return pendulum.instance(value)


def _dump_value(value: Any) -> Any:
    """Make notification payload values YAML-safe."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, DateTime):
        return value.isoformat()
    return value


# --- Workshops ---------------------------------------------------------------

def workshop_to_document(workshop: Workshop) -> Document:
    return {
        "id": workshop.id,
        "name": workshop.name,
        "is_active": workshop.is_active,
        "operating_hours": {
            day: hours.model_dump(mode="json") for day, hours in workshop.operating_hours.items()
        },
    }


def workshop_from_document(document: Document) -> Workshop:
    workshop = Workshop(
        id=document["id"],
        name=document.get("name", document["id"]),
        is_active=document.get("is_active", True),
    )
    hours = document.get("operating_hours")
    if hours:
        workshop.operating_hours = {
            day.lower(): DayHours.model_validate(value) for day, value in hours.items()
        }
    return workshop


# --- Settings ----------------------------------------------------------------

def settings_to_document(settings: AppointmentSettings) -> Document:
    return settings.model_dump(mode="json")


def settings_from_document(document: Document) -> AppointmentSettings:
    return AppointmentSettings.model_validate(document)


# --- Appointments ------------------------------------------------------------

def appointment_to_document(appointment: Appointment) -> Document:
    return {
        "id": appointment.id,
        "workshop_id": appointment.workshop_id,
        "customer_id": appointment.customer_id,
        "scheduled_date": appointment.scheduled_date.isoformat(),
        "start_time": appointment.start_time,
        "end_time": appointment.end_time,
        "status": appointment.status.value,
        "services": list(appointment.services),
        "quotation_id": appointment.quotation_id,
        "quote_id": appointment.quote_id,
        "notes": appointment.notes,
        "cancellation_reason": appointment.cancellation_reason,
        "created_at": _dump_datetime(appointment.created_at),
        "updated_at": _dump_datetime(appointment.updated_at),
    }


def appointment_from_document(document: Document) -> Appointment:
    appointment = Appointment(
        id=document["id"],
        workshop_id=document["workshop_id"],
        customer_id=document["customer_id"],
        scheduled_date=as_date(document["scheduled_date"]),
        start_time=document["start_time"],
        end_time=document["end_time"],
        status=AppointmentStatus(document.get("status", AppointmentStatus.REQUESTED.value)),
        services=list(document.get("services") or []),
        quotation_id=document.get("quotation_id"),
        quote_id=document.get("quote_id"),
        notes=document.get("notes"),
        cancellation_reason=document.get("cancellation_reason"),
        updated_at=_load_datetime(document.get("updated_at")),
    )
    created_at = _load_datetime(document.get("created_at"))
    if created_at is not None:
        appointment.created_at = created_at
    return appointment


# --- Quotations --------------------------------------------------------------

def quote_to_document(quote: Quote) -> Document:
    return {
        "id": quote.id,
        "workshop_id": quote.workshop_id,
        "workshop_name": quote.workshop_name,
        "total_amount": str(quote.total_amount),
        "currency": quote.currency,
        "estimated_duration": quote.estimated_duration,
        "status": quote.status.value,
        "notes": quote.notes,
        "submitted_at": _dump_datetime(quote.submitted_at),
        "updated_at": _dump_datetime(quote.updated_at),
        "accepted_at": _dump_datetime(quote.accepted_at),
        "declined_at": _dump_datetime(quote.declined_at),
        "decline_reason": quote.decline_reason,
    }


def quote_from_document(document: Document) -> Quote:
    return Quote(
        id=document["id"],
        workshop_id=document["workshop_id"],
        workshop_name=document.get("workshop_name"),
        total_amount=Decimal(str(document["total_amount"])),
        currency=document.get("currency", "AED"),
        estimated_duration=float(document["estimated_duration"]),
        status=QuoteStatus(document.get("status", QuoteStatus.PENDING.value)),
        notes=document.get("notes"),
        submitted_at=_load_datetime(document.get("submitted_at")),
        updated_at=_load_datetime(document.get("updated_at")),
        accepted_at=_load_datetime(document.get("accepted_at")),
        declined_at=_load_datetime(document.get("declined_at")),
        decline_reason=document.get("decline_reason"),
    )


def quotation_to_document(quotation: Quotation) -> Document:
    vehicle = quotation.vehicle
    return {
        "id": quotation.id,
        "customer_id": quotation.customer_id,
        "car_id": quotation.car_id,
        "vehicle": {"make": vehicle.make, "model": vehicle.model, "year": vehicle.year},
        "requested_services": list(quotation.requested_services),
        "description": quotation.description,
        "target_workshop_ids": list(quotation.target_workshop_ids),
        "quotes": [quote_to_document(quote) for quote in quotation.quotes],
        "status": quotation.status.value,
        "created_at": _dump_datetime(quotation.created_at),
        "updated_at": _dump_datetime(quotation.updated_at),
        "expires_at": _dump_datetime(quotation.expires_at),
        "accepted_quote_id": quotation.accepted_quote_id,
        "accepted_at": _dump_datetime(quotation.accepted_at),
        "view_count": quotation.view_count,
        "response_count": quotation.response_count,
        "version": quotation.version,
    }


def quotation_from_document(document: Document) -> Quotation:
    vehicle = document.get("vehicle") or {}
    quotation = Quotation(
        id=document["id"],
        customer_id=document["customer_id"],
        car_id=document.get("car_id"),
        vehicle=Vehicle(
            make=vehicle.get("make", ""),
            model=vehicle.get("model", ""),
            year=vehicle.get("year"),
        ),
        requested_services=list(document.get("requested_services") or []),
        description=document.get("description"),
        target_workshop_ids=list(document.get("target_workshop_ids") or []),
        quotes=[quote_from_document(quote) for quote in document.get("quotes") or []],
        status=QuotationStatus(document.get("status", QuotationStatus.PENDING.value)),
        expires_at=_load_datetime(document.get("expires_at")),
        accepted_quote_id=document.get("accepted_quote_id"),
        accepted_at=_load_datetime(document.get("accepted_at")),
        view_count=int(document.get("view_count", 0)),
        response_count=int(document.get("response_count", 0)),
        version=int(document.get("version", 0)),
    )
    for name in ("created_at", "updated_at"):
        value = _load_datetime(document.get(name))
        if value is not None:
            setattr(quotation, name, value)
    return quotation


# --- Notifications -----------------------------------------------------------

def notification_to_document(notification: Notification) -> Document:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "data": {key: _dump_value(value) for key, value in notification.data.items()},
        "read": notification.read,
        "created_at": _dump_datetime(notification.created_at),
    }


def notification_from_document(document: Document) -> Notification:
    return Notification(
        id=document["id"],
        user_id=document["user_id"],
        type=NotificationType(document["type"]),
        title=document["title"],
        message=document["message"],
        data=dict(document.get("data") or {}),
        read=bool(document.get("read", False)),
        created_at=_load_datetime(document["created_at"]),
    )
