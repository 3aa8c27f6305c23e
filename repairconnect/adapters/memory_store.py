"""
Thread-safe in-memory store.

Every aggregate is kept as a document and converted on the way in and out,
so callers always work on private copies. All operations run inside one
critical section acquired with a timeout; failing to acquire it raises
``TransientError`` without touching any state.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import date
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from ..domain.exceptions import ConflictError, NotFoundError, TransientError
from ..domain.models import Appointment, SlotCheck, Workshop
from ..domain.notifications import Notification
from ..domain.quotation import Quotation
from ..domain.settings import AppointmentSettings
from . import documents

logger = logging.getLogger(__name__)

# Fields whose change makes a concurrent appointment update stale.
_APPOINTMENT_SLOT_KEYS = ("status", "scheduled_date", "start_time", "end_time")


class InMemoryStore:
    """
    Document store backing both services.

    Quotation writes are compare-and-swap on ``version``; appointment
    inserts re-run the caller's slot check inside the critical section.
    """

    def __init__(self, timeout_seconds: float = 5.0):
        self.timeout_seconds = timeout_seconds
        self._lock = threading.RLock()
        self._workshops: Dict[str, documents.Document] = {}
        self._settings: Dict[str, documents.Document] = {}
        self._quotations: Dict[str, documents.Document] = {}
        self._appointments: Dict[str, List[documents.Document]] = {}
        self._notifications: Dict[str, documents.Document] = {}

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.timeout_seconds):
            raise TransientError(
                f"Store did not respond within {self.timeout_seconds:g}s",
                context={"timeout_seconds": self.timeout_seconds},
            )
        try:
            yield
        finally:
            self._lock.release()

    def _committed(self) -> None:
        """Hook run inside the critical section after every successful write."""

    # --- Workshops -----------------------------------------------------------

    def add_workshop(self, workshop: Workshop) -> None:
        with self._locked():
            self._workshops[workshop.id] = documents.workshop_to_document(workshop)
            self._committed()

    def get_workshop(self, workshop_id: str) -> Workshop:
        with self._locked():
            document = self._workshops.get(workshop_id)
            if document is None:
                raise NotFoundError(
                    f"Workshop {workshop_id} not found",
                    context={"workshop_id": workshop_id},
                )
            return documents.workshop_from_document(document)

    # --- Settings ------------------------------------------------------------

    def get_settings(self, workshop_id: str) -> Optional[AppointmentSettings]:
        with self._locked():
            document = self._settings.get(workshop_id)
            return documents.settings_from_document(document) if document else None

    def get_or_create_settings(
        self,
        workshop_id: str,
        factory: Callable[[str], AppointmentSettings],
    ) -> AppointmentSettings:
        """Return the workshop's settings, creating them with ``factory`` on first access."""
        with self._locked():
            document = self._settings.get(workshop_id)
            if document is None:
                document = documents.settings_to_document(factory(workshop_id))
                self._settings[workshop_id] = document
                self._committed()
                logger.info("Created default appointment settings for %s", workshop_id)
            return documents.settings_from_document(document)

    def save_settings(self, settings: AppointmentSettings) -> AppointmentSettings:
        with self._locked():
            document = documents.settings_to_document(settings)
            self._settings[settings.workshop_id] = document
            self._committed()
            return documents.settings_from_document(document)

    # --- Appointments --------------------------------------------------------

    def list_appointments(
        self,
        workshop_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Appointment]:
        """Appointments of a workshop, optionally limited to ``[start_date, end_date]``."""
        with self._locked():
            return self._select_appointments(workshop_id, start_date, end_date)

    def _select_appointments(
        self,
        workshop_id: str,
        start_date: Optional[date],
        end_date: Optional[date],
    ) -> List[Appointment]:
        appointments = [
            documents.appointment_from_document(document)
            for document in self._appointments.get(workshop_id, [])
        ]
        return [
            appointment
            for appointment in appointments
            if (start_date is None or appointment.scheduled_date >= start_date)
            and (end_date is None or appointment.scheduled_date <= end_date)
        ]

    def insert_appointment_if(
        self,
        appointment: Appointment,
        check: Callable[[List[Appointment]], SlotCheck],
    ) -> SlotCheck:
        """
        Insert ``appointment`` only if ``check`` accepts it.

        ``check`` receives the workshop's appointments on the same date, read
        inside the same critical section as the insert.
        """
        with self._locked():
            day = appointment.scheduled_date
            existing = self._select_appointments(appointment.workshop_id, day, day)
            result = check(existing)
            if result.available:
                self._appointments.setdefault(appointment.workshop_id, []).append(
                    documents.appointment_to_document(appointment)
                )
                self._committed()
            return result

    def get_appointment(self, workshop_id: str, appointment_id: str) -> Appointment:
        with self._locked():
            index = self._appointment_index(workshop_id, appointment_id)
            return documents.appointment_from_document(self._appointments[workshop_id][index])

    def replace_appointment_if(
        self,
        original: Appointment,
        replacement: Appointment,
        check: Optional[Callable[[List[Appointment]], SlotCheck]] = None,
    ) -> SlotCheck:
        """
        Overwrite ``original`` with ``replacement`` if it is unchanged in the store.

        ``check``, when given, receives the other appointments on the
        replacement's date and may veto the write.

        Raises:
            NotFoundError: If the appointment does not exist
            ConflictError: If its status, date or times changed since ``original`` was read
        """
        with self._locked():
            index = self._appointment_index(original.workshop_id, original.id)
            workshop_appointments = self._appointments[original.workshop_id]
            stored = workshop_appointments[index]
            expected = documents.appointment_to_document(original)
            changed = [key for key in _APPOINTMENT_SLOT_KEYS if stored[key] != expected[key]]
            if changed:
                raise ConflictError(
                    f"Appointment {original.id} was modified concurrently",
                    context={"appointment_id": original.id, "status": stored["status"]},
                )

            result = SlotCheck(available=True)
            if check is not None:
                day = replacement.scheduled_date
                others = [
                    appointment
                    for appointment in self._select_appointments(original.workshop_id, day, day)
                    if appointment.id != original.id
                ]
                result = check(others)
            if result.available:
                workshop_appointments[index] = documents.appointment_to_document(replacement)
                self._committed()
            return result

    def _appointment_index(self, workshop_id: str, appointment_id: str) -> int:
        for index, document in enumerate(self._appointments.get(workshop_id, [])):
            if document["id"] == appointment_id:
                return index
        raise NotFoundError(
            f"Appointment {appointment_id} not found",
            context={"workshop_id": workshop_id, "appointment_id": appointment_id},
        )

    # --- Quotations ----------------------------------------------------------

    def create_quotation(self, quotation: Quotation) -> Quotation:
        with self._locked():
            if quotation.id in self._quotations:
                raise ConflictError(
                    f"Quotation {quotation.id} already exists",
                    context={"quotation_id": quotation.id},
                )
            quotation.version = 1
            document = documents.quotation_to_document(quotation)
            self._quotations[quotation.id] = document
            self._committed()
            return documents.quotation_from_document(document)

    def get_quotation(self, quotation_id: str) -> Quotation:
        with self._locked():
            document = self._quotations.get(quotation_id)
            if document is None:
                raise NotFoundError(
                    f"Quotation {quotation_id} not found",
                    context={"quotation_id": quotation_id},
                )
            return documents.quotation_from_document(document)

    def save_quotation(
        self,
        quotation: Quotation,
        expected_version: int,
        notifications: Iterable[Notification] = (),
    ) -> Quotation:
        """
        Compare-and-swap write.

        ``notifications`` are stored in the same critical section as the
        quotation: either both are written or neither is. Ids already
        present are skipped.

        Raises:
            NotFoundError: If the quotation does not exist
            ConflictError: If the stored version is not ``expected_version``
        """
        with self._locked():
            current = self._quotations.get(quotation.id)
            if current is None:
                raise NotFoundError(
                    f"Quotation {quotation.id} not found",
                    context={"quotation_id": quotation.id},
                )
            if current["version"] != expected_version:
                raise ConflictError(
                    f"Quotation {quotation.id} was modified concurrently",
                    context={
                        "quotation_id": quotation.id,
                        "status": current["status"],
                        "version": current["version"],
                        "expected_version": expected_version,
                    },
                )
            notification_documents = self._notification_documents(notifications)
            quotation.version = expected_version + 1
            document = documents.quotation_to_document(quotation)

            self._quotations[quotation.id] = document
            for notification_document in notification_documents:
                self._notifications[notification_document["id"]] = notification_document
            self._committed()
            return documents.quotation_from_document(document)

    def list_quotations_for_workshop(self, workshop_id: str) -> List[Quotation]:
        with self._locked():
            return [
                documents.quotation_from_document(document)
                for document in self._quotations.values()
                if workshop_id in document.get("target_workshop_ids", [])
            ]

    # --- Notifications -------------------------------------------------------

    def _notification_documents(self, notifications: Iterable[Notification]) -> List[documents.Document]:
        """Documents for the notifications not stored yet; caller holds the lock."""
        pending: Dict[str, documents.Document] = {}
        for notification in notifications:
            if notification.id not in self._notifications:
                pending[notification.id] = documents.notification_to_document(notification)
        return list(pending.values())

    def list_notifications(self, user_id: str) -> List[Notification]:
        with self._locked():
            return [
                documents.notification_from_document(document)
                for document in self._notifications.values()
                if document["user_id"] == user_id
            ]
