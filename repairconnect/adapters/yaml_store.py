"""
YAML-file-backed store used by the command line.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from . import documents
from .memory_store import InMemoryStore

logger = logging.getLogger(__name__)


class YamlFileStore(InMemoryStore):
    """
    ``InMemoryStore`` persisted to a single YAML file.

    The file is read once on construction and rewritten after every
    committed write. Layout::

        workshops:     [workshop documents]
        settings:      [settings documents]
        quotations:    [quotation documents]
        appointments:  [appointment documents]
        notifications: [notification documents]
    """

    def __init__(self, path: Path, timeout_seconds: float = 5.0):
        super().__init__(timeout_seconds=timeout_seconds)
        self.path = Path(path)
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Data file must contain a mapping at the root level.")

        # Round-trip every document through the domain mapping so bad data fails early
        for document in data.get("workshops") or []:
            workshop = documents.workshop_from_document(document)
            self._workshops[workshop.id] = documents.workshop_to_document(workshop)
        for document in data.get("settings") or []:
            settings = documents.settings_from_document(document)
            self._settings[settings.workshop_id] = documents.settings_to_document(settings)
        for document in data.get("quotations") or []:
            quotation = documents.quotation_from_document(document)
            self._quotations[quotation.id] = documents.quotation_to_document(quotation)
        for document in data.get("appointments") or []:
            appointment = documents.appointment_from_document(document)
            self._appointments.setdefault(appointment.workshop_id, []).append(
                documents.appointment_to_document(appointment)
            )
        for document in data.get("notifications") or []:
            notification = documents.notification_from_document(document)
            self._notifications[notification.id] = documents.notification_to_document(notification)

        logger.debug(
            "Loaded %d workshop(s) and %d quotation(s) from %s",
            len(self._workshops),
            len(self._quotations),
            self.path,
        )

    def _snapshot(self) -> Dict[str, Any]:
        return {
            "workshops": list(self._workshops.values()),
            "settings": list(self._settings.values()),
            "quotations": list(self._quotations.values()),
            "appointments": [
                document
                for workshop_appointments in self._appointments.values()
                for document in workshop_appointments
            ],
            "notifications": list(self._notifications.values()),
        }

    def _committed(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self._snapshot(), f, sort_keys=False, allow_unicode=True)
        tmp_path.replace(self.path)
