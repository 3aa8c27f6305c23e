"""
Domain-specific exception hierarchy for repairconnect.

Unavailability of a slot is an expected outcome and is reported through
``SlotCheck`` values; the exceptions below are reserved for requests that
cannot be carried out at all.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class RepairConnectError(Exception):
    """Base class for all application-level errors."""

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})


class ValidationError(RepairConnectError, ValueError):
    """Raised for malformed input, before any store access."""


class ForbiddenError(RepairConnectError):
    """Raised when the caller has no rights over the entity."""


class NotFoundError(RepairConnectError):
    """Raised when a quotation, quote, workshop or settings document is missing."""


class ConflictError(RepairConnectError):
    """
    Raised when the entity was finalized or changed underneath the caller.

    ``context`` carries the state observed at failure time (status, version)
    so callers can re-fetch and decide whether to try again.
    """


class InvalidStateError(RepairConnectError):
    """Raised when a quote or appointment is not in a status that allows the transition."""


class TransientError(RepairConnectError):
    """Raised when the store timed out or was unavailable; safe to retry."""
