"""
Application service for the quotation bidding protocol.

Every write follows the same path: read the quotation, run one aggregate
method, then save it conditioned on the version that was read. A lost race
surfaces as ``ConflictError``; the service never retries on its own, since a
blind retry could break the single-winner invariant.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, TypeVar, Union

import pendulum
from pendulum import DateTime

from ..config import AppConfig
from ..domain.exceptions import ConflictError, ValidationError
from ..domain.models import Vehicle, Workshop
from ..domain.notifications import (
    Notification,
    bid_result_notifications,
    quote_declined_notification,
)
from ..domain.quotation import Quotation, parse_amount, validate_bid_duration

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BiddingStoreProtocol(Protocol):
    """Store behaviour needed by the bidding service."""

    def get_workshop(self, workshop_id: str) -> Workshop:
        """Return the workshop or raise ``NotFoundError``."""

    def create_quotation(self, quotation: Quotation) -> Quotation:
        """Insert a new quotation and return the stored copy."""

    def get_quotation(self, quotation_id: str) -> Quotation:
        """Return the quotation or raise ``NotFoundError``."""

    def save_quotation(
        self,
        quotation: Quotation,
        expected_version: int,
        notifications: Iterable[Notification] = (),
    ) -> Quotation:
        """
        Write the quotation and its notifications together if the stored
        version matches, else raise ``ConflictError``.
        """

    def list_quotations_for_workshop(self, workshop_id: str) -> List[Quotation]:
        """Return every quotation that targets the workshop."""

    def list_notifications(self, user_id: str) -> List[Notification]:
        """Return the notifications addressed to ``user_id``."""


class BiddingService:
    """Creates quotations and resolves the workshops' competing quotes."""

    def __init__(
        self,
        store: BiddingStoreProtocol,
        config: Optional[AppConfig] = None,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._store = store
        self._config = config or AppConfig()
        self._clock = clock or (lambda: pendulum.now(self._config.timezone))

    def create_quotation(
        self,
        customer_id: str,
        vehicle: Vehicle,
        target_workshop_ids: Sequence[str],
        requested_services: Optional[Sequence[str]] = None,
        car_id: Optional[str] = None,
        description: Optional[str] = None,
        expires_at: Optional[DateTime] = None,
    ) -> Quotation:
        """
        Open a new quotation request to a set of workshops.

        Expiry defaults to ``quotation.default_expiry_days`` from now.
        """
        if not customer_id:
            raise ValidationError("customer_id is required")
        if not target_workshop_ids:
            raise ValidationError("At least one target workshop is required")

        now = self._clock()
        if expires_at is None and self._config.quotation.default_expiry_days:
            expires_at = now.add(days=self._config.quotation.default_expiry_days)
        if expires_at is not None and expires_at <= now:
            raise ValidationError("expires_at must be in the future")

        for workshop_id in target_workshop_ids:
            self._store.get_workshop(workshop_id)

        quotation = Quotation(
            id=uuid.uuid4().hex,
            customer_id=customer_id,
            car_id=car_id,
            vehicle=vehicle,
            requested_services=list(requested_services or []),
            description=description,
            target_workshop_ids=list(target_workshop_ids),
            created_at=now,
            updated_at=now,
            expires_at=expires_at,
        )
        created = self._store.create_quotation(quotation)
        logger.info(
            "Quotation %s opened by %s for %d workshop(s)",
            created.id,
            customer_id,
            len(created.target_workshop_ids),
        )
        return created

    def get_quotation(self, quotation_id: str) -> Quotation:
        """Return the quotation, persisting a due expiry first."""
        quotation = self._store.get_quotation(quotation_id)
        return self._expire(quotation, self._clock())

    def view_quotation(self, quotation_id: str, workshop_id: str) -> Quotation:
        """Record that an invited workshop opened the quotation."""
        quotation, _ = self._mutate(
            quotation_id,
            lambda quotation, now: quotation.mark_viewed(workshop_id, now),
            changed=bool,
        )
        return quotation

    def submit_quote(
        self,
        quotation_id: str,
        workshop_id: str,
        amount: Union[Decimal, int, float, str],
        duration: float,
        currency: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Quotation:
        """
        Create or update the workshop's quote.

        Raises:
            ValidationError: If amount or duration is not positive
            ForbiddenError: If the workshop is not targeted by the quotation
            ConflictError: If the quotation is finalized, expired, or changed concurrently
            InvalidStateError: If the workshop's quote was already resolved
        """
        parse_amount(amount)
        validate_bid_duration(duration)
        workshop = self._store.get_workshop(workshop_id)

        quotation, quote = self._mutate(
            quotation_id,
            lambda quotation, now: quotation.submit_quote(
                workshop_id,
                amount,
                duration,
                now,
                currency=currency or self._config.currency,
                workshop_name=workshop.name,
                notes=notes,
            ),
        )
        logger.info(
            "Workshop %s quoted %s %s on quotation %s",
            workshop_id,
            quote.currency,
            quote.total_amount,
            quotation_id,
        )
        return quotation

    def accept_quote(self, quotation_id: str, quote_id: str, caller_id: str) -> Quotation:
        """
        Accept one quote; every other submitted quote is declined in the same write.

        Raises:
            ForbiddenError: If the caller does not own the quotation
            ConflictError: If the quotation is finalized or was changed concurrently
            NotFoundError: If the quote does not exist
            InvalidStateError: If the quote is not submitted
        """
        quotation, outcome = self._mutate(
            quotation_id,
            lambda quotation, now: quotation.accept_quote(quote_id, caller_id, now),
            notify=bid_result_notifications,
        )
        logger.info(
            "Quotation %s: accepted %s, declined %d competing quote(s)",
            quotation_id,
            outcome.winner.id,
            len(outcome.declined),
        )
        return quotation

    def decline_quote(
        self,
        quotation_id: str,
        quote_id: str,
        caller_id: str,
        reason: Optional[str] = None,
    ) -> Quotation:
        quotation, _ = self._mutate(
            quotation_id,
            lambda quotation, now: quotation.decline_quote(quote_id, caller_id, now, reason),
            notify=lambda quotation, quote, now: [quote_declined_notification(quotation, quote, now)],
        )
        return quotation

    def list_open_for_workshop(self, workshop_id: str) -> List[Quotation]:
        """Quotations the workshop may still bid on, oldest first."""
        now = self._clock()
        open_quotations = [
            quotation
            for quotation in self._store.list_quotations_for_workshop(workshop_id)
            if not quotation.is_finalized(now)
        ]
        return sorted(open_quotations, key=lambda quotation: quotation.created_at)

    def competition_summary(self, quotation_id: str, workshop_id: str) -> Dict[str, object]:
        return self.get_quotation(quotation_id).competition_summary(workshop_id)

    def list_notifications(self, user_id: str) -> List[Notification]:
        return sorted(
            self._store.list_notifications(user_id),
            key=lambda notification: notification.created_at,
        )

    def _mutate(
        self,
        quotation_id: str,
        operation: Callable[[Quotation, DateTime], T],
        notify: Optional[Callable[[Quotation, T, DateTime], List[Notification]]] = None,
        changed: Callable[[T], bool] = lambda result: True,
    ) -> Tuple[Quotation, T]:
        """
        Run ``operation`` on a fresh copy and save it with compare-and-swap.

        Notifications built by ``notify`` go into the same write. Nothing is
        written when ``changed`` reports that the operation was a no-op.

        Returns the stored quotation and whatever ``operation`` returned.
        """
        now = self._clock()
        quotation = self._expire(self._store.get_quotation(quotation_id), now)
        expected_version = quotation.version

        result = operation(quotation, now)
        if not changed(result):
            return quotation, result

        notifications = notify(quotation, result, now) if notify is not None else []
        saved = self._store.save_quotation(
            quotation,
            expected_version=expected_version,
            notifications=notifications,
        )
        return saved, result

    def _expire(self, quotation: Quotation, now: DateTime) -> Quotation:
        """Persist a due expiry; if another writer got there first, return its copy."""
        expected_version = quotation.version
        if not quotation.expire_if_due(now):
            return quotation
        try:
            return self._store.save_quotation(quotation, expected_version=expected_version)
        except ConflictError:
            logger.debug("Quotation %s changed while expiring, re-reading", quotation.id)
            return self._store.get_quotation(quotation.id)
