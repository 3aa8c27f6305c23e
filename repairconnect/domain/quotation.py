"""
Quotation aggregate: one customer request, many competing workshop quotes.

Every quote transition goes through the aggregate so the single-winner
invariant can be checked in one place:

    pending -> submitted -> accepted
                         -> declined

A submitted quote may be re-submitted (updated) by its workshop; accepted
and declined quotes are terminal. Once a quote is accepted the quotation is
``accepted`` and no further bids are taken.

Usage:
    outcome = quotation.accept_quote(quote_id, caller_id=customer_id, now=now)
    assert quotation.status == QuotationStatus.ACCEPTED
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Union

import pendulum
from pendulum import DateTime

from .exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from .models import Vehicle

logger = logging.getLogger(__name__)

ANOTHER_QUOTE_ACCEPTED = "Customer accepted another quote"


class QuotationStatus(str, Enum):
    """Lifecycle of a customer's quotation request."""
    PENDING = "pending"
    OPEN = "open"
    VIEWED = "viewed"
    QUOTED = "quoted"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class QuoteStatus(str, Enum):
    """Lifecycle of a single workshop bid."""
    PENDING = "pending"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    DECLINED = "declined"


# Quotations in these statuses take no more bids, views or decisions.
FINAL_STATUSES: FrozenSet[QuotationStatus] = frozenset(
    {
        QuotationStatus.ACCEPTED,
        QuotationStatus.DECLINED,
        QuotationStatus.EXPIRED,
        QuotationStatus.COMPLETED,
        QuotationStatus.CANCELLED,
    }
)

# Statuses from which a first bid moves the quotation to ``quoted``.
BIDDABLE_STATUSES: FrozenSet[QuotationStatus] = frozenset(
    {QuotationStatus.PENDING, QuotationStatus.OPEN, QuotationStatus.VIEWED}
)

QUOTE_TRANSITIONS: Dict[QuoteStatus, FrozenSet[QuoteStatus]] = {
    QuoteStatus.PENDING: frozenset({QuoteStatus.SUBMITTED}),
    QuoteStatus.SUBMITTED: frozenset(
        {QuoteStatus.SUBMITTED, QuoteStatus.ACCEPTED, QuoteStatus.DECLINED}
    ),
    QuoteStatus.ACCEPTED: frozenset(),
    QuoteStatus.DECLINED: frozenset(),
}


def parse_amount(amount: Union[Decimal, int, float, str]) -> Decimal:
    """
    Coerce a bid amount to a positive ``Decimal``.

    Raises:
        ValidationError: If the amount is not a positive, finite number
    """
    if isinstance(amount, bool):
        raise ValidationError(f"Invalid amount: {amount!r}")
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid amount: {amount!r}") from exc

    if not value.is_finite() or value <= 0:
        raise ValidationError("Quote amount must be greater than zero", context={"amount": str(amount)})
    return value


def validate_bid_duration(hours: Union[int, float]) -> float:
    """Ensure an estimated job duration (hours) is a positive number."""
    if isinstance(hours, bool) or not isinstance(hours, (int, float)) or hours <= 0:
        raise ValidationError(
            "Estimated duration must be greater than zero",
            context={"estimated_duration": hours},
        )
    return float(hours)


@dataclass
class Quote:
    """A workshop's bid on a quotation."""
    id: str
    workshop_id: str
    total_amount: Decimal
    estimated_duration: float  # hours
    currency: str = "AED"
    workshop_name: Optional[str] = None
    status: QuoteStatus = QuoteStatus.PENDING
    notes: Optional[str] = None
    submitted_at: Optional[DateTime] = None
    updated_at: Optional[DateTime] = None
    accepted_at: Optional[DateTime] = None
    declined_at: Optional[DateTime] = None
    decline_reason: Optional[str] = None

    @property
    def is_live(self) -> bool:
        """True when the quote is a submitted bid or the winning bid."""
        return self.status in (QuoteStatus.SUBMITTED, QuoteStatus.ACCEPTED)

    def transition(self, target: QuoteStatus) -> None:
        """
        Move the quote to ``target``.

        Raises:
            InvalidStateError: If the transition is not allowed from the current status
        """
        allowed = QUOTE_TRANSITIONS[self.status]
        if target not in allowed:
            raise InvalidStateError(
                f"Quote {self.id} cannot move from {self.status.value} to {target.value}",
                context={"quote_id": self.id, "status": self.status.value},
            )
        logger.debug("Quote %s: %s -> %s", self.id, self.status.value, target.value)
        self.status = target


@dataclass
class AcceptOutcome:
    """Result of accepting a quote: the winner and every bid it closed out."""
    winner: Quote
    declined: List[Quote] = field(default_factory=list)


@dataclass
class Quotation:
    """
    A customer's request for repair quotes, sent to a set of workshops.

    ``version`` is owned by the store: it is bumped on every committed write
    and used for compare-and-swap.
    """
    id: str
    customer_id: str
    vehicle: Vehicle
    target_workshop_ids: List[str]
    car_id: Optional[str] = None
    requested_services: List[str] = field(default_factory=list)
    description: Optional[str] = None
    quotes: List[Quote] = field(default_factory=list)
    status: QuotationStatus = QuotationStatus.PENDING
    created_at: DateTime = field(default_factory=lambda: pendulum.now("UTC"))
    updated_at: DateTime = field(default_factory=lambda: pendulum.now("UTC"))
    expires_at: Optional[DateTime] = None
    accepted_quote_id: Optional[str] = None
    accepted_at: Optional[DateTime] = None
    view_count: int = 0
    response_count: int = 0
    version: int = 0

    def __post_init__(self):
        # Targets behave as an ordered set
        self.target_workshop_ids = list(dict.fromkeys(self.target_workshop_ids))

    # --- Queries -----------------------------------------------------------

    def is_expired(self, now: DateTime) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def is_finalized(self, now: Optional[DateTime] = None) -> bool:
        """True when the quotation no longer takes bids or decisions."""
        if self.status in FINAL_STATUSES:
            return True
        return now is not None and self.is_expired(now)

    def is_targeted(self, workshop_id: str) -> bool:
        return workshop_id in self.target_workshop_ids

    def find_quote(self, quote_id: str) -> Quote:
        """
        Raises:
            NotFoundError: If no quote with ``quote_id`` exists
        """
        for quote in self.quotes:
            if quote.id == quote_id:
                return quote
        raise NotFoundError(
            f"Quote {quote_id} not found on quotation {self.id}",
            context={"quotation_id": self.id, "quote_id": quote_id},
        )

    def quote_for_workshop(self, workshop_id: str) -> Optional[Quote]:
        for quote in self.quotes:
            if quote.workshop_id == workshop_id:
                return quote
        return None

    @property
    def accepted_quote(self) -> Optional[Quote]:
        if self.accepted_quote_id is None:
            return None
        return self.find_quote(self.accepted_quote_id)

    def summary(self) -> Dict[str, object]:
        """Counts per quote status plus price statistics over live bids."""
        counts = {status.value: 0 for status in QuoteStatus}
        for quote in self.quotes:
            counts[quote.status.value] += 1

        amounts = [quote.total_amount for quote in self.quotes if quote.is_live]
        return {
            "quotation_id": self.id,
            "status": self.status.value,
            "total_quotes": len(self.quotes),
            "by_status": counts,
            "lowest_amount": min(amounts) if amounts else None,
            "highest_amount": max(amounts) if amounts else None,
            "average_amount": (sum(amounts) / len(amounts)) if amounts else None,
            "accepted_quote_id": self.accepted_quote_id,
        }

    def competition_summary(self, workshop_id: str) -> Dict[str, object]:
        """
        How a workshop's bid compares to the competition.

        Competitors' identities and amounts are not disclosed, only the
        field size, the lowest price and the workshop's rank (1 = cheapest).
        """
        if not self.is_targeted(workshop_id):
            raise ForbiddenError(
                f"Workshop {workshop_id} is not invited to quotation {self.id}",
                context={"quotation_id": self.id, "workshop_id": workshop_id},
            )

        live = sorted(
            (quote for quote in self.quotes if quote.is_live),
            key=lambda quote: quote.total_amount,
        )
        own = self.quote_for_workshop(workshop_id)
        rank = None
        if own is not None and own.is_live:
            rank = 1 + sum(1 for quote in live if quote.total_amount < own.total_amount)

        return {
            "quotation_id": self.id,
            "total_quotes": len(live),
            "lowest_amount": live[0].total_amount if live else None,
            "your_amount": own.total_amount if own is not None else None,
            "your_rank": rank,
            "your_status": own.status.value if own is not None else None,
        }

    # --- Guards ------------------------------------------------------------

    def _ensure_open(self, now: DateTime) -> None:
        if self.is_finalized(now):
            status = QuotationStatus.EXPIRED if self.is_expired(now) else self.status
            raise ConflictError(
                f"Quotation {self.id} is already {status.value}",
                context={"quotation_id": self.id, "status": status.value, "version": self.version},
            )

    def _ensure_targeted(self, workshop_id: str) -> None:
        if not self.is_targeted(workshop_id):
            raise ForbiddenError(
                f"Workshop {workshop_id} is not invited to quotation {self.id}",
                context={"quotation_id": self.id, "workshop_id": workshop_id},
            )

    def _ensure_owner(self, caller_id: str) -> None:
        if caller_id != self.customer_id:
            raise ForbiddenError(
                f"Only the owning customer may decide on quotation {self.id}",
                context={"quotation_id": self.id, "caller_id": caller_id},
            )

    # --- Transitions -------------------------------------------------------

    def mark_viewed(self, workshop_id: str, now: DateTime) -> bool:
        """
        Record a view by an invited workshop.

        Returns True if the quotation changed.
        """
        self._ensure_targeted(workshop_id)
        if self.is_finalized(now):
            return False

        self.view_count += 1
        if self.status in (QuotationStatus.PENDING, QuotationStatus.OPEN):
            self.status = QuotationStatus.VIEWED
        self.updated_at = now
        return True

    def submit_quote(
        self,
        workshop_id: str,
        amount: Union[Decimal, int, float, str],
        estimated_duration: Union[int, float],
        now: DateTime,
        currency: str = "AED",
        workshop_name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Quote:
        """
        Create or update the calling workshop's quote.

        Re-submitting updates the existing entry instead of adding a second one.

        Raises:
            ValidationError: If amount or duration is not positive
            ForbiddenError: If the workshop is not targeted
            ConflictError: If the quotation is finalized or expired
            InvalidStateError: If the workshop's quote was already accepted or declined
        """
        total_amount = parse_amount(amount)
        duration = validate_bid_duration(estimated_duration)
        self._ensure_targeted(workshop_id)
        self._ensure_open(now)

        quote = self.quote_for_workshop(workshop_id)
        if quote is None:
            quote = Quote(
                id=f"{self.id}-q{len(self.quotes) + 1}",
                workshop_id=workshop_id,
                total_amount=total_amount,
                estimated_duration=duration,
                currency=currency,
                workshop_name=workshop_name,
            )
            quote.transition(QuoteStatus.SUBMITTED)
            quote.submitted_at = now
            self.quotes.append(quote)
            self.response_count += 1
        else:
            quote.transition(QuoteStatus.SUBMITTED)
            quote.total_amount = total_amount
            quote.estimated_duration = duration
            quote.currency = currency
            if workshop_name is not None:
                quote.workshop_name = workshop_name
            if quote.submitted_at is None:
                quote.submitted_at = now

        if notes is not None:
            quote.notes = notes
        quote.updated_at = now

        if self.status in BIDDABLE_STATUSES:
            self.status = QuotationStatus.QUOTED
        self.updated_at = now
        return quote

    def accept_quote(self, quote_id: str, caller_id: str, now: DateTime) -> AcceptOutcome:
        """
        Accept one quote and close out every competing submitted quote.

        Raises:
            ForbiddenError: If the caller is not the owning customer
            ConflictError: If the quotation is already finalized or expired
            NotFoundError: If the quote does not exist
            InvalidStateError: If the quote is not submitted
        """
        self._ensure_owner(caller_id)
        self._ensure_open(now)
        winner = self.find_quote(quote_id)
        if winner.status != QuoteStatus.SUBMITTED:
            raise InvalidStateError(
                f"Quote {quote_id} is {winner.status.value} and cannot be accepted",
                context={"quote_id": quote_id, "status": winner.status.value},
            )

        winner.transition(QuoteStatus.ACCEPTED)
        winner.accepted_at = now
        winner.updated_at = now

        declined: List[Quote] = []
        for quote in self.quotes:
            if quote is winner or quote.status != QuoteStatus.SUBMITTED:
                continue
            quote.transition(QuoteStatus.DECLINED)
            quote.declined_at = now
            quote.updated_at = now
            quote.decline_reason = ANOTHER_QUOTE_ACCEPTED
            declined.append(quote)

        self.status = QuotationStatus.ACCEPTED
        self.accepted_quote_id = winner.id
        self.accepted_at = now
        self.updated_at = now

        logger.info(
            "Quotation %s: accepted quote %s from %s, closed out %d competitor(s)",
            self.id,
            winner.id,
            winner.workshop_id,
            len(declined),
        )
        return AcceptOutcome(winner=winner, declined=declined)

    def decline_quote(
        self,
        quote_id: str,
        caller_id: str,
        now: DateTime,
        reason: Optional[str] = None,
    ) -> Quote:
        """
        Decline a single submitted quote.

        The quotation becomes ``declined`` once every quote on it is declined.
        """
        self._ensure_owner(caller_id)
        self._ensure_open(now)
        quote = self.find_quote(quote_id)
        if quote.status != QuoteStatus.SUBMITTED:
            raise InvalidStateError(
                f"Quote {quote_id} is {quote.status.value} and cannot be declined",
                context={"quote_id": quote_id, "status": quote.status.value},
            )

        quote.transition(QuoteStatus.DECLINED)
        quote.declined_at = now
        quote.updated_at = now
        quote.decline_reason = reason

        if self.quotes and all(q.status == QuoteStatus.DECLINED for q in self.quotes):
            self.status = QuotationStatus.DECLINED
            logger.info("Quotation %s: every quote declined", self.id)
        self.updated_at = now
        return quote

    def expire_if_due(self, now: DateTime) -> bool:
        """Move an open quotation past its expiry to ``expired``. Returns True if it changed."""
        if self.status in FINAL_STATUSES or not self.is_expired(now):
            return False
        logger.info("Quotation %s expired at %s", self.id, self.expires_at)
        self.status = QuotationStatus.EXPIRED
        self.updated_at = now
        return True
