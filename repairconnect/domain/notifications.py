"""
Notification records emitted when a bid is resolved.

Building the records is pure; persisting them is the service's job, done
once, right after the transition that caused them was committed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List

from pendulum import DateTime

from .quotation import AcceptOutcome, Quotation, Quote


class NotificationType(str, Enum):
    QUOTATION_WON = "quotation_won"
    QUOTATION_LOST = "quotation_lost"
    QUOTE_DECLINED = "quote_declined"


@dataclass
class Notification:
    """A message for one workshop."""
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    created_at: DateTime
    data: Dict[str, Any] = field(default_factory=dict)
    read: bool = False


def notification_id(quotation: Quotation, quote: Quote, kind: NotificationType) -> str:
    """Deterministic id: one notification per quotation, quote and type."""
    return f"{quotation.id}:{quote.id}:{kind.value}"


def _money(amount: Decimal) -> str:
    return f"{amount:.2f}"


def _winner_name(quote: Quote) -> str:
    return quote.workshop_name or quote.workshop_id


def won_notification(quotation: Quotation, winner: Quote, now: DateTime) -> Notification:
    vehicle = quotation.vehicle
    return Notification(
        id=notification_id(quotation, winner, NotificationType.QUOTATION_WON),
        user_id=winner.workshop_id,
        type=NotificationType.QUOTATION_WON,
        title="Congratulations! Your Quote Was Accepted",
        message=(
            f"Your quote of {winner.currency} {_money(winner.total_amount)} for "
            f"{vehicle.summary} has been accepted by the customer."
        ),
        created_at=now,
        data={
            "quotation_id": quotation.id,
            "quote_id": winner.id,
            "quotation_title": vehicle.title,
            "winning_amount": winner.total_amount,
            "currency": winner.currency,
            "customer_id": quotation.customer_id,
            "estimated_duration": winner.estimated_duration,
        },
    )


def lost_notification(
    quotation: Quotation,
    quote: Quote,
    winner: Quote,
    now: DateTime,
) -> Notification:
    vehicle = quotation.vehicle
    return Notification(
        id=notification_id(quotation, quote, NotificationType.QUOTATION_LOST),
        user_id=quote.workshop_id,
        type=NotificationType.QUOTATION_LOST,
        title="Quote Not Selected",
        message=(
            f"Unfortunately, your quote was not selected for {vehicle.summary}. "
            f"The winning quote was {winner.currency} {_money(winner.total_amount)} "
            f"by {_winner_name(winner)}."
        ),
        created_at=now,
        data={
            "quotation_id": quotation.id,
            "quote_id": quote.id,
            "quotation_title": vehicle.title,
            "your_quote_amount": quote.total_amount,
            "winning_amount": winner.total_amount,
            "winning_workshop": _winner_name(winner),
            "currency": winner.currency,
            "price_difference": quote.total_amount - winner.total_amount,
        },
    )


def bid_result_notifications(
    quotation: Quotation,
    outcome: AcceptOutcome,
    now: DateTime,
) -> List[Notification]:
    """
    One ``quotation_won`` record for the winner and one ``quotation_lost``
    per competitor closed out by the same accept.
    """
    notifications = [won_notification(quotation, outcome.winner, now)]
    notifications.extend(
        lost_notification(quotation, quote, outcome.winner, now)
        for quote in outcome.declined
    )
    return notifications


def quote_declined_notification(quotation: Quotation, quote: Quote, now: DateTime) -> Notification:
    """Record for a quote the customer declined on its own."""
    vehicle = quotation.vehicle
    message = f"Your quote for {vehicle.summary} was declined by the customer."
    if quote.decline_reason:
        message += f" Reason: {quote.decline_reason}"

    return Notification(
        id=notification_id(quotation, quote, NotificationType.QUOTE_DECLINED),
        user_id=quote.workshop_id,
        type=NotificationType.QUOTE_DECLINED,
        title="Quote Declined",
        message=message,
        created_at=now,
        data={
            "quotation_id": quotation.id,
            "quote_id": quote.id,
            "quotation_title": vehicle.title,
            "your_quote_amount": quote.total_amount,
            "currency": quote.currency,
            "reason": quote.decline_reason,
        },
    )
