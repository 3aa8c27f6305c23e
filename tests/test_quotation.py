"""
Tests for the quotation aggregate.
"""

from decimal import Decimal

import pytest

from repairconnect.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from repairconnect.domain.quotation import QuotationStatus, Quote, QuoteStatus

from tests.conftest import NOW, make_quotation


def _with_bids(*amounts):
    """Quotation with one submitted quote per amount, from w1, w2, w3 in order."""
    quotation = make_quotation()
    for index, amount in enumerate(amounts, start=1):
        quotation.submit_quote(f"w{index}", amount, 3, NOW, workshop_name=f"Workshop {index}")
    return quotation


class TestSubmitQuote:
    """Tests for submitting and re-submitting quotes."""

    def test_first_quote(self):
        quotation = make_quotation()

        quote = quotation.submit_quote("w1", "450.00", 2.5, NOW, workshop_name="Alpha Motors")

        assert quote.status == QuoteStatus.SUBMITTED
        assert quote.total_amount == Decimal("450.00")
        assert quote.estimated_duration == 2.5
        assert quote.submitted_at == NOW
        assert quotation.status == QuotationStatus.QUOTED
        assert quotation.response_count == 1
        assert quotation.quotes == [quote]

    def test_resubmission_updates_existing_quote(self):
        """Test a workshop never ends up with two quotes on the same quotation."""
        quotation = make_quotation()
        first = quotation.submit_quote("w1", 500, 3, NOW)

        second = quotation.submit_quote("w1", 420, 2, NOW.add(hours=1))

        assert second is first
        assert len(quotation.quotes) == 1
        assert first.total_amount == Decimal("420")
        assert first.estimated_duration == 2
        assert first.submitted_at == NOW
        assert first.updated_at == NOW.add(hours=1)
        assert quotation.response_count == 1

    def test_quote_from_viewed_quotation(self):
        quotation = make_quotation()
        quotation.mark_viewed("w1", NOW)

        quotation.submit_quote("w1", 100, 1, NOW)

        assert quotation.status == QuotationStatus.QUOTED

    def test_untargeted_workshop_forbidden(self):
        with pytest.raises(ForbiddenError):
            make_quotation().submit_quote("w9", 100, 1, NOW)

    @pytest.mark.parametrize("amount", [0, -5, "abc", "NaN"])
    def test_invalid_amount(self, amount):
        with pytest.raises(ValidationError):
            make_quotation().submit_quote("w1", amount, 1, NOW)

    @pytest.mark.parametrize("duration", [0, -1])
    def test_invalid_duration(self, duration):
        with pytest.raises(ValidationError):
            make_quotation().submit_quote("w1", 100, duration, NOW)

    def test_quote_after_acceptance_conflicts(self):
        quotation = _with_bids(300, 250)
        quotation.accept_quote(quotation.quotes[0].id, "c1", NOW)

        with pytest.raises(ConflictError) as exc_info:
            quotation.submit_quote("w3", 200, 2, NOW)

        assert exc_info.value.context["status"] == "accepted"

    def test_declined_quote_cannot_be_resubmitted(self):
        quotation = _with_bids(300, 250)
        quotation.decline_quote(quotation.quotes[0].id, "c1", NOW)

        with pytest.raises(InvalidStateError):
            quotation.submit_quote("w1", 280, 2, NOW)


class TestAcceptQuote:
    """Tests for resolving the bidding to a single winner."""

    def test_accept_closes_out_competitors(self):
        quotation = _with_bids(300, 250, 275)
        winner_id = quotation.quotes[1].id

        outcome = quotation.accept_quote(winner_id, "c1", NOW)

        assert outcome.winner.id == winner_id
        assert outcome.winner.status == QuoteStatus.ACCEPTED
        assert outcome.winner.accepted_at == NOW
        assert {quote.workshop_id for quote in outcome.declined} == {"w1", "w3"}
        for quote in outcome.declined:
            assert quote.status == QuoteStatus.DECLINED
            assert quote.decline_reason == "Customer accepted another quote"
            assert quote.declined_at == NOW
        assert quotation.status == QuotationStatus.ACCEPTED
        assert quotation.accepted_quote_id == winner_id
        assert quotation.accepted_quote is outcome.winner

    def test_exactly_one_accepted_quote(self):
        quotation = _with_bids(300, 250, 275)
        quotation.accept_quote(quotation.quotes[0].id, "c1", NOW)

        accepted = [quote for quote in quotation.quotes if quote.status == QuoteStatus.ACCEPTED]
        assert len(accepted) == 1

    def test_previously_declined_quote_not_in_outcome(self):
        """Test only quotes closed out by this accept are reported."""
        quotation = _with_bids(300, 250, 275)
        quotation.decline_quote(quotation.quotes[0].id, "c1", NOW, reason="Too expensive")

        outcome = quotation.accept_quote(quotation.quotes[1].id, "c1", NOW)

        assert [quote.workshop_id for quote in outcome.declined] == ["w3"]
        assert quotation.quotes[0].decline_reason == "Too expensive"

    def test_only_owner_may_accept(self):
        quotation = _with_bids(300)
        with pytest.raises(ForbiddenError):
            quotation.accept_quote(quotation.quotes[0].id, "someone-else", NOW)

    def test_second_accept_conflicts(self):
        quotation = _with_bids(300, 250)
        quotation.accept_quote(quotation.quotes[0].id, "c1", NOW)

        with pytest.raises(ConflictError):
            quotation.accept_quote(quotation.quotes[1].id, "c1", NOW)

    def test_forbidden_checked_before_conflict(self):
        quotation = _with_bids(300, 250)
        quotation.accept_quote(quotation.quotes[0].id, "c1", NOW)

        with pytest.raises(ForbiddenError):
            quotation.accept_quote(quotation.quotes[1].id, "intruder", NOW)

    def test_unknown_quote(self):
        with pytest.raises(NotFoundError):
            _with_bids(300).accept_quote("missing", "c1", NOW)

    def test_declined_quote_cannot_be_accepted(self):
        quotation = _with_bids(300, 250)
        quotation.decline_quote(quotation.quotes[0].id, "c1", NOW)

        with pytest.raises(InvalidStateError):
            quotation.accept_quote(quotation.quotes[0].id, "c1", NOW)


class TestDeclineQuote:
    """Tests for declining single quotes."""

    def test_decline_one_quote(self):
        quotation = _with_bids(300, 250)

        quote = quotation.decline_quote(quotation.quotes[0].id, "c1", NOW, reason="Too far away")

        assert quote.status == QuoteStatus.DECLINED
        assert quote.decline_reason == "Too far away"
        assert quotation.status == QuotationStatus.QUOTED

    def test_all_declined_declines_quotation(self):
        quotation = _with_bids(300, 250)

        for quote in list(quotation.quotes):
            quotation.decline_quote(quote.id, "c1", NOW)

        assert quotation.status == QuotationStatus.DECLINED
        assert quotation.accepted_quote_id is None

    def test_decline_twice(self):
        quotation = _with_bids(300, 250)
        quotation.decline_quote(quotation.quotes[0].id, "c1", NOW)

        with pytest.raises(InvalidStateError):
            quotation.decline_quote(quotation.quotes[0].id, "c1", NOW)

    def test_only_owner_may_decline(self):
        quotation = _with_bids(300)
        with pytest.raises(ForbiddenError):
            quotation.decline_quote(quotation.quotes[0].id, "w1", NOW)


class TestLifecycle:
    """Tests for viewing, expiry and summaries."""

    def test_mark_viewed(self):
        quotation = make_quotation()

        assert quotation.mark_viewed("w2", NOW)

        assert quotation.status == QuotationStatus.VIEWED
        assert quotation.view_count == 1

    def test_view_does_not_downgrade_quoted(self):
        quotation = _with_bids(300)
        quotation.mark_viewed("w2", NOW)
        assert quotation.status == QuotationStatus.QUOTED

    def test_view_requires_target(self):
        with pytest.raises(ForbiddenError):
            make_quotation().mark_viewed("w9", NOW)

    def test_expire_if_due(self):
        quotation = make_quotation(expires_at=NOW.add(days=7))

        assert not quotation.expire_if_due(NOW.add(days=6))
        assert quotation.expire_if_due(NOW.add(days=7))
        assert quotation.status == QuotationStatus.EXPIRED
        assert not quotation.expire_if_due(NOW.add(days=8))

    def test_expired_quotation_rejects_quotes(self):
        quotation = make_quotation(expires_at=NOW.add(days=1))

        with pytest.raises(ConflictError) as exc_info:
            quotation.submit_quote("w1", 100, 1, NOW.add(days=2))

        assert exc_info.value.context["status"] == "expired"

    def test_accepted_quotation_does_not_expire(self):
        quotation = _with_bids(300)
        quotation.expires_at = NOW.add(days=1)
        quotation.accept_quote(quotation.quotes[0].id, "c1", NOW)

        assert not quotation.expire_if_due(NOW.add(days=2))
        assert quotation.status == QuotationStatus.ACCEPTED

    def test_summary(self):
        quotation = _with_bids(300, 250, 275)

        summary = quotation.summary()

        assert summary["total_quotes"] == 3
        assert summary["by_status"]["submitted"] == 3
        assert summary["lowest_amount"] == Decimal("250")
        assert summary["highest_amount"] == Decimal("300")

    def test_competition_summary(self):
        quotation = _with_bids(300, 250, 275)

        summary = quotation.competition_summary("w3")

        assert summary["total_quotes"] == 3
        assert summary["lowest_amount"] == Decimal("250")
        assert summary["your_amount"] == Decimal("275")
        assert summary["your_rank"] == 2


class TestQuoteTransitions:
    """Tests for the quote state table."""

    def test_terminal_states(self):
        quote = Quote(id="q", workshop_id="w1", total_amount=Decimal("1"), estimated_duration=1)
        quote.transition(QuoteStatus.SUBMITTED)
        quote.transition(QuoteStatus.ACCEPTED)

        with pytest.raises(InvalidStateError):
            quote.transition(QuoteStatus.SUBMITTED)

    def test_pending_cannot_be_accepted(self):
        quote = Quote(id="q", workshop_id="w1", total_amount=Decimal("1"), estimated_duration=1)
        with pytest.raises(InvalidStateError):
            quote.transition(QuoteStatus.ACCEPTED)
