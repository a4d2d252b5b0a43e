"""
Tests: second-pair eligibility and discount rates.

Run with:
    pytest optical_quote/tests/test_second_pair.py -v
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from optical_quote.models.enums import QuoteStatus, SecondPairDiscountType
from optical_quote.models.schemas import EyeglassesLayer, PatientInfo, SecondPairSelection, TransitionRecord
from optical_quote.models.state import Quote
from optical_quote.services.second_pair import check_eligibility, discount_percent_for
from optical_quote.tests.conftest import T0, frame, single_vision


def _completed(quote_id: str, customer_id: str = "C-1", completed_at=T0, second_pair=None) -> Quote:
    return Quote(
        quote_id=quote_id,
        status=QuoteStatus.COMPLETED,
        patient=PatientInfo(customer_id=customer_id),
        eyeglasses=EyeglassesLayer(frame=frame(180_00), lens=single_vision(), second_pair=second_pair),
        history=[
            TransitionRecord(from_status=QuoteStatus.SIGNED, to_status=QuoteStatus.COMPLETED, at=completed_at)
        ],
    )


class TestEligibility:
    def test_same_day_gets_fifty_percent(self):
        result = check_eligibility("C-1", [_completed("Q-1")], T0 + timedelta(hours=6))
        assert result.eligible
        assert result.discount_type == SecondPairDiscountType.SAME_DAY_50
        assert result.discount_percent == 50

    def test_within_window_gets_thirty_percent(self):
        result = check_eligibility("C-1", [_completed("Q-1")], T0 + timedelta(days=10))
        assert result.eligible
        assert result.discount_type == SecondPairDiscountType.THIRTY_DAY_30
        assert result.discount_percent == 30
        assert result.days_remaining == 20

    def test_after_window_not_eligible(self):
        result = check_eligibility("C-1", [_completed("Q-1")], T0 + timedelta(days=31))
        assert not result.eligible
        assert result.original_quote_id == "Q-1"

    def test_only_one_second_pair_per_order(self):
        original = _completed("Q-1", second_pair=SecondPairSelection(frame=frame(95_00)))
        result = check_eligibility("C-1", [original], T0)
        assert not result.eligible
        assert "already" in result.reason

    def test_other_customers_ignored(self):
        result = check_eligibility("C-2", [_completed("Q-1", customer_id="C-1")], T0)
        assert not result.eligible

    def test_most_recent_purchase_wins(self):
        older = _completed("Q-OLD", completed_at=T0 - timedelta(days=60))
        newer = _completed("Q-NEW", completed_at=T0 - timedelta(days=5))
        result = check_eligibility("C-1", [older, newer], T0)
        assert result.original_quote_id == "Q-NEW"
        assert result.eligible


class TestDiscountPercent:
    def test_configured_rates(self):
        assert discount_percent_for(SecondPairDiscountType.SAME_DAY_50) == Decimal("50")
        assert discount_percent_for(SecondPairDiscountType.THIRTY_DAY_30) == Decimal("30")

    def test_manager_override_requires_percent(self):
        with pytest.raises(ValueError):
            discount_percent_for(SecondPairDiscountType.MANAGER_OVERRIDE)
        assert discount_percent_for(SecondPairDiscountType.MANAGER_OVERRIDE, override_percent=Decimal("40")) == 40

    def test_manager_override_bounded(self):
        with pytest.raises(ValueError):
            discount_percent_for(SecondPairDiscountType.MANAGER_OVERRIDE, override_percent=Decimal("120"))
