"""
Second-pair eligibility and discount rates.

A customer who completed an eyeglasses quote can buy a second pair at a
discount: 50% the same day, 30% within the follow-up window, or a
manager-set percentage. Only one second pair per original quote.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel

from optical_quote.config import Settings, get_settings
from optical_quote.models.enums import QuoteStatus, SecondPairDiscountType
from optical_quote.models.state import Quote

logger = logging.getLogger(__name__)


class SecondPairEligibility(BaseModel):
    eligible: bool
    reason: str = ""
    original_quote_id: Optional[str] = None
    discount_type: Optional[SecondPairDiscountType] = None
    discount_percent: Decimal = Decimal("0")
    days_remaining: int = 0


def discount_percent_for(
    discount_type: SecondPairDiscountType,
    settings: Optional[Settings] = None,
    override_percent: Optional[Decimal] = None,
) -> Decimal:
    settings = settings or get_settings()
    if discount_type == SecondPairDiscountType.SAME_DAY_50:
        return settings.second_pair_same_day_percent
    if discount_type == SecondPairDiscountType.THIRTY_DAY_30:
        return settings.second_pair_window_percent
    if override_percent is None:
        raise ValueError("MANAGER_OVERRIDE requires an explicit discount percent")
    if not Decimal("0") <= override_percent <= Decimal("100"):
        raise ValueError(f"Override percent must be between 0 and 100, got {override_percent}")
    return override_percent


def completed_at(quote: Quote) -> Optional[datetime]:
    for record in reversed(quote.history):
        if record.to_status == QuoteStatus.COMPLETED:
            return record.at
    return None


def check_eligibility(
    customer_id: str,
    completed_quotes: Iterable[Quote],
    now: datetime,
    settings: Optional[Settings] = None,
) -> SecondPairEligibility:
    """Most recent completed eyeglasses purchase decides eligibility."""
    settings = settings or get_settings()

    candidates = [
        (completed_at(q), q)
        for q in completed_quotes
        if q.patient.customer_id == customer_id
        and q.status == QuoteStatus.COMPLETED
        and q.eyeglasses.frame is not None
    ]
    candidates = [(at, q) for at, q in candidates if at is not None]
    if not candidates:
        return SecondPairEligibility(eligible=False, reason="no completed eyeglasses purchase")

    at, original = max(candidates, key=lambda pair: pair[0])
    if original.eyeglasses.second_pair is not None:
        return SecondPairEligibility(
            eligible=False,
            reason="second pair already purchased on this order",
            original_quote_id=original.quote_id,
        )

    elapsed_days = (now - at).days
    if at.date() == now.date():
        return SecondPairEligibility(
            eligible=True,
            original_quote_id=original.quote_id,
            discount_type=SecondPairDiscountType.SAME_DAY_50,
            discount_percent=settings.second_pair_same_day_percent,
            days_remaining=settings.second_pair_window_days,
        )
    if elapsed_days <= settings.second_pair_window_days:
        return SecondPairEligibility(
            eligible=True,
            original_quote_id=original.quote_id,
            discount_type=SecondPairDiscountType.THIRTY_DAY_30,
            discount_percent=settings.second_pair_window_percent,
            days_remaining=settings.second_pair_window_days - elapsed_days,
        )

    logger.debug(f"{customer_id}: original {original.quote_id} completed {elapsed_days} days ago")
    return SecondPairEligibility(
        eligible=False,
        reason=f"window of {settings.second_pair_window_days} days has passed",
        original_quote_id=original.quote_id,
    )
