"""
Benefit Allocator — per-category insurance coverage for one quote.

Leaf component: takes a resolved plan plus the priced line items and
reports how much of each benefit category the carrier pays. Pure; never
raises for gaps in the plan, because formularies routinely omit
categories and those are simply uncovered.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from optical_quote.models.enums import BenefitCategory
from optical_quote.models.schemas import BenefitUsage, CategoryBenefit, InsurancePlan, LineItem
from optical_quote.utils.money import ZERO, clamp_non_negative

logger = logging.getLogger(__name__)

COPAY_CATEGORIES = frozenset({BenefitCategory.EXAM})


def allocate(
    plan: InsurancePlan,
    items: Iterable[LineItem],
    prior_usage: Optional[Mapping[BenefitCategory, int]] = None,
) -> list[BenefitUsage]:
    """
    Return one BenefitUsage per category that has an eligible item or a
    plan benefit, in BenefitCategory order.

    `prior_usage` is allowance already consumed this benefit period
    (tracked outside the core); missing categories default to zero.
    """
    prior_usage = prior_usage or {}

    if plan.unmapped_codes:
        logger.warning(
            f"Plan {plan.carrier.value}/{plan.plan_name} has unknown benefit codes "
            f"{list(plan.unmapped_codes)}; treating them as uncovered"
        )

    eligible: dict[BenefitCategory, Decimal] = {}
    item_copays: dict[BenefitCategory, Decimal] = {}
    for item in items:
        if not item.insurance_eligible:
            continue
        benefit = plan.benefit_for(item.category)
        if benefit is not None and not benefit.covers_tier(item.formulary_tier):
            logger.debug(f"{item.item_id}: tier {item.formulary_tier} outside {benefit.category.value} formulary")
            continue
        eligible[item.category] = eligible.get(item.category, ZERO) + item.total_cents
        item_copays[item.category] = item_copays.get(item.category, ZERO) + item.copay_cents

    usages: list[BenefitUsage] = []
    for category in BenefitCategory:
        benefit = plan.benefit_for(category)
        if category not in eligible and benefit is None:
            continue
        usages.append(
            _allocate_category(
                plan,
                category,
                benefit,
                price=eligible.get(category, ZERO),
                extra_copay=item_copays.get(category, ZERO),
                prior=prior_usage.get(category, 0),
            )
        )
    return usages


def _allocate_category(
    plan: InsurancePlan,
    category: BenefitCategory,
    benefit: Optional[CategoryBenefit],
    price: Decimal,
    extra_copay: Decimal,
    prior: int,
) -> BenefitUsage:
    if plan.is_cash_pay or benefit is None:
        if benefit is None and not plan.is_cash_pay and price > ZERO:
            logger.info(f"{plan.carrier.value}/{plan.plan_name}: no {category.value} benefit, uncovered")
        return BenefitUsage(category=category, eligible_cents=price, prior_usage_cents=prior)

    if category in COPAY_CATEGORIES:
        copay = Decimal(benefit.copay_cents) + extra_copay
        coverage = min(clamp_non_negative(price - copay), price)
        return BenefitUsage(
            category=category,
            eligible_cents=price,
            allowance_cents=benefit.allowance_cents,
            prior_usage_cents=prior,
            copay_cents=min(copay, price),
            coverage_cents=coverage,
            in_plan=True,
        )

    available = clamp_non_negative(Decimal(benefit.allowance_cents - prior))
    coverage = min(price, available)
    return BenefitUsage(
        category=category,
        eligible_cents=price,
        allowance_cents=benefit.allowance_cents,
        prior_usage_cents=prior,
        copay_cents=ZERO,
        coverage_cents=coverage,
        remaining_cents=available - coverage,
        in_plan=True,
    )
