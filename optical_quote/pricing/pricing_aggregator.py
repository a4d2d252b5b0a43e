"""
Pricing Aggregator — the single authoritative price for a quote.

compute_pricing() is a pure function of the Quote: no catalog or plan
lookups, no clock, no I/O. Everything it needs (resolved plan, tax rate,
annual-supply rate, line-item prices) is already on the aggregate, so two
calls on an unchanged quote yield identical breakdowns.

Order of operations:
  1. raw subtotal per layer
  2. contacts pre-insurance discounts (annual supply, manufacturer rebate)
  3. Benefit Allocator over the discounted per-category prices
  4. patient responsibility per layer = discounted subtotal - coverage
  5. second pair priced on its own subtotal, never insured
  6. tax on the patient subtotal, grand total
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from optical_quote.models.enums import BenefitCategory, LayerId, WarningCode
from optical_quote.models.schemas import (
    ContactsLayer,
    DiscountApplication,
    EyeglassesLayer,
    LayerPricing,
    LineItem,
    PricingBreakdown,
    PricingWarning,
)
from optical_quote.models.state import Quote
from optical_quote.pricing.benefit_allocator import allocate
from optical_quote.pricing.discounts import contacts_discounts, second_pair_discount, second_pair_subtotal
from optical_quote.utils.money import ZERO, clamp_non_negative

logger = logging.getLogger(__name__)

LAYER_CATEGORIES: dict[LayerId, tuple[BenefitCategory, ...]] = {
    LayerId.EXAM: (BenefitCategory.EXAM,),
    LayerId.EYEGLASSES: (BenefitCategory.FRAME, BenefitCategory.LENS, BenefitCategory.ENHANCEMENT),
    LayerId.CONTACTS: (BenefitCategory.CONTACTS,),
}


def compute_pricing(quote: Quote) -> PricingBreakdown:
    warnings: list[PricingWarning] = []
    plan = quote.insurance.plan

    if quote.insurance.lookup_error:
        warnings.append(
            PricingWarning(
                code=WarningCode.INSURANCE_LOOKUP_FAILED,
                message=f"Insurance unavailable, priced as cash pay: {quote.insurance.lookup_error}",
            )
        )
    for code in plan.unmapped_codes:
        warnings.append(
            PricingWarning(
                code=WarningCode.UNKNOWN_BENEFIT_CATEGORY,
                message=f"{plan.carrier.value} benefit code '{code}' is not recognised; treated as uncovered",
            )
        )

    # ── 1. Raw subtotals ─────────────────────────────────
    exam_items = list(quote.exam.services)
    eyeglasses_items = _eyeglasses_items(quote.eyeglasses, warnings)
    contacts_item = _contacts_item(quote.contacts, warnings)

    raw = {
        LayerId.EXAM: _sum(exam_items),
        LayerId.EYEGLASSES: _sum(eyeglasses_items),
        LayerId.CONTACTS: contacts_item.total_cents if contacts_item else ZERO,
    }

    # ── 2. Contacts pre-insurance discounts ──────────────
    discounts: list[DiscountApplication] = []
    if contacts_item is not None:
        discounts.extend(contacts_discounts(quote.contacts, quote.annual_supply_discount_rate))
    contacts_discount = _sum_discounts(discounts, LayerId.CONTACTS)
    discounted = dict(raw)
    discounted[LayerId.CONTACTS] = clamp_non_negative(raw[LayerId.CONTACTS] - contacts_discount)

    # ── 3. Insurance on discounted prices ────────────────
    allocation_items = exam_items + eyeglasses_items
    if contacts_item is not None:
        allocation_items.append(
            contacts_item.model_copy(update={"unit_price_cents": discounted[LayerId.CONTACTS], "quantity": 1})
        )
    usages = allocate(plan, allocation_items, quote.insurance.prior_usage_cents)
    coverage_by_category = {u.category: u.coverage_cents for u in usages}

    # ── 4. Per-layer responsibility ──────────────────────
    layers: dict[LayerId, LayerPricing] = {}
    for layer_id, categories in LAYER_CATEGORIES.items():
        coverage = min(sum((coverage_by_category.get(c, ZERO) for c in categories), ZERO), discounted[layer_id])
        layers[layer_id] = LayerPricing(
            layer=layer_id,
            raw_subtotal_cents=raw[layer_id],
            discount_cents=raw[layer_id] - discounted[layer_id],
            discounted_subtotal_cents=discounted[layer_id],
            coverage_cents=coverage,
            patient_responsibility_cents=clamp_non_negative(discounted[layer_id] - coverage),
        )

    # ── 5. Second pair ───────────────────────────────────
    second_pair = quote.eyeglasses.second_pair
    if second_pair is not None:
        if second_pair.frame is None:
            warnings.append(
                PricingWarning(
                    code=WarningCode.INCOMPLETE_SELECTION,
                    message="Second pair has no frame selected",
                    layer=LayerId.EYEGLASSES,
                )
            )
        else:
            subtotal = second_pair_subtotal(second_pair)
            applied = second_pair_discount(second_pair)
            amount = clamp_non_negative(subtotal - (applied.amount_cents if applied else ZERO))
            if applied is not None:
                discounts.append(applied)
            eyeglasses = layers[LayerId.EYEGLASSES]
            layers[LayerId.EYEGLASSES] = eyeglasses.model_copy(
                update={
                    "second_pair_cents": amount,
                    "patient_responsibility_cents": eyeglasses.patient_responsibility_cents + amount,
                }
            )

    # ── 6. Totals ────────────────────────────────────────
    patient_subtotal = sum((lp.patient_responsibility_cents for lp in layers.values()), ZERO)
    tax = patient_subtotal * quote.tax_rate
    total_coverage = sum((lp.coverage_cents for lp in layers.values()), ZERO)

    breakdown = PricingBreakdown(
        layers=layers,
        benefit_usage=usages,
        discounts=sorted(discounts, key=lambda d: d.rank),
        total_coverage_cents=total_coverage,
        total_discount_cents=sum((d.amount_cents for d in discounts), ZERO),
        patient_subtotal_cents=patient_subtotal,
        tax_rate=quote.tax_rate,
        tax_cents=tax,
        grand_total_cents=patient_subtotal + tax,
        warnings=warnings,
    )
    logger.debug(
        f"[{quote.quote_id}] priced: subtotal={patient_subtotal} tax={tax} "
        f"coverage={total_coverage} warnings={len(warnings)}"
    )
    return breakdown


# ── Layer item builders ──────────────────────────────────


def _eyeglasses_items(layer: EyeglassesLayer, warnings: list[PricingWarning]) -> list[LineItem]:
    """
    Frame, lens and enhancements of the first pair. An incomplete pair
    contributes nothing; the gap is reported as a warning instead.
    """
    lens = layer.lens
    started = (
        layer.frame is not None
        or lens.lens_type is not None
        or lens.material is not None
        or bool(layer.enhancements)
    )
    if not started:
        return []

    missing = []
    if layer.frame is None:
        missing.append("frame")
    if lens.lens_type is None:
        missing.append("lens type")
    if lens.material is None:
        missing.append("lens material")
    if missing:
        warnings.append(
            PricingWarning(
                code=WarningCode.INCOMPLETE_SELECTION,
                message=f"Eyeglasses missing {', '.join(missing)}; layer priced at zero",
                layer=LayerId.EYEGLASSES,
            )
        )
        return []

    lens_item = LineItem(
        item_id=f"lens-{lens.lens_type.value}-{lens.material.value}",
        description=f"{lens.lens_type.value} lens, {lens.material.value}",
        category=BenefitCategory.LENS,
        unit_price_cents=lens.price_cents,
        formulary_tier=lens.formulary_tier,
    )
    return [layer.frame, lens_item, *layer.enhancements]


def _contacts_item(layer: ContactsLayer, warnings: list[PricingWarning]) -> Optional[LineItem]:
    product = layer.product
    if product is None:
        if layer.annual_supply or layer.wear_schedule is not None:
            warnings.append(
                PricingWarning(
                    code=WarningCode.INCOMPLETE_SELECTION,
                    message="Contacts missing a lens product; layer priced at zero",
                    layer=LayerId.CONTACTS,
                )
            )
        return None
    if product.quantity <= 0:
        warnings.append(
            PricingWarning(
                code=WarningCode.INCOMPLETE_SELECTION,
                message=f"Contacts {product.item_id} has no boxes selected; layer priced at zero",
                layer=LayerId.CONTACTS,
            )
        )
        return None
    return product


def _sum(items: list[LineItem]) -> Decimal:
    return sum((item.total_cents for item in items), ZERO)


def _sum_discounts(discounts: list[DiscountApplication], layer: LayerId) -> Decimal:
    return sum((d.amount_cents for d in discounts if d.layer == layer), ZERO)
