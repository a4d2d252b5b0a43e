"""
Reusable data schemas for the sub-documents embedded inside a quote.
Each schema represents a clearly-bounded data object owned by one layer
or produced by one pricing step.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from optical_quote.utils.money import ZERO, format_usd, to_display

from .enums import (
    BenefitCategory,
    BenefitFrequency,
    Carrier,
    DiscountKind,
    FormularyTier,
    LayerId,
    LensMaterial,
    LensType,
    PresentationMethod,
    QuoteStatus,
    SecondPairDiscountType,
    SignatureSlot,
    TransitionCategory,
    WarningCode,
    WearSchedule,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Reference data: insurance ────────────────────────────


class CategoryBenefit(BaseModel):
    """One benefit line of a carrier plan."""
    model_config = ConfigDict(frozen=True)

    category: BenefitCategory
    allowance_cents: int = Field(default=0, ge=0)
    copay_cents: int = Field(default=0, ge=0)
    frequency: BenefitFrequency = BenefitFrequency.ANNUAL
    covered_tiers: tuple[FormularyTier, ...] = ()  # empty = every tier

    def covers_tier(self, tier: Optional[FormularyTier]) -> bool:
        if not self.covered_tiers or tier is None:
            return True
        return tier in self.covered_tiers


class InsurancePlan(BaseModel):
    """Carrier plan configuration, resolved once per quote."""
    model_config = ConfigDict(frozen=True)

    carrier: Carrier = Carrier.NONE
    plan_name: str = ""
    benefits: dict[BenefitCategory, CategoryBenefit] = Field(default_factory=dict)
    unmapped_codes: tuple[str, ...] = ()  # raw config codes with no known category

    @classmethod
    def cash_pay(cls) -> "InsurancePlan":
        return cls(carrier=Carrier.NONE, plan_name="Cash Pay")

    @property
    def is_cash_pay(self) -> bool:
        return self.carrier == Carrier.NONE

    def benefit_for(self, category: BenefitCategory) -> Optional[CategoryBenefit]:
        return self.benefits.get(category)


# ── Line items & layer selections ────────────────────────


class LineItem(BaseModel):
    """A priced unit selected in one of the quote layers."""
    model_config = ConfigDict(frozen=True)

    item_id: str
    description: str = ""
    category: BenefitCategory
    unit_price_cents: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=0)
    insurance_eligible: bool = True
    copay_cents: int = Field(default=0, ge=0)  # item-level copay on top of the plan copay
    formulary_tier: Optional[FormularyTier] = None

    @property
    def total_cents(self) -> Decimal:
        return self.unit_price_cents * self.quantity


class PatientInfo(BaseModel):
    customer_id: str = ""
    name: str = ""
    phone: str = ""
    email: str = ""
    date_of_birth: Optional[str] = None


class InsuranceSelection(BaseModel):
    carrier: Carrier = Carrier.NONE
    plan_name: str = ""
    member_id: str = ""
    plan: InsurancePlan = Field(default_factory=InsurancePlan.cash_pay)
    # Allowance already consumed this benefit period, tracked outside the core
    prior_usage_cents: dict[BenefitCategory, int] = Field(default_factory=dict)
    lookup_error: str = ""  # set when plan lookup failed and pricing fell back to cash pay


class ExamLayer(BaseModel):
    services: list[LineItem] = Field(default_factory=list)
    medical_diagnosis: str = ""
    notes: str = ""


class LensSelection(BaseModel):
    lens_type: Optional[LensType] = None
    material: Optional[LensMaterial] = None
    base_price_cents: int = Field(default=0, ge=0)
    material_multiplier: Decimal = Field(default=Decimal("1"), ge=0)
    formulary_tier: Optional[FormularyTier] = None

    @property
    def is_complete(self) -> bool:
        return self.lens_type is not None and self.material is not None

    @property
    def price_cents(self) -> Decimal:
        return Decimal(self.base_price_cents) * self.material_multiplier


class SecondPairSelection(BaseModel):
    """An additional pair priced at frame + standard lens, never insured."""
    frame: Optional[LineItem] = None
    lens_price_cents: int = Field(default=0, ge=0)
    discount_type: SecondPairDiscountType = SecondPairDiscountType.THIRTY_DAY_30
    discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)


class EyeglassesLayer(BaseModel):
    frame: Optional[LineItem] = None
    lens: LensSelection = Field(default_factory=LensSelection)
    enhancements: list[LineItem] = Field(default_factory=list)
    second_pair: Optional[SecondPairSelection] = None


class ManufacturerRebate(BaseModel):
    manufacturer: str
    amount_cents: int = Field(ge=0)


class ContactsLayer(BaseModel):
    product: Optional[LineItem] = None  # unit price is per box, quantity is boxes
    wear_schedule: Optional[WearSchedule] = None
    annual_supply: bool = False
    rebate: Optional[ManufacturerRebate] = None


class SignatureRecord(BaseModel):
    slot: SignatureSlot
    signer: str = ""
    present: bool = False
    signed_at: datetime = Field(default_factory=utcnow)

    @property
    def is_complete(self) -> bool:
        return self.present and bool(self.signer.strip())


# ── Pricing outputs ──────────────────────────────────────


class PricingWarning(BaseModel):
    code: WarningCode
    message: str
    layer: Optional[LayerId] = None


class BenefitUsage(BaseModel):
    category: BenefitCategory
    eligible_cents: Decimal = ZERO
    allowance_cents: int = 0
    prior_usage_cents: int = 0
    copay_cents: Decimal = ZERO
    coverage_cents: Decimal = ZERO
    remaining_cents: Decimal = ZERO
    in_plan: bool = False


class DiscountApplication(BaseModel):
    kind: DiscountKind
    label: str
    rank: int
    amount_cents: Decimal
    layer: LayerId


class LayerPricing(BaseModel):
    layer: LayerId
    raw_subtotal_cents: Decimal = ZERO
    discount_cents: Decimal = ZERO          # pre-insurance discounts
    discounted_subtotal_cents: Decimal = ZERO
    coverage_cents: Decimal = ZERO
    second_pair_cents: Decimal = ZERO       # discounted second-pair amount (eyeglasses only)
    patient_responsibility_cents: Decimal = ZERO


class PricingBreakdown(BaseModel):
    layers: dict[LayerId, LayerPricing] = Field(default_factory=dict)
    benefit_usage: list[BenefitUsage] = Field(default_factory=list)
    discounts: list[DiscountApplication] = Field(default_factory=list)
    total_coverage_cents: Decimal = ZERO
    total_discount_cents: Decimal = ZERO
    patient_subtotal_cents: Decimal = ZERO
    tax_rate: Decimal = ZERO
    tax_cents: Decimal = ZERO
    grand_total_cents: Decimal = ZERO
    warnings: list[PricingWarning] = Field(default_factory=list)

    def layer(self, layer_id: LayerId) -> LayerPricing:
        return self.layers.get(layer_id, LayerPricing(layer=layer_id))

    def coverage_for(self, category: BenefitCategory) -> Decimal:
        for usage in self.benefit_usage:
            if usage.category == category:
                return usage.coverage_cents
        return ZERO

    def display(self) -> dict:
        """
        Dollar figures rounded for presentation. Tax is derived from the
        rounded totals so the displayed lines always add up.
        """
        subtotal = to_display(self.patient_subtotal_cents)
        grand_total = to_display(self.grand_total_cents)
        return {
            "layers": {
                layer_id.value: {
                    "subtotal": str(to_display(lp.raw_subtotal_cents)),
                    "discounts": str(to_display(lp.discount_cents)),
                    "insurance": str(to_display(lp.coverage_cents)),
                    "second_pair": str(to_display(lp.second_pair_cents)),
                    "patient_responsibility": str(to_display(lp.patient_responsibility_cents)),
                }
                for layer_id, lp in self.layers.items()
            },
            "total_insurance": str(to_display(self.total_coverage_cents)),
            "total_discounts": str(to_display(self.total_discount_cents)),
            "patient_subtotal": str(subtotal),
            "tax": str(grand_total - subtotal),
            "grand_total": str(grand_total),
            "grand_total_formatted": format_usd(self.grand_total_cents),
        }


# ── Lifecycle ────────────────────────────────────────────


class TransitionRequest(BaseModel):
    to: QuoteStatus
    reason: str = ""
    presentation_method: Optional[PresentationMethod] = None
    actor: str = ""
    category: TransitionCategory = TransitionCategory.USER_ACTION
    expected_version: Optional[int] = None


class TransitionRecord(BaseModel):
    """Append-only history entry written on every successful transition."""
    from_status: QuoteStatus
    to_status: QuoteStatus
    category: TransitionCategory = TransitionCategory.USER_ACTION
    reason: str = ""
    actor: str = ""
    requires_manager_approval: bool = False
    grand_total_cents: Decimal = ZERO
    version: int = 0
    at: datetime = Field(default_factory=utcnow)
