"""
Quote Service — the imperative shell around the pricing/lifecycle core.

Resolves catalog and carrier lookups into the quote's layers, persists
every committed change, and serializes writers on the same quote through
the lifecycle manager's per-quote lock. Each layer update replaces that
layer wholesale.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from optical_quote.config import Settings, get_settings
from optical_quote.exceptions import PlanNotFound, QuoteNotEditable, StaleQuoteVersion
from optical_quote.models.enums import (
    BenefitCategory,
    Carrier,
    LensMaterial,
    LensType,
    QuoteStatus,
    SecondPairDiscountType,
    SignatureSlot,
)
from optical_quote.models.schemas import (
    ContactsLayer,
    ExamLayer,
    EyeglassesLayer,
    InsurancePlan,
    InsuranceSelection,
    LensSelection,
    PatientInfo,
    PricingBreakdown,
    SecondPairSelection,
    SignatureRecord,
    TransitionRecord,
    TransitionRequest,
    utcnow,
)
from optical_quote.models.state import Quote
from optical_quote.orchestration.lifecycle import QuoteLifecycleManager, TransitionResult
from optical_quote.persistence.quote_repository import QuoteRepository
from optical_quote.pricing.pricing_aggregator import compute_pricing
from optical_quote.reference.carrier_config import CarrierConfigStore
from optical_quote.reference.product_catalog import ANNUAL_SUPPLY_BOXES, ProductCatalog
from optical_quote.services.second_pair import SecondPairEligibility, check_eligibility, discount_percent_for

logger = logging.getLogger(__name__)

# Second pairs are priced with a standard single-vision plastic lens
STANDARD_SECOND_PAIR_LENS = LensType.SINGLE_VISION


class QuoteService:
    def __init__(
        self,
        repository: Optional[QuoteRepository] = None,
        catalog: Optional[ProductCatalog] = None,
        carriers: Optional[CarrierConfigStore] = None,
        lifecycle: Optional[QuoteLifecycleManager] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or get_settings()
        self.repository = repository or QuoteRepository()
        self.catalog = catalog or ProductCatalog()
        self.carriers = carriers or CarrierConfigStore()
        self.lifecycle = lifecycle or QuoteLifecycleManager(persistence=self.repository, clock=clock)
        self._clock = clock

    # ── Creation & reads ─────────────────────────────────

    def create_quote(
        self,
        location: str = "",
        staff_member: str = "",
        patient: Optional[PatientInfo] = None,
    ) -> Quote:
        now = self._clock()
        quote = Quote(
            quote_id=f"Q-{uuid.uuid4().hex[:10].upper()}",
            created_at=now,
            location=location,
            staff_member=staff_member,
            patient=patient or PatientInfo(),
            tax_rate=self.settings.tax_rate,
            annual_supply_discount_rate=self.settings.annual_supply_discount_rate,
        )
        quote.touch(now, self.settings.quote_expiration_days)
        self.repository.save(quote)
        logger.info(f"[{quote.quote_id}] Created at {location or '<no location>'} by {staff_member or '<unknown>'}")
        return quote

    def get_quote(self, quote_id: str) -> Quote:
        return self.repository.get(quote_id)

    def list_quotes(self, status: Optional[QuoteStatus] = None) -> list[Quote]:
        return self.repository.list_quotes(statuses=[status] if status else None)

    def history(self, quote_id: str) -> list[TransitionRecord]:
        return self.repository.get(quote_id).history

    def price_quote(self, quote_id: str) -> PricingBreakdown:
        """Live pricing while editable, the frozen snapshot afterwards."""
        quote = self.repository.get(quote_id)
        if quote.pricing_snapshot is not None and not quote.is_editable:
            return quote.pricing_snapshot
        return compute_pricing(quote)

    # ── Layer updates (replace, never merge) ─────────────

    def _replace_layer(
        self,
        quote_id: str,
        apply: Callable[[Quote], None],
        expected_version: Optional[int] = None,
    ) -> Quote:
        with self.lifecycle.locks.hold(quote_id):
            quote = self.repository.get(quote_id)
            if expected_version is not None and expected_version != quote.version:
                raise StaleQuoteVersion(quote_id, expected_version, quote.version)
            if not quote.is_editable:
                raise QuoteNotEditable(quote_id, quote.status)

            updated = quote.model_copy(deep=True)
            apply(updated)
            updated.version += 1
            updated.touch(self._clock(), self.settings.quote_expiration_days)
            self.repository.save(updated)
            return updated

    def update_patient(self, quote_id: str, patient: PatientInfo, expected_version: Optional[int] = None) -> Quote:
        def apply(quote: Quote) -> None:
            quote.patient = patient.model_copy()
        return self._replace_layer(quote_id, apply, expected_version)

    def update_insurance(
        self,
        quote_id: str,
        carrier: str,
        plan_name: str = "",
        member_id: str = "",
        prior_usage_cents: Optional[dict[BenefitCategory, int]] = None,
        expected_version: Optional[int] = None,
    ) -> Quote:
        selection = self.resolve_insurance(carrier, plan_name, member_id, prior_usage_cents)

        def apply(quote: Quote) -> None:
            quote.insurance = selection
        return self._replace_layer(quote_id, apply, expected_version)

    def resolve_insurance(
        self,
        carrier: str,
        plan_name: str = "",
        member_id: str = "",
        prior_usage_cents: Optional[dict[BenefitCategory, int]] = None,
    ) -> InsuranceSelection:
        """Plan lookup; any failure degrades to cash pay with the error recorded."""
        lookup_error = ""
        try:
            plan = self.carriers.get_plan(carrier, plan_name)
        except PlanNotFound as e:
            logger.warning(f"Plan lookup failed, pricing as cash pay: {e}")
            plan, lookup_error = InsurancePlan.cash_pay(), str(e)
        except Exception as e:
            logger.error(f"Carrier config service error, pricing as cash pay: {e}")
            plan, lookup_error = InsurancePlan.cash_pay(), f"carrier lookup unavailable: {e}"

        return InsuranceSelection(
            carrier=plan.carrier if not lookup_error else Carrier.NONE,
            plan_name=plan.plan_name if not lookup_error else plan_name,
            member_id=member_id,
            plan=plan,
            prior_usage_cents=prior_usage_cents or {},
            lookup_error=lookup_error,
        )

    def update_exam(
        self,
        quote_id: str,
        service_ids: list[str],
        medical_diagnosis: str = "",
        notes: str = "",
        expected_version: Optional[int] = None,
    ) -> Quote:
        services = [self.catalog.get_product(sid).to_line_item() for sid in service_ids]
        layer = ExamLayer(services=services, medical_diagnosis=medical_diagnosis, notes=notes)

        def apply(quote: Quote) -> None:
            quote.exam = layer
        return self._replace_layer(quote_id, apply, expected_version)

    def update_eyeglasses(
        self,
        quote_id: str,
        frame_id: Optional[str] = None,
        lens_type: Optional[LensType] = None,
        material: Optional[LensMaterial] = None,
        enhancement_ids: Optional[list[str]] = None,
        second_pair_frame_id: Optional[str] = None,
        second_pair_discount: SecondPairDiscountType = SecondPairDiscountType.THIRTY_DAY_30,
        second_pair_override_percent: Optional[Decimal] = None,
        expected_version: Optional[int] = None,
    ) -> Quote:
        frame = self.catalog.get_product(frame_id).to_line_item() if frame_id else None
        lens = LensSelection(
            lens_type=lens_type,
            material=material,
            base_price_cents=self.catalog.lens_base_price(lens_type) if lens_type else 0,
            material_multiplier=self.catalog.material_multiplier(material) if material else Decimal("1"),
            formulary_tier=self.catalog.lens_tier(lens_type) if lens_type else None,
        )
        enhancements = [self.catalog.get_product(eid).to_line_item() for eid in enhancement_ids or []]

        second_pair = None
        if second_pair_frame_id:
            second_pair = SecondPairSelection(
                frame=self.catalog.get_product(second_pair_frame_id).to_line_item().model_copy(
                    update={"insurance_eligible": False}
                ),
                lens_price_cents=self.catalog.lens_base_price(STANDARD_SECOND_PAIR_LENS),
                discount_type=second_pair_discount,
                discount_percent=discount_percent_for(
                    second_pair_discount, self.settings, second_pair_override_percent
                ),
            )

        layer = EyeglassesLayer(frame=frame, lens=lens, enhancements=enhancements, second_pair=second_pair)

        def apply(quote: Quote) -> None:
            quote.eyeglasses = layer
        return self._replace_layer(quote_id, apply, expected_version)

    def update_contacts(
        self,
        quote_id: str,
        product_id: Optional[str] = None,
        boxes: Optional[int] = None,
        annual_supply: bool = False,
        apply_rebate: bool = True,
        expected_version: Optional[int] = None,
    ) -> Quote:
        layer = ContactsLayer(annual_supply=annual_supply)
        if product_id:
            product = self.catalog.get_product(product_id)
            if boxes is None:
                boxes = ANNUAL_SUPPLY_BOXES.get(product.wear_schedule, 1) if annual_supply else 1
            rebate = self.catalog.rebate_for(product.manufacturer) if apply_rebate and annual_supply else None
            layer = ContactsLayer(
                product=product.to_line_item(quantity=boxes),
                wear_schedule=product.wear_schedule,
                annual_supply=annual_supply,
                rebate=rebate,
            )

        def apply(quote: Quote) -> None:
            quote.contacts = layer
        return self._replace_layer(quote_id, apply, expected_version)

    # ── Signatures ───────────────────────────────────────

    def record_signature(self, quote_id: str, slot: SignatureSlot, signer: str, present: bool = True) -> Quote:
        with self.lifecycle.locks.hold(quote_id):
            quote = self.repository.get(quote_id)
            if quote.is_terminal:
                raise QuoteNotEditable(quote_id, quote.status)
            updated = quote.model_copy(deep=True)
            updated.signatures[slot] = SignatureRecord(
                slot=slot, signer=signer, present=present, signed_at=self._clock()
            )
            updated.version += 1
            updated.updated_at = self._clock()
            self.repository.save(updated)
        logger.info(f"[{quote_id}] {slot.value} signature {'captured' if present else 'cleared'} ({signer})")
        return updated

    # ── Lifecycle ────────────────────────────────────────

    def transition(self, quote_id: str, request: TransitionRequest) -> TransitionResult:
        with self.lifecycle.locks.hold(quote_id):
            quote = self.repository.get(quote_id)
            result = self.lifecycle.transition(quote, request, now=self._clock())
            self.repository.save(result.quote)
        return result

    def second_pair_eligibility(self, quote_id: str) -> SecondPairEligibility:
        quote = self.repository.get(quote_id)
        completed = self.repository.list_quotes(statuses=[QuoteStatus.COMPLETED])
        return check_eligibility(quote.patient.customer_id, completed, self._clock(), self.settings)
