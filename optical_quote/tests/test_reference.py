"""
Tests: carrier plan store, product catalog, and the service's
cash-pay fallback when plan lookup fails.

Run with:
    pytest optical_quote/tests/test_reference.py -v
"""

from decimal import Decimal

import pytest

from optical_quote.exceptions import PlanNotFound, ProductNotFound, QuoteNotEditable
from optical_quote.models.enums import (
    BenefitCategory,
    BenefitFrequency,
    Carrier,
    FormularyTier,
    LayerId,
    LensMaterial,
    LensType,
    QuoteStatus,
    WarningCode,
    WearSchedule,
)
from optical_quote.models.schemas import TransitionRequest
from optical_quote.reference.carrier_config import CarrierConfigStore, parse_plan, resolve_carrier
from optical_quote.reference.product_catalog import ProductCatalog
from optical_quote.services.quote_service import QuoteService
from optical_quote.tests.conftest import FakeDb


class TestCarrierConfig:
    def test_vsp_codes_mapped(self, vsp_plan):
        assert vsp_plan.carrier == Carrier.VSP
        assert vsp_plan.benefit_for(BenefitCategory.FRAME).allowance_cents == 200_00
        assert vsp_plan.benefit_for(BenefitCategory.FRAME).frequency == BenefitFrequency.BIENNIAL
        assert vsp_plan.benefit_for(BenefitCategory.EXAM).copay_cents == 25_00
        assert vsp_plan.benefit_for(BenefitCategory.LENS).covered_tiers == (
            FormularyTier.TIER_1,
            FormularyTier.TIER_2,
        )

    def test_eyemed_codes_mapped(self, carriers):
        plan = carriers.get_plan("eyemed", "EyeMed Insight")
        assert plan.benefit_for(BenefitCategory.FRAME).allowance_cents == 180_00
        assert plan.benefit_for(BenefitCategory.ENHANCEMENT).allowance_cents == 75_00
        assert plan.benefit_for(BenefitCategory.CONTACTS).allowance_cents == 130_00
        assert plan.unmapped_codes == ()

    def test_spectera_letter_tiers(self, carriers):
        plan = carriers.get_plan(Carrier.SPECTERA)
        assert plan.benefit_for(BenefitCategory.LENS).covered_tiers == (FormularyTier.TIER_1, FormularyTier.TIER_2)
        assert plan.benefit_for(BenefitCategory.CONTACTS) is None

    def test_carrier_specific_codes_do_not_cross(self):
        # "frames" is EyeMed's code; under VSP it is unknown
        plan = parse_plan({"carrier": "VSP", "plan_name": "X", "benefits": {"frames": {"allowance": 100}}})
        assert plan.benefit_for(BenefitCategory.FRAME) is None
        assert plan.unmapped_codes == ("frames",)

    def test_unknown_tier_code_dropped(self):
        plan = parse_plan({
            "carrier": "EyeMed",
            "plan_name": "X",
            "benefits": {"lenses": {"allowance": 100, "tiers": ["cat1", "tier9"]}},
        })
        assert plan.benefit_for(BenefitCategory.LENS).covered_tiers == (FormularyTier.TIER_1,)

    def test_cash_pay_and_unknowns(self, carriers):
        assert carriers.get_plan("none").is_cash_pay
        assert resolve_carrier("Aetna") is None
        with pytest.raises(PlanNotFound):
            carriers.get_plan("Aetna", "Gold")
        with pytest.raises(PlanNotFound):
            carriers.get_plan("VSP", "VSP Platinum")

    def test_custom_defaults(self):
        store = CarrierConfigStore(default_plans=[
            {"carrier": "VSP", "plan_name": "Lite", "benefits": {"frame": {"allowance": 75.50}}},
        ])
        assert store.get_plan("VSP", "lite").benefit_for(BenefitCategory.FRAME).allowance_cents == 75_50


class TestProductCatalog:
    def test_lookup_and_line_item(self):
        catalog = ProductCatalog()
        product = catalog.get_product("ray-ban-rb5154")
        assert product.price_cents == 180_00
        line = product.to_line_item()
        assert line.category == BenefitCategory.FRAME
        assert line.unit_price_cents == Decimal("18000")

    def test_unknown_product(self):
        with pytest.raises(ProductNotFound):
            ProductCatalog().get_product("no-such-frame")

    def test_contacts_and_exam_reference(self):
        catalog = ProductCatalog()
        dailies = catalog.get_product("dailies-monthly")
        assert dailies.price_cents == 58_00
        assert dailies.wear_schedule == WearSchedule.MONTHLY
        assert catalog.rebate_for("Dailies").amount_cents == 120_00
        assert not catalog.get_product("oct-scan").insurance_eligible
        assert catalog.get_product("dilation").insurance_eligible

    def test_lens_prices_and_multipliers(self):
        catalog = ProductCatalog()
        assert catalog.lens_base_price(LensType.PROGRESSIVE) == 299_00
        assert catalog.material_multiplier(LensMaterial.HIGH_INDEX) == Decimal("2.2")

    def test_update_price(self):
        catalog = ProductCatalog()
        catalog.update_price("coach-hc6152", 210_00)
        catalog.update_price("bifocal", 199_00)
        assert catalog.get_product("coach-hc6152").price_cents == 210_00
        assert catalog.lens_base_price(LensType.BIFOCAL) == 199_00


class TestQuoteServiceLayers:
    def test_unknown_carrier_degrades_to_cash_pay(self, clock):
        service = QuoteService(clock=clock)
        qid = service.create_quote().quote_id
        service.update_exam(qid, ["comprehensive-exam"])
        quote = service.update_insurance(qid, "Aetna", "Gold")

        assert quote.insurance.plan.is_cash_pay
        assert "Aetna" in quote.insurance.lookup_error
        breakdown = service.price_quote(qid)
        assert breakdown.warnings[0].code == WarningCode.INSURANCE_LOOKUP_FAILED
        assert breakdown.patient_subtotal_cents == 275_00

    def test_carrier_service_outage_degrades_to_cash_pay(self, clock):
        class DownCarriers:
            def get_plan(self, carrier, plan_name=""):
                raise ConnectionError("config service unreachable")

        service = QuoteService(carriers=DownCarriers(), clock=clock)
        qid = service.create_quote().quote_id
        quote = service.update_insurance(qid, "VSP", "VSP Choice")
        assert quote.insurance.plan.is_cash_pay
        assert "unreachable" in quote.insurance.lookup_error

    def test_annual_supply_defaults_box_count_and_rebate(self, clock):
        service = QuoteService(clock=clock)
        qid = service.create_quote().quote_id
        quote = service.update_contacts(qid, product_id="acuvue-daily", annual_supply=True)

        assert quote.contacts.product.quantity == 8
        assert quote.contacts.rebate.amount_cents == 100_00
        assert service.price_quote(qid).layer(LayerId.CONTACTS).patient_responsibility_cents == 138_00

    def test_layer_replaced_not_merged(self, clock):
        service = QuoteService(clock=clock)
        qid = service.create_quote().quote_id
        service.update_eyeglasses(qid, frame_id="oakley-ox8156", enhancement_ids=["anti-reflective"])
        quote = service.update_eyeglasses(qid, lens_type=LensType.BIFOCAL, material=LensMaterial.TRIVEX)

        assert quote.eyeglasses.frame is None
        assert quote.eyeglasses.enhancements == []
        assert quote.eyeglasses.lens.price_cents == Decimal(179_00) * Decimal("1.8")

    def test_second_pair_priced_with_standard_lens(self, clock):
        service = QuoteService(clock=clock)
        qid = service.create_quote().quote_id
        quote = service.update_eyeglasses(
            qid,
            frame_id="ray-ban-rb5154",
            lens_type=LensType.SINGLE_VISION,
            material=LensMaterial.PLASTIC,
            second_pair_frame_id="warby-parker-winston",
        )
        second = quote.eyeglasses.second_pair
        assert second.lens_price_cents == 99_00
        assert second.discount_percent == 30
        assert not second.frame.insurance_eligible

    def test_layers_frozen_after_draft(self, clock):
        service = QuoteService(clock=clock)
        qid = service.create_quote().quote_id
        service.update_exam(qid, ["comprehensive-exam"])
        service.transition(qid, TransitionRequest(to=QuoteStatus.DRAFT))
        service.transition(
            qid, TransitionRequest(to=QuoteStatus.PRESENTED, presentation_method="printed")
        )
        with pytest.raises(QuoteNotEditable):
            service.update_exam(qid, ["dilation"])

    def test_update_bumps_version(self, clock):
        service = QuoteService(clock=clock)
        quote = service.create_quote()
        updated = service.update_exam(quote.quote_id, ["dilation"], expected_version=quote.version)
        assert updated.version == quote.version + 1


class TestCarrierConfigMongo:
    def _store(self) -> CarrierConfigStore:
        store = CarrierConfigStore()
        store._db = FakeDb()
        return store

    def test_saved_plan_is_listed(self):
        store = self._store()
        assert store.update_plan({"carrier": "VSP", "plan_name": "Lite", "benefits": {"frame": {"allowance": 75}}})

        plans = {p.plan_name: p for p in store.list_plans()}
        assert set(plans) == {"VSP Choice", "EyeMed Insight", "Spectera Vision Plus", "Lite"}
        assert plans["Lite"].benefit_for(BenefitCategory.FRAME).allowance_cents == 75_00

    def test_stored_plan_overrides_default(self):
        store = self._store()
        assert store.get_plan("VSP", "VSP Choice").benefit_for(BenefitCategory.FRAME).allowance_cents == 200_00

        store.update_plan({"carrier": "VSP", "plan_name": "VSP Choice", "benefits": {"frame": {"allowance": 250}}})

        listed = [p for p in store.list_plans() if p.plan_name == "VSP Choice"]
        assert len(listed) == 1
        assert listed[0].benefit_for(BenefitCategory.FRAME).allowance_cents == 250_00
        assert store.get_plan("VSP", "VSP Choice").benefit_for(BenefitCategory.FRAME).allowance_cents == 250_00

    def test_invalid_stored_plan_skipped(self):
        store = self._store()
        store._db.carrier_plans.docs.append(
            {"carrier": "VSP", "plan_name": "Broken", "config": {"carrier": "VSP", "plan_name": "Broken",
                                                                "benefits": {"frame": {"frequency": "monthly"}}}}
        )
        assert "Broken" not in {p.plan_name for p in store.list_plans()}

    def test_bad_benefit_rejected_before_save(self):
        store = self._store()
        with pytest.raises(ValueError, match="frame"):
            store.update_plan({"carrier": "VSP", "plan_name": "X", "benefits": {"frame": {"frequency": "monthly"}}})
        with pytest.raises(ValueError):
            store.update_plan({"carrier": "VSP", "plan_name": "X", "benefits": {"frame": 100}})
        with pytest.raises(PlanNotFound):
            store.update_plan({"carrier": "Davis", "plan_name": "X"})
        assert store._db.carrier_plans.docs == []
