"""Shared fixtures and builders for the quote-core tests."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from optical_quote.models.enums import BenefitCategory, FormularyTier, LensMaterial, LensType, SignatureSlot
from optical_quote.models.schemas import LensSelection, LineItem, SignatureRecord
from optical_quote.reference.carrier_config import CarrierConfigStore
from optical_quote.services.notification_service import QuoteEvents

T0 = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture(autouse=True)
def fresh_event_bus():
    QuoteEvents._instance = None
    yield
    QuoteEvents._instance = None


@pytest.fixture
def carriers() -> CarrierConfigStore:
    return CarrierConfigStore()


@pytest.fixture
def vsp_plan(carriers):
    return carriers.get_plan("VSP", "VSP Choice")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ── Builders ─────────────────────────────────────────────

def frame(price_cents: int, item_id: str = "frame-1") -> LineItem:
    return LineItem(item_id=item_id, category=BenefitCategory.FRAME, unit_price_cents=Decimal(price_cents))


def item(category: BenefitCategory, price_cents: int, item_id: str = "item", **kwargs) -> LineItem:
    return LineItem(item_id=item_id, category=category, unit_price_cents=Decimal(price_cents), **kwargs)


def single_vision(base_cents: int = 99_00, tier: FormularyTier = FormularyTier.TIER_1) -> LensSelection:
    return LensSelection(
        lens_type=LensType.SINGLE_VISION,
        material=LensMaterial.PLASTIC,
        base_price_cents=base_cents,
        material_multiplier=Decimal("1.0"),
        formulary_tier=tier,
    )


def signed(slot: SignatureSlot, signer: str) -> SignatureRecord:
    return SignatureRecord(slot=slot, signer=signer, present=True)


class FakeCollection:
    """Just enough of a pymongo collection for the config stores."""

    def __init__(self):
        self.docs: list[dict] = []

    def _matches(self, doc: dict, query: dict) -> bool:
        return all(doc.get(k) == v for k, v in query.items())

    def find(self, query=None, projection=None):
        return [dict(d) for d in self.docs if self._matches(d, query or {})]

    def find_one(self, query=None, projection=None):
        found = self.find(query)
        return found[0] if found else None

    def update_one(self, query, update, upsert=False):
        for doc in self.docs:
            if self._matches(doc, query):
                doc.update(update["$set"])
                return
        if upsert:
            self.docs.append({**query, **update["$set"]})


class FakeDb:
    def __init__(self):
        self.carrier_plans = FakeCollection()
