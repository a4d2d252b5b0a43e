"""
Carrier Config Store — insurance plan lookup for the quote core.

Carriers ship their plans as loosely-typed config blobs (string benefit
codes, carrier-specific tier names). This module owns the explicit
per-carrier mapping tables that turn those blobs into `InsurancePlan`
objects. Blobs come from MongoDB (`carrier_plans`) and fall back to the
built-in defaults below when the collection is empty or unreachable.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from optical_quote.config import get_settings
from optical_quote.exceptions import PlanNotFound
from optical_quote.models.enums import BenefitCategory, BenefitFrequency, Carrier, FormularyTier
from optical_quote.models.schemas import CategoryBenefit, InsurancePlan
from optical_quote.utils.money import dollars_to_cents

logger = logging.getLogger(__name__)


# ── Carrier code mapping tables ──────────────────────────

CATEGORY_CODES: dict[Carrier, dict[str, BenefitCategory]] = {
    Carrier.VSP: {
        "frame": BenefitCategory.FRAME,
        "lens": BenefitCategory.LENS,
        "enhancement": BenefitCategory.ENHANCEMENT,
        "exam": BenefitCategory.EXAM,
        "contacts": BenefitCategory.CONTACTS,
    },
    Carrier.EYEMED: {
        "frames": BenefitCategory.FRAME,
        "lenses": BenefitCategory.LENS,
        "lens_options": BenefitCategory.ENHANCEMENT,
        "exam": BenefitCategory.EXAM,
        "contact_lenses": BenefitCategory.CONTACTS,
    },
    Carrier.SPECTERA: {
        "frame": BenefitCategory.FRAME,
        "lenses": BenefitCategory.LENS,
        "coatings": BenefitCategory.ENHANCEMENT,
        "eye_exam": BenefitCategory.EXAM,
        "contacts": BenefitCategory.CONTACTS,
    },
}

TIER_CODES: dict[Carrier, dict[str, FormularyTier]] = {
    Carrier.VSP: {"tier1": FormularyTier.TIER_1, "tier2": FormularyTier.TIER_2, "tier3": FormularyTier.TIER_3},
    Carrier.EYEMED: {"cat1": FormularyTier.TIER_1, "cat2": FormularyTier.TIER_2, "cat3": FormularyTier.TIER_3},
    Carrier.SPECTERA: {"A": FormularyTier.TIER_1, "B": FormularyTier.TIER_2, "C": FormularyTier.TIER_3},
}


# ── Default plan blobs (first run / no MongoDB) ──────────

DEFAULT_PLANS: list[dict[str, Any]] = [
    {
        "carrier": "VSP",
        "plan_name": "VSP Choice",
        "benefits": {
            "exam": {"copay": 25, "frequency": "annual"},
            "frame": {"allowance": 200, "frequency": "biennial"},
            "lens": {"allowance": 150, "frequency": "annual", "tiers": ["tier1", "tier2"]},
            "enhancement": {"allowance": 50, "frequency": "annual"},
            "contacts": {"allowance": 150, "frequency": "annual"},
        },
    },
    {
        "carrier": "EyeMed",
        "plan_name": "EyeMed Insight",
        "benefits": {
            "exam": {"copay": 15, "frequency": "annual"},
            "frames": {"allowance": 180, "frequency": "annual"},
            "lenses": {"allowance": 120, "frequency": "annual", "tiers": ["cat1", "cat2", "cat3"]},
            "lens_options": {"allowance": 75, "frequency": "annual", "tiers": ["cat1", "cat2"]},
            "contact_lenses": {"allowance": 130, "frequency": "annual"},
        },
    },
    {
        "carrier": "Spectera",
        "plan_name": "Spectera Vision Plus",
        "benefits": {
            "eye_exam": {"copay": 10, "frequency": "annual"},
            "frame": {"allowance": 150, "frequency": "biennial"},
            "lenses": {"allowance": 100, "frequency": "annual", "tiers": ["A", "B"]},
            "coatings": {"allowance": 40, "frequency": "annual"},
        },
    },
]


def resolve_carrier(code: str | Carrier) -> Optional[Carrier]:
    """Carrier enum from a raw code, case-insensitive. None if unknown."""
    if isinstance(code, Carrier):
        return code
    normalized = (code or "").strip().lower()
    if normalized in ("", "none", "cash", "cash pay"):
        return Carrier.NONE
    for carrier in Carrier:
        if carrier.value.lower() == normalized:
            return carrier
    return None


def parse_plan(doc: dict[str, Any]) -> InsurancePlan:
    """
    Translate one carrier config blob into an `InsurancePlan`.

    Unknown benefit codes are kept on `unmapped_codes` rather than
    rejected; unknown tier codes are dropped from the tier list.
    """
    carrier = resolve_carrier(doc.get("carrier", ""))
    if carrier is None or carrier == Carrier.NONE:
        raise PlanNotFound(str(doc.get("carrier", "")), str(doc.get("plan_name", "")))

    category_codes = CATEGORY_CODES.get(carrier, {})
    tier_codes = TIER_CODES.get(carrier, {})

    benefits: dict[BenefitCategory, CategoryBenefit] = {}
    unmapped: list[str] = []
    for code, raw in (doc.get("benefits") or {}).items():
        category = category_codes.get(code)
        if category is None:
            logger.warning(f"{carrier.value}: unknown benefit code '{code}' in plan {doc.get('plan_name')}")
            unmapped.append(code)
            continue
        if not isinstance(raw, dict):
            raise ValueError(f"{carrier.value}: benefit '{code}' must be an object, got {type(raw).__name__}")

        tiers = []
        for tier_code in raw.get("tiers", []):
            tier = tier_codes.get(tier_code)
            if tier is None:
                logger.warning(f"{carrier.value}: unknown tier code '{tier_code}' on {code}")
                continue
            tiers.append(tier)

        try:
            benefits[category] = CategoryBenefit(
                category=category,
                allowance_cents=dollars_to_cents(raw.get("allowance", 0)),
                copay_cents=dollars_to_cents(raw.get("copay", 0)),
                frequency=BenefitFrequency(raw.get("frequency", BenefitFrequency.ANNUAL.value)),
                covered_tiers=tuple(tiers),
            )
        except (ValueError, ArithmeticError) as e:
            raise ValueError(f"{carrier.value}: invalid '{code}' benefit: {e}") from e

    return InsurancePlan(
        carrier=carrier,
        plan_name=doc.get("plan_name", ""),
        benefits=benefits,
        unmapped_codes=tuple(unmapped),
    )


# ── Store class ──────────────────────────────────────────

class CarrierConfigStore:
    """
    Loads carrier plans from MongoDB, falling back to DEFAULT_PLANS.
    Parsed plans are cached for the lifetime of the store.
    """

    def __init__(self, default_plans: Optional[list[dict[str, Any]]] = None):
        self.settings = get_settings()
        self._db = None
        self._defaults = default_plans if default_plans is not None else DEFAULT_PLANS
        self._cache: dict[tuple[Carrier, str], InsurancePlan] = {}

    def _get_db(self):
        if self._db is not None or self.settings.mock_mode:
            return self._db
        try:
            from pymongo import MongoClient
            client = MongoClient(self.settings.mongodb_uri, serverSelectionTimeoutMS=2000)
            self._db = client[self.settings.mongodb_database]
        except Exception as e:
            logger.warning(f"MongoDB not available, using default carrier plans: {e}")
            self._db = None
        return self._db

    def _find_blob(self, carrier: Carrier, plan_name: str) -> Optional[dict[str, Any]]:
        db = self._get_db()
        if db is not None:
            try:
                query: dict[str, Any] = {"carrier": carrier.value}
                if plan_name:
                    query["plan_name"] = plan_name
                doc = db.carrier_plans.find_one(query)
                if doc and "config" in doc:
                    return doc["config"]
            except Exception as e:
                logger.warning(f"Failed loading {carrier.value} plan from MongoDB: {e}")

        for blob in self._defaults:
            if resolve_carrier(blob.get("carrier", "")) != carrier:
                continue
            if not plan_name or blob.get("plan_name", "").lower() == plan_name.lower():
                return blob
        return None

    def get_plan(self, carrier_code: str | Carrier, plan_name: str = "") -> InsurancePlan:
        """
        Resolve a plan. Blank plan name picks the carrier's first plan;
        carrier "none" is cash pay. Raises PlanNotFound otherwise.
        """
        carrier = resolve_carrier(carrier_code)
        if carrier is None:
            raise PlanNotFound(str(carrier_code), plan_name)
        if carrier == Carrier.NONE:
            return InsurancePlan.cash_pay()

        key = (carrier, plan_name.lower())
        if key in self._cache:
            return self._cache[key]

        blob = self._find_blob(carrier, plan_name)
        if blob is None:
            raise PlanNotFound(carrier.value, plan_name)
        plan = parse_plan(blob)
        self._cache[key] = plan
        return plan

    def list_plans(self) -> list[InsurancePlan]:
        """Defaults merged with MongoDB plans; a stored plan overrides the default of the same name."""
        blobs: dict[tuple[Optional[Carrier], str], dict[str, Any]] = {
            (resolve_carrier(b.get("carrier", "")), b.get("plan_name", "").lower()): b for b in self._defaults
        }
        db = self._get_db()
        if db is not None:
            try:
                for doc in db.carrier_plans.find({}, {"_id": 0}):
                    config = doc.get("config")
                    if config:
                        key = (resolve_carrier(config.get("carrier", "")), config.get("plan_name", "").lower())
                        blobs[key] = config
            except Exception as e:
                logger.warning(f"Failed listing carrier plans from MongoDB: {e}")

        plans = []
        for blob in blobs.values():
            try:
                plans.append(parse_plan(blob))
            except (PlanNotFound, ValueError) as e:
                logger.warning(f"Skipping invalid carrier plan {blob.get('plan_name')}: {e}")
        return plans

    def update_plan(self, config: dict[str, Any]) -> bool:
        """Admin: save/update a carrier plan blob in MongoDB."""
        plan = parse_plan(config)
        db = self._get_db()
        if db is None:
            logger.error("Cannot update carrier plan: MongoDB not available")
            return False

        db.carrier_plans.update_one(
            {"carrier": plan.carrier.value, "plan_name": plan.plan_name},
            {"$set": {"carrier": plan.carrier.value, "plan_name": plan.plan_name, "config": config}},
            upsert=True,
        )
        self._cache = {k: v for k, v in self._cache.items() if k[0] != plan.carrier}
        logger.info(f"Updated {plan.carrier.value}/{plan.plan_name} in MongoDB")
        return True
