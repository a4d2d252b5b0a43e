"""
Product Catalog — authoritative prices for frames, lenses, enhancements,
exam services and contact lenses.

Same loading pattern as the carrier store: MongoDB `products` first,
built-in defaults otherwise. Prices here are live; quotes freeze them
through the lifecycle snapshot, so `update_price` never reaches back
into a presented quote.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from optical_quote.config import get_settings
from optical_quote.exceptions import ProductNotFound
from optical_quote.models.enums import BenefitCategory, FormularyTier, LensMaterial, LensType, WearSchedule
from optical_quote.models.schemas import LineItem, ManufacturerRebate

logger = logging.getLogger(__name__)


class CatalogProduct(BaseModel):
    product_id: str
    name: str
    category: BenefitCategory
    price_cents: int
    formulary_tier: Optional[FormularyTier] = None
    insurance_eligible: bool = True
    manufacturer: str = ""
    wear_schedule: Optional[WearSchedule] = None

    def to_line_item(self, quantity: int = 1) -> LineItem:
        return LineItem(
            item_id=self.product_id,
            description=self.name,
            category=self.category,
            unit_price_cents=Decimal(self.price_cents),
            quantity=quantity,
            insurance_eligible=self.insurance_eligible,
            formulary_tier=self.formulary_tier,
        )


# ── Defaults ─────────────────────────────────────────────

LENS_BASE_PRICES: dict[LensType, int] = {
    LensType.SINGLE_VISION: 99_00,
    LensType.PROGRESSIVE: 299_00,
    LensType.BIFOCAL: 179_00,
    LensType.COMPUTER: 189_00,
}

LENS_TIERS: dict[LensType, FormularyTier] = {
    LensType.SINGLE_VISION: FormularyTier.TIER_1,
    LensType.BIFOCAL: FormularyTier.TIER_1,
    LensType.PROGRESSIVE: FormularyTier.TIER_2,
    LensType.COMPUTER: FormularyTier.TIER_3,
}

MATERIAL_MULTIPLIERS: dict[LensMaterial, Decimal] = {
    LensMaterial.PLASTIC: Decimal("1.0"),
    LensMaterial.POLYCARBONATE: Decimal("1.5"),
    LensMaterial.TRIVEX: Decimal("1.8"),
    LensMaterial.HIGH_INDEX: Decimal("2.2"),
}

ANNUAL_SUPPLY_BOXES: dict[WearSchedule, int] = {
    WearSchedule.DAILY: 8,
    WearSchedule.WEEKLY: 4,
    WearSchedule.MONTHLY: 4,
    WearSchedule.EXTENDED: 2,
}

MANUFACTURER_REBATES: dict[str, int] = {
    "Acuvue": 100_00,
    "Biofinity": 80_00,
    "Dailies": 120_00,
    "Bausch + Lomb": 90_00,
}

_FRAMES = [
    ("ray-ban-rb5154", "Ray-Ban RB5154 Clubmaster", 180_00),
    ("oakley-ox8156", "Oakley OX8156 Holbrook", 165_00),
    ("warby-parker-winston", "Warby Parker Winston", 95_00),
    ("silhouette-5515", "Silhouette 5515 Titan", 320_00),
    ("coach-hc6152", "Coach HC6152", 195_00),
    ("flexon-autoflex", "Flexon Autoflex", 125_00),
]

_ENHANCEMENTS = [
    ("anti-reflective", "Anti-reflective coating", 89_00, FormularyTier.TIER_1),
    ("photochromic", "Photochromic", 129_00, FormularyTier.TIER_2),
    ("polarized", "Polarized", 159_00, FormularyTier.TIER_2),
    ("blue-light", "Blue-light filter", 69_00, FormularyTier.TIER_1),
    ("scratch-resistant", "Scratch-resistant coating", 39_00, FormularyTier.TIER_1),
    ("premium-ar", "Premium anti-reflective", 149_00, FormularyTier.TIER_3),
]

_EXAM_SERVICES = [
    ("comprehensive-exam", "Comprehensive eye exam", 275_00, True),
    ("contact-lens-fitting", "Contact lens fitting", 125_00, False),
    ("retinal-imaging", "Retinal imaging", 85_00, False),
    ("visual-field-testing", "Visual field testing", 95_00, True),
    ("oct-scan", "OCT scan", 145_00, False),
    ("dilation", "Dilation", 35_00, True),
    ("retinal-photos", "Retinal photos", 65_00, False),
    ("oct-macula", "OCT macula", 125_00, False),
    ("oct-glaucoma", "OCT glaucoma", 125_00, True),
    ("visual-field-extended", "Extended visual field", 75_00, True),
    ("corneal-topography", "Corneal topography", 95_00, False),
]

# brand -> per-box price for daily / weekly / monthly / extended wear
_CONTACT_BOX_PRICES = {
    ("acuvue", "Acuvue"): (35_00, 45_00, 55_00, 65_00),
    ("biofinity", "Biofinity"): (32_00, 42_00, 52_00, 62_00),
    ("dailies", "Dailies"): (38_00, 48_00, 58_00, 68_00),
    ("bausch", "Bausch + Lomb"): (30_00, 40_00, 50_00, 60_00),
}


def default_products() -> dict[str, CatalogProduct]:
    products: dict[str, CatalogProduct] = {}
    for product_id, name, price in _FRAMES:
        products[product_id] = CatalogProduct(
            product_id=product_id, name=name, category=BenefitCategory.FRAME, price_cents=price
        )
    for product_id, name, price, tier in _ENHANCEMENTS:
        products[product_id] = CatalogProduct(
            product_id=product_id,
            name=name,
            category=BenefitCategory.ENHANCEMENT,
            price_cents=price,
            formulary_tier=tier,
        )
    for product_id, name, price, covered in _EXAM_SERVICES:
        products[product_id] = CatalogProduct(
            product_id=product_id,
            name=name,
            category=BenefitCategory.EXAM,
            price_cents=price,
            insurance_eligible=covered,
        )
    for (slug, manufacturer), prices in _CONTACT_BOX_PRICES.items():
        for schedule, price in zip(WearSchedule, prices):
            product_id = f"{slug}-{schedule.value}"
            products[product_id] = CatalogProduct(
                product_id=product_id,
                name=f"{manufacturer} {schedule.value} (box)",
                category=BenefitCategory.CONTACTS,
                price_cents=price,
                manufacturer=manufacturer,
                wear_schedule=schedule,
            )
    return products


# ── Catalog class ────────────────────────────────────────

class ProductCatalog:
    """Product lookups with admin price updates. In-memory in mock mode."""

    def __init__(self, products: Optional[dict[str, CatalogProduct]] = None):
        self.settings = get_settings()
        self._db = None
        self._products = products if products is not None else default_products()
        self._lens_prices = dict(LENS_BASE_PRICES)

    def _get_db(self):
        if self._db is not None or self.settings.mock_mode:
            return self._db
        try:
            from pymongo import MongoClient
            client = MongoClient(self.settings.mongodb_uri, serverSelectionTimeoutMS=2000)
            self._db = client[self.settings.mongodb_database]
        except Exception as e:
            logger.warning(f"MongoDB not available, using default catalog: {e}")
            self._db = None
        return self._db

    def get_product(self, product_id: str) -> CatalogProduct:
        db = self._get_db()
        if db is not None:
            try:
                doc = db.products.find_one({"product_id": product_id})
                if doc:
                    doc.pop("_id", None)
                    return CatalogProduct(**doc)
            except Exception as e:
                logger.warning(f"Failed loading product {product_id} from MongoDB: {e}")

        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return product

    def list_products(self, category: Optional[BenefitCategory] = None) -> list[CatalogProduct]:
        return [p for p in self._products.values() if category is None or p.category == category]

    def lens_base_price(self, lens_type: LensType) -> int:
        return self._lens_prices[lens_type]

    def lens_tier(self, lens_type: LensType) -> Optional[FormularyTier]:
        return LENS_TIERS.get(lens_type)

    def material_multiplier(self, material: LensMaterial) -> Decimal:
        return MATERIAL_MULTIPLIERS[material]

    def rebate_for(self, manufacturer: str) -> Optional[ManufacturerRebate]:
        amount = MANUFACTURER_REBATES.get(manufacturer)
        if amount is None:
            return None
        return ManufacturerRebate(manufacturer=manufacturer, amount_cents=amount)

    def update_price(self, product_id: str, price_cents: int) -> CatalogProduct | int:
        """
        Admin price change. Accepts a product id or a lens type value
        ("progressive"). Returns the updated product (or lens price).
        """
        try:
            lens_type = LensType(product_id)
        except ValueError:
            lens_type = None
        if lens_type is not None:
            old = self._lens_prices[lens_type]
            self._lens_prices[lens_type] = price_cents
            logger.info(f"Lens price {lens_type.value}: {old} -> {price_cents}")
            return price_cents

        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFound(product_id)
        updated = product.model_copy(update={"price_cents": price_cents})
        self._products[product_id] = updated

        db = self._get_db()
        if db is not None:
            db.products.update_one(
                {"product_id": product_id},
                {"$set": updated.model_dump(mode="json")},
                upsert=True,
            )
        logger.info(f"Price {product_id}: {product.price_cents} -> {price_cents}")
        return updated
