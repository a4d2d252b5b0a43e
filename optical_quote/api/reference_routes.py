"""
Reference data API routes.

Routes:
  GET  /api/reference/plans                        → Carrier plans (normalized)
  PUT  /api/reference/plans                        → Save a carrier plan blob (MongoDB only)
  GET  /api/reference/products                     → Catalog products (optional ?category=)
  PUT  /api/reference/products/{product_id}/price  → Admin price change
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from optical_quote.api.routes import get_quote_service
from optical_quote.exceptions import PlanNotFound, ProductNotFound
from optical_quote.models.enums import BenefitCategory
from optical_quote.services.quote_service import QuoteService

logger = logging.getLogger(__name__)

reference_router = APIRouter()


class PlanConfigRequest(BaseModel):
    carrier: str
    plan_name: str
    benefits: dict[str, dict[str, Any]] = Field(default_factory=dict)


class PriceUpdateRequest(BaseModel):
    price_cents: int = Field(ge=0)


@reference_router.get("/plans")
def get_plans(service: QuoteService = Depends(get_quote_service)):
    return [plan.model_dump(mode="json") for plan in service.carriers.list_plans()]


@reference_router.put("/plans")
def put_plan(body: PlanConfigRequest, service: QuoteService = Depends(get_quote_service)):
    try:
        saved = service.carriers.update_plan(body.model_dump())
    except (PlanNotFound, ValueError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    if not saved:
        raise HTTPException(status_code=503, detail="Carrier plan storage is unavailable")
    return {"carrier": body.carrier, "plan_name": body.plan_name, "saved": True}


@reference_router.get("/products")
def get_products(
    category: Optional[BenefitCategory] = None,
    service: QuoteService = Depends(get_quote_service),
):
    return [p.model_dump(mode="json") for p in service.catalog.list_products(category)]


@reference_router.put("/products/{product_id}/price")
def put_price(
    product_id: str,
    body: PriceUpdateRequest,
    service: QuoteService = Depends(get_quote_service),
):
    try:
        updated = service.catalog.update_price(product_id, body.price_cents)
    except ProductNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    logger.info(f"Admin price change via API: {product_id} = {body.price_cents}")
    if isinstance(updated, int):
        return {"product_id": product_id, "price_cents": updated}
    return updated.model_dump(mode="json")
