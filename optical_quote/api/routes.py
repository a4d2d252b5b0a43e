"""
API routes — thin HTTP layer that delegates to the QuoteService.

Routes:
  GET  /health                                   → API health check
  POST /api/quotes                               → Start a quote (building)
  GET  /api/quotes                               → List quotes (optional ?status=)
  GET  /api/quotes/{quote_id}                    → Full quote document
  PUT  /api/quotes/{quote_id}/patient            → Replace the patient layer
  PUT  /api/quotes/{quote_id}/insurance          → Replace the insurance layer
  PUT  /api/quotes/{quote_id}/exam               → Replace the exam layer
  PUT  /api/quotes/{quote_id}/eyeglasses         → Replace the eyeglasses layer
  PUT  /api/quotes/{quote_id}/contacts           → Replace the contacts layer
  POST /api/quotes/{quote_id}/signatures         → Record a signature slot
  GET  /api/quotes/{quote_id}/pricing            → Live or frozen breakdown
  POST /api/quotes/{quote_id}/transition         → Lifecycle transition
  GET  /api/quotes/{quote_id}/history            → Transition history
  GET  /api/quotes/{quote_id}/events             → Notification events emitted for the quote
  GET  /api/quotes/{quote_id}/second-pair/eligibility
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from optical_quote.config import get_settings
from optical_quote.exceptions import (
    InvalidTransition,
    ProductNotFound,
    QuoteError,
    QuoteNotEditable,
    QuoteNotFound,
    StaleQuoteVersion,
)
from optical_quote.models.enums import (
    BenefitCategory,
    LensMaterial,
    LensType,
    PresentationMethod,
    QuoteStatus,
    SecondPairDiscountType,
    SignatureSlot,
)
from optical_quote.models.schemas import PatientInfo, PricingBreakdown, TransitionRequest
from optical_quote.models.state import Quote
from optical_quote.services.quote_service import QuoteService

logger = logging.getLogger(__name__)

# ── Routers ──────────────────────────────────────────────
health_router = APIRouter()
quote_router = APIRouter()

_service: QuoteService | None = None


def get_quote_service() -> QuoteService:
    global _service
    if _service is None:
        _service = QuoteService()
    return _service


# ── Request schemas ──────────────────────────────────────

class CreateQuoteRequest(BaseModel):
    location: str = ""
    staff_member: str = ""
    patient: Optional[PatientInfo] = None


class PatientRequest(PatientInfo):
    expected_version: Optional[int] = None


class InsuranceRequest(BaseModel):
    carrier: str = "none"
    plan_name: str = ""
    member_id: str = ""
    prior_usage_cents: dict[BenefitCategory, int] = {}
    expected_version: Optional[int] = None


class ExamRequest(BaseModel):
    service_ids: list[str] = []
    medical_diagnosis: str = ""
    notes: str = ""
    expected_version: Optional[int] = None


class EyeglassesRequest(BaseModel):
    frame_id: Optional[str] = None
    lens_type: Optional[LensType] = None
    material: Optional[LensMaterial] = None
    enhancement_ids: list[str] = []
    second_pair_frame_id: Optional[str] = None
    second_pair_discount: SecondPairDiscountType = SecondPairDiscountType.THIRTY_DAY_30
    second_pair_override_percent: Optional[Decimal] = None
    expected_version: Optional[int] = None


class ContactsRequest(BaseModel):
    product_id: Optional[str] = None
    boxes: Optional[int] = None
    annual_supply: bool = False
    apply_rebate: bool = True
    expected_version: Optional[int] = None


class SignatureRequest(BaseModel):
    slot: SignatureSlot
    signer: str
    present: bool = True


class TransitionPayload(BaseModel):
    reason: str = ""
    presentation_method: Optional[PresentationMethod] = None
    actor: str = ""
    expected_version: Optional[int] = None


class TransitionBody(BaseModel):
    to: QuoteStatus
    payload: TransitionPayload = TransitionPayload()


# ── Response helpers ─────────────────────────────────────

def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, QuoteNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (InvalidTransition, QuoteNotEditable, StaleQuoteVersion)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (ProductNotFound, ValueError)):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _quote_body(quote: Quote) -> dict[str, Any]:
    return quote.model_dump(mode="json")


def _pricing_body(breakdown: PricingBreakdown) -> dict[str, Any]:
    return {
        "display": breakdown.display(),
        "breakdown": breakdown.model_dump(mode="json"),
        "warnings": [w.model_dump(mode="json") for w in breakdown.warnings],
    }


# ── Health ───────────────────────────────────────────────

@health_router.get("/health")
async def health_check():
    settings = get_settings()
    return {
        "status": "ok",
        "mock_mode": settings.mock_mode,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ── Quotes ───────────────────────────────────────────────

@quote_router.post("", status_code=201)
def create_quote(body: CreateQuoteRequest, service: QuoteService = Depends(get_quote_service)):
    quote = service.create_quote(location=body.location, staff_member=body.staff_member, patient=body.patient)
    return _quote_body(quote)


@quote_router.get("")
def list_quotes(status: Optional[QuoteStatus] = None, service: QuoteService = Depends(get_quote_service)):
    return [
        {
            "quote_id": q.quote_id,
            "status": q.status.value,
            "version": q.version,
            "patient": q.patient.name,
            "updated_at": q.updated_at.isoformat(),
        }
        for q in service.list_quotes(status)
    ]


@quote_router.get("/{quote_id}")
def get_quote(quote_id: str, service: QuoteService = Depends(get_quote_service)):
    try:
        return _quote_body(service.get_quote(quote_id))
    except QuoteError as e:
        raise _http_error(e)


# ── Layer replacement ────────────────────────────────────

@quote_router.put("/{quote_id}/patient")
def put_patient(quote_id: str, body: PatientRequest, service: QuoteService = Depends(get_quote_service)):
    patient = PatientInfo(**body.model_dump(exclude={"expected_version"}))
    try:
        return _quote_body(service.update_patient(quote_id, patient, body.expected_version))
    except QuoteError as e:
        raise _http_error(e)


@quote_router.put("/{quote_id}/insurance")
def put_insurance(quote_id: str, body: InsuranceRequest, service: QuoteService = Depends(get_quote_service)):
    try:
        quote = service.update_insurance(
            quote_id,
            carrier=body.carrier,
            plan_name=body.plan_name,
            member_id=body.member_id,
            prior_usage_cents=body.prior_usage_cents,
            expected_version=body.expected_version,
        )
    except QuoteError as e:
        raise _http_error(e)
    return _quote_body(quote)


@quote_router.put("/{quote_id}/exam")
def put_exam(quote_id: str, body: ExamRequest, service: QuoteService = Depends(get_quote_service)):
    try:
        quote = service.update_exam(
            quote_id,
            service_ids=body.service_ids,
            medical_diagnosis=body.medical_diagnosis,
            notes=body.notes,
            expected_version=body.expected_version,
        )
    except QuoteError as e:
        raise _http_error(e)
    return _quote_body(quote)


@quote_router.put("/{quote_id}/eyeglasses")
def put_eyeglasses(quote_id: str, body: EyeglassesRequest, service: QuoteService = Depends(get_quote_service)):
    try:
        quote = service.update_eyeglasses(
            quote_id,
            frame_id=body.frame_id,
            lens_type=body.lens_type,
            material=body.material,
            enhancement_ids=body.enhancement_ids,
            second_pair_frame_id=body.second_pair_frame_id,
            second_pair_discount=body.second_pair_discount,
            second_pair_override_percent=body.second_pair_override_percent,
            expected_version=body.expected_version,
        )
    except (QuoteError, ValueError) as e:
        raise _http_error(e)
    return _quote_body(quote)


@quote_router.put("/{quote_id}/contacts")
def put_contacts(quote_id: str, body: ContactsRequest, service: QuoteService = Depends(get_quote_service)):
    try:
        quote = service.update_contacts(
            quote_id,
            product_id=body.product_id,
            boxes=body.boxes,
            annual_supply=body.annual_supply,
            apply_rebate=body.apply_rebate,
            expected_version=body.expected_version,
        )
    except QuoteError as e:
        raise _http_error(e)
    return _quote_body(quote)


@quote_router.post("/{quote_id}/signatures")
def post_signature(quote_id: str, body: SignatureRequest, service: QuoteService = Depends(get_quote_service)):
    try:
        quote = service.record_signature(quote_id, body.slot, body.signer, body.present)
    except QuoteError as e:
        raise _http_error(e)
    return _quote_body(quote)


# ── Pricing & lifecycle ──────────────────────────────────

@quote_router.get("/{quote_id}/pricing")
def get_pricing(quote_id: str, service: QuoteService = Depends(get_quote_service)):
    try:
        return _pricing_body(service.price_quote(quote_id))
    except QuoteError as e:
        raise _http_error(e)


@quote_router.post("/{quote_id}/transition")
def post_transition(quote_id: str, body: TransitionBody, service: QuoteService = Depends(get_quote_service)):
    request = TransitionRequest(
        to=body.to,
        reason=body.payload.reason,
        presentation_method=body.payload.presentation_method,
        actor=body.payload.actor,
        expected_version=body.payload.expected_version,
    )
    try:
        result = service.transition(quote_id, request)
    except QuoteError as e:
        logger.info(f"[{quote_id}] Transition to {body.to.value} rejected: {e}")
        raise _http_error(e)

    return {
        "quote_id": quote_id,
        "status": result.status.value,
        "version": result.quote.version,
        "pricing": _pricing_body(result.breakdown),
        "warnings": [w.model_dump(mode="json") for w in result.warnings],
    }


@quote_router.get("/{quote_id}/history")
def get_history(quote_id: str, service: QuoteService = Depends(get_quote_service)):
    try:
        return [record.model_dump(mode="json") for record in service.history(quote_id)]
    except QuoteError as e:
        raise _http_error(e)


@quote_router.get("/{quote_id}/events")
def get_events(quote_id: str, service: QuoteService = Depends(get_quote_service)):
    try:
        service.get_quote(quote_id)
    except QuoteError as e:
        raise _http_error(e)
    return service.lifecycle.events.history(quote_id)


@quote_router.get("/{quote_id}/second-pair/eligibility")
def get_second_pair_eligibility(quote_id: str, service: QuoteService = Depends(get_quote_service)):
    try:
        return service.second_pair_eligibility(quote_id).model_dump(mode="json")
    except QuoteError as e:
        raise _http_error(e)
