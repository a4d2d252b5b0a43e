"""
Optical Quote — Main Entry Point

Walk a sample quote through the full lifecycle (CLI):
    python -m optical_quote

Run the expiration job once:
    python -m optical_quote --expire [--dry-run]

Run as an API server:
    python -m optical_quote --serve
    # or: uvicorn optical_quote.api:app --reload --port 8000
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from optical_quote.config import get_settings
from optical_quote.models.enums import LensMaterial, LensType, PresentationMethod, QuoteStatus, SignatureSlot
from optical_quote.models.schemas import PatientInfo, TransitionRequest
from optical_quote.orchestration.expiration import ExpirationJobResult, QuoteExpirationJob
from optical_quote.orchestration.lifecycle import TransitionResult
from optical_quote.services.quote_service import QuoteService
from optical_quote.utils.logger import setup_logging


def run() -> TransitionResult:
    """Build, present, sign and complete a sample quote; return the last transition."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("  OPTICAL QUOTE CORE")
    logger.info(
        f"  Mode: {'MOCK' if settings.mock_mode else 'MONGO'} | "
        f"Started: {datetime.now(timezone.utc).isoformat()}"
    )
    logger.info("=" * 60)

    service = QuoteService()
    quote = service.create_quote(
        location="Downtown",
        staff_member="optician-01",
        patient=PatientInfo(customer_id="C-1001", name="Sample Patient", email="patient@example.com"),
    )
    qid = quote.quote_id
    service.update_insurance(qid, "VSP", "VSP Choice", member_id="VSP-123456")
    service.update_exam(qid, ["comprehensive-exam", "dilation"])
    service.update_eyeglasses(
        qid,
        frame_id="ray-ban-rb5154",
        lens_type=LensType.PROGRESSIVE,
        material=LensMaterial.POLYCARBONATE,
        enhancement_ids=["anti-reflective"],
    )
    service.update_contacts(qid, product_id="acuvue-daily", annual_supply=True)

    service.transition(qid, TransitionRequest(to=QuoteStatus.DRAFT, actor="optician-01"))
    service.transition(
        qid,
        TransitionRequest(to=QuoteStatus.PRESENTED, presentation_method=PresentationMethod.TABLET, actor="optician-01"),
    )
    service.record_signature(qid, SignatureSlot.CUSTOMER, "Sample Patient")
    service.record_signature(qid, SignatureSlot.STAFF, "optician-01")
    service.transition(qid, TransitionRequest(to=QuoteStatus.SIGNED, actor="optician-01"))
    result = service.transition(qid, TransitionRequest(to=QuoteStatus.COMPLETED, actor="optician-01"))

    _print_summary(result)
    return result


def run_expiration(dry_run: bool = False) -> ExpirationJobResult:
    """Run the quote expiration job once against the configured store."""
    setup_logging(get_settings().log_level)
    service = QuoteService()
    job = QuoteExpirationJob(service.repository, service.lifecycle, dry_run=dry_run)
    return job.execute()


def _print_summary(result: TransitionResult) -> None:
    """Log a human-readable summary of the final quote."""
    logger = logging.getLogger(__name__)
    quote = result.quote
    display = result.breakdown.display()

    logger.info("")
    logger.info("-" * 60)
    logger.info("  QUOTE SUMMARY")
    logger.info("-" * 60)
    logger.info(f"  Quote ID:       {quote.quote_id}")
    logger.info(f"  Patient:        {quote.patient.name or 'N/A'}")
    logger.info(f"  Plan:           {quote.insurance.plan.carrier.value} / {quote.insurance.plan.plan_name}")
    logger.info(f"  Final Status:   {quote.status.value}")
    for layer_id, layer in display["layers"].items():
        logger.info(
            f"  {layer_id:<15} subtotal ${layer['subtotal']} | discounts ${layer['discounts']} | "
            f"insurance ${layer['insurance']} | patient ${layer['patient_responsibility']}"
        )
    logger.info(f"  Tax:            ${display['tax']}")
    logger.info(f"  Grand Total:    {display['grand_total_formatted']}")
    for warning in result.breakdown.warnings + result.warnings:
        logger.info(f"  Warning:        {warning.code.value}: {warning.message}")
    logger.info("-" * 60)

    logger.info(f"\n  History: {len(quote.history)} transitions")
    for record in quote.history:
        logger.info(
            f"    v{record.version} | {record.from_status.value} → {record.to_status.value} | "
            f"{record.actor or '-'} | {record.reason}"
        )
    logger.info("")


def serve(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Start the FastAPI server."""
    import uvicorn

    setup_logging(get_settings().log_level)
    logger = logging.getLogger(__name__)
    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run("optical_quote.api:app", host=host, port=port, reload=True)
