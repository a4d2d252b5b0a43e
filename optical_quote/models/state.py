"""
Quote aggregate — the single object the pricing and lifecycle code works on.

Design rules:
  1. Each layer (patient, insurance, exam, eyeglasses, contacts) is replaced
     wholesale by its update operation, never merged field by field.
  2. Pricing is never stored by hand; `pricing_snapshot` is written only by
     the lifecycle manager at transition time.
  3. The quote is versioned; every committed change bumps `version`.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from .enums import PresentationMethod, QuoteStatus, SignatureSlot
from .schemas import (
    ContactsLayer,
    ExamLayer,
    EyeglassesLayer,
    InsuranceSelection,
    LineItem,
    PatientInfo,
    PricingBreakdown,
    SignatureRecord,
    TransitionRecord,
    utcnow,
)

TERMINAL_STATUSES = frozenset({QuoteStatus.COMPLETED, QuoteStatus.CANCELLED, QuoteStatus.EXPIRED})
EDITABLE_STATUSES = frozenset({QuoteStatus.BUILDING, QuoteStatus.DRAFT})
EXPIRABLE_STATUSES = frozenset({QuoteStatus.DRAFT, QuoteStatus.PRESENTED})


class Quote(BaseModel):
    """An optical quote across the exam, eyeglasses and contacts layers."""

    # ── Identity & lifecycle ─────────────────────────────
    quote_id: str
    status: QuoteStatus = QuoteStatus.BUILDING
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_activity_at: datetime = Field(default_factory=utcnow)
    expires_at: Optional[datetime] = None
    expiration_warning_sent: bool = False
    location: str = ""
    staff_member: str = ""

    # ── Layers ───────────────────────────────────────────
    patient: PatientInfo = Field(default_factory=PatientInfo)
    insurance: InsuranceSelection = Field(default_factory=InsuranceSelection)
    exam: ExamLayer = Field(default_factory=ExamLayer)
    eyeglasses: EyeglassesLayer = Field(default_factory=EyeglassesLayer)
    contacts: ContactsLayer = Field(default_factory=ContactsLayer)

    # ── Pricing inputs fixed at creation ─────────────────
    tax_rate: Decimal = Decimal("0")
    annual_supply_discount_rate: Decimal = Decimal("0.15")

    # ── Presentation / signing / cancellation ────────────
    presentation_method: Optional[PresentationMethod] = None
    signatures: dict[SignatureSlot, SignatureRecord] = Field(default_factory=dict)
    cancellation_reason: str = ""

    # ── Written by the lifecycle manager only ────────────
    pricing_snapshot: Optional[PricingBreakdown] = None
    history: list[TransitionRecord] = Field(default_factory=list)

    # ── Helpers ──────────────────────────────────────────

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES

    def line_items(self) -> list[LineItem]:
        """Every selected item across the three layers (second pair included)."""
        items: list[LineItem] = list(self.exam.services)
        if self.eyeglasses.frame is not None:
            items.append(self.eyeglasses.frame)
        items.extend(self.eyeglasses.enhancements)
        second = self.eyeglasses.second_pair
        if second is not None and second.frame is not None:
            items.append(second.frame)
        if self.contacts.product is not None:
            items.append(self.contacts.product)
        return items

    def has_line_items(self) -> bool:
        return bool(self.line_items()) or self.eyeglasses.lens.is_complete

    def is_past_expiry(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def touch(self, now: datetime, expiration_days: int) -> None:
        """Record activity and push the expiry window out."""
        self.updated_at = now
        self.last_activity_at = now
        self.expires_at = now + timedelta(days=expiration_days)

    def add_history(self, record: TransitionRecord) -> None:
        self.version += 1
        record.version = self.version
        self.history.append(record)
