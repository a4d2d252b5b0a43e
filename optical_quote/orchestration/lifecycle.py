"""
Quote Lifecycle Manager — guarded status transitions with pricing snapshots.

A transition takes the quote lock, checks the table and guard, prices the
quote (or reuses the frozen snapshot), and returns a NEW quote carrying
the new status, snapshot and history entry. The input quote is never
mutated, so a rejected attempt leaves the caller's quote untouched.

Persistence and notification run after the commit. Their failures do not
undo the transition; they come back as EXTERNAL_SERVICE_FAILURE warnings
for the caller to retry.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Optional

from pydantic import BaseModel, Field

from optical_quote.exceptions import StaleQuoteVersion
from optical_quote.models.enums import QuoteStatus, TransitionCategory, WarningCode
from optical_quote.models.schemas import (
    PricingBreakdown,
    PricingWarning,
    TransitionRecord,
    TransitionRequest,
    utcnow,
)
from optical_quote.models.state import Quote
from optical_quote.orchestration.transitions import check_transition, requires_manager_approval
from optical_quote.pricing.pricing_aggregator import compute_pricing
from optical_quote.services.notification_service import QuoteEvents

logger = logging.getLogger(__name__)


class TransitionResult(BaseModel):
    quote: Quote
    breakdown: PricingBreakdown
    warnings: list[PricingWarning] = Field(default_factory=list)
    snapshot_version: Optional[int] = None

    @property
    def status(self) -> QuoteStatus:
        return self.quote.status


class QuoteLocks:
    """One re-entrant lock per quote id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def _lock_for(self, quote_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(quote_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[quote_id] = lock
            return lock

    @contextmanager
    def hold(self, quote_id: str) -> Iterator[None]:
        lock = self._lock_for(quote_id)
        with lock:
            yield


class QuoteLifecycleManager:
    """
    Owns the state machine. `persistence` needs `save_quote_snapshot(quote,
    breakdown, status) -> int`; `events` is the notification bus.
    """

    def __init__(
        self,
        persistence: Any = None,
        events: Optional[QuoteEvents] = None,
        locks: Optional[QuoteLocks] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.persistence = persistence
        self.events = events if events is not None else QuoteEvents.get()
        self.locks = locks if locks is not None else QuoteLocks()
        self._clock = clock

    def transition(self, quote: Quote, request: TransitionRequest, now: Optional[datetime] = None) -> TransitionResult:
        now = now or self._clock()

        with self.locks.hold(quote.quote_id):
            if request.expected_version is not None and request.expected_version != quote.version:
                raise StaleQuoteVersion(quote.quote_id, request.expected_version, quote.version)

            check_transition(quote, request, now)

            # Pricing is frozen once the quote leaves the editable states
            if quote.pricing_snapshot is not None and not quote.is_editable:
                breakdown = quote.pricing_snapshot.model_copy(deep=True)
            else:
                breakdown = compute_pricing(quote)

            updated = quote.model_copy(deep=True)
            updated.status = request.to
            updated.pricing_snapshot = breakdown
            updated.updated_at = now
            if request.to == QuoteStatus.PRESENTED:
                updated.presentation_method = request.presentation_method or quote.presentation_method
            if request.to == QuoteStatus.CANCELLED:
                updated.cancellation_reason = request.reason.strip()

            approval = requires_manager_approval(quote.status, request.to)
            updated.add_history(
                TransitionRecord(
                    from_status=quote.status,
                    to_status=request.to,
                    category=request.category,
                    reason=request.reason,
                    actor=request.actor,
                    requires_manager_approval=approval,
                    grand_total_cents=breakdown.grand_total_cents,
                    at=now,
                )
            )

        logger.info(
            f"[{quote.quote_id}] {quote.status.value} → {request.to.value} "
            f"(v{updated.version}, total={breakdown.display()['grand_total_formatted']})"
        )
        if approval:
            logger.warning(f"[{quote.quote_id}] {quote.status.value} → {request.to.value} requires manager approval")

        warnings, snapshot_version = self._run_side_effects(updated, breakdown)
        return TransitionResult(
            quote=updated,
            breakdown=breakdown,
            warnings=warnings,
            snapshot_version=snapshot_version,
        )

    def expire(self, quote: Quote, now: Optional[datetime] = None) -> TransitionResult:
        """System-driven expiry of a draft/presented quote."""
        return self.transition(
            quote,
            TransitionRequest(
                to=QuoteStatus.EXPIRED,
                reason="quote passed its expiration date",
                actor="system",
                category=TransitionCategory.SYSTEM_ACTION,
            ),
            now=now,
        )

    # ── Side effects ─────────────────────────────────────

    def _run_side_effects(
        self, quote: Quote, breakdown: PricingBreakdown
    ) -> tuple[list[PricingWarning], Optional[int]]:
        warnings: list[PricingWarning] = []
        snapshot_version = None

        if self.persistence is not None:
            try:
                snapshot_version = self.persistence.save_quote_snapshot(quote, breakdown, quote.status)
            except Exception as e:
                logger.error(f"[{quote.quote_id}] Snapshot save failed: {e}")
                warnings.append(
                    PricingWarning(
                        code=WarningCode.EXTERNAL_SERVICE_FAILURE,
                        message=f"Persistence failed, retry saving snapshot: {e}",
                    )
                )

        try:
            if quote.status == QuoteStatus.PRESENTED:
                self.events.on_presented(quote.quote_id, quote.patient.email)
            elif quote.status == QuoteStatus.EXPIRED:
                self.events.on_expired(quote.quote_id)
        except Exception as e:
            logger.error(f"[{quote.quote_id}] Notification failed: {e}")
            warnings.append(
                PricingWarning(
                    code=WarningCode.EXTERNAL_SERVICE_FAILURE,
                    message=f"Notification failed, retry sending: {e}",
                )
            )

        return warnings, snapshot_version
