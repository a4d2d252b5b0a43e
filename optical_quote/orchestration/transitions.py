"""
Transition table and guard functions for the quote lifecycle.

Each guard inspects the quote and the request and returns a rejection
reason, or None when the transition may proceed. Anything not listed in
TRANSITIONS is rejected outright.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from optical_quote.exceptions import InvalidTransition
from optical_quote.models.enums import QuoteStatus, SignatureSlot, TransitionCategory
from optical_quote.models.schemas import TransitionRequest
from optical_quote.models.state import TERMINAL_STATUSES, Quote

Guard = Callable[[Quote, TransitionRequest, datetime], Optional[str]]


# ── building → draft ─────────────────────────────────────

def guard_to_draft(quote: Quote, request: TransitionRequest, now: datetime) -> Optional[str]:
    if not quote.has_line_items():
        return "quote has no line items in any layer"
    return None


# ── draft → presented ────────────────────────────────────

def guard_to_presented(quote: Quote, request: TransitionRequest, now: datetime) -> Optional[str]:
    if quote.is_past_expiry(now):
        return f"quote expired at {quote.expires_at.isoformat()}"
    if (request.presentation_method or quote.presentation_method) is None:
        return "presentation method must be recorded"
    return None


# ── presented → signed ───────────────────────────────────

def guard_to_signed(quote: Quote, request: TransitionRequest, now: datetime) -> Optional[str]:
    missing = [
        slot.value
        for slot in (SignatureSlot.CUSTOMER, SignatureSlot.STAFF)
        if slot not in quote.signatures or not quote.signatures[slot].is_complete
    ]
    if missing:
        return f"missing signatures: {', '.join(missing)}"
    return None


# ── signed → completed ───────────────────────────────────

def guard_to_completed(quote: Quote, request: TransitionRequest, now: datetime) -> Optional[str]:
    return None


# ── any non-terminal → cancelled ─────────────────────────

def guard_to_cancelled(quote: Quote, request: TransitionRequest, now: datetime) -> Optional[str]:
    if not request.reason or not request.reason.strip():
        return "cancellation reason is required"
    return None


# ── draft / presented → expired ──────────────────────────

def guard_to_expired(quote: Quote, request: TransitionRequest, now: datetime) -> Optional[str]:
    if request.category != TransitionCategory.SYSTEM_ACTION:
        return "expiry is system-driven, not a user action"
    if not quote.is_past_expiry(now):
        return "quote has not reached its expiry date"
    return None


TRANSITIONS: dict[tuple[QuoteStatus, QuoteStatus], Guard] = {
    (QuoteStatus.BUILDING, QuoteStatus.DRAFT): guard_to_draft,
    (QuoteStatus.DRAFT, QuoteStatus.PRESENTED): guard_to_presented,
    (QuoteStatus.PRESENTED, QuoteStatus.SIGNED): guard_to_signed,
    (QuoteStatus.SIGNED, QuoteStatus.COMPLETED): guard_to_completed,
    (QuoteStatus.DRAFT, QuoteStatus.EXPIRED): guard_to_expired,
    (QuoteStatus.PRESENTED, QuoteStatus.EXPIRED): guard_to_expired,
}
for _status in QuoteStatus:
    if _status not in TERMINAL_STATUSES:
        TRANSITIONS[(_status, QuoteStatus.CANCELLED)] = guard_to_cancelled

# Cancelling a signed quote goes through, but is flagged for manager sign-off
MANAGER_APPROVAL: frozenset[tuple[QuoteStatus, QuoteStatus]] = frozenset({
    (QuoteStatus.SIGNED, QuoteStatus.CANCELLED),
})


def allowed_targets(status: QuoteStatus) -> list[QuoteStatus]:
    return [to for (frm, to) in TRANSITIONS if frm == status]


def requires_manager_approval(from_status: QuoteStatus, to_status: QuoteStatus) -> bool:
    return (from_status, to_status) in MANAGER_APPROVAL


def check_transition(quote: Quote, request: TransitionRequest, now: datetime) -> None:
    """Raise InvalidTransition unless the table allows it and its guard passes."""
    guard = TRANSITIONS.get((quote.status, request.to))
    if guard is None:
        if quote.status in TERMINAL_STATUSES:
            reason = f"{quote.status.value} is terminal"
        else:
            allowed = ", ".join(s.value for s in allowed_targets(quote.status))
            reason = f"not an allowed transition (allowed: {allowed})"
        raise InvalidTransition(quote.status, request.to, reason)

    reason = guard(quote, request, now)
    if reason is not None:
        raise InvalidTransition(quote.status, request.to, reason)
