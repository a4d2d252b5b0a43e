"""
Quote event bus.

The core announces domain events (quote presented, expiry warning, quote
expired) here; delivery collaborators such as the email/PDF sender
subscribe and do the rendering. Events are also kept per quote so the
API can replay them.

Event shape:
    { "event": "quote_presented", "quote_id": "...", "status": "presented",
      "recipient_email": "...", "ts": "..." }
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)

Subscriber = Callable[[dict[str, Any]], None]

# Events kept per quote for replay; older ones are dropped
HISTORY_LIMIT = 50


class QuoteEvents:
    """In-process event bus. Subscriber errors propagate to the emitter."""

    _instance: QuoteEvents | None = None

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._history: dict[str, deque[dict[str, Any]]] = {}

    @classmethod
    def get(cls) -> QuoteEvents:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    # ── Subscription ─────────────────────────────────────

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    # ── Broadcasting ─────────────────────────────────────

    def emit(self, quote_id: str, event: dict[str, Any]) -> None:
        event.setdefault("quote_id", quote_id)
        event.setdefault("ts", datetime.now(timezone.utc).isoformat())
        self._history.setdefault(quote_id, deque(maxlen=HISTORY_LIMIT)).append(event)
        for subscriber in list(self._subscribers):
            subscriber(event)

    def history(self, quote_id: str) -> list[dict[str, Any]]:
        return list(self._history.get(quote_id, ()))

    # ── Convenience helpers ──────────────────────────────

    def on_presented(self, quote_id: str, recipient_email: str) -> None:
        self.emit(
            quote_id,
            {"event": "quote_presented", "status": "presented", "recipient_email": recipient_email},
        )
        logger.info(f"✉  [{quote_id}] Presented, notification queued for {recipient_email or '<no email>'}")

    def on_expiration_warning(self, quote_id: str, days_remaining: int) -> None:
        self.emit(quote_id, {"event": "expiration_warning", "days_remaining": days_remaining})
        logger.info(f"⏳ [{quote_id}] Expires in {days_remaining} day(s)")

    def on_expired(self, quote_id: str) -> None:
        self.emit(quote_id, {"event": "quote_expired", "status": "expired"})
        logger.info(f"══ [{quote_id}] Expired")

    def clear(self, quote_id: str | None = None) -> None:
        if quote_id is None:
            self._history.clear()
        else:
            self._history.pop(quote_id, None)
