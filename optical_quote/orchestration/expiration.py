"""
Quote expiration — date helpers and the batch job that expires stale
draft/presented quotes and sends the "expires soon" warning.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from optical_quote.config import Settings, get_settings
from optical_quote.models.schemas import utcnow
from optical_quote.models.state import EXPIRABLE_STATUSES, Quote
from optical_quote.orchestration.lifecycle import QuoteLifecycleManager

logger = logging.getLogger(__name__)

_DAY_SECONDS = 86400


def expiration_date(last_activity_at: datetime, days: int) -> datetime:
    return last_activity_at + timedelta(days=days)


def _expires_at(quote: Quote, days: int) -> datetime:
    return quote.expires_at or expiration_date(quote.last_activity_at, days)


def days_until_expiration(quote: Quote, now: datetime, days: Optional[int] = None) -> int:
    """Whole days left, rounded up; zero or negative once past."""
    days = days if days is not None else get_settings().quote_expiration_days
    remaining = (_expires_at(quote, days) - now).total_seconds()
    return math.ceil(remaining / _DAY_SECONDS)


def should_expire(quote: Quote, now: datetime, days: Optional[int] = None) -> bool:
    days = days if days is not None else get_settings().quote_expiration_days
    return quote.status in EXPIRABLE_STATUSES and now >= _expires_at(quote, days)


def should_warn(
    quote: Quote,
    now: datetime,
    warning_days: Optional[int] = None,
    days: Optional[int] = None,
) -> bool:
    settings = get_settings()
    warning_days = warning_days if warning_days is not None else settings.expiration_warning_days
    days = days if days is not None else settings.quote_expiration_days
    if quote.status not in EXPIRABLE_STATUSES or quote.expiration_warning_sent:
        return False
    if should_expire(quote, now, days):
        return False
    return days_until_expiration(quote, now, days) <= warning_days


class ExpirationJobResult(BaseModel):
    checked: int = 0
    expired: list[str] = Field(default_factory=list)
    warnings_sent: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    dry_run: bool = False


class QuoteExpirationJob:
    """
    Walks expirable quotes in batches. `repository` needs
    `list_quotes(statuses)`, `get(quote_id)` and `save(quote)`.

    The listing only picks candidates. Each quote is re-read and decided
    under its lifecycle lock, so an edit committed mid-sweep is never
    written over.
    """

    def __init__(
        self,
        repository,
        lifecycle: QuoteLifecycleManager,
        settings: Optional[Settings] = None,
        dry_run: bool = False,
    ):
        self.repository = repository
        self.lifecycle = lifecycle
        self.settings = settings or get_settings()
        self.dry_run = dry_run

    def execute(self, now: Optional[datetime] = None) -> ExpirationJobResult:
        now = now or utcnow()
        result = ExpirationJobResult(dry_run=self.dry_run)
        quote_ids = [q.quote_id for q in self.repository.list_quotes(statuses=list(EXPIRABLE_STATUSES))]
        batch_size = max(1, self.settings.expiration_batch_size)

        for start in range(0, len(quote_ids), batch_size):
            batch = quote_ids[start:start + batch_size]
            logger.debug(f"Expiration batch {start // batch_size + 1}: {len(batch)} quote(s)")
            for quote_id in batch:
                result.checked += 1
                try:
                    self._process(quote_id, now, result)
                except Exception as e:
                    logger.error(f"[{quote_id}] Expiration check failed: {e}")
                    result.errors.append(f"{quote_id}: {e}")

        logger.info(
            f"Expiration job{' (dry run)' if self.dry_run else ''}: checked={result.checked} "
            f"expired={len(result.expired)} warned={len(result.warnings_sent)} errors={len(result.errors)}"
        )
        return result

    def _process(self, quote_id: str, now: datetime, result: ExpirationJobResult) -> None:
        days = self.settings.quote_expiration_days
        with self.lifecycle.locks.hold(quote_id):
            quote = self.repository.get(quote_id)

            if should_expire(quote, now, days):
                if not self.dry_run:
                    if quote.expires_at is None:
                        quote.expires_at = expiration_date(quote.last_activity_at, days)
                    transition = self.lifecycle.expire(quote, now=now)
                    self.repository.save(transition.quote)
                result.expired.append(quote_id)
                return

            if should_warn(quote, now, self.settings.expiration_warning_days, days):
                if not self.dry_run:
                    self.lifecycle.events.on_expiration_warning(quote_id, days_until_expiration(quote, now, days))
                    updated = quote.model_copy(deep=True)
                    updated.expiration_warning_sent = True
                    updated.version += 1
                    self.repository.save(updated)
                result.warnings_sent.append(quote_id)
