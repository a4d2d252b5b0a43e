"""
Quote Repository — current quote documents plus append-only pricing
snapshots written on every lifecycle transition.

Uses in-memory dicts in mock mode, MongoDB (`quotes`,
`quote_snapshots`) otherwise. Documents are stored in JSON mode so
Decimal cents survive as exact strings.
"""

from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any, Optional

from optical_quote.exceptions import QuoteNotFound
from optical_quote.models.enums import QuoteStatus
from optical_quote.models.schemas import PricingBreakdown, utcnow
from optical_quote.models.state import Quote
from optical_quote.persistence.mongo_client import MongoClient

logger = logging.getLogger(__name__)


class QuoteRepository:
    """Save/load quotes and their transition snapshots."""

    def __init__(self, client: Optional[MongoClient] = None):
        self._client = client or MongoClient()
        self._db = self._client.get_database()
        self._quotes: dict[str, dict[str, Any]] = {}
        self._snapshots: dict[str, list[dict[str, Any]]] = {}

    # ── Quotes ───────────────────────────────────────────

    def save(self, quote: Quote) -> None:
        doc = quote.model_dump(mode="json")
        if self._db is not None:
            self._db.quotes.replace_one({"quote_id": quote.quote_id}, doc, upsert=True)
        else:
            self._quotes[quote.quote_id] = deepcopy(doc)
        logger.debug(f"Saved quote {quote.quote_id} v{quote.version} ({quote.status.value})")

    def get(self, quote_id: str) -> Quote:
        if self._db is not None:
            doc = self._db.quotes.find_one({"quote_id": quote_id}, {"_id": 0})
        else:
            doc = deepcopy(self._quotes.get(quote_id))
        if doc is None:
            raise QuoteNotFound(quote_id)
        return Quote.model_validate(doc)

    def list_quotes(self, statuses: Optional[list[QuoteStatus]] = None) -> list[Quote]:
        wanted = {s.value for s in statuses} if statuses else None
        if self._db is not None:
            query = {"status": {"$in": sorted(wanted)}} if wanted else {}
            docs = list(self._db.quotes.find(query, {"_id": 0}))
        else:
            docs = [deepcopy(d) for d in self._quotes.values() if wanted is None or d["status"] in wanted]
        return [Quote.model_validate(d) for d in docs]

    # ── Snapshots (append-only) ──────────────────────────

    def save_quote_snapshot(self, quote: Quote, breakdown: PricingBreakdown, status: QuoteStatus) -> int:
        """Store the breakdown frozen at a transition and return its version."""
        version = self.get_snapshot_count(quote.quote_id) + 1
        snapshot = {
            "quote_id": quote.quote_id,
            "status": status.value,
            "quote_version": quote.version,
            "breakdown": breakdown.model_dump(mode="json"),
            "saved_at": utcnow().isoformat(),
            "_version": version,
        }
        if self._db is not None:
            self._db.quote_snapshots.insert_one(deepcopy(snapshot))
        else:
            self._snapshots.setdefault(quote.quote_id, []).append(snapshot)
        logger.info(f"Saved snapshot v{version} for {quote.quote_id} ({status.value})")
        return version

    def load_snapshot(self, quote_id: str, version: int | None = None) -> dict[str, Any] | None:
        """Latest (or a specific version of) a quote's snapshot; None if absent."""
        if self._db is not None:
            query: dict[str, Any] = {"quote_id": quote_id}
            if version is not None:
                query["_version"] = version
            docs = list(self._db.quote_snapshots.find(query, {"_id": 0}).sort("_version", -1).limit(1))
            return docs[0] if docs else None

        snapshots = self._snapshots.get(quote_id, [])
        if not snapshots:
            return None
        if version is not None:
            matches = [s for s in snapshots if s.get("_version") == version]
            return deepcopy(matches[0]) if matches else None
        return deepcopy(snapshots[-1])

    def get_snapshot_count(self, quote_id: str) -> int:
        if self._db is not None:
            return self._db.quote_snapshots.count_documents({"quote_id": quote_id})
        return len(self._snapshots.get(quote_id, []))
