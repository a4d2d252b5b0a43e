"""Orchestration — transition table, lifecycle manager and expiration job."""

from .lifecycle import QuoteLifecycleManager, QuoteLocks, TransitionResult
from .expiration import QuoteExpirationJob

__all__ = ["QuoteLifecycleManager", "QuoteLocks", "TransitionResult", "QuoteExpirationJob"]
