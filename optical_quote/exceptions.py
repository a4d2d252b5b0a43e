"""
Hard errors raised by the quote core.

Soft conditions (incomplete selections, unknown benefit codes, downstream
outages) are not exceptions; they travel as `PricingWarning` entries on
the returned breakdown or transition result.
"""

from __future__ import annotations

from optical_quote.models.enums import QuoteStatus


class QuoteError(Exception):
    """Base class for quote-core errors."""


class InvalidTransition(QuoteError):
    """A lifecycle transition was outside the table or its guard failed."""

    def __init__(self, from_status: QuoteStatus, to_status: QuoteStatus, reason: str):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        super().__init__(f"Cannot move quote from {from_status.value} to {to_status.value}: {reason}")


class QuoteNotEditable(QuoteError):
    """A layer update was attempted on a quote whose pricing is frozen."""

    def __init__(self, quote_id: str, status: QuoteStatus):
        self.quote_id = quote_id
        self.status = status
        super().__init__(f"Quote {quote_id} is {status.value} and can no longer be edited")


class StaleQuoteVersion(QuoteError):
    """Optimistic concurrency check failed."""

    def __init__(self, quote_id: str, expected: int, actual: int):
        self.quote_id = quote_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"Quote {quote_id} is at version {actual}, expected {expected}")


class QuoteNotFound(QuoteError):
    def __init__(self, quote_id: str):
        self.quote_id = quote_id
        super().__init__(f"Quote {quote_id} not found")


class PlanNotFound(QuoteError):
    def __init__(self, carrier: str, plan_name: str):
        self.carrier = carrier
        self.plan_name = plan_name
        super().__init__(f"No plan '{plan_name}' configured for carrier {carrier}")


class ProductNotFound(QuoteError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found in catalog")
