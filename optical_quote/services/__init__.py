"""Services — QuoteEvents, second-pair rules. QuoteService lives in services.quote_service."""

from optical_quote.services.notification_service import QuoteEvents
from optical_quote.services.second_pair import check_eligibility, discount_percent_for

__all__ = ["QuoteEvents", "check_eligibility", "discount_percent_for"]
