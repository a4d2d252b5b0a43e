"""Domain models — enums, layer schemas and the Quote aggregate."""

from .enums import QuoteStatus, LayerId, Carrier, BenefitCategory
from .schemas import InsurancePlan, LineItem, PricingBreakdown
from .state import Quote

__all__ = [
    "QuoteStatus",
    "LayerId",
    "Carrier",
    "BenefitCategory",
    "InsurancePlan",
    "LineItem",
    "PricingBreakdown",
    "Quote",
]
