"""Pricing core — benefit allocation, discounts and the aggregate breakdown."""

from .benefit_allocator import allocate
from .pricing_aggregator import compute_pricing

__all__ = ["allocate", "compute_pricing"]
