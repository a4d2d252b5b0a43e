"""Reference data — carrier plans and the product catalog."""

from .carrier_config import CarrierConfigStore
from .product_catalog import ProductCatalog

__all__ = ["CarrierConfigStore", "ProductCatalog"]
