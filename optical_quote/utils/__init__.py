from .logger import setup_logging
from .money import cents, dollars_to_cents, format_usd, to_display

__all__ = ["setup_logging", "cents", "dollars_to_cents", "format_usd", "to_display"]
