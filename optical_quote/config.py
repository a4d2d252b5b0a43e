"""
Application configuration using Pydantic Settings.
All environment-specific values are centralized here.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── App ──────────────────────────────────────────────
    app_name: str = "Optical Quote Core"
    debug: bool = True
    mock_mode: bool = True  # When True, persistence stays in memory

    # ── Pricing inputs ───────────────────────────────────
    tax_rate: Decimal = Decimal("0.0875")
    annual_supply_discount_rate: Decimal = Decimal("0.15")

    # ── Second pair ──────────────────────────────────────
    second_pair_same_day_percent: Decimal = Decimal("50")
    second_pair_window_percent: Decimal = Decimal("30")
    second_pair_window_days: int = 30

    # ── Quote lifecycle ──────────────────────────────────
    quote_expiration_days: int = 30
    expiration_warning_days: int = 3
    expiration_batch_size: int = 100

    # ── MongoDB ──────────────────────────────────────────
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "optical_quote"

    # ── Logging ──────────────────────────────────────────
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings (singleton)."""
    return Settings()
