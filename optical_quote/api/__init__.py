"""
FastAPI application factory and API package.

Run with:
    uvicorn optical_quote.api:app --reload --port 8000

Or via main.py:
    python -m optical_quote --serve
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from optical_quote import __version__
from optical_quote.config import get_settings
from optical_quote.api.reference_routes import reference_router
from optical_quote.api.routes import health_router, quote_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Application factory — create and configure the FastAPI instance."""
    settings = get_settings()

    application = FastAPI(
        title="Optical Quote API",
        description="Quote pricing and lifecycle for optical retail",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS for the point-of-sale frontend
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(health_router, tags=["Health"])
    application.include_router(quote_router, prefix="/api/quotes", tags=["Quotes"])
    application.include_router(reference_router, prefix="/api/reference", tags=["Reference"])

    logger.info(f"{settings.app_name} API ready (mock_mode={settings.mock_mode})")
    return application


# Module-level instance for `uvicorn optical_quote.api:app`
app = create_app()
