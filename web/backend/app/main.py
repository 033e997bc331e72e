"""FastAPI application for the TCN banshare API.

Provides REST API endpoints wrapping the tcn package for:
- Banshare submission and review (reject, publish, rescind, severity)
- Per-guild execution and crosspost bookkeeping
- Guild banshare settings and log channels
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tcn import __version__
from tcn.banshares.gateway import EnforcementGateway
from tcn.config import Settings, load_settings
from tcn.logging_config import setup_logging
from web.backend.app.errors import install_error_handlers
from web.backend.app.routers import banshares
from web.backend.app.services import build_services


def create_app(settings: Optional[Settings] = None, gateway: Optional[EnforcementGateway] = None) -> FastAPI:
    """Build the application. Run with ``uvicorn --factory web.backend.app.main:create_app``."""
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="TCN API",
        description=(
            "REST API for the TCN banshare federation. "
            "Provides endpoints for submitting, reviewing and executing banshares "
            "and for managing per-guild banshare settings."
        ),
        version=__version__,
    )
    app.state.services = build_services(settings, gateway)

    # ---------------------------------------------------------------------------
    # CORS middleware (allow all origins for development)
    # ---------------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)
    app.include_router(banshares.router)

    # ---------------------------------------------------------------------------
    # Root and health-check endpoints
    # ---------------------------------------------------------------------------

    @app.get("/", tags=["meta"])
    async def root():
        """Return basic API information."""
        return {
            "name": "TCN API",
            "version": __version__,
            "docs": "/docs",
            "openapi": "/openapi.json",
        }

    @app.get("/health", tags=["meta"])
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
