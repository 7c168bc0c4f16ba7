"""
FastAPI application for the mastery engine.

Provides REST API for:
- Test session lifecycle and adaptive question selection
- Answer submission feeding mastery tracking
- Mastery summaries and review queues
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from mastery_engine import __version__
from mastery_engine.config import Settings, get_settings
from mastery_engine.service import TestingService

from .routers.learning_router import router as learning_router


def create_app(service: TestingService | None = None, settings: Settings | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        service: Pre-built service (tests inject one over an in-memory store)
        settings: Settings used when the service has to be built here
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown events."""
        owns_service = service is None
        app.state.service = service or TestingService.from_settings(settings)
        logger.info(f"Mastery engine API started ({settings.store_backend} store)")

        yield

        logger.info("Shutting down mastery engine API...")
        if owns_service:
            await app.state.service.close()

    app = FastAPI(
        title="Mastery Engine",
        description="Mastery tracking, spaced repetition and adaptive test sessions.",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, Any]:
        return {
            "status": "ok",
            "version": __version__,
            "store": settings.store_backend,
        }

    app.include_router(learning_router, prefix="/learning", tags=["Learning"])
    return app
