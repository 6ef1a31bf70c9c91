"""FastAPI application configuration."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..domain.errors import PersistenceError
from ..domain.invoice_gateway import InvoiceGateway
from ..env import Settings, get_settings
from ..infrastructure.lnurl import encode_lnurl
from ..infrastructure.storage import KeyValueStore
from .dependencies import build_services
from .routers import comments, offer

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[KeyValueStore] = None,
    gateway: Optional[InvoiceGateway] = None,
) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        services = build_services(settings, store=store, gateway=gateway)
        app.state.services = services

        if services.db_client is not None:
            await services.db_client.ping()
        try:
            loaded = await services.feed.load()
            logger.info("Loaded %d comment(s) from storage", loaded)
        except PersistenceError:
            logger.exception("Stored comments unavailable; starting with an empty feed")
        logger.info(
            "LNURL encoded address to send text:\n%s", encode_lnurl(settings.offer_url)
        )
        try:
            yield
        finally:
            await services.correlator.shutdown()
            await services.gateway.aclose()
            if services.db_client is not None:
                await services.db_client.close()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Pay-to-post comment feed over LNURL-pay",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(offer.router)
    app.include_router(comments.router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": f"Welcome to {settings.app_name} API",
            "version": settings.app_version,
            "lnurl": encode_lnurl(settings.offer_url),
        }

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        body = {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
        }
        db_client = app.state.services.db_client
        if db_client is not None:
            body["database"] = "ok" if await db_client.ping() else "unavailable"
        return body

    return app
