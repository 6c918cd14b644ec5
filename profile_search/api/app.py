"""
FastAPI application factory for profile search service.

Creates and configures the FastAPI application with routes, request
correlation middleware and dependencies.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from profile_search.api.dependencies import (
    API_VERSION,
    ServiceContainer,
    build_container,
)
from profile_search.core.config import Settings, get_settings
from profile_search.core.logging import clear_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Connect the embedding store and build the lexical index on startup."""
    services: ServiceContainer = app.state.services
    settings: Settings | None = getattr(app.state, "settings", None)
    store = services.embedding_store

    if hasattr(store, "connect"):
        await store.connect()
        if settings is not None:
            await store.ensure_collection(vector_size=settings.embedding_dimension)

    if services.embedding_manager is not None:
        result = await services.embedding_manager.initialize_lexical_index()
        if not result.success:
            logger.warning("Lexical index not initialized: %s", result.error)

    try:
        yield
    finally:
        if hasattr(store, "close"):
            await store.close()


def create_app(
    settings: Settings | None = None,
    services: ServiceContainer | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Optional settings (defaults to get_settings())
        services: Optional pre-configured service container; when given,
            no startup wiring is performed

    Returns:
        Configured FastAPI application
    """
    lifespan = None
    if services is None:
        settings = settings or get_settings()
        services = build_container(settings)
        lifespan = _lifespan

    app = FastAPI(
        title="Profile Search Service",
        description="Hybrid semantic + BM25 profile search API",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        set_correlation_id(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    # Store services in app state for dependency injection
    app.state.services = services
    app.state.settings = settings

    # Import routes here to avoid circular imports
    from profile_search.api.routes import get_services, router

    def _get_services() -> ServiceContainer:
        return app.state.services

    app.dependency_overrides[get_services] = _get_services

    app.include_router(router)

    return app
