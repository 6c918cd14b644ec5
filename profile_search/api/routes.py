"""
API routes for profile search service.

Provides endpoints for hybrid, intelligent and advanced profile search,
query enhancement, re-ranking, profile indexing and health.
"""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Response, status

from profile_search.api.dependencies import API_VERSION, ServiceContainer
from profile_search.api.models import (
    CleanupResponse,
    ContextualSearchRequest,
    EnhanceResponse,
    ErrorResponse,
    ExpandResponse,
    HealthResponse,
    IndexProfileRequest,
    IndexProfileResponse,
    ProfileSearchRequest,
    ProfileSearchResponse,
    QueryRequest,
)
from profile_search.indexing.exceptions import ProfileNotFound, ProfileNotIndexable
from profile_search.search.exceptions import (
    EmbeddingGenerationFailed,
    InvalidQuery,
    ProfileSearchError,
    ServiceUnavailable,
)
from profile_search.search.models import SearchOptions
from profile_search.storage.exceptions import StoreError

logger = logging.getLogger(__name__)

router = APIRouter()

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    422: {"model": ErrorResponse, "description": "Validation error"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
    503: {"model": ErrorResponse, "description": "Service unavailable"},
}


def get_services() -> ServiceContainer:
    """Get service container - injected at runtime."""
    # This is overridden by dependency injection in create_app
    msg = "Services not configured"
    raise RuntimeError(msg)


def _http_error(e: Exception) -> HTTPException:
    """Map a pipeline exception onto an HTTPException."""
    if isinstance(e, (InvalidQuery, ProfileNotIndexable)):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, ProfileNotFound):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, (ServiceUnavailable, EmbeddingGenerationFailed, StoreError)):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        logger.exception("Unexpected error: %s", e)
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "internal_error", "message": str(e) or type(e).__name__},
        )

    error_type = e.error_type.lower() if isinstance(e, ProfileSearchError) else "error"
    message = e.message if isinstance(e, ProfileSearchError) else str(e)
    return HTTPException(status_code=code, detail={"error": error_type, "message": message})


def _require(services: ServiceContainer, name: str):
    component = getattr(services, name)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "not_configured", "message": f"{name} is not configured"},
        )
    return component


def _latency_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


# ==============================================================================
# Search Endpoints
# ==============================================================================


@router.post(
    "/v1/search/profiles",
    response_model=ProfileSearchResponse,
    responses=_ERROR_RESPONSES,
    tags=["search"],
    summary="Hybrid vector + BM25 profile search",
)
async def search_profiles(
    request: ProfileSearchRequest,
    services: ServiceContainer = Depends(get_services),  # noqa: B008
) -> ProfileSearchResponse:
    """
    Rank profiles by fused cosine similarity and BM25 score.

    Exact-term queries (quoted phrases, capitalized names, versions) weight
    BM25 at 0.7; conceptual queries weight vector similarity at 0.7.
    """
    search_service = _require(services, "search_service")
    start_time = time.perf_counter()

    options = SearchOptions(
        limit=request.limit,
        min_similarity=request.min_similarity,
        include_matched_text=request.include_matched_text,
        excluded_user_ids=request.excluded_user_ids,
    )
    try:
        response = await search_service.search_profiles(request.query, options)
    except Exception as e:
        raise _http_error(e) from e

    return ProfileSearchResponse.from_response(response, _latency_ms(start_time))


@router.post(
    "/v1/search/intelligent",
    response_model=ProfileSearchResponse,
    responses=_ERROR_RESPONSES,
    tags=["search"],
    summary="LLM-enhanced and re-ranked profile search",
)
async def intelligent_search(
    request: ContextualSearchRequest,
    services: ServiceContainer = Depends(get_services),  # noqa: B008
) -> ProfileSearchResponse:
    """
    Enhance the query with the requester's context, retrieve twice the
    limit, re-rank and keep confident matches. Falls back to plain search.
    """
    search_service = _require(services, "search_service")
    start_time = time.perf_counter()
    context = request.user_context.to_context() if request.user_context else None

    try:
        response = await search_service.intelligent_search(request.query, context, request.limit)
    except Exception as e:
        raise _http_error(e) from e

    return ProfileSearchResponse.from_response(response, _latency_ms(start_time))


@router.post(
    "/v1/search/advanced",
    response_model=ProfileSearchResponse,
    responses=_ERROR_RESPONSES,
    tags=["search"],
    summary="Keyword-expanded hybrid profile search",
)
async def advanced_search(
    request: ContextualSearchRequest,
    services: ServiceContainer = Depends(get_services),  # noqa: B008
) -> ProfileSearchResponse:
    search_service = _require(services, "search_service")
    start_time = time.perf_counter()
    context = request.user_context.to_context() if request.user_context else None

    try:
        response = await search_service.advanced_search(request.query, context, request.limit)
    except Exception as e:
        raise _http_error(e) from e

    return ProfileSearchResponse.from_response(response, _latency_ms(start_time))


@router.post(
    "/v1/search/rerank",
    response_model=ProfileSearchResponse,
    responses=_ERROR_RESPONSES,
    tags=["search"],
    summary="Hybrid search with LLM re-rank annotations",
)
async def rerank_search(
    request: ContextualSearchRequest,
    services: ServiceContainer = Depends(get_services),  # noqa: B008
) -> ProfileSearchResponse:
    search_service = _require(services, "search_service")
    start_time = time.perf_counter()
    context = request.user_context.to_context() if request.user_context else None

    try:
        response = await search_service.rerank(request.query, context, request.limit)
    except Exception as e:
        raise _http_error(e) from e

    return ProfileSearchResponse.from_response(response, _latency_ms(start_time))


@router.post(
    "/v1/search/enhance",
    response_model=EnhanceResponse,
    responses=_ERROR_RESPONSES,
    tags=["search"],
    summary="Personalize a query with the completion model",
)
async def enhance_query(
    request: QueryRequest,
    services: ServiceContainer = Depends(get_services),  # noqa: B008
) -> EnhanceResponse:
    search_service = _require(services, "search_service")
    context = request.user_context.to_context() if request.user_context else None

    try:
        enhancement = await search_service.enhance_query(request.query, context)
    except Exception as e:
        raise _http_error(e) from e

    return EnhanceResponse(**vars(enhancement))


@router.post(
    "/v1/search/expand",
    response_model=ExpandResponse,
    responses=_ERROR_RESPONSES,
    tags=["search"],
    summary="Expand a query into synonyms and related terms",
)
async def expand_keywords(
    request: QueryRequest,
    services: ServiceContainer = Depends(get_services),  # noqa: B008
) -> ExpandResponse:
    search_service = _require(services, "search_service")
    context = request.user_context.to_context() if request.user_context else None

    try:
        expansion = await search_service.expand_keywords(request.query, context)
    except Exception as e:
        raise _http_error(e) from e

    return ExpandResponse(**vars(expansion))


# ==============================================================================
# Indexing Endpoints
# ==============================================================================


@router.post(
    "/v1/profiles/{user_id}/index",
    response_model=IndexProfileResponse,
    responses=_ERROR_RESPONSES,
    tags=["indexing"],
    summary="Create or update a profile's embedding and lexical entry",
)
async def index_profile(
    user_id: str,
    request: IndexProfileRequest,
    services: ServiceContainer = Depends(get_services),  # noqa: B008
) -> IndexProfileResponse:
    manager = _require(services, "embedding_manager")
    try:
        record = await manager.index_profile(user_id, request.profile)
    except Exception as e:
        raise _http_error(e) from e

    return IndexProfileResponse(
        user_id=record.user_id,
        version=record.version,
        text_length=len(record.source_text),
        dimensions=len(record.vector),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


@router.delete(
    "/v1/profiles/{user_id}/index",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "Not found"}},
    tags=["indexing"],
    summary="Delete a profile's embedding and lexical entry",
)
async def delete_profile_index(
    user_id: str,
    services: ServiceContainer = Depends(get_services),  # noqa: B008
) -> Response:
    manager = _require(services, "embedding_manager")
    try:
        await manager.delete_profile(user_id)
    except Exception as e:
        raise _http_error(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/v1/index/cleanup",
    response_model=CleanupResponse,
    tags=["indexing"],
    summary="Purge embedding records with corrupt vectors",
)
async def cleanup_index(
    services: ServiceContainer = Depends(get_services),  # noqa: B008
) -> CleanupResponse:
    manager = _require(services, "embedding_manager")
    result = await manager.cleanup()
    return CleanupResponse(cleaned=result.cleaned, errors=result.errors)


# ==============================================================================
# Health
# ==============================================================================


@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check endpoint",
)
async def health_check(
    services: ServiceContainer = Depends(get_services),  # noqa: B008
) -> HealthResponse:
    """
    Check the health of the search pipeline.

    Returns the status of the embedding store, lexical index, embedding
    and completion clients, plus a sample query report.
    """
    service_statuses: dict[str, str] = {}

    store = services.embedding_store
    try:
        if store is None:
            service_statuses["embedding_store"] = "not_configured"
        elif hasattr(store, "health_check"):
            is_healthy = await store.health_check()
            service_statuses["embedding_store"] = "healthy" if is_healthy else "unhealthy"
        else:
            service_statuses["embedding_store"] = "healthy"
    except Exception:
        service_statuses["embedding_store"] = "unhealthy"

    if services.lexical_index is None:
        service_statuses["lexical_index"] = "not_configured"
    else:
        service_statuses["lexical_index"] = (
            "healthy" if services.lexical_index.stats().is_ready else "empty"
        )

    service_statuses["embedder"] = "not_configured"
    service_statuses["completion"] = "loaded" if services.completion_client else "not_configured"

    search_report = None
    if services.search_service is not None:
        health = await services.search_service.health_check()
        search_report = {
            "service_available": health.service_available,
            "embedding_service_available": health.embedding_service_available,
            "total_embeddings": health.total_embeddings,
            "last_updated": health.last_updated,
            "sample_query": health.sample_query,
            "lexical_index": vars(health.lexical_index) if health.lexical_index else None,
            "errors": health.errors,
        }
        service_statuses["search"] = "healthy" if health.service_available else "unhealthy"
        service_statuses["embedder"] = (
            "healthy" if health.embedding_service_available else "unhealthy"
        )
    elif services.embedding_client is not None:
        is_healthy = await services.embedding_client.health()
        service_statuses["embedder"] = "healthy" if is_healthy else "unhealthy"

    all_healthy = all(
        s in ("healthy", "loaded", "empty", "not_configured") for s in service_statuses.values()
    )
    return HealthResponse(
        status="healthy" if all_healthy else "degraded",
        services=service_statuses,
        search=search_report,
        version=API_VERSION,
    )
