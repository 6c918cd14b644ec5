"""
Pydantic models for API request/response validation.

These models define the contract for the profile search API endpoints.
Conversion helpers map the internal search dataclasses onto them.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from profile_search.search.models import SearchResponse, SearchResult, UserContext

_MAX_LIMIT = 100


class UserContextModel(BaseModel):
    """Requester profile used to personalise enhancement and re-ranking."""

    model_config = ConfigDict(extra="forbid")

    job_role: str | None = None
    industry: str | None = None
    years_of_experience: int | None = Field(default=None, ge=0)
    company: str | None = None
    skills: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)

    def to_context(self) -> UserContext:
        return UserContext(**self.model_dump())


class ProfileSearchRequest(BaseModel):
    """Request model for plain hybrid search."""

    model_config = ConfigDict(extra="forbid")

    query: str = Field(description="Free-text query", max_length=1000)
    limit: int = Field(default=20, ge=1, le=_MAX_LIMIT, description="Maximum results")
    min_similarity: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Normalized vector score floor for inclusion",
    )
    include_matched_text: bool = Field(
        default=False,
        description="Attach the indexed profile text to each result",
    )
    excluded_user_ids: list[str] = Field(
        default_factory=list,
        description="User ids never returned (e.g. the requester)",
    )


class ContextualSearchRequest(BaseModel):
    """Request model for intelligent, advanced and rerank searches."""

    model_config = ConfigDict(extra="forbid")

    query: str = Field(description="Free-text query", max_length=1000)
    limit: int = Field(default=10, ge=1, le=_MAX_LIMIT, description="Maximum results")
    user_context: UserContextModel | None = Field(
        default=None,
        description="Requester profile for personalization",
    )


class QueryRequest(BaseModel):
    """Request model for query enhancement and keyword expansion."""

    model_config = ConfigDict(extra="forbid")

    query: str = Field(description="Free-text query", max_length=1000)
    user_context: UserContextModel | None = None


class SearchResultItem(BaseModel):
    """A single profile search result."""

    user_id: str
    profile: dict[str, Any] = Field(default_factory=dict)
    similarity: float = Field(description="Hybrid score")
    matched_text: str | None = None
    confidence_score: int | None = Field(default=None, ge=0, le=100)
    match_explanation: str | None = None
    relevance_factors: list[str] | None = None


class SearchMetricsModel(BaseModel):
    """Stage timings and counts."""

    total_processed: int
    total_matched: int
    query_embedding_time_ms: float
    lexical_search_time_ms: float
    processing_time_ms: float
    fetch_time_ms: float
    rerank_time_ms: float
    mode: str


class ProfileSearchResponse(BaseModel):
    """Response model for all search endpoints."""

    results: list[SearchResultItem] = Field(default_factory=list)
    metrics: SearchMetricsModel
    query: str
    total_found: int
    enhanced_query: str | None = None
    search_terms: list[str] | None = None
    warnings: list[str] = Field(default_factory=list)
    latency_ms: float = Field(description="End-to-end latency in milliseconds")

    @classmethod
    def from_response(cls, response: SearchResponse, latency_ms: float) -> ProfileSearchResponse:
        return cls(
            results=[_result_item(r) for r in response.results],
            metrics=SearchMetricsModel(**vars(response.metrics)),
            query=response.query,
            total_found=response.total_found,
            enhanced_query=response.enhanced_query,
            search_terms=response.search_terms,
            warnings=response.warnings,
            latency_ms=latency_ms,
        )


def _result_item(result: SearchResult) -> SearchResultItem:
    return SearchResultItem(**result.to_dict())


class EnhanceResponse(BaseModel):
    success: bool
    enhanced_query: str
    search_terms: list[str]
    intent: str
    error: str | None = None


class ExpandResponse(BaseModel):
    success: bool
    expanded_terms: list[str]
    synonyms: list[str]
    related_terms: list[str]
    error: str | None = None


class IndexProfileRequest(BaseModel):
    """Raw profile to (re)index; any shape is accepted."""

    profile: dict[str, Any] = Field(description="Profile record")


class IndexProfileResponse(BaseModel):
    user_id: str
    version: str
    text_length: int
    dimensions: int
    created_at: str
    updated_at: str


class CleanupResponse(BaseModel):
    cleaned: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(description="Overall health status")
    services: dict[str, str] = Field(
        default_factory=dict,
        description="Individual service statuses",
    )
    search: dict[str, Any] | None = Field(
        default=None,
        description="Search pipeline health (store size, embedding check, sample query)",
    )
    version: str = Field(description="API version")


class ErrorResponse(BaseModel):
    """Standard error response model."""

    model_config = ConfigDict(extra="forbid")

    error: str = Field(description="Error type")
    message: str = Field(description="Error message")
