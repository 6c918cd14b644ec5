"""
Data classes shared across the search pipeline.

Internal types only; the HTTP layer has its own pydantic models in
profile_search.api.models.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

# =============================================================================
# Constants
# =============================================================================

MIN_QUERY_LENGTH = 3
DEFAULT_LIMIT = 20
DEFAULT_MIN_SIMILARITY = 0.3


# =============================================================================
# Query side
# =============================================================================


@dataclass
class SearchOptions:
    """Options for a single search call.

    Attributes:
        limit: Maximum number of results returned
        min_similarity: Normalized vector score floor for inclusion
        include_matched_text: Attach the indexed text to each result
        excluded_user_ids: User ids never returned (e.g. the requester)
    """

    limit: int = DEFAULT_LIMIT
    min_similarity: float = DEFAULT_MIN_SIMILARITY
    include_matched_text: bool = False
    excluded_user_ids: list[str] = field(default_factory=list)


@dataclass
class UserContext:
    """Requester profile fields used to personalise prompts."""

    job_role: str | None = None
    industry: str | None = None
    years_of_experience: int | None = None
    company: str | None = None
    skills: list[str] = field(default_factory=list)
    interests: list[str] = field(default_factory=list)

    def describe(self) -> str:
        """Render as prompt lines, 'Not specified' for missing fields."""

        def _or_unset(value: Any) -> str:
            if value is None or value == "" or value == []:
                return "Not specified"
            if isinstance(value, list):
                return ", ".join(str(v) for v in value)
            return str(value)

        return "\n".join(
            [
                f"- Job Role: {_or_unset(self.job_role)}",
                f"- Industry: {_or_unset(self.industry)}",
                f"- Experience: {_or_unset(self.years_of_experience)} years",
                f"- Company: {_or_unset(self.company)}",
                f"- Skills: {_or_unset(self.skills)}",
                f"- Interests: {_or_unset(self.interests)}",
            ]
        )


# =============================================================================
# Result side
# =============================================================================


@dataclass
class ScoredCandidate:
    """A fused candidate before profile fetch.

    Attributes:
        user_id: Profile owner
        vector_score: Raw cosine similarity (0 if absent)
        lexical_score: Raw BM25 score, unbounded (0 if absent)
        hybrid_score: Weighted sum of the max-normalized scores
        matched_text: Indexed text, when requested
    """

    user_id: str
    vector_score: float
    lexical_score: float
    hybrid_score: float
    matched_text: str | None = None


@dataclass
class SearchResult:
    """A fetched profile with its score and optional re-rank annotations."""

    user_id: str
    profile: dict[str, Any]
    similarity: float
    matched_text: str | None = None
    confidence_score: int | None = None
    match_explanation: str | None = None
    relevance_factors: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SearchMetrics:
    """Stage timings and counts for one search call."""

    total_processed: int = 0
    total_matched: int = 0
    query_embedding_time_ms: float = 0.0
    lexical_search_time_ms: float = 0.0
    processing_time_ms: float = 0.0
    fetch_time_ms: float = 0.0
    rerank_time_ms: float = 0.0
    mode: str = "hybrid"


@dataclass
class SearchResponse:
    """Complete answer to a search call."""

    results: list[SearchResult]
    metrics: SearchMetrics
    query: str
    total_found: int
    enhanced_query: str | None = None
    search_terms: list[str] | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
