"""
Profile search orchestration.

ProfileSearchService wires the pipeline together:

    query -> (optional) enhancement -> {embed query || BM25 search}
          -> cosine scoring over stored vectors -> fusion -> top-K
          -> parallel profile fetch -> (optional) LLM re-rank

Entry points:
- search_profiles: plain hybrid search; a failed mandatory stage raises
  ServiceUnavailable
- intelligent_search: enhance + retrieve 2x + re-rank, falling back to
  search_profiles on any failure
- advanced_search: keyword expansion + hybrid retrieval, lexical-only when
  the embedding service is down
- health_check: store/index statistics, embedding service check and a
  sample query
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from profile_search.search.assembly import ProfileAssembler, build_response
from profile_search.search.enhancement import (
    KeywordExpansion,
    QueryEnhancement,
    QueryEnhancer,
    Reranker,
)
from profile_search.search.exceptions import (
    EmbeddingGenerationFailed,
    InvalidQuery,
    ProfileSearchError,
    ServiceUnavailable,
)
from profile_search.search.lexical import IndexStats, LexicalIndex
from profile_search.search.models import (
    DEFAULT_LIMIT,
    DEFAULT_MIN_SIMILARITY,
    MIN_QUERY_LENGTH,
    ScoredCandidate,
    SearchMetrics,
    SearchOptions,
    SearchResponse,
    UserContext,
)
from profile_search.search.ranker import FusionPolicy, HybridFusionRanker
from profile_search.search.vector import VectorScorer, parse_embedding_records

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

_DEFAULT_DIMENSION = 1024
_DEFAULT_CONFIDENCE_THRESHOLD = 40
_DEFAULT_EMBEDDING_TIMEOUT_S = 30.0
_DEFAULT_STORE_TIMEOUT_S = 10.0
_DEFAULT_COMPLETION_TIMEOUT_S = 60.0
_CANDIDATE_MULTIPLIER = 2  # Over-fetch for re-ranking / expansion
_HEALTH_QUERY = "software engineer"
_HEALTH_LIMIT = 5


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class _Retrieval:
    """Intermediate result of the retrieval + fusion stages."""

    candidates: list[ScoredCandidate]
    metrics: SearchMetrics
    warnings: list[str] = field(default_factory=list)


@dataclass
class SearchHealth:
    """Health report for the search pipeline."""

    service_available: bool
    embedding_service_available: bool
    total_embeddings: int
    last_updated: str | None
    sample_query: dict[str, Any] | None
    lexical_index: IndexStats | None
    errors: list[str] = field(default_factory=list)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def validate_query(query: str | None) -> str:
    """Trim and check the query length.

    Raises:
        InvalidQuery: If fewer than three characters remain
    """
    trimmed = (query or "").strip()
    if len(trimmed) < MIN_QUERY_LENGTH:
        raise InvalidQuery(
            f"Search query must be at least {MIN_QUERY_LENGTH} characters long",
            query=query,
        )
    return trimmed


# =============================================================================
# ProfileSearchService
# =============================================================================


class ProfileSearchService:
    """Hybrid vector + BM25 profile search with optional LLM stages.

    Usage:
        service = ProfileSearchService(
            embedding_client=embedder,
            embedding_store=embedding_store,
            profile_store=profile_store,
            lexical_index=index,
            completion_client=llm,
            settings=settings,
        )
        response = await service.search_profiles("React developer")
    """

    def __init__(
        self,
        embedding_client: Any,
        embedding_store: Any,
        profile_store: Any,
        lexical_index: LexicalIndex,
        completion_client: Any | None = None,
        settings: Any | None = None,
    ) -> None:
        """Initialize the search service.

        Args:
            embedding_client: Object with ``async generate(text) -> list[float]``
            embedding_store: EmbeddingStoreProtocol implementation
            profile_store: ProfileStoreProtocol implementation
            lexical_index: Shared BM25 index
            completion_client: Object with ``async complete(prompt) -> str``;
                None disables enhancement and re-ranking
            settings: Application settings (defaults used when None)

        Raises:
            ValueError: If configured fusion weights don't sum to 1.0
        """
        self._embedder = embedding_client
        self._embedding_store = embedding_store
        self._profile_store = profile_store
        self._index = lexical_index
        self._settings = settings

        self._dimension = getattr(settings, "embedding_dimension", _DEFAULT_DIMENSION)
        self._default_limit = getattr(settings, "default_limit", DEFAULT_LIMIT)
        self._default_min_similarity = getattr(
            settings, "default_min_similarity", DEFAULT_MIN_SIMILARITY
        )
        self._embedding_timeout = getattr(
            settings, "embedding_timeout_s", _DEFAULT_EMBEDDING_TIMEOUT_S
        )
        self._store_timeout = getattr(settings, "store_timeout_s", _DEFAULT_STORE_TIMEOUT_S)
        self._confidence_threshold = getattr(
            settings, "rerank_confidence_threshold", _DEFAULT_CONFIDENCE_THRESHOLD
        )
        completion_timeout = getattr(
            settings, "completion_timeout_s", _DEFAULT_COMPLETION_TIMEOUT_S
        )

        self._enhancement_enabled = getattr(settings, "enable_query_enhancement", True)
        self._reranking_enabled = getattr(settings, "enable_reranking", True)

        policy = FusionPolicy.from_settings(settings) if settings is not None else FusionPolicy()
        self._ranker = HybridFusionRanker(policy)
        self._scorer = VectorScorer()
        self._assembler = ProfileAssembler(profile_store, timeout=self._store_timeout)

        self._enhancer: QueryEnhancer | None = None
        self._reranker: Reranker | None = None
        if completion_client is not None:
            self._enhancer = QueryEnhancer(completion_client, timeout=completion_timeout)
            self._reranker = Reranker(
                completion_client,
                timeout=completion_timeout,
                confidence_threshold=self._confidence_threshold,
            )

    @property
    def ranker(self) -> HybridFusionRanker:
        return self._ranker

    @property
    def lexical_index(self) -> LexicalIndex:
        return self._index

    @property
    def enhancer(self) -> QueryEnhancer | None:
        return self._enhancer

    @property
    def reranker(self) -> Reranker | None:
        return self._reranker

    def default_options(self, limit: int | None = None) -> SearchOptions:
        return SearchOptions(
            limit=limit if limit is not None else self._default_limit,
            min_similarity=self._default_min_similarity,
        )

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def _list_records(self) -> list[Any]:
        return await asyncio.wait_for(self._embedding_store.list(), timeout=self._store_timeout)

    async def _embed_query(self, text: str) -> tuple[list[float], float]:
        start = time.perf_counter()
        try:
            vector = await asyncio.wait_for(
                self._embedder.generate(text), timeout=self._embedding_timeout
            )
        except asyncio.TimeoutError as e:
            raise EmbeddingGenerationFailed(
                f"Query embedding timed out after {self._embedding_timeout}s",
                query=text,
                cause=e,
            ) from e
        return vector, _elapsed_ms(start)

    async def _lexical_search(self, text: str, limit: int) -> tuple[list[tuple[str, float]], float]:
        start = time.perf_counter()
        results = self._index.search(text, limit)
        return results, _elapsed_ms(start)

    async def _retrieve(
        self,
        query: str,
        options: SearchOptions,
        lexical_query: str | None = None,
        allow_lexical_only: bool = False,
        fusion_query: str | None = None,
    ) -> _Retrieval:
        """Run embedding + lexical search concurrently, score and fuse.

        Args:
            query: Text to embed (and to search lexically by default)
            options: Limit, similarity floor, exclusions
            lexical_query: Text for BM25 when it differs from ``query``
            allow_lexical_only: Fuse lexical results alone if embedding fails
            fusion_query: Query used to pick fusion weights (default ``query``)

        Raises:
            EmbeddingGenerationFailed: If embedding fails and lexical-only
                fusion is not allowed
        """
        metrics = SearchMetrics(mode="hybrid")
        warnings: list[str] = []

        records = await self._list_records()
        metrics.total_processed = len(records)
        if not records and len(self._index) == 0:
            logger.warning("No profile embeddings found, returning empty result")
            return _Retrieval(candidates=[], metrics=metrics)

        lexical_limit = options.limit * _CANDIDATE_MULTIPLIER
        embedding_outcome, lexical_outcome = await asyncio.gather(
            self._embed_query(query),
            self._lexical_search(lexical_query or query, lexical_limit),
            return_exceptions=True,
        )

        if isinstance(lexical_outcome, BaseException):
            raise lexical_outcome
        lexical_results, metrics.lexical_search_time_ms = lexical_outcome

        processing_start = time.perf_counter()
        vector_available = True
        vector_results: list[tuple[str, float]] = []
        if isinstance(embedding_outcome, BaseException):
            if not allow_lexical_only or not isinstance(embedding_outcome, Exception):
                raise embedding_outcome
            logger.warning("Vector search unavailable, using lexical-only fusion: %s", embedding_outcome)
            warnings.append(f"Vector search unavailable: {embedding_outcome}")
            vector_available = False
            metrics.mode = "lexical_only"
        else:
            query_vector, metrics.query_embedding_time_ms = embedding_outcome
            parsed = parse_embedding_records(records, self._dimension)
            vector_results = self._scorer.score(query_vector, parsed)

        matched_texts = {r.user_id: r.source_text for r in records if getattr(r, "source_text", None)}
        candidates = self._ranker.fuse(
            vector_results,
            lexical_results,
            fusion_query or query,
            options,
            vector_available=vector_available,
            matched_texts=matched_texts,
        )
        metrics.processing_time_ms = _elapsed_ms(processing_start)
        metrics.total_matched = len(candidates)
        return _Retrieval(candidates=candidates, metrics=metrics, warnings=warnings)

    # -------------------------------------------------------------------------
    # Public entry points
    # -------------------------------------------------------------------------

    async def search_profiles(
        self,
        query: str,
        options: SearchOptions | None = None,
    ) -> SearchResponse:
        """Hybrid search over all indexed profiles.

        Args:
            query: Free-text query (at least 3 characters after trimming)
            options: Search options (service defaults when None)

        Returns:
            SearchResponse ordered by hybrid score

        Raises:
            InvalidQuery: If the query is too short (no external call is made)
            ServiceUnavailable: If a mandatory stage fails
        """
        trimmed = validate_query(query)
        options = options or self.default_options()

        logger.info("Starting hybrid search for %r (limit=%d)", trimmed, options.limit)
        try:
            retrieval = await self._retrieve(trimmed, options)

            fetch_start = time.perf_counter()
            results = await self._assembler.fetch(
                retrieval.candidates[: options.limit],
                include_matched_text=options.include_matched_text,
            )
            retrieval.metrics.fetch_time_ms = _elapsed_ms(fetch_start)
        except Exception as e:
            logger.error("Hybrid search failed for %r: %s", trimmed, e)
            raise ServiceUnavailable(str(e) or type(e).__name__, query=trimmed, cause=e) from e

        logger.info(
            "Hybrid search completed: %d results of %d matched",
            len(results),
            retrieval.metrics.total_matched,
        )
        return build_response(
            trimmed,
            results,
            retrieval.metrics,
            total_found=retrieval.metrics.total_matched,
            warnings=retrieval.warnings,
        )

    async def enhance_query(
        self,
        query: str,
        user_context: UserContext | None = None,
    ) -> QueryEnhancement:
        """Enhance ``query``; degraded result when no completion model is configured."""
        trimmed = validate_query(query)
        if self._enhancer is None:
            return QueryEnhancement(
                success=False,
                enhanced_query=trimmed,
                search_terms=[trimmed],
                intent="Basic search",
                error="Query enhancement is not configured",
            )
        return await self._enhancer.enhance_query(trimmed, user_context)

    async def expand_keywords(
        self,
        query: str,
        user_context: UserContext | None = None,
    ) -> KeywordExpansion:
        trimmed = validate_query(query)
        if self._enhancer is None:
            return KeywordExpansion(
                success=False,
                expanded_terms=[trimmed],
                error="Keyword expansion is not configured",
            )
        return await self._enhancer.expand_keywords(trimmed, user_context)

    async def intelligent_search(
        self,
        query: str,
        user_context: UserContext | None = None,
        limit: int | None = None,
    ) -> SearchResponse:
        """Enhanced, re-ranked search with a plain-search fallback.

        Steps: enhance query, retrieve 2x ``limit`` with the enhanced query,
        re-rank, keep confidence >= threshold, sort by confidence, truncate.
        Any failure falls back to search_profiles with the original query.

        Raises:
            InvalidQuery: If the query is too short
            ServiceUnavailable: If both the intelligent path and the fallback fail
        """
        trimmed = validate_query(query)
        limit = limit if limit is not None else self._default_limit

        try:
            return await self._intelligent(trimmed, user_context, limit)
        except Exception as primary_error:
            logger.warning("Intelligent search failed for %r, falling back: %s", trimmed, primary_error)
            try:
                response = await self.search_profiles(trimmed, self.default_options(limit))
            except Exception as fallback_error:
                raise ServiceUnavailable(
                    "Both intelligent and fallback search failed: "
                    f"{primary_error}, {fallback_error}",
                    query=trimmed,
                    cause=fallback_error,
                ) from fallback_error

            response.metrics.mode = "fallback"
            response.warnings.append(f"Intelligent search failed, used basic search: {primary_error}")
            return response

    async def _intelligent(
        self,
        query: str,
        user_context: UserContext | None,
        limit: int,
    ) -> SearchResponse:
        warnings: list[str] = []

        search_query = query
        search_terms = [query]
        if self._enhancer is not None and self._enhancement_enabled:
            enhancement = await self._enhancer.enhance_query(query, user_context)
            if enhancement.success:
                search_query = enhancement.enhanced_query
                search_terms = enhancement.search_terms
            else:
                warnings.append(f"Query enhancement failed: {enhancement.error}")

        options = self.default_options(limit * _CANDIDATE_MULTIPLIER)
        retrieval = await self._retrieve(search_query, options)
        retrieval.metrics.mode = "intelligent"
        warnings.extend(retrieval.warnings)

        fetch_start = time.perf_counter()
        results = await self._assembler.fetch(retrieval.candidates[: options.limit])
        retrieval.metrics.fetch_time_ms = _elapsed_ms(fetch_start)

        if self._reranker is not None and self._reranking_enabled:
            rerank_start = time.perf_counter()
            outcome = await self._reranker.rerank(results, query, user_context)
            retrieval.metrics.rerank_time_ms = _elapsed_ms(rerank_start)
            if outcome.used_fallback:
                warnings.append(outcome.error or "Re-ranking failed, using fallback")

            kept = [
                r for r in outcome.results
                if (r.confidence_score or 0) >= self._confidence_threshold
            ]
            kept.sort(key=lambda r: (-(r.confidence_score or 0), -r.similarity, r.user_id))
            results = kept

        results = results[:limit]
        logger.info("Intelligent search for %r returning %d results", query, len(results))
        return build_response(
            query,
            results,
            retrieval.metrics,
            total_found=len(results),
            enhanced_query=search_query,
            search_terms=search_terms,
            warnings=warnings,
        )

    async def rerank(
        self,
        query: str,
        user_context: UserContext | None = None,
        limit: int | None = None,
    ) -> SearchResponse:
        """Plain search followed by an explicit re-rank of its results.

        Results keep every candidate (no confidence filter) so callers can
        inspect the annotations.
        """
        response = await self.search_profiles(query, self.default_options(limit))
        if self._reranker is None:
            response.results = Reranker.fallback(response.results)
            response.warnings.append("Re-ranking is not configured, using similarity fallback")
            return response

        rerank_start = time.perf_counter()
        outcome = await self._reranker.rerank(response.results, response.query, user_context)
        response.metrics.rerank_time_ms = _elapsed_ms(rerank_start)
        if outcome.used_fallback:
            response.warnings.append(outcome.error or "Re-ranking failed, using fallback")
        response.results = outcome.results
        return response

    async def advanced_search(
        self,
        query: str,
        user_context: UserContext | None = None,
        limit: int | None = None,
    ) -> SearchResponse:
        """Keyword-expanded hybrid search without LLM re-ranking.

        BM25 runs over the original query plus every expansion term; the
        vector side embeds the original query. If the embedding service is
        unavailable the lexical results are fused alone.

        Raises:
            InvalidQuery: If the query is too short
            ServiceUnavailable: If retrieval fails entirely
        """
        trimmed = validate_query(query)
        limit = limit if limit is not None else self._default_limit
        warnings: list[str] = []

        if self._enhancer is not None and self._enhancement_enabled:
            expansion = await self._enhancer.expand_keywords(trimmed, user_context)
            if not expansion.success:
                warnings.append(f"Keyword expansion failed: {expansion.error}")
        else:
            expansion = KeywordExpansion(success=False, expanded_terms=[trimmed])
        keyword_terms = expansion.all_terms()

        lexical_query = " ".join([trimmed, *(t for t in keyword_terms if t != trimmed)])
        options = self.default_options(limit * _CANDIDATE_MULTIPLIER)

        try:
            retrieval = await self._retrieve(
                trimmed,
                options,
                lexical_query=lexical_query,
                allow_lexical_only=True,
            )
            fetch_start = time.perf_counter()
            results = await self._assembler.fetch(retrieval.candidates[:limit])
            retrieval.metrics.fetch_time_ms = _elapsed_ms(fetch_start)
        except Exception as e:
            logger.error("Advanced search failed for %r: %s", trimmed, e)
            raise ServiceUnavailable(str(e) or type(e).__name__, query=trimmed, cause=e) from e

        return build_response(
            trimmed,
            results,
            retrieval.metrics,
            total_found=retrieval.metrics.total_matched,
            search_terms=keyword_terms,
            warnings=warnings + retrieval.warnings,
        )

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    async def health_check(self) -> SearchHealth:
        """Check the embedding service and report store state plus a sample query."""
        errors: list[str] = []
        total = 0
        last_updated: str | None = None

        try:
            records = await self._list_records()
            total = len(records)
            timestamps = [r.updated_at for r in records if getattr(r, "updated_at", None)]
            last_updated = max(timestamps) if timestamps else None
        except Exception as e:
            errors.append(f"Embedding store unavailable: {e}")

        embedding_available = await self._embedder_responds()
        if not embedding_available:
            errors.append("Embedding service not responding")

        sample: dict[str, Any] | None = None
        if not errors and total > 0:
            start = time.perf_counter()
            try:
                response = await self.search_profiles(
                    _HEALTH_QUERY, self.default_options(_HEALTH_LIMIT)
                )
                sample = {
                    "query": _HEALTH_QUERY,
                    "result_count": len(response.results),
                    "processing_time_ms": _elapsed_ms(start),
                }
            except ProfileSearchError as e:
                errors.append(f"Sample query failed: {e.message}")

        return SearchHealth(
            service_available=not errors,
            embedding_service_available=embedding_available,
            total_embeddings=total,
            last_updated=last_updated,
            sample_query=sample,
            lexical_index=self._index.stats(),
            errors=errors,
        )

    async def _embedder_responds(self) -> bool:
        try:
            return await asyncio.wait_for(self._embedder.health(), timeout=self._embedding_timeout)
        except asyncio.TimeoutError:
            logger.warning("Embedding health check timed out after %ss", self._embedding_timeout)
            return False
