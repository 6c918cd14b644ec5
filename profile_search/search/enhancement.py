"""
LLM query enhancement, keyword expansion and re-ranking.

All three stages talk to a single opaque completion model and are optional:
any failure (transport error, timeout, unparsable output) yields a degraded
result flagged on the returned dataclass instead of an exception, so the
orchestrator decides what to do next.

Stages:
- QueryEnhancer.enhance_query: rewrite the query with the requester's context
- QueryEnhancer.expand_keywords: synonyms and related terms for lexical recall
- Reranker.rerank: per-candidate confidence, explanation and factors
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Protocol, runtime_checkable

from profile_search.search.exceptions import CompletionFailed
from profile_search.search.json_parsing import extract_json
from profile_search.search.models import SearchResult, UserContext

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

_DEFAULT_TIMEOUT_S = 60.0
_DEFAULT_CONFIDENCE_THRESHOLD = 40
_BASIC_INTENT = "Basic search"
_FALLBACK_FACTORS = ("Semantic similarity",)

_ENHANCE_PROMPT = """You are a professional search enhancement specialist. Personalize search queries based on user context.

SEARCH QUERY: "{query}"

USER PROFILE:
{context}

TASK: Enhance the search query by considering:
1. User's career stage and experience level
2. Industry-specific collaboration opportunities
3. Complementary skills and roles
4. Professional networking value
5. Cross-functional partnership potential

OUTPUT: Return ONLY valid JSON:
{{
  "enhancedQuery": "personalized search terms aligned with user's profile",
  "searchTerms": ["term1", "term2", "term3"],
  "intent": "what the user is looking for based on their profile"
}}

EXAMPLE:
Input: Senior PM searching "co-founder"
Output: {{"enhancedQuery": "technical co-founder CTO startup founder software engineer entrepreneur", "searchTerms": ["co-founder", "CTO", "technical founder"], "intent": "Technical business partner to complement product expertise"}}"""

_EXPAND_PROMPT = """You are a professional search term expansion specialist.

TASK: Expand the search query "{query}" with relevant professional terms.

USER CONTEXT:
{context}

REQUIREMENTS:
1. Generate direct synonyms and alternative job titles
2. Include related roles and specializations
3. Add industry-specific terminology
4. Include relevant skills and technologies
5. Consider different seniority levels

OUTPUT: Return ONLY valid JSON in this exact format:
{{
  "expandedTerms": ["term1", "term2", "term3"],
  "synonyms": ["synonym1", "synonym2"],
  "relatedTerms": ["related1", "related2", "related3"]
}}

EXAMPLE:
Query: "software engineer"
Output: {{"expandedTerms": ["software engineer", "developer", "programmer"], "synonyms": ["developer", "programmer", "software developer"], "relatedTerms": ["full stack", "backend", "frontend", "DevOps", "SRE"]}}"""

_RERANK_PROMPT = """You are an expert at matching professionals for collaboration and networking based on personalized compatibility.

The CURRENT USER searched for: "{query}"

CURRENT USER'S PROFILE:
{context}

Search returned these professional profiles that could potentially match the CURRENT USER's search:
{candidates}

For each profile, provide a personalized evaluation based on compatibility with the CURRENT USER:
1. A confidence score (0-100) based on how well they match the search intent and profile
2. A clear explanation of why they would be valuable for the CURRENT USER
3. Key relevance factors that make them a good connection

IMPORTANT: EXCLUDE any profiles with confidence score below {threshold}.

Return ONLY a valid JSON array where each object has this exact structure:
[
  {{
    "userId": "user123",
    "confidenceScore": 92,
    "matchExplanation": "Strong match because of shared fintech experience and complementary technical skills",
    "relevanceFactors": ["Fintech expertise", "Technical leadership", "Startup experience"]
  }}
]"""


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class CompletionClientProtocol(Protocol):
    """Protocol for the text-completion model."""

    async def complete(self, prompt: str) -> str:
        """Return the model's text response to ``prompt``."""
        ...


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class QueryEnhancement:
    """Result of query enhancement; degraded values when success is False."""

    success: bool
    enhanced_query: str
    search_terms: list[str]
    intent: str
    error: str | None = None


@dataclass
class KeywordExpansion:
    """Result of keyword expansion; ``[query]`` as the only term on failure."""

    success: bool
    expanded_terms: list[str]
    synonyms: list[str] = field(default_factory=list)
    related_terms: list[str] = field(default_factory=list)
    error: str | None = None

    def all_terms(self) -> list[str]:
        """Unique terms across all three lists, first occurrence wins."""
        seen: dict[str, None] = {}
        for term in [*self.expanded_terms, *self.synonyms, *self.related_terms]:
            if term and term not in seen:
                seen[term] = None
        return list(seen)


@dataclass
class RerankOutcome:
    """Annotated results plus whether the similarity fallback was used."""

    results: list[SearchResult]
    used_fallback: bool = False
    error: str | None = None


# =============================================================================
# Helpers
# =============================================================================


def _percent(score: float) -> int:
    """Round half up to an integer percentage."""
    return int(math.floor(score * 100 + 0.5))


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item not in (None, "")]


async def _complete(client: CompletionClientProtocol, prompt: str, timeout: float) -> str:
    """Call the model under a timeout, mapping the timeout to CompletionFailed."""
    try:
        return await asyncio.wait_for(client.complete(prompt), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise CompletionFailed(f"Completion timed out after {timeout}s", cause=e) from e


def _context_text(user_context: UserContext | None) -> str:
    return (user_context or UserContext()).describe()


# =============================================================================
# QueryEnhancer
# =============================================================================


class QueryEnhancer:
    """Rewrites and expands queries using the completion model."""

    def __init__(
        self,
        client: CompletionClientProtocol,
        timeout: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        self._client = client
        self._timeout = timeout

    async def enhance_query(
        self,
        query: str,
        user_context: UserContext | None = None,
    ) -> QueryEnhancement:
        """Personalize ``query``; degraded result on any failure."""
        prompt = _ENHANCE_PROMPT.format(query=query, context=_context_text(user_context))

        try:
            response = await _complete(self._client, prompt, self._timeout)
            parsed = extract_json(response, expect="object")
            if not parsed.ok:
                raise parsed.error

            enhanced = parsed.value.get("enhancedQuery")
            if not isinstance(enhanced, str) or not enhanced.strip():
                raise ValueError("enhancedQuery missing from model output")

            search_terms = _string_list(parsed.value.get("searchTerms")) or [query]
            intent = parsed.value.get("intent") or _BASIC_INTENT
        except Exception as e:
            logger.warning("Query enhancement failed for %r: %s", query, e)
            return QueryEnhancement(
                success=False,
                enhanced_query=query,
                search_terms=[query],
                intent=_BASIC_INTENT,
                error=str(e),
            )

        logger.info("Enhanced query %r -> %r", query, enhanced)
        return QueryEnhancement(
            success=True,
            enhanced_query=enhanced.strip(),
            search_terms=search_terms,
            intent=str(intent),
        )

    async def expand_keywords(
        self,
        query: str,
        user_context: UserContext | None = None,
    ) -> KeywordExpansion:
        """Synonyms and related terms for ``query``; ``[query]`` on failure."""
        prompt = _EXPAND_PROMPT.format(query=query, context=_context_text(user_context))

        try:
            response = await _complete(self._client, prompt, self._timeout)
            parsed = extract_json(response, expect="object")
            if not parsed.ok:
                raise parsed.error
        except Exception as e:
            logger.warning("Keyword expansion failed for %r: %s", query, e)
            return KeywordExpansion(success=False, expanded_terms=[query], error=str(e))

        return KeywordExpansion(
            success=True,
            expanded_terms=_string_list(parsed.value.get("expandedTerms")),
            synonyms=_string_list(parsed.value.get("synonyms")),
            related_terms=_string_list(parsed.value.get("relatedTerms")),
        )


# =============================================================================
# Reranker
# =============================================================================


class Reranker:
    """Annotates fetched results with model-assigned confidence.

    On failure every input result is kept and annotated from its hybrid
    similarity instead.
    """

    def __init__(
        self,
        client: CompletionClientProtocol,
        timeout: float = _DEFAULT_TIMEOUT_S,
        confidence_threshold: int = _DEFAULT_CONFIDENCE_THRESHOLD,
    ) -> None:
        self._client = client
        self._timeout = timeout
        self._threshold = confidence_threshold

    @staticmethod
    def fallback(results: Sequence[SearchResult]) -> list[SearchResult]:
        """Similarity-derived annotations for every result."""
        annotated = []
        for result in results:
            pct = _percent(result.similarity)
            annotated.append(
                replace(
                    result,
                    confidence_score=pct,
                    match_explanation=f"{pct}% semantic similarity match",
                    relevance_factors=list(_FALLBACK_FACTORS),
                )
            )
        return annotated

    def _build_prompt(
        self,
        results: Sequence[SearchResult],
        query: str,
        user_context: UserContext | None,
    ) -> str:
        candidates = json.dumps(
            [
                {"userId": r.user_id, "score": round(r.similarity, 4), "profile": r.profile}
                for r in results
            ],
            indent=2,
            default=str,
            ensure_ascii=False,
        )
        return _RERANK_PROMPT.format(
            query=query,
            context=_context_text(user_context),
            candidates=candidates,
            threshold=self._threshold,
        )

    def _apply(
        self,
        entries: list[Any],
        results: Sequence[SearchResult],
    ) -> list[SearchResult]:
        by_id = {r.user_id: r for r in results}
        annotated: list[SearchResult] = []
        seen: set[str] = set()

        for entry in entries:
            if not isinstance(entry, dict):
                continue
            user_id = str(entry.get("userId", ""))
            original = by_id.get(user_id)
            if original is None or user_id in seen:
                if original is None:
                    logger.debug("Ignoring re-rank entry for unknown user %r", user_id)
                continue
            seen.add(user_id)

            try:
                confidence = int(round(float(entry.get("confidenceScore", 0))))
            except (TypeError, ValueError):
                confidence = 0
            confidence = max(0, min(100, confidence))

            annotated.append(
                replace(
                    original,
                    confidence_score=confidence,
                    match_explanation=str(entry.get("matchExplanation") or ""),
                    relevance_factors=_string_list(entry.get("relevanceFactors")),
                )
            )
        return annotated

    async def rerank(
        self,
        results: Sequence[SearchResult],
        original_query: str,
        user_context: UserContext | None = None,
    ) -> RerankOutcome:
        """Score ``results`` against the requester's intent.

        Args:
            results: Fetched candidates in hybrid order
            original_query: The query as the requester typed it
            user_context: Requester profile for personalization

        Returns:
            RerankOutcome; ``used_fallback`` is True when the model failed
        """
        if not results:
            return RerankOutcome(results=[])

        prompt = self._build_prompt(results, original_query, user_context)
        try:
            response = await _complete(self._client, prompt, self._timeout)
            parsed = extract_json(response, expect="array")
            if not parsed.ok:
                raise parsed.error
        except Exception as e:
            logger.warning("Re-ranking failed, using similarity fallback: %s", e)
            return RerankOutcome(
                results=self.fallback(results),
                used_fallback=True,
                error=f"Re-ranking failed, using fallback: {e}",
            )

        annotated = self._apply(parsed.value, results)
        logger.info("Re-ranked %d candidates, model kept %d", len(results), len(annotated))
        return RerankOutcome(results=annotated)
