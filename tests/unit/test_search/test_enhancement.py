"""
Unit tests for LLM query enhancement, keyword expansion and re-ranking.

Every stage must degrade to a flagged result rather than raise when the
completion model fails, times out or returns unusable text.
"""

from __future__ import annotations

import json

import pytest

from profile_search.search.enhancement import KeywordExpansion, QueryEnhancer, Reranker
from profile_search.search.exceptions import CompletionFailed
from profile_search.search.models import SearchResult, UserContext
from tests.fakes import FakeCompletionClient, SlowCompletionClient

# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def results() -> list[SearchResult]:
    return [
        SearchResult(user_id="u1", profile={"jobRole": "CTO"}, similarity=0.9),
        SearchResult(user_id="u2", profile={"jobRole": "Designer"}, similarity=0.555),
        SearchResult(user_id="u3", profile={"jobRole": "Engineer"}, similarity=0.124),
    ]


@pytest.fixture
def user_context() -> UserContext:
    return UserContext(job_role="Product Manager", industry="Fintech", skills=["Roadmaps"])


# =============================================================================
# Test: UserContext.describe
# =============================================================================


class TestUserContextDescribe:
    def test_missing_fields_marked_not_specified(self) -> None:
        text = UserContext().describe()
        assert "- Job Role: Not specified" in text
        assert "- Skills: Not specified" in text

    def test_lists_are_comma_joined(self, user_context: UserContext) -> None:
        text = user_context.describe()
        assert "- Job Role: Product Manager" in text
        assert "- Skills: Roadmaps" in text


# =============================================================================
# Test: QueryEnhancer.enhance_query
# =============================================================================


class TestEnhanceQuery:
    @pytest.mark.asyncio
    async def test_successful_enhancement(self, user_context: UserContext) -> None:
        client = FakeCompletionClient(
            [
                'Here is the JSON: {"enhancedQuery": "technical co-founder CTO", '
                '"searchTerms": ["co-founder", "CTO"], "intent": "Find a technical partner"}'
            ]
        )
        enhancer = QueryEnhancer(client)

        result = await enhancer.enhance_query("co-founder", user_context)

        assert result.success is True
        assert result.enhanced_query == "technical co-founder CTO"
        assert result.search_terms == ["co-founder", "CTO"]
        assert result.intent == "Find a technical partner"
        assert "Product Manager" in client.prompts[0]
        assert '"co-founder"' in client.prompts[0]

    @pytest.mark.asyncio
    async def test_missing_search_terms_default_to_query(self) -> None:
        client = FakeCompletionClient(['{"enhancedQuery": "react frontend"}'])
        result = await QueryEnhancer(client).enhance_query("react")
        assert result.search_terms == ["react"]
        assert result.intent == "Basic search"

    @pytest.mark.asyncio
    async def test_model_failure_degrades(self) -> None:
        client = FakeCompletionClient([CompletionFailed("Completion API returned 500")])
        result = await QueryEnhancer(client).enhance_query("react")
        assert result.success is False
        assert result.enhanced_query == "react"
        assert result.search_terms == ["react"]
        assert result.intent == "Basic search"
        assert "500" in result.error

    @pytest.mark.asyncio
    async def test_unparsable_output_degrades(self) -> None:
        client = FakeCompletionClient(["no json at all"])
        result = await QueryEnhancer(client).enhance_query("react")
        assert result.success is False
        assert result.enhanced_query == "react"

    @pytest.mark.asyncio
    async def test_blank_enhanced_query_degrades(self) -> None:
        client = FakeCompletionClient(['{"enhancedQuery": "   "}'])
        result = await QueryEnhancer(client).enhance_query("react")
        assert result.success is False

    @pytest.mark.asyncio
    async def test_timeout_degrades(self) -> None:
        enhancer = QueryEnhancer(SlowCompletionClient(delay_s=0.5), timeout=0.01)
        result = await enhancer.enhance_query("react")
        assert result.success is False
        assert "timed out" in result.error


# =============================================================================
# Test: QueryEnhancer.expand_keywords
# =============================================================================


class TestExpandKeywords:
    @pytest.mark.asyncio
    async def test_successful_expansion(self) -> None:
        client = FakeCompletionClient(
            [
                json.dumps(
                    {
                        "expandedTerms": ["software engineer", "developer"],
                        "synonyms": ["developer", "programmer"],
                        "relatedTerms": ["backend", ""],
                    }
                )
            ]
        )
        result = await QueryEnhancer(client).expand_keywords("software engineer")

        assert result.success is True
        assert result.synonyms == ["developer", "programmer"]
        assert result.related_terms == ["backend"]
        assert result.all_terms() == ["software engineer", "developer", "programmer", "backend"]

    @pytest.mark.asyncio
    async def test_failure_returns_query_as_only_term(self) -> None:
        client = FakeCompletionClient([CompletionFailed("down")])
        result = await QueryEnhancer(client).expand_keywords("software engineer")
        assert result.success is False
        assert result.expanded_terms == ["software engineer"]
        assert result.all_terms() == ["software engineer"]

    def test_all_terms_deduplicates_in_order(self) -> None:
        expansion = KeywordExpansion(
            success=True,
            expanded_terms=["a", "b"],
            synonyms=["b", "c"],
            related_terms=["a", "d"],
        )
        assert expansion.all_terms() == ["a", "b", "c", "d"]


# =============================================================================
# Test: Reranker
# =============================================================================


class TestRerankerFallback:
    def test_fallback_annotates_every_result(self, results: list[SearchResult]) -> None:
        annotated = Reranker.fallback(results)
        assert [r.user_id for r in annotated] == ["u1", "u2", "u3"]
        assert [r.confidence_score for r in annotated] == [90, 56, 12]
        assert annotated[1].match_explanation == "56% semantic similarity match"
        assert all(r.relevance_factors == ["Semantic similarity"] for r in annotated)

    def test_fallback_does_not_mutate_input(self, results: list[SearchResult]) -> None:
        Reranker.fallback(results)
        assert results[0].confidence_score is None


class TestRerank:
    @pytest.mark.asyncio
    async def test_model_annotations_applied(
        self,
        results: list[SearchResult],
        user_context: UserContext,
    ) -> None:
        client = FakeCompletionClient(
            [
                json.dumps(
                    [
                        {
                            "userId": "u2",
                            "confidenceScore": 88,
                            "matchExplanation": "Complementary design skills",
                            "relevanceFactors": ["Design", "Fintech"],
                        },
                        {"userId": "u1", "confidenceScore": 72.6, "matchExplanation": "Leader"},
                    ]
                )
            ]
        )
        outcome = await Reranker(client).rerank(results, "co-founder", user_context)

        assert outcome.used_fallback is False
        assert [r.user_id for r in outcome.results] == ["u2", "u1"]
        assert outcome.results[0].confidence_score == 88
        assert outcome.results[0].relevance_factors == ["Design", "Fintech"]
        assert outcome.results[1].confidence_score == 73
        assert outcome.results[1].relevance_factors == []
        assert "below 40" in client.prompts[0]
        assert '"userId": "u3"' in client.prompts[0]

    @pytest.mark.asyncio
    async def test_unknown_and_duplicate_ids_ignored(self, results: list[SearchResult]) -> None:
        client = FakeCompletionClient(
            [
                json.dumps(
                    [
                        {"userId": "ghost", "confidenceScore": 99},
                        {"userId": "u1", "confidenceScore": 80},
                        {"userId": "u1", "confidenceScore": 10},
                    ]
                )
            ]
        )
        outcome = await Reranker(client).rerank(results, "cto")
        assert [(r.user_id, r.confidence_score) for r in outcome.results] == [("u1", 80)]

    @pytest.mark.asyncio
    async def test_confidence_clamped(self, results: list[SearchResult]) -> None:
        client = FakeCompletionClient(
            [
                json.dumps(
                    [
                        {"userId": "u1", "confidenceScore": 150},
                        {"userId": "u2", "confidenceScore": -5},
                        {"userId": "u3", "confidenceScore": "high"},
                    ]
                )
            ]
        )
        outcome = await Reranker(client).rerank(results, "cto")
        assert [r.confidence_score for r in outcome.results] == [100, 0, 0]

    @pytest.mark.asyncio
    async def test_failure_uses_fallback_for_every_result(
        self,
        results: list[SearchResult],
    ) -> None:
        client = FakeCompletionClient(["I refuse to answer in JSON"])
        outcome = await Reranker(client).rerank(results, "cto")

        assert outcome.used_fallback is True
        assert outcome.error.startswith("Re-ranking failed, using fallback")
        assert len(outcome.results) == len(results)
        assert all(r.confidence_score is not None for r in outcome.results)

    @pytest.mark.asyncio
    async def test_empty_input_skips_model(self) -> None:
        client = FakeCompletionClient()
        outcome = await Reranker(client).rerank([], "cto")
        assert outcome.results == []
        assert client.prompts == []

    @pytest.mark.asyncio
    async def test_custom_threshold_in_prompt(self, results: list[SearchResult]) -> None:
        client = FakeCompletionClient(["[]"])
        await Reranker(client, confidence_threshold=65).rerank(results, "cto")
        assert "below 65" in client.prompts[0]
