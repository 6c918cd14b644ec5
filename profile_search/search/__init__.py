"""
Search module for profile-search-service.

Hybrid profile search: dense vector similarity fused with BM25 lexical
matching, optionally enhanced and re-ranked by a completion model.

- normalizer.py: profile mapping -> flat search text
- lexical.py: BM25 index and exact-term query classifier
- vector.py: cosine similarity scoring over stored embeddings
- ranker.py: weighted score fusion
- enhancement.py: LLM query enhancement, keyword expansion, re-ranking
- assembly.py: parallel profile fetch and response building
- hybrid.py: ProfileSearchService orchestration
"""

from __future__ import annotations

from profile_search.search.hybrid import ProfileSearchService, SearchHealth
from profile_search.search.lexical import LexicalIndex, is_exact_term_query, tokenize
from profile_search.search.models import (
    ScoredCandidate,
    SearchMetrics,
    SearchOptions,
    SearchResponse,
    SearchResult,
    UserContext,
)
from profile_search.search.normalizer import normalize, profile_version, validate_profile_text
from profile_search.search.ranker import FusionPolicy, HybridFusionRanker
from profile_search.search.vector import VectorScorer, cosine_similarity

__all__ = [
    "ProfileSearchService",
    "SearchHealth",
    "LexicalIndex",
    "is_exact_term_query",
    "tokenize",
    "ScoredCandidate",
    "SearchMetrics",
    "SearchOptions",
    "SearchResponse",
    "SearchResult",
    "UserContext",
    "normalize",
    "profile_version",
    "validate_profile_text",
    "FusionPolicy",
    "HybridFusionRanker",
    "VectorScorer",
    "cosine_similarity",
]
