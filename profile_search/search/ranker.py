"""
Hybrid fusion ranker.

Merges vector similarity results with BM25 lexical results into one ranked
candidate list.

Fusion rules:
- Query classified as exact-term or semantic; each class has its own
  (vector, lexical) weight pair, and each pair must sum to 1.0
- Each result set normalized by its own maximum (divisor floored at 0.001)
- hybrid = normalized_vector * vector_weight + normalized_lexical * lexical_weight
- Kept if normalized_vector >= min_similarity, or the query is exact-term
  and BM25 matched the profile
- Ordered by hybrid score desc, ties broken by user id
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from profile_search.search.lexical import is_exact_term_query
from profile_search.search.models import ScoredCandidate, SearchOptions

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

_EXACT_VECTOR_WEIGHT = 0.3
_EXACT_LEXICAL_WEIGHT = 0.7
_SEMANTIC_VECTOR_WEIGHT = 0.7
_SEMANTIC_LEXICAL_WEIGHT = 0.3
_WEIGHT_TOLERANCE = 0.001  # Allow small float variance when checking sum
_NORMALIZATION_FLOOR = 0.001


# =============================================================================
# FusionPolicy
# =============================================================================


@dataclass(frozen=True)
class FusionPolicy:
    """Weight pairs for the two query classes.

    Raises:
        ValueError: If either pair does not sum to 1.0 or a weight is negative
    """

    exact_vector_weight: float = _EXACT_VECTOR_WEIGHT
    exact_lexical_weight: float = _EXACT_LEXICAL_WEIGHT
    semantic_vector_weight: float = _SEMANTIC_VECTOR_WEIGHT
    semantic_lexical_weight: float = _SEMANTIC_LEXICAL_WEIGHT

    def __post_init__(self) -> None:
        pairs = {
            "exact": (self.exact_vector_weight, self.exact_lexical_weight),
            "semantic": (self.semantic_vector_weight, self.semantic_lexical_weight),
        }
        for name, (vector_weight, lexical_weight) in pairs.items():
            if vector_weight < 0 or lexical_weight < 0:
                raise ValueError(f"{name} weights must be non-negative")
            total = vector_weight + lexical_weight
            if abs(total - 1.0) > _WEIGHT_TOLERANCE:
                raise ValueError(f"{name} weights must sum to 1.0, got {total}")

    @classmethod
    def from_settings(cls, settings) -> FusionPolicy:
        return cls(
            exact_vector_weight=settings.exact_vector_weight,
            exact_lexical_weight=settings.exact_lexical_weight,
            semantic_vector_weight=settings.semantic_vector_weight,
            semantic_lexical_weight=settings.semantic_lexical_weight,
        )


# =============================================================================
# HybridFusionRanker
# =============================================================================


def _normalize_by_max(results: Sequence[tuple[str, float]]) -> dict[str, float]:
    divisor = max([score for _, score in results] + [_NORMALIZATION_FLOOR])
    return {user_id: score / divisor for user_id, score in results}


class HybridFusionRanker:
    """Fuses vector and lexical result lists.

    Usage:
        ranker = HybridFusionRanker()
        candidates = ranker.fuse(vector_results, lexical_results, "Acme Corp", options)
    """

    def __init__(self, policy: FusionPolicy | None = None) -> None:
        self._policy = policy or FusionPolicy()

    @property
    def policy(self) -> FusionPolicy:
        return self._policy

    def weights_for(self, query: str) -> tuple[float, float]:
        """(vector_weight, lexical_weight) for the class ``query`` falls in."""
        if is_exact_term_query(query):
            return self._policy.exact_vector_weight, self._policy.exact_lexical_weight
        return self._policy.semantic_vector_weight, self._policy.semantic_lexical_weight

    def fuse(
        self,
        vector_results: Sequence[tuple[str, float]],
        lexical_results: Sequence[tuple[str, float]],
        query: str,
        options: SearchOptions | None = None,
        vector_available: bool = True,
        matched_texts: Mapping[str, str] | None = None,
    ) -> list[ScoredCandidate]:
        """Combine both result sets into a single ranked list.

        Args:
            vector_results: (user_id, cosine similarity) pairs
            lexical_results: (user_id, BM25 score) pairs
            query: Query used to pick the weight pair
            options: Exclusions and similarity floor
            vector_available: False runs lexical-only fusion
            matched_texts: Indexed text per user, attached when requested

        Returns:
            Candidates ordered by hybrid score desc, then user id
        """
        options = options or SearchOptions()
        exact = is_exact_term_query(query)

        if vector_available:
            vector_weight, lexical_weight = self.weights_for(query)
        else:
            vector_weight, lexical_weight = 0.0, 1.0

        normalized_vector = _normalize_by_max(vector_results)
        normalized_lexical = _normalize_by_max(lexical_results)
        raw_vector = dict(vector_results)
        raw_lexical = dict(lexical_results)
        excluded = set(options.excluded_user_ids)

        candidates: list[ScoredCandidate] = []
        for user_id in {*normalized_vector, *normalized_lexical}:
            if user_id in excluded:
                continue

            nv = normalized_vector.get(user_id, 0.0)
            nl = normalized_lexical.get(user_id, 0.0)
            lexical_hit = raw_lexical.get(user_id, 0.0) > 0

            if vector_available:
                keep = nv >= options.min_similarity or (exact and lexical_hit)
            else:
                keep = lexical_hit
            if not keep:
                continue

            matched_text = None
            if options.include_matched_text and matched_texts is not None:
                matched_text = matched_texts.get(user_id)

            candidates.append(
                ScoredCandidate(
                    user_id=user_id,
                    vector_score=raw_vector.get(user_id, 0.0),
                    lexical_score=raw_lexical.get(user_id, 0.0),
                    hybrid_score=nv * vector_weight + nl * lexical_weight,
                    matched_text=matched_text,
                )
            )

        candidates.sort(key=lambda c: (-c.hybrid_score, c.user_id))

        logger.info(
            "Fused %d vector + %d lexical results into %d candidates "
            "(exact=%s, weights=%.2f/%.2f)",
            len(vector_results),
            len(lexical_results),
            len(candidates),
            exact,
            vector_weight,
            lexical_weight,
        )
        return candidates
