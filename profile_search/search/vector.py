"""
Vector similarity scoring.

Computes cosine similarity between a query embedding and stored profile
embeddings. Stored vectors of the wrong length are corrupt records: they
are logged and skipped so one bad record never fails a search.

Design:
- Candidates stacked into one matrix, scored with a single numpy product
- Result clamped to [-1, 1] against floating point drift
- Zero-norm vectors score 0.0
- Deterministic ordering: score desc, then user id
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from profile_search.search.exceptions import VectorDimensionMismatch

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

DEFAULT_DIMENSION = 1024


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ParsedEmbedding:
    """A stored embedding whose vector has been decoded and validated."""

    user_id: str
    vector: list[float]
    source_text: str = ""


# =============================================================================
# Functions
# =============================================================================


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Raises:
        VectorDimensionMismatch: If the vectors differ in length
    """
    if len(a) != len(b):
        raise VectorDimensionMismatch(expected=len(a), actual=len(b))

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / norm, -1.0, 1.0))


def _decode_vector(raw: Any) -> list[float] | None:
    """Accept a list of numbers or a JSON-encoded list; None if unusable."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, (list, tuple)):
        return None
    try:
        return [float(x) for x in raw]
    except (TypeError, ValueError):
        return None


def parse_embedding_records(
    records: Iterable[Any],
    dimension: int = DEFAULT_DIMENSION,
) -> list[ParsedEmbedding]:
    """Decode stored embedding records, dropping corrupt ones.

    Args:
        records: Objects with ``user_id``, ``vector`` and ``source_text``
        dimension: Required vector length

    Returns:
        Valid embeddings in input order
    """
    parsed: list[ParsedEmbedding] = []
    for record in records:
        vector = _decode_vector(record.vector)
        if vector is None:
            logger.warning("Skipping embedding for %s: vector could not be parsed", record.user_id)
            continue
        if len(vector) != dimension:
            logger.warning(
                "Skipping embedding for %s: dimension %d, expected %d",
                record.user_id,
                len(vector),
                dimension,
            )
            continue
        parsed.append(
            ParsedEmbedding(
                user_id=record.user_id,
                vector=vector,
                source_text=getattr(record, "source_text", "") or "",
            )
        )
    return parsed


# =============================================================================
# VectorScorer
# =============================================================================


class VectorScorer:
    """Scores candidate embeddings against a query vector."""

    def score(
        self,
        query_vector: Sequence[float],
        candidates: Iterable[ParsedEmbedding],
    ) -> list[tuple[str, float]]:
        """Cosine-score every candidate, skipping dimension mismatches.

        Returns:
            (user_id, similarity) pairs, best first
        """
        query = np.asarray(query_vector, dtype=np.float64)

        user_ids: list[str] = []
        rows: list[list[float]] = []
        for candidate in candidates:
            if len(candidate.vector) != len(query):
                error = VectorDimensionMismatch(expected=len(query), actual=len(candidate.vector))
                logger.warning("Skipping %s during scoring: %s", candidate.user_id, error.message)
                continue
            user_ids.append(candidate.user_id)
            rows.append(candidate.vector)

        if not rows:
            return []

        matrix = np.asarray(rows, dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        similarities = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
        similarities = np.clip(similarities, -1.0, 1.0)

        results = [(user_id, float(s)) for user_id, s in zip(user_ids, similarities)]
        results.sort(key=lambda r: (-r[1], r[0]))
        return results
