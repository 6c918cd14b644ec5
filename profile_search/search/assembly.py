"""
Profile fetch and response assembly.

Fetches the profile records of the top candidates concurrently, each under
its own timeout. A profile that is missing or fails to load is logged and
dropped; the survivors keep the candidates' score order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from profile_search.search.exceptions import ProfileFetchFailed
from profile_search.search.models import (
    ScoredCandidate,
    SearchMetrics,
    SearchResponse,
    SearchResult,
)

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_S = 10.0


class ProfileAssembler:
    """Turns scored candidates into SearchResults."""

    def __init__(
        self,
        profile_store: Any,  # ProfileStoreProtocol
        timeout: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        self._store = profile_store
        self._timeout = timeout

    async def _fetch_one(self, user_id: str) -> dict[str, Any]:
        try:
            profile = await asyncio.wait_for(self._store.get(user_id), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise ProfileFetchFailed(
                f"Profile fetch timed out after {self._timeout}s", user_id=user_id, cause=e
            ) from e
        except Exception as e:
            raise ProfileFetchFailed(
                f"Profile fetch failed: {e}", user_id=user_id, cause=e
            ) from e
        if profile is None:
            raise ProfileFetchFailed("Profile not found", user_id=user_id)
        return profile

    async def fetch(
        self,
        candidates: Sequence[ScoredCandidate],
        include_matched_text: bool = False,
    ) -> list[SearchResult]:
        """Fetch profiles for ``candidates`` in parallel.

        Args:
            candidates: Ranked candidates (already truncated to the limit)
            include_matched_text: Copy each candidate's matched text

        Returns:
            Results for every profile that loaded, in candidate order
        """
        if not candidates:
            return []

        outcomes = await asyncio.gather(
            *(self._fetch_one(c.user_id) for c in candidates),
            return_exceptions=True,
        )

        results: list[SearchResult] = []
        for candidate, outcome in zip(candidates, outcomes):
            if isinstance(outcome, ProfileFetchFailed):
                logger.warning("Dropping %s from results: %s", candidate.user_id, outcome.message)
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            results.append(
                SearchResult(
                    user_id=candidate.user_id,
                    profile=outcome,
                    similarity=candidate.hybrid_score,
                    matched_text=candidate.matched_text if include_matched_text else None,
                )
            )
        return results


def build_response(
    query: str,
    results: list[SearchResult],
    metrics: SearchMetrics,
    total_found: int | None = None,
    enhanced_query: str | None = None,
    search_terms: list[str] | None = None,
    warnings: list[str] | None = None,
) -> SearchResponse:
    """Assemble a SearchResponse; ``total_found`` defaults to the result count."""
    return SearchResponse(
        results=results,
        metrics=metrics,
        query=query,
        total_found=len(results) if total_found is None else total_found,
        enhanced_query=enhanced_query,
        search_terms=search_terms,
        warnings=list(warnings or []),
    )
