"""
LangChain-compatible retriever over profile search.

Wraps an existing ProfileSearchService (injected) so profile search can be
composed into LCEL chains. Each result becomes a Document whose content is
the profile's indexed text and whose metadata carries the scores and any
re-rank annotations.
"""

from __future__ import annotations

import asyncio
from typing import Any

from langchain_core.callbacks import CallbackManagerForRetrieverRun
from langchain_core.documents import Document
from langchain_core.retrievers import BaseRetriever
from pydantic import Field

from profile_search.retrievers.exceptions import RetrieverQueryError
from profile_search.search.exceptions import ProfileSearchError
from profile_search.search.models import MIN_QUERY_LENGTH, SearchOptions, SearchResult, UserContext
from profile_search.search.normalizer import normalize

_VALID_MODES = {"hybrid", "intelligent", "advanced"}


def _to_document(result: SearchResult) -> Document:
    page_content = result.matched_text or normalize(result.profile)
    metadata: dict[str, Any] = {
        "user_id": result.user_id,
        "similarity": result.similarity,
        "source": "profile_search",
    }
    if result.confidence_score is not None:
        metadata["confidence_score"] = result.confidence_score
        metadata["match_explanation"] = result.match_explanation
        metadata["relevance_factors"] = result.relevance_factors
    return Document(page_content=page_content, metadata=metadata)


class ProfileRetriever(BaseRetriever):
    """LangChain retriever backed by ProfileSearchService.

    Attributes:
        k: Number of profiles to return (default: 4)
        mode: "hybrid", "intelligent" or "advanced"
        min_similarity: Vector score floor for hybrid mode

    Usage:
        retriever = ProfileRetriever(service=search_service, k=5)
        docs = await retriever.ainvoke("React developer")
    """

    k: int = Field(default=4, description="Number of profiles to return")
    mode: str = Field(default="hybrid", description="Search entry point to use")
    min_similarity: float = Field(default=0.3, description="Vector score floor")

    _service: Any = None
    _user_context: UserContext | None = None

    def __init__(
        self,
        service: Any,
        k: int = 4,
        mode: str = "hybrid",
        min_similarity: float = 0.3,
        user_context: UserContext | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize retriever with a search service.

        Raises:
            ValueError: If mode is not a known search entry point
        """
        if mode not in _VALID_MODES:
            raise ValueError(
                f"Invalid mode '{mode}'. Valid options: {', '.join(sorted(_VALID_MODES))}"
            )
        super().__init__(k=k, mode=mode, min_similarity=min_similarity, **kwargs)
        self._service = service
        self._user_context = user_context

    def _get_relevant_documents(
        self,
        query: str,
        *,
        run_manager: CallbackManagerForRetrieverRun | None = None,
    ) -> list[Document]:
        _ = run_manager  # noqa: ARG002 - reserved for future tracing
        return asyncio.run(self._aget_relevant_documents(query))

    async def _aget_relevant_documents(
        self,
        query: str,
        *,
        run_manager: CallbackManagerForRetrieverRun | None = None,
    ) -> list[Document]:
        """Run the configured search and convert results to Documents.

        Raises:
            RetrieverQueryError: If the search service fails
        """
        _ = run_manager  # noqa: ARG002 - reserved for future tracing

        if not query or len(query.strip()) < MIN_QUERY_LENGTH:
            return []

        try:
            if self.mode == "intelligent":
                response = await self._service.intelligent_search(query, self._user_context, self.k)
            elif self.mode == "advanced":
                response = await self._service.advanced_search(query, self._user_context, self.k)
            else:
                options = SearchOptions(
                    limit=self.k,
                    min_similarity=self.min_similarity,
                    include_matched_text=True,
                )
                response = await self._service.search_profiles(query, options)
        except ProfileSearchError as e:
            raise RetrieverQueryError(f"Profile search failed: {e.message}") from e

        return [_to_document(r) for r in response.results]
