"""
Dependency injection for API services.

ServiceContainer is the composition root: it owns the single LexicalIndex
instance shared by the search service and the embedding manager.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from profile_search.indexing.manager import EmbeddingManager
from profile_search.providers.completion import OpenAICompatibleCompletionClient
from profile_search.providers.embedding import OpenAICompatibleEmbeddingClient
from profile_search.search.hybrid import ProfileSearchService
from profile_search.search.lexical import LexicalIndex
from profile_search.storage.memory import InMemoryEmbeddingStore, InMemoryProfileStore
from profile_search.storage.qdrant import QdrantEmbeddingStore

API_VERSION = "0.1.0"


@dataclass
class ServiceConfig:
    """Configuration for the HTTP layer."""

    default_limit: int = 20
    default_min_similarity: float = 0.3
    embedding_dimension: int = 1024


@dataclass
class ServiceContainer:
    """Container for all service dependencies."""

    config: ServiceConfig = field(default_factory=ServiceConfig)
    search_service: ProfileSearchService | None = None
    embedding_manager: EmbeddingManager | None = None
    lexical_index: LexicalIndex | None = None
    embedding_store: Any | None = None
    profile_store: Any | None = None
    embedding_client: Any | None = None
    completion_client: Any | None = None


def build_container(settings: Any) -> ServiceContainer:
    """Wire real clients and stores from settings.

    The Qdrant store is returned unconnected; the app lifespan connects it.
    """
    embedding_client = OpenAICompatibleEmbeddingClient(
        base_url=settings.embed_api_base_url,
        api_key=settings.embed_api_key,
        model=settings.embed_model,
        dimension=settings.embedding_dimension,
        timeout=settings.embedding_timeout_s,
        cache_size=settings.embedding_cache_size,
    )

    completion_client = None
    if settings.enable_query_enhancement or settings.enable_reranking:
        completion_client = OpenAICompatibleCompletionClient(
            base_url=settings.chat_api_base_url,
            api_key=settings.chat_api_key,
            model=settings.chat_model,
            temperature=settings.chat_temperature,
            max_tokens=settings.chat_max_tokens,
            timeout=settings.completion_timeout_s,
        )

    if settings.embedding_store_backend == "qdrant":
        embedding_store: Any = QdrantEmbeddingStore(settings=settings)
    elif settings.embedding_store_backend == "memory":
        embedding_store = InMemoryEmbeddingStore()
    else:
        raise ValueError(
            f"Unknown embedding_store_backend '{settings.embedding_store_backend}'. "
            "Valid options: memory, qdrant"
        )

    profile_store = InMemoryProfileStore()
    lexical_index = LexicalIndex()

    search_service = ProfileSearchService(
        embedding_client=embedding_client,
        embedding_store=embedding_store,
        profile_store=profile_store,
        lexical_index=lexical_index,
        completion_client=completion_client,
        settings=settings,
    )
    embedding_manager = EmbeddingManager(
        embedding_client=embedding_client,
        embedding_store=embedding_store,
        lexical_index=lexical_index,
        profile_store=profile_store,
        dimension=settings.embedding_dimension,
        embedding_timeout=settings.embedding_timeout_s,
    )

    return ServiceContainer(
        config=ServiceConfig(
            default_limit=settings.default_limit,
            default_min_similarity=settings.default_min_similarity,
            embedding_dimension=settings.embedding_dimension,
        ),
        search_service=search_service,
        embedding_manager=embedding_manager,
        lexical_index=lexical_index,
        embedding_store=embedding_store,
        profile_store=profile_store,
        embedding_client=embedding_client,
        completion_client=completion_client,
    )
