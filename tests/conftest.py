"""
Pytest configuration and fixtures for profile-search-service tests.
"""

from __future__ import annotations

import pytest

from profile_search.core.config import Settings
from profile_search.search.hybrid import ProfileSearchService
from profile_search.search.lexical import LexicalIndex
from profile_search.search.normalizer import normalize
from profile_search.storage.base import EmbeddingRecord
from profile_search.storage.memory import InMemoryEmbeddingStore, InMemoryProfileStore
from tests.fakes import (
    FAKE_DIMENSION,
    SAMPLE_PROFILES,
    FakeCompletionClient,
    FakeEmbeddingClient,
    bag_of_words_vector,
)


@pytest.fixture
def settings() -> Settings:
    """Provide test settings with a small embedding dimension."""
    return Settings(
        embedding_dimension=FAKE_DIMENSION,
        embedding_store_backend="memory",
        enable_query_enhancement=True,
        enable_reranking=True,
        embedding_timeout_s=1.0,
        completion_timeout_s=1.0,
        store_timeout_s=1.0,
    )


@pytest.fixture
def embedding_client() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture
def completion_client() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def profile_store() -> InMemoryProfileStore:
    return InMemoryProfileStore(SAMPLE_PROFILES)


@pytest.fixture
def embedding_store() -> InMemoryEmbeddingStore:
    """Embedding records for SAMPLE_PROFILES with bag-of-words vectors."""
    records = []
    for user_id, profile in SAMPLE_PROFILES.items():
        text = normalize(profile)
        records.append(
            EmbeddingRecord(
                user_id=user_id,
                vector=bag_of_words_vector(text),
                source_text=text,
            )
        )
    return InMemoryEmbeddingStore(records)


@pytest.fixture
def lexical_index() -> LexicalIndex:
    index = LexicalIndex()
    index.build_index((uid, normalize(p)) for uid, p in SAMPLE_PROFILES.items())
    return index


@pytest.fixture
def search_service(
    embedding_client: FakeEmbeddingClient,
    embedding_store: InMemoryEmbeddingStore,
    profile_store: InMemoryProfileStore,
    lexical_index: LexicalIndex,
    completion_client: FakeCompletionClient,
    settings: Settings,
) -> ProfileSearchService:
    return ProfileSearchService(
        embedding_client=embedding_client,
        embedding_store=embedding_store,
        profile_store=profile_store,
        lexical_index=lexical_index,
        completion_client=completion_client,
        settings=settings,
    )
