"""
Storage module for profile-search-service.

- base.py: EmbeddingRecord and the store protocols
- memory.py: In-memory profile and embedding stores
- qdrant.py: Qdrant-backed embedding store
"""

from __future__ import annotations

from profile_search.storage.base import (
    EmbeddingRecord,
    EmbeddingStoreProtocol,
    ProfileStoreProtocol,
)
from profile_search.storage.exceptions import (
    StoreConnectionError,
    StoreError,
    StoreOperationError,
)
from profile_search.storage.memory import InMemoryEmbeddingStore, InMemoryProfileStore
from profile_search.storage.qdrant import QdrantEmbeddingStore

__all__ = [
    "EmbeddingRecord",
    "EmbeddingStoreProtocol",
    "ProfileStoreProtocol",
    "InMemoryEmbeddingStore",
    "InMemoryProfileStore",
    "QdrantEmbeddingStore",
    "StoreError",
    "StoreConnectionError",
    "StoreOperationError",
]
