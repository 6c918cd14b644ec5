"""Indexing pipeline: embedding records and lexical index maintenance."""

from __future__ import annotations

from profile_search.indexing.exceptions import ProfileNotFound, ProfileNotIndexable
from profile_search.indexing.manager import (
    BatchIndexResult,
    CleanupResult,
    EmbeddingManager,
    IndexInitResult,
)

__all__ = [
    "EmbeddingManager",
    "BatchIndexResult",
    "CleanupResult",
    "IndexInitResult",
    "ProfileNotFound",
    "ProfileNotIndexable",
]
