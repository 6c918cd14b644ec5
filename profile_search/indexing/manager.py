"""
Embedding manager: keeps embedding records and the lexical index in sync
with profile changes.

Operations:
- index_profile: normalize -> validate -> embed -> store record -> update BM25
- delete_profile: remove record and BM25 document
- batch_index: upsert many profiles, collecting per-profile failures
- cleanup: purge records whose vector is unparsable or of the wrong length
- initialize_lexical_index: rebuild BM25 from stored records

Lexical index updates are non-critical: a failure is logged and the stored
record is kept, matching how the embedding record is the source of truth.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from profile_search.indexing.exceptions import ProfileNotFound, ProfileNotIndexable
from profile_search.search.exceptions import EmbeddingGenerationFailed
from profile_search.search.lexical import LexicalIndex
from profile_search.search.normalizer import normalize, profile_version, validate_profile_text
from profile_search.search.vector import parse_embedding_records
from profile_search.storage.base import EmbeddingRecord, utc_now

logger = logging.getLogger(__name__)

_DEFAULT_DIMENSION = 1024
_DEFAULT_TIMEOUT_S = 30.0


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class BatchIndexResult:
    """Outcome of batch_index.

    Attributes:
        successful: User ids indexed
        failed: (user_id, error message) pairs
        total_time_ms: Wall time for the batch
    """

    successful: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    total_time_ms: float = 0.0

    @property
    def total_processed(self) -> int:
        return len(self.successful) + len(self.failed)

    @property
    def avg_processing_time_ms(self) -> float:
        return self.total_time_ms / len(self.successful) if self.successful else 0.0


@dataclass
class CleanupResult:
    cleaned: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class IndexInitResult:
    success: bool
    document_count: int
    error: str | None = None


# =============================================================================
# EmbeddingManager
# =============================================================================


class EmbeddingManager:
    """Writes embedding records and mirrors them into the lexical index.

    Usage:
        manager = EmbeddingManager(embedder, embedding_store, index, profile_store)
        record = await manager.index_profile("u1", {"jobRole": "Engineer", ...})
    """

    def __init__(
        self,
        embedding_client: Any,
        embedding_store: Any,
        lexical_index: LexicalIndex,
        profile_store: Any | None = None,
        dimension: int = _DEFAULT_DIMENSION,
        embedding_timeout: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        self._embedder = embedding_client
        self._embedding_store = embedding_store
        self._index = lexical_index
        self._profile_store = profile_store
        self._dimension = dimension
        self._embedding_timeout = embedding_timeout

    async def index_profile(self, user_id: str, profile: dict[str, Any]) -> EmbeddingRecord:
        """Create or update the embedding record for ``user_id``.

        Args:
            user_id: Profile owner
            profile: Raw profile mapping

        Returns:
            The stored EmbeddingRecord

        Raises:
            ProfileNotIndexable: If the profile normalizes to empty text
            EmbeddingGenerationFailed: If the embedding cannot be generated
            StoreError: If the record cannot be written
        """
        text = normalize(profile)
        if not text:
            raise ProfileNotIndexable("Profile has no indexable text", user_id=user_id)

        validation = validate_profile_text(text)
        if validation.warnings:
            logger.warning("Profile text warnings for %s: %s", user_id, "; ".join(validation.warnings))

        try:
            vector = await asyncio.wait_for(
                self._embedder.generate(text, use_cache=False),
                timeout=self._embedding_timeout,
            )
        except asyncio.TimeoutError as e:
            raise EmbeddingGenerationFailed(
                f"Embedding timed out after {self._embedding_timeout}s", user_id=user_id, cause=e
            ) from e

        existing = await self._embedding_store.get(user_id)
        now = utc_now()
        record = EmbeddingRecord(
            user_id=user_id,
            vector=vector,
            source_text=text,
            version=profile_version(profile),
            created_at=existing.created_at if existing is not None and existing.created_at else now,
            updated_at=now,
        )
        await self._embedding_store.put(record)

        if self._profile_store is not None:
            await self._profile_store.put(user_id, profile)

        try:
            self._index.update_document(user_id, text)
        except Exception as e:
            logger.warning("Failed to update lexical index for %s (non-critical): %s", user_id, e)

        logger.info(
            "%s embedding for %s (chars=%d, dims=%d, version=%s)",
            "Updated" if existing is not None else "Created",
            user_id,
            len(text),
            len(vector),
            record.version,
        )
        return record

    async def delete_profile(self, user_id: str) -> None:
        """Remove the embedding record and lexical document.

        Raises:
            ProfileNotFound: If no record exists for ``user_id``
        """
        if await self._embedding_store.get(user_id) is None:
            raise ProfileNotFound("No embedding for profile", user_id=user_id)

        await self._embedding_store.delete(user_id)
        try:
            self._index.remove_document(user_id)
        except Exception as e:
            logger.warning("Failed to remove %s from lexical index (non-critical): %s", user_id, e)
        logger.info("Deleted embedding for %s", user_id)

    async def batch_index(
        self,
        jobs: Iterable[tuple[str, dict[str, Any]]],
        delay_s: float = 0.0,
    ) -> BatchIndexResult:
        """Index many profiles sequentially.

        Args:
            jobs: (user_id, profile) pairs
            delay_s: Pause between profiles to spare the embedding service
        """
        start = time.perf_counter()
        result = BatchIndexResult()

        for user_id, profile in jobs:
            try:
                await self.index_profile(user_id, profile)
            except Exception as e:
                logger.warning("Batch indexing failed for %s: %s", user_id, e)
                result.failed.append((user_id, str(e)))
            else:
                result.successful.append(user_id)
            if delay_s > 0:
                await asyncio.sleep(delay_s)

        result.total_time_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            "Batch indexing completed: %d succeeded, %d failed",
            len(result.successful),
            len(result.failed),
        )
        return result

    async def cleanup(self) -> CleanupResult:
        """Delete records whose vector is unparsable or has the wrong dimension."""
        result = CleanupResult()
        try:
            records = await self._embedding_store.list()
        except Exception as e:
            result.errors.append(f"Cleanup error: {e}")
            return result

        valid = {p.user_id for p in parse_embedding_records(records, self._dimension)}
        for record in records:
            if record.user_id in valid:
                continue
            try:
                await self._embedding_store.delete(record.user_id)
                self._index.remove_document(record.user_id)
            except Exception as e:
                result.errors.append(f"Failed to clean {record.user_id}: {e}")
                continue
            logger.info("Cleaned invalid embedding for %s", record.user_id)
            result.cleaned.append(record.user_id)

        return result

    async def initialize_lexical_index(self) -> IndexInitResult:
        """Rebuild the lexical index from every stored record's source text."""
        try:
            records = await self._embedding_store.list()
        except Exception as e:
            logger.error("Failed to initialize lexical index: %s", e)
            return IndexInitResult(success=False, document_count=0, error=str(e))

        self._index.initialize_from_records(records)
        count = len(self._index)
        logger.info("Lexical index initialized with %d documents", count)
        return IndexInitResult(success=True, document_count=count)
