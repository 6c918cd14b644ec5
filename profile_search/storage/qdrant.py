"""
Qdrant-backed embedding record store.

Each profile is one point: the vector is the profile embedding and the
payload carries user_id, source_text, version and timestamps. Point ids are
uuid5 values derived from the user id, so writes for the same user replace
the same point.

Usage:
    async with QdrantEmbeddingStore(settings=settings) as store:
        await store.ensure_collection(vector_size=1024)
        records = await store.list()
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import Distance, HnswConfigDiff, PointStruct, VectorParams

from profile_search.storage.base import EmbeddingRecord, utc_now
from profile_search.storage.exceptions import StoreConnectionError, StoreOperationError

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

_POINT_NAMESPACE = uuid.UUID("6f1c2f64-2c1e-5f0b-9a59-7a1f3f0c8d21")
_SCROLL_PAGE_SIZE = 256
_DEFAULT_HNSW_M = 16
_DEFAULT_HNSW_EF_CONSTRUCT = 100


def point_id(user_id: str) -> str:
    """Stable Qdrant point id for ``user_id``."""
    return str(uuid.uuid5(_POINT_NAMESPACE, user_id))


def _record_from_point(point: Any) -> EmbeddingRecord | None:
    payload = point.payload or {}
    user_id = payload.get("user_id")
    if not user_id:
        logger.warning("Skipping Qdrant point %s without user_id payload", point.id)
        return None

    vector = point.vector
    if isinstance(vector, dict):
        # Named vectors: take the default (unnamed) one if present
        vector = vector.get("", next(iter(vector.values()), []))

    return EmbeddingRecord(
        user_id=user_id,
        vector=list(vector or []),
        source_text=payload.get("source_text", ""),
        version=payload.get("version", ""),
        created_at=payload.get("created_at", ""),
        updated_at=payload.get("updated_at", ""),
    )


class QdrantEmbeddingStore:
    """Embedding store over AsyncQdrantClient.

    The client is created lazily in connect(); use as an async context
    manager or call connect()/close() explicitly.
    """

    def __init__(self, settings: Any) -> None:
        self._url = settings.qdrant_url
        self._collection = getattr(settings, "qdrant_collection", "profile_embeddings")
        self._api_key = getattr(settings, "qdrant_api_key", None)
        self._client: AsyncQdrantClient | None = None

    @property
    def collection(self) -> str:
        return self._collection

    async def connect(self) -> None:
        """Create the client and verify connectivity.

        Raises:
            StoreConnectionError: If Qdrant is unreachable
        """
        try:
            self._client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
            await self._client.get_collections()
        except Exception as e:
            self._client = None
            raise StoreConnectionError(
                f"Failed to connect to Qdrant at {self._url}: {e}",
                cause=e,
            ) from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> QdrantEmbeddingStore:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    def _ensure_connected(self) -> AsyncQdrantClient:
        if self._client is None:
            raise StoreConnectionError("Client is not connected. Call connect() first.")
        return self._client

    async def ensure_collection(self, vector_size: int) -> None:
        """Create the collection with cosine distance if it does not exist."""
        client = self._ensure_connected()
        try:
            if not await client.collection_exists(collection_name=self._collection):
                await client.create_collection(
                    collection_name=self._collection,
                    vectors_config=VectorParams(size=vector_size, distance=Distance.COSINE),
                    hnsw_config=HnswConfigDiff(
                        m=_DEFAULT_HNSW_M,
                        ef_construct=_DEFAULT_HNSW_EF_CONSTRUCT,
                    ),
                )
                logger.info("Created Qdrant collection %s (size=%d)", self._collection, vector_size)
        except Exception as e:
            raise StoreOperationError(
                f"Failed to ensure collection '{self._collection}': {e}",
                cause=e,
            ) from e

    async def list(self) -> list[EmbeddingRecord]:
        """Every record in the collection, paging through scroll()."""
        client = self._ensure_connected()
        records: list[EmbeddingRecord] = []
        offset = None
        try:
            while True:
                points, offset = await client.scroll(
                    collection_name=self._collection,
                    limit=_SCROLL_PAGE_SIZE,
                    offset=offset,
                    with_payload=True,
                    with_vectors=True,
                )
                for point in points:
                    record = _record_from_point(point)
                    if record is not None:
                        records.append(record)
                if offset is None:
                    break
        except Exception as e:
            raise StoreOperationError(
                f"Failed to list embeddings in '{self._collection}': {e}",
                cause=e,
            ) from e
        return records

    async def get(self, user_id: str) -> EmbeddingRecord | None:
        client = self._ensure_connected()
        try:
            points = await client.retrieve(
                collection_name=self._collection,
                ids=[point_id(user_id)],
                with_payload=True,
                with_vectors=True,
            )
        except Exception as e:
            raise StoreOperationError(
                f"Failed to read embedding for '{user_id}': {e}",
                user_id=user_id,
                cause=e,
            ) from e
        return _record_from_point(points[0]) if points else None

    async def put(self, record: EmbeddingRecord) -> None:
        client = self._ensure_connected()
        if isinstance(record.vector, str):
            raise StoreOperationError(
                "Qdrant records need a decoded vector, got a string",
                user_id=record.user_id,
            )
        point = PointStruct(
            id=point_id(record.user_id),
            vector=list(record.vector),
            payload={
                "user_id": record.user_id,
                "source_text": record.source_text,
                "version": record.version,
                "created_at": record.created_at or utc_now(),
                "updated_at": record.updated_at or utc_now(),
            },
        )
        try:
            await client.upsert(collection_name=self._collection, points=[point])
        except Exception as e:
            raise StoreOperationError(
                f"Upsert failed for '{record.user_id}': {e}",
                user_id=record.user_id,
                cause=e,
            ) from e

    async def delete(self, user_id: str) -> None:
        client = self._ensure_connected()
        try:
            await client.delete(
                collection_name=self._collection,
                points_selector=[point_id(user_id)],
            )
        except Exception as e:
            raise StoreOperationError(
                f"Delete failed for '{user_id}': {e}",
                user_id=user_id,
                cause=e,
            ) from e

    async def count(self) -> int:
        client = self._ensure_connected()
        try:
            result = await client.count(collection_name=self._collection, exact=True)
        except Exception as e:
            raise StoreOperationError(f"Count failed for '{self._collection}': {e}", cause=e) from e
        return result.count

    async def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.get_collections()
        except Exception:
            return False
        return True
