"""
Store contracts and the embedding record type.

Both stores are async and keyed by user id. Implementations live in
profile_search.storage.memory (tests, local runs) and
profile_search.storage.qdrant (embedding records in Qdrant).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class EmbeddingRecord:
    """Stored embedding for one profile.

    Attributes:
        user_id: Profile owner
        vector: Float list, or a JSON-encoded list as written by older writers
        source_text: Normalized profile text the vector was computed from
        version: Content tag of the profile at embedding time
        created_at: ISO-8601 UTC creation time
        updated_at: ISO-8601 UTC last update time
    """

    user_id: str
    vector: list[float] | str
    source_text: str
    version: str = ""
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)


@runtime_checkable
class ProfileStoreProtocol(Protocol):
    """Key-value store of raw profile records."""

    async def get(self, user_id: str) -> dict[str, Any] | None:
        ...

    async def put(self, user_id: str, profile: dict[str, Any]) -> None:
        ...

    async def delete(self, user_id: str) -> None:
        ...


@runtime_checkable
class EmbeddingStoreProtocol(Protocol):
    """Store of embedding records, listed in full for scoring."""

    async def list(self) -> list[EmbeddingRecord]:
        ...

    async def get(self, user_id: str) -> EmbeddingRecord | None:
        ...

    async def put(self, record: EmbeddingRecord) -> None:
        ...

    async def delete(self, user_id: str) -> None:
        ...
