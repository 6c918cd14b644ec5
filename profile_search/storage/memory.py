"""In-memory profile and embedding stores."""

from __future__ import annotations

import asyncio
import copy
from typing import Any

from profile_search.storage.base import EmbeddingRecord


class InMemoryProfileStore:
    """Dict-backed profile store."""

    def __init__(self, profiles: dict[str, dict[str, Any]] | None = None) -> None:
        self._profiles: dict[str, dict[str, Any]] = dict(profiles or {})

    async def get(self, user_id: str) -> dict[str, Any] | None:
        await asyncio.sleep(0)  # Yield to event loop
        profile = self._profiles.get(user_id)
        return copy.deepcopy(profile) if profile is not None else None

    async def put(self, user_id: str, profile: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        self._profiles[user_id] = copy.deepcopy(profile)

    async def delete(self, user_id: str) -> None:
        await asyncio.sleep(0)
        self._profiles.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._profiles)


class InMemoryEmbeddingStore:
    """Dict-backed embedding record store, listed in insertion order."""

    def __init__(self, records: list[EmbeddingRecord] | None = None) -> None:
        self._records: dict[str, EmbeddingRecord] = {r.user_id: r for r in records or []}

    async def list(self) -> list[EmbeddingRecord]:
        await asyncio.sleep(0)  # Yield to event loop
        return list(self._records.values())

    async def get(self, user_id: str) -> EmbeddingRecord | None:
        await asyncio.sleep(0)
        return self._records.get(user_id)

    async def put(self, record: EmbeddingRecord) -> None:
        await asyncio.sleep(0)
        self._records[record.user_id] = record

    async def delete(self, user_id: str) -> None:
        await asyncio.sleep(0)
        self._records.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._records)
