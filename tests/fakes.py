"""
Fake implementations for testing.

These test doubles implement the client protocols for unit testing without
requiring real infrastructure (embedding API, completion API, Qdrant).
"""

from __future__ import annotations

import asyncio
import hashlib
import re
from collections import deque
from typing import Any

from profile_search.search.exceptions import CompletionFailed, EmbeddingGenerationFailed

FAKE_DIMENSION = 8

SAMPLE_PROFILES: dict[str, dict[str, Any]] = {
    "u-react-1": {
        "userId": "u-react-1",
        "jobRole": "Frontend Developer",
        "companyName": "Acme Corp",
        "skills": ["React", "TypeScript", "Redux"],
        "interests": ["design systems"],
    },
    "u-react-2": {
        "userId": "u-react-2",
        "jobRole": "Full Stack Engineer",
        "companyName": "Globex",
        "skills": ["React", "Node.js", "GraphQL"],
        "interests": ["open source"],
    },
    "u-python": {
        "userId": "u-python",
        "jobRole": "Data Engineer",
        "companyName": "Initech",
        "skills": ["Python", "Spark", "Airflow"],
        "interests": ["data pipelines"],
    },
}

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def bag_of_words_vector(text: str, dimension: int = FAKE_DIMENSION) -> list[float]:
    """Deterministic vector: each token adds 1.0 to a hashed bucket."""
    vector = [0.0] * dimension
    for token in _TOKEN_RE.findall(text.lower()):
        bucket = int(hashlib.sha256(token.encode()).hexdigest(), 16) % dimension
        vector[bucket] += 1.0
    return vector


class FakeEmbeddingClient:
    """Fake embedding client for testing.

    Returns a fixed vector for texts registered via ``set_vector`` and a
    bag-of-words vector otherwise.
    """

    def __init__(self, dimension: int = FAKE_DIMENSION) -> None:
        self.dimension = dimension
        self.calls: list[str] = []
        self._vectors: dict[str, list[float]] = {}
        self._error: Exception | None = None

    async def generate(self, text: str, use_cache: bool = True) -> list[float]:
        """Return the registered or derived vector for ``text``."""
        _ = use_cache
        await asyncio.sleep(0)  # Yield to event loop
        self.calls.append(text)
        if self._error is not None:
            raise self._error
        if text in self._vectors:
            return list(self._vectors[text])
        return bag_of_words_vector(text, self.dimension)

    async def health(self) -> bool:
        try:
            await self.generate("health check", use_cache=False)
        except EmbeddingGenerationFailed:
            return False
        return True

    def set_vector(self, text: str, vector: list[float]) -> None:
        self._vectors[text] = vector

    def fail_with(self, error: Exception | None = None) -> None:
        """Make every subsequent call raise ``error`` (default: embedding failure)."""
        self._error = error or EmbeddingGenerationFailed("Embedding service unavailable")


class FakeCompletionClient:
    """Fake completion client replaying queued responses.

    Each queued item is returned in order; an Exception item is raised
    instead. When the queue is empty the default response is returned, or
    CompletionFailed is raised if no default is set.
    """

    def __init__(self, responses: list[Any] | None = None, default: str | None = None) -> None:
        self.prompts: list[str] = []
        self._responses: deque[Any] = deque(responses or [])
        self._default = default

    async def complete(self, prompt: str) -> str:
        await asyncio.sleep(0)  # Yield to event loop
        self.prompts.append(prompt)
        if self._responses:
            response = self._responses.popleft()
        elif self._default is not None:
            response = self._default
        else:
            response = CompletionFailed("No fake completion queued")
        if isinstance(response, Exception):
            raise response
        return response

    def queue(self, *responses: Any) -> None:
        self._responses.extend(responses)


class SlowCompletionClient:
    """Completion client that never answers within a short timeout."""

    def __init__(self, delay_s: float = 1.0) -> None:
        self._delay_s = delay_s

    async def complete(self, prompt: str) -> str:
        _ = prompt
        await asyncio.sleep(self._delay_s)
        return "{}"


class FailingProfileStore:
    """Profile store whose reads fail for selected user ids."""

    def __init__(self, profiles: dict[str, dict[str, Any]], failing: set[str]) -> None:
        self._profiles = profiles
        self._failing = failing

    async def get(self, user_id: str) -> dict[str, Any] | None:
        await asyncio.sleep(0)  # Yield to event loop
        if user_id in self._failing:
            raise RuntimeError(f"profile backend error for {user_id}")
        return self._profiles.get(user_id)

    async def put(self, user_id: str, profile: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        self._profiles[user_id] = profile

    async def delete(self, user_id: str) -> None:
        await asyncio.sleep(0)
        self._profiles.pop(user_id, None)
