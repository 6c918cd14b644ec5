"""
Embedding client for an OpenAI-compatible /embeddings endpoint.

Text is whitespace-normalized and capped before sending; the response vector
must have the configured dimension. Query embeddings are kept in a small
in-process LRU cache so repeated searches skip the network round trip.
"""

from __future__ import annotations

import logging
import re
from collections import OrderedDict

import httpx

from profile_search.search.exceptions import EmbeddingGenerationFailed

logger = logging.getLogger(__name__)

_MAX_TEXT_LENGTH = 8000
_DEFAULT_DIMENSION = 1024
_DEFAULT_TIMEOUT_S = 30.0
_WHITESPACE_RE = re.compile(r"\s+")


def prepare_text(text: str) -> str:
    """Collapse whitespace and cap length."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()[:_MAX_TEXT_LENGTH]


class OpenAICompatibleEmbeddingClient:
    """Embeddings over httpx.

    Raises EmbeddingGenerationFailed on transport errors, HTTP errors,
    malformed responses, empty input, or a vector of the wrong length.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        model: str,
        dimension: int = _DEFAULT_DIMENSION,
        timeout: float = _DEFAULT_TIMEOUT_S,
        cache_size: int = 0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        if not self.base_url.endswith("/v1"):
            self.base_url = f"{self.base_url}/v1"
        self.api_key = api_key
        self.model = model
        self._dimension = dimension
        self._timeout = timeout
        self._cache_size = cache_size
        self._cache: OrderedDict[str, list[float]] = OrderedDict()
        self._transport = transport

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    def _cache_get(self, key: str) -> list[float] | None:
        vector = self._cache.get(key)
        if vector is not None:
            self._cache.move_to_end(key)
        return vector

    def _cache_put(self, key: str, vector: list[float]) -> None:
        if self._cache_size <= 0:
            return
        self._cache[key] = list(vector)
        self._cache.move_to_end(key)
        while len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)

    async def generate(self, text: str, use_cache: bool = True) -> list[float]:
        """Embed ``text``.

        Args:
            text: Query or profile text
            use_cache: Serve and store the result in the query cache

        Returns:
            Vector of length ``dimension``
        """
        prepared = prepare_text(text)
        if not prepared:
            raise EmbeddingGenerationFailed("Cannot embed empty text")

        if use_cache:
            cached = self._cache_get(prepared)
            if cached is not None:
                logger.debug("Embedding cache hit")
                return list(cached)

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                r = await client.post(
                    f"{self.base_url}/embeddings",
                    json={"model": self.model, "input": [prepared]},
                    headers=headers,
                )
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as e:
            raise EmbeddingGenerationFailed(
                f"Embedding API returned {e.response.status_code}", cause=e
            ) from e
        except httpx.RequestError as e:
            raise EmbeddingGenerationFailed(
                "Embedding service unavailable (timeout or connection error)", cause=e
            ) from e
        except ValueError as e:
            raise EmbeddingGenerationFailed("Embedding API returned invalid JSON", cause=e) from e

        try:
            vector = [float(x) for x in data["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EmbeddingGenerationFailed(
                "Embedding API returned unexpected response format", cause=e
            ) from e

        if len(vector) != self._dimension:
            raise EmbeddingGenerationFailed(
                f"Invalid embedding dimension: expected {self._dimension}, got {len(vector)}"
            )

        if use_cache:
            self._cache_put(prepared, vector)
        return vector

    async def health(self) -> bool:
        """True if a test embedding succeeds."""
        try:
            await self.generate("health check", use_cache=False)
        except EmbeddingGenerationFailed as e:
            logger.warning("Embedding health check failed: %s", e.message)
            return False
        return True
