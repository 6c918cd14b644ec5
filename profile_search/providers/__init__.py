"""OpenAI-compatible embedding and completion clients."""

from __future__ import annotations

from profile_search.providers.completion import OpenAICompatibleCompletionClient
from profile_search.providers.embedding import OpenAICompatibleEmbeddingClient

__all__ = ["OpenAICompatibleCompletionClient", "OpenAICompatibleEmbeddingClient"]
