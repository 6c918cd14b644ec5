"""
Unit tests for the OpenAI-compatible embedding and completion clients.

HTTP is served by httpx.MockTransport so no network is touched.
"""

from __future__ import annotations

import json

import httpx
import pytest

from profile_search.providers.completion import OpenAICompatibleCompletionClient
from profile_search.providers.embedding import OpenAICompatibleEmbeddingClient, prepare_text
from profile_search.search.exceptions import CompletionFailed, EmbeddingGenerationFailed

# =============================================================================
# Helpers
# =============================================================================


def _embedding_handler(dimension: int, seen: list[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": [{"embedding": [0.5] * dimension}]})

    return handler


def _chat_response(content: str | None) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


# =============================================================================
# Test: embedding client
# =============================================================================


class TestPrepareText:
    def test_collapses_whitespace(self) -> None:
        assert prepare_text("  React \n\n developer\t") == "React developer"

    def test_caps_length(self) -> None:
        assert len(prepare_text("x" * 9000)) == 8000


class TestEmbeddingClient:
    @pytest.mark.asyncio
    async def test_generate_posts_to_embeddings(self) -> None:
        seen: list[httpx.Request] = []
        client = OpenAICompatibleEmbeddingClient(
            base_url="http://embed.local",
            api_key="secret",
            model="titan-embed-text-v2",
            dimension=4,
            transport=httpx.MockTransport(_embedding_handler(4, seen)),
        )

        vector = await client.generate("React   developer")

        assert vector == [0.5] * 4
        request = seen[0]
        assert str(request.url) == "http://embed.local/v1/embeddings"
        assert request.headers["Authorization"] == "Bearer secret"
        assert json.loads(request.content) == {
            "model": "titan-embed-text-v2",
            "input": ["React developer"],
        }

    @pytest.mark.asyncio
    async def test_cache_skips_second_request(self) -> None:
        seen: list[httpx.Request] = []
        client = OpenAICompatibleEmbeddingClient(
            base_url="http://embed.local/v1",
            api_key=None,
            model="m",
            dimension=4,
            cache_size=2,
            transport=httpx.MockTransport(_embedding_handler(4, seen)),
        )

        await client.generate("react")
        await client.generate("react")
        await client.generate("react", use_cache=False)

        assert len(seen) == 2
        assert "Authorization" not in seen[0].headers
        assert client.cache_size == 1

    @pytest.mark.asyncio
    async def test_cached_vector_not_shared_with_callers(self) -> None:
        seen: list[httpx.Request] = []
        client = OpenAICompatibleEmbeddingClient(
            base_url="http://embed.local/v1",
            api_key=None,
            model="m",
            dimension=4,
            cache_size=2,
            transport=httpx.MockTransport(_embedding_handler(4, seen)),
        )

        first = await client.generate("react")
        first[0] = 99.0
        second = await client.generate("react")
        second.append(1.0)

        assert await client.generate("react") == [0.5] * 4
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_cache_evicts_least_recent(self) -> None:
        seen: list[httpx.Request] = []
        client = OpenAICompatibleEmbeddingClient(
            base_url="http://embed.local",
            api_key=None,
            model="m",
            dimension=4,
            cache_size=2,
            transport=httpx.MockTransport(_embedding_handler(4, seen)),
        )
        for text in ("one", "two", "one", "three", "one", "two"):
            await client.generate(text)

        # "two" was evicted when "three" arrived; "one" stayed hot
        assert len(seen) == 4
        client.clear_cache()
        assert client.cache_size == 0

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected(self) -> None:
        client = OpenAICompatibleEmbeddingClient(
            base_url="http://embed.local",
            api_key=None,
            model="m",
            dimension=1024,
            transport=httpx.MockTransport(_embedding_handler(500, [])),
        )
        with pytest.raises(EmbeddingGenerationFailed, match="expected 1024, got 500"):
            await client.generate("react")

    @pytest.mark.asyncio
    async def test_http_error_mapped(self) -> None:
        client = OpenAICompatibleEmbeddingClient(
            base_url="http://embed.local",
            api_key=None,
            model="m",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )
        with pytest.raises(EmbeddingGenerationFailed, match="503"):
            await client.generate("react")

    @pytest.mark.asyncio
    async def test_connection_error_mapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = OpenAICompatibleEmbeddingClient(
            base_url="http://embed.local",
            api_key=None,
            model="m",
            transport=httpx.MockTransport(handler),
        )
        with pytest.raises(EmbeddingGenerationFailed, match="unavailable"):
            await client.generate("react")

    @pytest.mark.asyncio
    async def test_malformed_response_mapped(self) -> None:
        client = OpenAICompatibleEmbeddingClient(
            base_url="http://embed.local",
            api_key=None,
            model="m",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"data": []})),
        )
        with pytest.raises(EmbeddingGenerationFailed, match="unexpected response format"):
            await client.generate("react")

    @pytest.mark.asyncio
    async def test_empty_text_rejected_without_request(self) -> None:
        seen: list[httpx.Request] = []
        client = OpenAICompatibleEmbeddingClient(
            base_url="http://embed.local",
            api_key=None,
            model="m",
            transport=httpx.MockTransport(_embedding_handler(1024, seen)),
        )
        with pytest.raises(EmbeddingGenerationFailed):
            await client.generate("   ")
        assert seen == []

    @pytest.mark.asyncio
    async def test_health_reports_liveness(self) -> None:
        healthy = OpenAICompatibleEmbeddingClient(
            base_url="http://embed.local",
            api_key=None,
            model="m",
            transport=httpx.MockTransport(_embedding_handler(1024, [])),
        )
        broken = OpenAICompatibleEmbeddingClient(
            base_url="http://embed.local",
            api_key=None,
            model="m",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        assert await healthy.health() is True
        assert await broken.health() is False


# =============================================================================
# Test: completion client
# =============================================================================


class TestCompletionClient:
    @pytest.mark.asyncio
    async def test_complete_returns_message_content(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_chat_response('  {"ok": true}  '))

        client = OpenAICompatibleCompletionClient(
            base_url="http://chat.local",
            api_key="k",
            model="mistral-small",
            transport=httpx.MockTransport(handler),
        )

        assert await client.complete("hello") == '{"ok": true}'
        body = json.loads(seen[0].content)
        assert str(seen[0].url) == "http://chat.local/v1/chat/completions"
        assert body["messages"] == [{"role": "user", "content": "hello"}]
        assert body["temperature"] == 0.15
        assert body["max_tokens"] == 1500

    @pytest.mark.asyncio
    async def test_rate_limit_retried(self) -> None:
        responses = [
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(200, json=_chat_response("done")),
        ]

        client = OpenAICompatibleCompletionClient(
            base_url="http://chat.local",
            api_key=None,
            model="m",
            transport=httpx.MockTransport(lambda request: responses.pop(0)),
        )
        assert await client.complete("hello") == "done"
        assert responses == []

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(429)

        client = OpenAICompatibleCompletionClient(
            base_url="http://chat.local",
            api_key=None,
            model="m",
            retries=2,
            base_delay_s=0.0,
            transport=httpx.MockTransport(handler),
        )
        with pytest.raises(CompletionFailed, match="429"):
            await client.complete("hello")
        assert len(calls) == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"choices": []},
            {"choices": ["plain text"]},
            {"choices": [{"message": "plain text"}]},
            _chat_response(None),
            _chat_response("   "),
        ],
    )
    async def test_empty_reply_rejected(self, payload: dict) -> None:
        client = OpenAICompatibleCompletionClient(
            base_url="http://chat.local",
            api_key=None,
            model="m",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload)),
        )
        with pytest.raises(CompletionFailed):
            await client.complete("hello")

    @pytest.mark.asyncio
    async def test_server_error_not_retried(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(500)

        client = OpenAICompatibleCompletionClient(
            base_url="http://chat.local",
            api_key=None,
            model="m",
            transport=httpx.MockTransport(handler),
        )
        with pytest.raises(CompletionFailed, match="500"):
            await client.complete("hello")
        assert len(calls) == 1
