"""
Completion client for an OpenAI-compatible /chat/completions endpoint.

Sends a single user message and returns the assistant text. HTTP 429 is
retried with a linear backoff honouring Retry-After.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from profile_search.search.exceptions import CompletionFailed

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_S = 60.0
_RETRIES = 3
_BASE_DELAY_S = 1.0


class OpenAICompatibleCompletionClient:
    """Chat completions over httpx."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        model: str,
        temperature: float = 0.15,
        max_tokens: int = 1500,
        timeout: float = _DEFAULT_TIMEOUT_S,
        retries: int = _RETRIES,
        base_delay_s: float = _BASE_DELAY_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        if not self.base_url.endswith("/v1"):
            self.base_url = f"{self.base_url}/v1"
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._timeout = timeout
        self._retries = retries
        self._base_delay_s = base_delay_s
        self._transport = transport

    async def complete(self, prompt: str) -> str:
        """Return the model's reply to ``prompt``.

        Raises:
            CompletionFailed: On transport/HTTP errors, exhausted 429 retries,
                or an empty/missing reply
        """
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        for attempt in range(self._retries + 1):
            try:
                async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                    r = await client.post(
                        f"{self.base_url}/chat/completions",
                        json=payload,
                        headers=headers,
                    )
                    r.raise_for_status()
                    data = r.json()
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429 and attempt < self._retries:
                    retry_after = e.response.headers.get("Retry-After")
                    try:
                        delay_s = float(retry_after) if retry_after else self._base_delay_s
                    except ValueError:
                        delay_s = self._base_delay_s
                    logger.info("Completion rate limited, retrying in %.1fs", delay_s * (attempt + 1))
                    await asyncio.sleep(delay_s * (attempt + 1))
                    continue
                raise CompletionFailed(
                    f"Completion API returned {e.response.status_code}", cause=e
                ) from e
            except httpx.RequestError as e:
                raise CompletionFailed(
                    "Completion service unavailable (timeout or connection error)", cause=e
                ) from e
            except ValueError as e:
                raise CompletionFailed("Completion API returned invalid JSON", cause=e) from e

            choices = (data.get("choices") or []) if isinstance(data, dict) else []
            if not isinstance(choices, list) or not choices:
                raise CompletionFailed("Completion API returned no choices")
            choice = choices[0] if isinstance(choices[0], dict) else {}
            message = choice.get("message")
            content = message.get("content") if isinstance(message, dict) else None
            if not isinstance(content, str) or not content.strip():
                raise CompletionFailed("Completion API returned empty content")
            return content.strip()

        raise CompletionFailed("Completion API rate limited the request")
