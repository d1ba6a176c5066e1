"""OpenRouter chat completions, tuned for short deterministic classification calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from execassist.config import Settings
from execassist.llm.base import LLMProvider
from execassist.models import LLMResponse

_LOGGER = logging.getLogger(__name__)

_MAX_RETRIES = 3
_RETRY_BACKOFF_SECONDS = [5, 15, 45]


def _message_text(data: dict[str, Any]) -> str:
    # Some routed models return content as a list of typed parts.
    content = data["choices"][0]["message"].get("content") or ""
    if isinstance(content, list):
        return "".join(part.get("text", "") for part in content if isinstance(part, dict))
    return str(content)


class OpenRouterProvider(LLMProvider):
    """LLM provider for the intent fallback via OpenRouter's OpenAI-compatible API.

    Classification wants repeatable answers, so requests default to
    temperature 0 and a small completion budget.
    """

    def __init__(self, settings: Settings, temperature: float = 0.0, max_tokens: int = 300) -> None:
        self._settings = settings
        self._temperature = temperature
        self._max_tokens = max_tokens

    def _request_body(
        self, messages: list[dict[str, str]], response_format: dict[str, Any] | None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self._settings.openrouter_model,
            "messages": messages,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }
        if response_format:
            body["response_format"] = response_format
        return body

    async def _post(self, client: httpx.AsyncClient, body: dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._settings.openrouter_api_key}"}
        for attempt in range(_MAX_RETRIES + 1):
            response = await client.post("/chat/completions", headers=headers, json=body)
            if response.status_code != 429 or attempt == _MAX_RETRIES:
                break
            wait = _RETRY_BACKOFF_SECONDS[attempt]
            _LOGGER.warning("OpenRouter rate limited, retry %d/%d in %ds", attempt + 1, _MAX_RETRIES, wait)
            await asyncio.sleep(wait)
        response.raise_for_status()
        return response

    async def generate(
        self,
        messages: list[dict[str, str]],
        response_format: dict[str, Any] | None = None,
    ) -> LLMResponse:
        timeout = httpx.Timeout(self._settings.request_timeout_seconds)
        async with httpx.AsyncClient(base_url=self._settings.openrouter_base_url, timeout=timeout) as client:
            response = await self._post(client, self._request_body(messages, response_format))
        data = response.json()
        content = _message_text(data)
        _LOGGER.debug("OpenRouter %s replied: %r", self._settings.openrouter_model, content[:200])
        return LLMResponse(content=content, raw=data)
