"""LLM provider interface."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any

from execassist.models import LLMResponse

JSON_OBJECT_FORMAT = {"type": "json_object"}

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def parse_json_object(content: str) -> dict[str, Any] | None:
    """Decode a model reply that should be one JSON object, tolerating a code fence."""

    text = content.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class LLMProvider(ABC):
    """Abstract model provider used by the fallback intent classifier."""

    @abstractmethod
    async def generate(
        self,
        messages: list[dict[str, str]],
        response_format: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Generate a model response."""

    async def generate_json(self, messages: list[dict[str, str]]) -> dict[str, Any] | None:
        """Ask for a JSON object reply; ``None`` when the model sends anything else."""

        response = await self.generate(messages, response_format=JSON_OBJECT_FORMAT)
        return parse_json_object(response.content)
