"""Fallback classifiers consulted when no rule matches."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from execassist.llm.base import LLMProvider
from execassist.models import INTENTS

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class FallbackResult:
    intent: str
    confidence: float
    entities: dict[str, Any] = field(default_factory=dict)
    reasoning: str = ""


class FallbackClassifier(ABC):
    """Secondary classifier for utterances the rule table does not cover."""

    @abstractmethod
    async def classify(self, text: str) -> FallbackResult:
        """Classify ``text`` into the closed intent vocabulary."""


class NullFallbackClassifier(FallbackClassifier):
    """Placeholder used when no model is configured."""

    async def classify(self, text: str) -> FallbackResult:
        return FallbackResult(
            intent="unknown",
            confidence=0.25,
            reasoning=f'No fallback model configured. Unable to classify: "{text}"',
        )


_SYSTEM_PROMPT = (
    "You classify short voice commands for an executive assistant. "
    f"Allowed intents: {', '.join(INTENTS)}. "
    "Use 'unknown' when none fits. Extract entities only when they are stated "
    "(minutes, time, date, title, eventId, taskId, followUpDate). "
    'Return JSON only: {"intent": str, "confidence": float, "entities": object, "reasoning": str}'
)


class LLMFallbackClassifier(FallbackClassifier):
    """Ask an LLM provider for a JSON classification."""

    def __init__(self, provider: LLMProvider) -> None:
        self._provider = provider

    async def classify(self, text: str) -> FallbackResult:
        messages = [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": text},
        ]
        data = await self._provider.generate_json(messages)
        if data is None:
            LOGGER.warning("Fallback classifier did not return a JSON object for %r", text)
            return FallbackResult(intent="unknown", confidence=0.0, reasoning="Fallback returned invalid JSON")

        intent = str(data.get("intent") or "unknown")
        if intent not in INTENTS:
            LOGGER.warning("Fallback classifier named unsupported intent %r", intent)
            return FallbackResult(intent="unknown", confidence=0.0, reasoning=f"Unsupported intent {intent!r}")
        try:
            confidence = min(max(float(data.get("confidence", 0.0)), 0.0), 1.0)
        except (TypeError, ValueError):
            confidence = 0.0
        entities = data.get("entities")
        return FallbackResult(
            intent=intent,
            confidence=confidence,
            entities=entities if isinstance(entities, dict) else {},
            reasoning=str(data.get("reasoning") or "LLM classification"),
        )
