"""Rule-table intent classification with a pluggable fallback."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from execassist.intent.entities import extract_entities
from execassist.intent.fallback import FallbackClassifier, NullFallbackClassifier
from execassist.models import INTENTS, IntentClassification

LOGGER = logging.getLogger(__name__)

RULE_CONFIDENCE = 0.9


@dataclass(frozen=True, slots=True)
class IntentRule:
    intent: str
    patterns: tuple[re.Pattern[str], ...]
    summary: str

    def matches(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.patterns)


def _rx(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


# Evaluated top to bottom; the first rule with a matching pattern wins.
INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule(
        intent="scheduler.block",
        patterns=(
            _rx(r"\b(block|hold|protect)\s+(\d+\s*(?:minute|min|hour|hr)s?)?"),
            _rx(r"\b(focus|deep work|quiet)\s+time\b"),
        ),
        summary="Block focus time on the calendar",
    ),
    IntentRule(
        intent="scheduler.confirm",
        patterns=(
            _rx(r"\b(confirm|lock in|keep)\s+(?:the|that|this)?\s*(meeting|call|appointment)\b"),
            _rx(r"\bsounds good,?\s+confirm\b"),
        ),
        summary="Confirm a scheduled event",
    ),
    IntentRule(
        intent="scheduler.reschedule",
        patterns=(
            _rx(r"\b(move|reschedule|push|shift)\s+(the\s+)?(meeting|call|appointment)\b"),
            _rx(r"\bfind\s+a\s+new\s+time\b"),
        ),
        summary="Reschedule an event",
    ),
    IntentRule(
        intent="coach.pause",
        patterns=(
            _rx(r"\b(start|kick off|run)\s+(a\s+)?(breath|breathing|meditation|pause)"),
            _rx(r"\bi\s+need\s+(?:a\s+)?(?:quick\s+)?(?:meditation\s+)?break\b"),
        ),
        summary="Trigger a mindfulness break",
    ),
    IntentRule(
        intent="support.logComplete",
        patterns=(
            _rx(r"\b(log|mark)\s+(that\s+)?(task|ticket|item)\s+(as\s+)?(done|complete)"),
            _rx(r"\b(i|we)\s+(finished|completed)\s+(it|that)\b"),
        ),
        summary="Mark a task complete",
    ),
    IntentRule(
        intent="support.followUp",
        patterns=(
            _rx(r"\b(create|set|schedule)\s+(?:a\s+)?follow(?:[-\s])?up\b"),
            _rx(r"\bremind\s+me\s+(to|about)\b"),
        ),
        summary="Create a follow up reminder",
    ),
)


def match_rule(text: str, rules: tuple[IntentRule, ...] = INTENT_RULES) -> IntentRule | None:
    return next((rule for rule in rules if rule.matches(text)), None)


def _summary_block(entities: dict[str, Any]) -> str:
    duration = f"{entities['minutes']} minutes" if entities.get("minutes") else "time"
    parts = [f"Block {duration} for focus"]
    if entities.get("title"):
        parts.append(f"on {entities['title']}")
    parts.append(f"at {entities.get('time') or entities.get('date') or 'soon'}")
    return " ".join(parts)


def _summary_confirm(entities: dict[str, Any]) -> str:
    title = entities.get("title")
    return f"Confirm the meeting about {title}" if title else "Confirm the meeting"


def _summary_reschedule(entities: dict[str, Any]) -> str:
    time = entities.get("time")
    return f"Reschedule the meeting to {time}" if time else "Reschedule the meeting"


def _summary_pause(entities: dict[str, Any]) -> str:
    minutes = entities.get("minutes")
    return f"Start a guided pause for {minutes} minutes" if minutes else "Start a guided pause"


def _summary_log_complete(entities: dict[str, Any]) -> str:
    title = entities.get("title")
    return f"Log the task {title} as complete" if title else "Log the task as complete"


def _summary_follow_up(entities: dict[str, Any]) -> str:
    when = entities.get("followUpDate") or entities.get("date")
    return f"Schedule a follow-up for {when}" if when else "Schedule a follow-up"


_SUMMARIES: dict[str, Callable[[dict[str, Any]], str]] = {
    "scheduler.block": _summary_block,
    "scheduler.confirm": _summary_confirm,
    "scheduler.reschedule": _summary_reschedule,
    "coach.pause": _summary_pause,
    "support.logComplete": _summary_log_complete,
    "support.followUp": _summary_follow_up,
}


def build_summary(intent: str, entities: dict[str, Any]) -> str:
    """Render a short human-readable description of a classified intent."""

    render = _SUMMARIES.get(intent)
    return render(entities) if render else "Intent unclear"


class IntentClassifier:
    """Classify utterances with the rule table, then the fallback classifier.

    ``classify`` always returns a classification; ambiguity is reported as
    the ``unknown`` intent rather than an exception.
    """

    def __init__(
        self,
        fallback: FallbackClassifier | None = None,
        rules: tuple[IntentRule, ...] = INTENT_RULES,
    ) -> None:
        self._fallback = fallback or NullFallbackClassifier()
        self._rules = rules

    async def classify(
        self, text: str, base_entities: dict[str, Any] | None = None
    ) -> IntentClassification:
        base = dict(base_entities or {})
        normalized = text.strip()
        if not normalized:
            return IntentClassification(
                intent="unknown",
                confidence=0.0,
                entities=base,
                reasoning=["No text provided"],
                used_fallback=False,
                human_summary="No input",
            )

        rule = match_rule(normalized, self._rules)
        entities = {**base, **extract_entities(normalized)}

        if rule is not None:
            return IntentClassification(
                intent=rule.intent,
                confidence=RULE_CONFIDENCE,
                entities=entities,
                reasoning=[f"Matched rule for {rule.intent}"],
                used_fallback=False,
                human_summary=build_summary(rule.intent, entities),
            )

        try:
            fallback = await self._fallback.classify(normalized)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Fallback classifier failed for %r: %s", normalized, exc)
            return IntentClassification(
                intent="unknown",
                confidence=0.0,
                entities=entities,
                reasoning=[f"Fallback classifier failed: {exc}"],
                used_fallback=True,
                human_summary="LLM fallback result",
            )

        if fallback.intent not in INTENTS:
            LOGGER.warning("Fallback classifier returned unsupported intent %r", fallback.intent)
            return IntentClassification(
                intent="unknown",
                confidence=0.0,
                entities=entities,
                reasoning=[f"Fallback returned unsupported intent {fallback.intent!r}"],
                used_fallback=True,
                human_summary="LLM fallback result",
            )

        if fallback.intent != "unknown":
            merged = {**fallback.entities, **entities}
            return IntentClassification(
                intent=fallback.intent,
                confidence=fallback.confidence,
                entities=merged,
                reasoning=["Used LLM fallback", fallback.reasoning],
                used_fallback=True,
                human_summary=build_summary(fallback.intent, merged),
            )

        return IntentClassification(
            intent="unknown",
            confidence=fallback.confidence,
            entities=fallback.entities,
            reasoning=[fallback.reasoning],
            used_fallback=True,
            human_summary="LLM fallback result",
        )
