from unittest.mock import AsyncMock

import pytest

from execassist.intent.classifier import INTENT_RULES, RULE_CONFIDENCE, IntentClassifier, build_summary, match_rule
from execassist.intent.entities import extract_entities
from execassist.intent.fallback import FallbackClassifier, FallbackResult


class StaticFallback(FallbackClassifier):
    def __init__(self, result: FallbackResult) -> None:
        self.result = result
        self.calls: list[str] = []

    async def classify(self, text: str) -> FallbackResult:
        self.calls.append(text)
        return self.result


def test_extract_entities_block_request():
    entities = extract_entities("Block 2 hours tomorrow at 4:30pm for the product review meeting")

    assert entities["minutes"] == 120
    assert entities["date"] == "tomorrow"
    assert entities["time"] == "4:30 pm"
    assert "product review" in entities["title"]


def test_extract_entities_prefers_minutes_over_hours():
    assert extract_entities("hold 45 minutes, not 2 hours")["minutes"] == 45


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("move it to 3pm", "3 pm"),
        ("call at 9 a.m. please", "9 am"),
        ("sometime at 12 noon", "12 pm"),
        ("around 7 evening", "7 pm"),
        ("at 10:15", "10:15"),
    ],
)
def test_extract_entities_time_formats(text, expected):
    assert extract_entities(text)["time"] == expected


def test_extract_entities_omits_missing_slots():
    assert extract_entities("hello there") == {}


@pytest.mark.parametrize(
    ("text", "intent"),
    [
        ("Block 2 hours tomorrow at 4:30pm for the product review meeting", "scheduler.block"),
        ("Can you confirm that meeting?", "scheduler.confirm"),
        ("Move the meeting to 3pm", "scheduler.reschedule"),
        ("Start a breathing exercise for 5 minutes", "coach.pause"),
        ("Mark that task as done", "support.logComplete"),
        ("Remind me to send the deck tomorrow", "support.followUp"),
    ],
)
@pytest.mark.asyncio
async def test_rules_classify_with_fixed_confidence(text, intent):
    fallback = StaticFallback(FallbackResult(intent="unknown", confidence=0.1))
    result = await IntentClassifier(fallback=fallback).classify(text)

    assert result.intent == intent
    assert result.confidence == RULE_CONFIDENCE
    assert result.reasoning == [f"Matched rule for {intent}"]
    assert result.used_fallback is False
    assert fallback.calls == []


def test_first_matching_rule_wins():
    rule = match_rule("Block some focus time and confirm the meeting")

    assert rule is not None
    assert rule.intent == "scheduler.block"
    assert [r.intent for r in INTENT_RULES][0] == "scheduler.block"


@pytest.mark.asyncio
async def test_block_summary_uses_entities():
    result = await IntentClassifier().classify("Block 2 hours tomorrow at 4:30pm for the product review meeting")

    assert result.human_summary == "Block 120 minutes for focus on product review at 4:30 pm"


@pytest.mark.asyncio
async def test_empty_text_skips_fallback():
    fallback = StaticFallback(FallbackResult(intent="coach.pause", confidence=0.8))
    result = await IntentClassifier(fallback=fallback).classify("   ")

    assert result.intent == "unknown"
    assert result.confidence == 0.0
    assert result.reasoning == ["No text provided"]
    assert result.human_summary == "No input"
    assert fallback.calls == []


@pytest.mark.asyncio
async def test_base_entities_are_kept_and_overridden_by_extraction():
    result = await IntentClassifier().classify(
        "Can you confirm that meeting at 3pm?", {"eventId": "evt-1", "time": "1 pm"}
    )

    assert result.entities["eventId"] == "evt-1"
    assert result.entities["time"] == "3 pm"


@pytest.mark.asyncio
async def test_null_fallback_reports_unknown():
    result = await IntentClassifier().classify("Sing me a song")

    assert result.intent == "unknown"
    assert result.confidence == 0.25
    assert result.used_fallback is True
    assert "Sing me a song" in result.reasoning[0]


@pytest.mark.asyncio
async def test_fallback_intent_merges_under_rule_entities():
    fallback = StaticFallback(
        FallbackResult(
            intent="coach.pause",
            confidence=0.7,
            entities={"minutes": 10, "title": "reset"},
            reasoning="sounds like a break",
        )
    )
    result = await IntentClassifier(fallback=fallback).classify("Give me 5 minutes to breathe")

    assert result.intent == "coach.pause"
    assert result.confidence == 0.7
    assert result.used_fallback is True
    assert result.reasoning == ["Used LLM fallback", "sounds like a break"]
    assert result.entities["minutes"] == 5
    assert result.entities["title"] == "reset"
    assert result.human_summary == "Start a guided pause for 5 minutes"


@pytest.mark.asyncio
async def test_failing_fallback_degrades_to_unknown():
    fallback = AsyncMock(spec=FallbackClassifier)
    fallback.classify.side_effect = RuntimeError("model offline")

    result = await IntentClassifier(fallback=fallback).classify("Sing me a song")

    assert result.intent == "unknown"
    assert result.confidence == 0.0
    assert result.used_fallback is True
    assert "model offline" in result.reasoning[0]


@pytest.mark.asyncio
async def test_out_of_vocabulary_fallback_is_unknown():
    fallback = StaticFallback(FallbackResult(intent="weather.check", confidence=0.95))

    result = await IntentClassifier(fallback=fallback).classify("is it raining")

    assert result.intent == "unknown"
    assert result.confidence == 0.0
    assert result.used_fallback is True


def test_build_summary_for_unknown_intent():
    assert build_summary("unknown", {}) == "Intent unclear"
    assert build_summary("support.followUp", {"followUpDate": "friday"}) == "Schedule a follow-up for friday"
