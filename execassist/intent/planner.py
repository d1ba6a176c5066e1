"""Split multi-clause utterances into an ordered list of plan steps."""

from __future__ import annotations

import re
from typing import Sequence

from execassist.intent.classifier import IntentClassifier
from execassist.intent.context import resolve_referents
from execassist.models import IntentClassification, PlanningResult, PlanStep, SessionTurn

CONNECTIVE_RE = re.compile(r"\b(?:and\s+then|and\s+afterwards|after\s+that|then|next)\b", re.IGNORECASE)
_EDGE_CHARS = " \t\r\n,;"


def split_utterance(text: str) -> list[str]:
    """Split on temporal connectives, dropping empty segments."""

    if not CONNECTIVE_RE.search(text):
        return [text]
    segments = (segment.strip(_EDGE_CHARS) for segment in CONNECTIVE_RE.split(text))
    # A bare connective still counts as one utterance.
    return [segment for segment in segments if segment] or [text]


def _to_step(classification: IntentClassification) -> PlanStep:
    return PlanStep(
        intent=classification.intent,
        params=classification.entities,
        summary=classification.human_summary,
    )


async def create_plan(
    text: str,
    turns: Sequence[SessionTurn] = (),
    classifier: IntentClassifier | None = None,
    seed: IntentClassification | None = None,
) -> PlanningResult:
    """Classify each clause of ``text`` in order.

    ``seed`` is an existing classification of the same text; it is used as
    the step for a single-clause utterance instead of classifying again.
    """

    classifier = classifier or IntentClassifier()
    trimmed = text.strip()
    if not trimmed:
        return PlanningResult(is_multi_step=False, steps=[], reasoning=["No text provided"])

    segments = split_utterance(trimmed)

    if len(segments) == 1:
        classification = seed or await classifier.classify(
            segments[0], resolve_referents(segments[0], turns)
        )
        return PlanningResult(
            is_multi_step=False,
            steps=[_to_step(classification)],
            reasoning=list(classification.reasoning),
        )

    steps: list[PlanStep] = []
    reasoning = [f"Detected multi-step utterance with {len(segments)} segments"]
    for segment in segments:
        classification = await classifier.classify(segment, resolve_referents(segment, turns))
        steps.append(_to_step(classification))
        reasoning.extend(classification.reasoning)

    return PlanningResult(is_multi_step=len(steps) > 1, steps=steps, reasoning=reasoning)
