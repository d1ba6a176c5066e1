"""Fill missing entities on a new utterance from earlier session turns."""

from __future__ import annotations

import re
from typing import Any, Sequence

from execassist.models import SessionTurn

_EVENT_REF_RE = re.compile(r"\bthat\s+(meeting|call|event)\b", re.IGNORECASE)
_TASK_REF_RES = (
    re.compile(r"\bthat\s+(task|ticket|item)\b", re.IGNORECASE),
    re.compile(r"\bmark\s+it\s+done\b", re.IGNORECASE),
    re.compile(r"\bfinished\s+it\b", re.IGNORECASE),
)
_FOLLOW_UP_REF_RES = (
    re.compile(r"\bfollow\s*up\s+on\s+that\b", re.IGNORECASE),
    re.compile(r"\bremind\s+me\s+about\s+it\b", re.IGNORECASE),
)
_THEM_RE = re.compile(r"\bwith\s+them\b", re.IGNORECASE)

_TASK_INTENTS = frozenset({"support.logComplete", "support.followUp"})


def resolve_referents(text: str, turns: Sequence[SessionTurn] = ()) -> dict[str, Any]:
    """Return entities carried over from the most relevant prior turn.

    ``turns`` is ordered oldest first. Only fields present on the matched
    turn are copied; nothing is invented.
    """

    resolved: dict[str, Any] = {}

    if _EVENT_REF_RE.search(text):
        previous = _last_event_entities(turns)
        if previous:
            _copy_present(previous, resolved, ("eventId", "title", "date", "time"))

    if any(pattern.search(text) for pattern in _TASK_REF_RES):
        previous = _last_task_entities(turns)
        if previous:
            _copy_present(previous, resolved, ("taskId", "title"))

    if any(pattern.search(text) for pattern in _FOLLOW_UP_REF_RES):
        previous = _last_task_entities(turns)
        if previous:
            _copy_present(previous, resolved, ("followUpDate", "title"))

    if "title" not in resolved and _THEM_RE.search(text):
        previous = _last_event_entities(turns) or _last_task_entities(turns)
        if previous and previous.get("title"):
            resolved["title"] = previous["title"]

    return resolved


def _last_event_entities(turns: Sequence[SessionTurn]) -> dict[str, Any] | None:
    for turn in reversed(turns):
        if not turn.entities:
            continue
        if turn.entities.get("eventId") or (turn.intent or "").startswith("scheduler."):
            return turn.entities
    return None


def _last_task_entities(turns: Sequence[SessionTurn]) -> dict[str, Any] | None:
    for turn in reversed(turns):
        if not turn.entities:
            continue
        if turn.entities.get("taskId") or turn.intent in _TASK_INTENTS:
            return turn.entities
    return None


def _copy_present(source: dict[str, Any], target: dict[str, Any], keys: tuple[str, ...]) -> None:
    for key in keys:
        if source.get(key) is not None:
            target[key] = source[key]
