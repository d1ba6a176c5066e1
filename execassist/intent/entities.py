"""Pattern-based entity extraction from utterances."""

from __future__ import annotations

import re
from typing import Any

_WEEKDAYS = "monday|tuesday|wednesday|thursday|friday|saturday|sunday"

MINUTES_RE = re.compile(r"(\d{1,3})\s*(?:minutes?|mins?)\b", re.IGNORECASE)
HOURS_RE = re.compile(r"(\d{1,2})\s*(?:hours?|hrs?)\b", re.IGNORECASE)
TIME_COLON_RE = re.compile(r"(\d{1,2}:\d{2})\s*(am\b|pm\b|a\.m\.|p\.m\.)?", re.IGNORECASE)
TIME_SUFFIX_RE = re.compile(
    r"(\d{1,2})\s*(a\.m\.|p\.m\.|(?:am|pm|morning|afternoon|evening|noon|midday|midnight)\b)",
    re.IGNORECASE,
)
DATE_RE = re.compile(
    rf"\b(today|tomorrow|tonight|this\s+afternoon|this\s+morning|next\s+(?:{_WEEKDAYS})|on\s+(?:{_WEEKDAYS}))\b",
    re.IGNORECASE,
)
TITLE_RE = re.compile(
    r"\b(?:for|about|regarding)\s+(?:the\s+)?([\w\s]+?)(?:\s+(?:meeting|call|session|task|project)\b|$)",
    re.IGNORECASE,
)

_SUFFIX_NORMALIZATION = {
    "morning": "am",
    "afternoon": "pm",
    "evening": "pm",
    "midday": "pm",
}


def extract_entities(text: str) -> dict[str, Any]:
    """Pull duration, time, date and title slots out of an utterance.

    Only slots that were found are present in the returned mapping.
    """

    entities: dict[str, Any] = {}

    minutes = MINUTES_RE.search(text)
    if minutes:
        entities["minutes"] = int(minutes.group(1))
    else:
        hours = HOURS_RE.search(text)
        if hours:
            entities["minutes"] = int(hours.group(1)) * 60

    time = _extract_time(text)
    if time:
        entities["time"] = time

    date = DATE_RE.search(text)
    if date:
        entities["date"] = re.sub(r"\s+", " ", date.group(0).lower())

    title = TITLE_RE.search(text)
    if title and title.group(1).strip():
        entities["title"] = title.group(1).strip()

    return entities


def _extract_time(text: str) -> str | None:
    colon = TIME_COLON_RE.search(text)
    if colon:
        value, suffix = colon.group(1), colon.group(2)
        if suffix:
            return f"{value} {suffix.replace('.', '').lower()}"
        return value

    bare = TIME_SUFFIX_RE.search(text)
    if not bare:
        return None
    hour = bare.group(1)
    suffix = bare.group(2).replace(".", "").lower()
    if suffix == "noon":
        return "12 pm"
    if suffix == "midnight":
        return "12 am"
    return f"{hour} {_SUFFIX_NORMALIZATION.get(suffix, suffix)}"
