"""Core domain models used across layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

Intent = Literal[
    "scheduler.block",
    "scheduler.confirm",
    "scheduler.reschedule",
    "coach.pause",
    "support.logComplete",
    "support.followUp",
    "unknown",
]

INTENTS: tuple[str, ...] = (
    "scheduler.block",
    "scheduler.confirm",
    "scheduler.reschedule",
    "coach.pause",
    "support.logComplete",
    "support.followUp",
    "unknown",
)

ActionStatus = Literal["PLANNED", "APPROVED", "EXECUTED", "BLOCKED", "FAILED"]
AgentStatus = Literal["OK", "SKIPPED", "FAILED"]
Level = Literal["low", "medium", "high"]


@dataclass(slots=True)
class SessionTurn:
    """A prior utterance in a session, owned by the caller."""

    text: str
    intent: str | None = None
    entities: dict[str, Any] | None = None


@dataclass(slots=True)
class IntentClassification:
    """Result of classifying one utterance."""

    intent: str
    confidence: float
    entities: dict[str, Any]
    reasoning: list[str]
    used_fallback: bool
    human_summary: str


@dataclass(slots=True)
class PlanStep:
    intent: str
    params: dict[str, Any]
    summary: str


@dataclass(slots=True)
class PlanningResult:
    is_multi_step: bool
    steps: list[PlanStep]
    reasoning: list[str]


@dataclass(slots=True)
class AgentCallRequest:
    """One keyed agent invocation requested from the dispatcher."""

    key: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AgentCallResult:
    """Normalized outcome of one agent invocation."""

    key: str
    success: bool
    status: AgentStatus
    output: Any = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    used_stub: bool = False
    invalid_output: bool = False


@dataclass(slots=True)
class ActionReceipt:
    """Outcome of one execution attempt of a planned action."""

    status: ActionStatus
    message: str
    external_ref: str | None = None
    executed_at: datetime | None = None


@dataclass(slots=True)
class PlannedAction:
    """An intended side-effecting action awaiting approval or execution."""

    id: str
    type: str
    requires_approval: bool
    payload: dict[str, Any] = field(default_factory=dict)
    risk: Level = "medium"
    priority: Level = "medium"
    idempotency_key: str | None = None
    status: ActionStatus = "PLANNED"
    receipt: ActionReceipt | None = None
    notes: str | None = None


@dataclass(slots=True)
class AuditEntry:
    action_id: str
    transition: str
    message: str
    timestamp: datetime
    external_ref: str | None = None


@dataclass(slots=True)
class LLMResponse:
    """Result from an LLM generation request."""

    content: str
    raw: dict[str, Any] | None = None
