"""Boundary contracts for agents and tools, validated with pydantic."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

AGENT_STATUSES = ("OK", "SKIPPED", "FAILED")


class AgentOutput(BaseModel):
    """What every agent handler must return."""

    status: Literal["OK", "SKIPPED", "FAILED"]
    output: Any = None
    warnings: list[str] | None = None
    error: str | None = None


class ToolError(BaseModel):
    code: str
    message: str
    details: Any = None


class ToolRequest(BaseModel):
    tool: str
    action: str
    input: dict[str, Any] = Field(default_factory=dict)
    meta: dict[str, Any] | None = None


class ToolResult(BaseModel):
    ok: bool
    output: Any = None
    error: ToolError | None = None

    @classmethod
    def failure(cls, code: str, message: str, details: Any = None) -> ToolResult:
        return cls(ok=False, error=ToolError(code=code, message=message, details=details))


class Insight(BaseModel):
    title: str
    detail: str
    confidence: float | None = None


class SuggestedAction(BaseModel):
    title: str
    detail: str
    priority: Literal["low", "medium", "high"] | None = None


class ActionPack(BaseModel):
    """Content/action bundle produced by the daily focus flow."""

    model_config = ConfigDict(extra="ignore")

    linkedin_draft: str | None = None
    email_draft: str | None = None
    journal_expansion: str | None = None
    reflection_exercise: str | None = None
    focus_narrative: str | None = None
    status: Literal["ready", "blocked"] | None = None
    blockers: list[str] | None = None
    safe_next_steps: list[str] | None = None


class DailyFocusDebug(BaseModel):
    skip_agents: list[str] = Field(default_factory=list)
    force_agent_fail: list[str] = Field(default_factory=list)
    force_qa_fail: bool = False


class DailyFocusPayload(BaseModel):
    user_id: str = ""
    mode: Literal["founder", "operator", "client_preview"] = "founder"
    tone: str | None = None
    debug: DailyFocusDebug = Field(default_factory=DailyFocusDebug)


class VerifyRunPayload(BaseModel):
    flow: str
    agents_ran: list[str] = Field(default_factory=list)
    registry_used: bool = True
    runtime_stub_used: bool = False
    status_hints: dict[str, bool] | None = None
    errors: list[str] = Field(default_factory=list)
    debug_fail: bool = False


class VerifyRunResult(BaseModel):
    status: Literal["PASS", "DEGRADED", "FAIL"]
    reasons: list[str] = Field(default_factory=list)


@dataclass(slots=True)
class ContractCheck:
    valid: bool
    reasons: list[str] = field(default_factory=list)


def validate_agent_output(obj: Any) -> ContractCheck:
    """Check an agent result carries one of the known statuses."""

    if obj is None:
        return ContractCheck(valid=False, reasons=["Output not an object"])
    status = obj.get("status") if isinstance(obj, dict) else getattr(obj, "status", None)
    if status not in AGENT_STATUSES:
        return ContractCheck(valid=False, reasons=["Invalid status"])
    return ContractCheck(valid=True)


def validate_action_pack(pack: Any) -> ContractCheck:
    if not isinstance(pack, (ActionPack, dict)):
        return ContractCheck(valid=False, reasons=["ActionPack not object"])
    return ContractCheck(valid=True)
