"""Default agents backing the daily focus flow.

These produce deterministic content so the flow runs end to end without
external services. Hosts replace them by registering real handlers under
the same keys.
"""

from __future__ import annotations

import functools
import logging
from typing import Any

from execassist.agents.registry import AgentDefinition, AgentRegistry, AgentRunFn
from execassist.contracts import AgentOutput, VerifyRunPayload
from execassist.flows.qa import verify_run

LOGGER = logging.getLogger(__name__)

DAILY_BRIEF = "daily_brief.generate"
CALENDAR_OPTIMIZE = "calendar.optimize_today"
INSIGHT_SIGNALS = "insight.surface_top_signals"
JOURNAL_PROMPT = "journal.prompt_light"
ACTION_PACK = "content.action_pack"
QA_VERIFY = "qa.verify_run"

SKIP_FLAG = "__skip"
FORCE_FAIL_FLAG = "__force_fail"


def honour_debug_flags(run: AgentRunFn) -> AgentRunFn:
    """Short-circuit a handler when the payload asks to skip or fail it."""

    @functools.wraps(run)
    async def wrapper(payload: dict[str, Any]) -> AgentOutput | dict[str, Any]:
        if payload.get(SKIP_FLAG):
            return AgentOutput(status="SKIPPED", warnings=["Skipped by debug flag"])
        if payload.get(FORCE_FAIL_FLAG):
            return AgentOutput(status="FAILED", error="Forced failure (debug)")
        return await run(payload)

    return wrapper


async def daily_brief(payload: dict[str, Any]) -> AgentOutput:
    user = payload.get("user_id", "")
    return AgentOutput(
        status="OK",
        output={"summary": f"Daily brief for {user}", "highlights": ["Calendar, tasks, priorities"]},
    )


async def calendar_optimize(payload: dict[str, Any]) -> AgentOutput:
    user = payload.get("user_id", "")
    horizon = payload.get("horizon", "90m")
    return AgentOutput(status="OK", output={"focus_blocks": [f"{horizon} block scheduled for {user}"]})


async def insight_signals(payload: dict[str, Any]) -> AgentOutput:
    return AgentOutput(
        status="OK",
        output={
            "insights": [
                {"title": "Top signal", "detail": "Deliver one deep focus block before noon"},
                {"title": "Wellbeing", "detail": "Protect rest between meetings"},
            ]
        },
    )


async def journal_prompt(payload: dict[str, Any]) -> AgentOutput:
    return AgentOutput(
        status="OK",
        output={"prompts": ["What will you commit to in 90 minutes?", "What must wait until tomorrow?"]},
    )


async def action_pack(payload: dict[str, Any]) -> AgentOutput:
    user = payload.get("user_id", "")
    brief = payload.get("brief") or {}
    calendar = payload.get("calendar") or {}
    journal = payload.get("journal") or {}
    summary = brief.get("summary") if isinstance(brief, dict) else None
    blocks = calendar.get("focus_blocks") if isinstance(calendar, dict) else None
    prompts = journal.get("prompts") if isinstance(journal, dict) else None

    block = blocks[0] if blocks else "one 90m deep work block"
    return AgentOutput(
        status="OK",
        output={
            "linkedin_draft": f"Focus for {user}: carve a 90m block.",
            "email_draft": f"Today's plan: {summary or 'protect deep work'}. Holding {block}.",
            "journal_expansion": prompts[0] if prompts else None,
            "reflection_exercise": "Name the one outcome that would make today a win.",
            "focus_narrative": "Stay strengths-centered and protect one deep work window.",
        },
    )


async def qa_verify(payload: dict[str, Any]) -> AgentOutput:
    result = verify_run(VerifyRunPayload.model_validate(payload))
    return AgentOutput(status="OK", output=result.model_dump())


BUILTIN_AGENTS: tuple[tuple[str, AgentRunFn, str], ...] = (
    (DAILY_BRIEF, daily_brief, "Summarize the day ahead"),
    (CALENDAR_OPTIMIZE, calendar_optimize, "Propose focus blocks for today"),
    (INSIGHT_SIGNALS, insight_signals, "Surface the top signals"),
    (JOURNAL_PROMPT, journal_prompt, "Offer a light journal prompt"),
    (ACTION_PACK, action_pack, "Draft the content and action pack"),
    (QA_VERIFY, qa_verify, "Verify a flow run"),
)


async def _healthy() -> dict[str, Any]:
    return {"status": "OK"}


def register_builtin_agents(registry: AgentRegistry) -> None:
    for key, run, description in BUILTIN_AGENTS:
        registry.register(
            AgentDefinition(
                key=key,
                run=honour_debug_flags(run),
                health=_healthy,
                description=description,
            )
        )
    LOGGER.info("Registered %d built-in agents", len(BUILTIN_AGENTS))
