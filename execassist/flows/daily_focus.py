"""Daily focus aggregation flow with a QA gate."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from execassist.actions.store import ActionStore
from execassist.agents.builtin import (
    ACTION_PACK,
    CALENDAR_OPTIMIZE,
    DAILY_BRIEF,
    FORCE_FAIL_FLAG,
    INSIGHT_SIGNALS,
    JOURNAL_PROMPT,
    QA_VERIFY,
    SKIP_FLAG,
)
from execassist.agents.dispatcher import AgentDispatcher
from execassist.contracts import (
    ActionPack,
    DailyFocusPayload,
    Insight,
    SuggestedAction,
    VerifyRunResult,
    validate_action_pack,
    validate_agent_output,
)
from execassist.models import AgentCallRequest, AgentCallResult
from execassist.tools.registry import ToolRegistry

LOGGER = logging.getLogger(__name__)

FLOW_NAME = "DAILY-FOCUS"
PRIMARY_AGENTS = (DAILY_BRIEF, CALENDAR_OPTIMIZE, INSIGHT_SIGNALS, JOURNAL_PROMPT)
DEFAULT_FOCUS = "Protect one 90m block for your top priority"
JOURNAL_INSIGHT_TITLE = "Journal Prompt"
SAFE_NEXT_STEPS = ["Review agent errors", "Try a lighter mode", "Run a single agent check"]
CONFIDENCE_BY_QA = {"PASS": 0.9, "DEGRADED": 0.6, "FAIL": 0.3}


@dataclass(slots=True)
class DailyFocusResult:
    status: str
    agents_ran: list[str]
    qa_status: str
    qa_reasons: list[str]
    focus: str
    insights: list[Insight]
    actions: list[SuggestedAction]
    action_pack: ActionPack
    confidence_score: float
    meta: dict[str, Any]
    planned_action_ids: list[str] = field(default_factory=list)


@dataclass(slots=True)
class FlowResponse:
    success: bool
    output: DailyFocusResult | None = None
    error: str | None = None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _output_of(result: AgentCallResult | None) -> dict[str, Any]:
    return _as_dict(result.output) if result is not None else {}


def _succeeded(result: AgentCallResult | None) -> bool:
    return result is not None and result.success


def _debug_payload(key: str, payload: DailyFocusPayload, **extra: Any) -> dict[str, Any]:
    return {
        "user_id": payload.user_id,
        **extra,
        SKIP_FLAG: key in payload.debug.skip_agents,
        FORCE_FAIL_FLAG: key in payload.debug.force_agent_fail,
    }


def _collect_insights(insights: dict[str, Any], journal: dict[str, Any]) -> list[Insight]:
    collected: list[Insight] = []
    seen: set[str] = set()
    for item in insights.get("insights") or []:
        title = (item.get("title") if isinstance(item, dict) else None) or "Insight"
        if title in seen:
            continue
        seen.add(title)
        detail = item.get("detail") if isinstance(item, dict) else None
        collected.append(Insight(title=title, detail=detail or str(item)))

    prompts = journal.get("prompts") or []
    if prompts and JOURNAL_INSIGHT_TITLE not in seen:
        collected.append(Insight(title=JOURNAL_INSIGHT_TITLE, detail=str(prompts[0])))
    return collected


def _collect_actions(pack: ActionPack, calendar: dict[str, Any]) -> list[SuggestedAction]:
    actions: list[SuggestedAction] = []
    if pack.linkedin_draft:
        actions.append(SuggestedAction(title="LinkedIn Draft", detail=pack.linkedin_draft))
    if pack.email_draft:
        actions.append(SuggestedAction(title="Email Draft", detail=pack.email_draft))
    if pack.reflection_exercise:
        actions.append(SuggestedAction(title="Reflection Exercise", detail=pack.reflection_exercise))
    blocks = calendar.get("focus_blocks") or []
    if blocks:
        actions.append(SuggestedAction(title="Focus Block", detail=str(blocks[0])))
    return actions


def _contract_violations(
    results: dict[str, AgentCallResult], content: AgentCallResult | None
) -> list[str]:
    """Check what the agents actually returned, before any normalization.

    A result that ran (not an unregistered stub) must have produced a valid
    status, and a successful one an object or nothing. A successful action
    pack agent must return an object that fits ``ActionPack``.
    """

    violations: list[str] = []
    for result in (*results.values(), content):
        if result is None or result.used_stub:
            continue
        if result.invalid_output or not validate_agent_output({"status": result.status}).valid:
            violations.append(f"{result.key}: invalid status")
        elif result.success and result.output is not None and not isinstance(result.output, dict):
            violations.append(f"{result.key}: output not an object")

    if content is not None and content.success:
        check = validate_action_pack(content.output)
        if not check.valid:
            violations.extend(f"{ACTION_PACK}: {reason}" for reason in check.reasons)
        else:
            try:
                ActionPack.model_validate(content.output)
            except ValidationError as exc:
                violations.append(f"{ACTION_PACK}: {exc.error_count()} validation error(s)")
    return violations


def _build_pack(content: AgentCallResult | None) -> ActionPack:
    if content is None or not content.success:
        return ActionPack()
    # The flow owns the pack's status fields.
    return ActionPack.model_validate(content.output).model_copy(
        update={"status": None, "blockers": None, "safe_next_steps": None}
    )


def _qa_verdict(result: AgentCallResult | None) -> VerifyRunResult:
    if result is None or result.output is None:
        return VerifyRunResult(status="DEGRADED", reasons=["QA missing"])
    try:
        return VerifyRunResult.model_validate(result.output)
    except ValidationError:
        LOGGER.warning("QA agent returned an unreadable verdict: %r", result.output)
        return VerifyRunResult(status="DEGRADED", reasons=["QA missing"])


def _derive_status(
    qa_status: str, results: dict[str, AgentCallResult], content: AgentCallResult | None
) -> str:
    if qa_status == "FAIL":
        return "failed"
    passes_content = (
        _succeeded(results.get(DAILY_BRIEF))
        and _succeeded(content)
        and (_succeeded(results.get(INSIGHT_SIGNALS)) or _succeeded(results.get(JOURNAL_PROMPT)))
    )
    if passes_content:
        return "ok" if qa_status == "PASS" else "degraded"
    if any(_succeeded(results.get(key)) for key in PRIMARY_AGENTS):
        return "degraded"
    return "failed"


async def run_daily_focus_flow(
    dispatcher: AgentDispatcher, payload: DailyFocusPayload | dict[str, Any]
) -> FlowResponse:
    """Run the primary agents, the action pack, then QA, and assemble the result.

    Returns a failed ``FlowResponse`` instead of raising.
    """

    if isinstance(payload, dict):
        try:
            payload = DailyFocusPayload.model_validate(payload)
        except ValidationError as exc:
            return FlowResponse(success=False, error=f"Invalid payload: {exc.error_count()} validation error(s)")
    if not payload.user_id:
        return FlowResponse(success=False, error="userId is required")

    results = await dispatcher.run_concurrently(
        [
            AgentCallRequest(DAILY_BRIEF, _debug_payload(DAILY_BRIEF, payload)),
            AgentCallRequest(CALENDAR_OPTIMIZE, _debug_payload(CALENDAR_OPTIMIZE, payload, horizon="90m")),
            AgentCallRequest(INSIGHT_SIGNALS, _debug_payload(INSIGHT_SIGNALS, payload)),
            AgentCallRequest(JOURNAL_PROMPT, _debug_payload(JOURNAL_PROMPT, payload)),
        ]
    )
    brief = _output_of(results.get(DAILY_BRIEF))
    calendar = _output_of(results.get(CALENDAR_OPTIMIZE))
    insights = _output_of(results.get(INSIGHT_SIGNALS))
    journal = _output_of(results.get(JOURNAL_PROMPT))

    content_results = await dispatcher.run_concurrently(
        [
            AgentCallRequest(
                ACTION_PACK,
                _debug_payload(
                    ACTION_PACK,
                    payload,
                    mode=payload.mode,
                    tone=payload.tone,
                    brief=brief or None,
                    calendar=calendar or None,
                    insights=insights or None,
                    journal=journal or None,
                ),
            )
        ]
    )
    content = content_results.get(ACTION_PACK)
    violations = _contract_violations(results, content)
    pack = _build_pack(content) if not violations else ActionPack()

    agents_ran = list(results)
    stubbed = [r.used_stub for r in (*results.values(), content) if r is not None]
    qa_results = await dispatcher.run_concurrently(
        [
            AgentCallRequest(
                QA_VERIFY,
                {
                    "flow": FLOW_NAME,
                    "agents_ran": agents_ran,
                    "status_hints": {
                        "brief": bool(brief),
                        "calendar": bool(calendar),
                        "insights": bool(insights),
                        "journal": bool(journal),
                    },
                    "debug_fail": payload.debug.force_qa_fail,
                    "registry_used": not all(stubbed),
                    "runtime_stub_used": any(stubbed),
                },
            )
        ]
    )
    qa = _qa_verdict(qa_results.get(QA_VERIFY))

    status = _derive_status(qa.status, results, content)
    top_insight = _as_dict((insights.get("insights") or [None])[0])
    focus = top_insight.get("title") or brief.get("summary") or DEFAULT_FOCUS

    qa_status = qa.status
    qa_reasons = list(qa.reasons)
    if violations:
        LOGGER.warning(
            "Daily focus contract validation failed for user %s: %s", payload.user_id, "; ".join(violations)
        )
        qa_status = "FAIL"
        qa_reasons.append("Contract validation failed")

    pack.status = "blocked" if qa_status == "FAIL" else "ready"
    if qa_status == "FAIL":
        pack.blockers = qa_reasons or ["QA failed"]
        pack.safe_next_steps = list(SAFE_NEXT_STEPS)

    output = DailyFocusResult(
        status=status,
        agents_ran=agents_ran,
        qa_status=qa_status,
        qa_reasons=qa_reasons,
        focus=focus,
        insights=_collect_insights(insights, journal),
        actions=_collect_actions(pack, calendar),
        action_pack=pack,
        confidence_score=CONFIDENCE_BY_QA[qa.status],
        meta={
            "user_id": payload.user_id,
            "mode": payload.mode,
            "generated_at": datetime.now(timezone.utc).isoformat(),
        },
    )
    LOGGER.info(
        "Daily focus for %s finished with status=%s qa=%s", payload.user_id, status, qa_status
    )
    return FlowResponse(success=status != "failed", output=output)


class DailyFocusService:
    """Runs the flow, then plans draft actions from the pack and publishes it."""

    def __init__(self, dispatcher: AgentDispatcher, store: ActionStore, tools: ToolRegistry) -> None:
        self._dispatcher = dispatcher
        self._store = store
        self._tools = tools

    async def run(self, payload: DailyFocusPayload | dict[str, Any]) -> FlowResponse:
        response = await run_daily_focus_flow(self._dispatcher, payload)
        result = response.output
        if result is None:
            return response

        pack = result.action_pack
        if pack.status == "ready":
            drafts = (
                ("linkedin_draft", "LinkedIn draft", pack.linkedin_draft),
                ("email_draft", "Daily focus email", pack.email_draft),
            )
            for source, subject, body in drafts:
                if not body:
                    continue
                action = self._store.save_planned_action(
                    "gmail.draft_email",
                    requires_approval=True,
                    payload={"subject": subject, "body": body, "source": source, "user_id": result.meta["user_id"]},
                )
                result.planned_action_ids.append(action.id)

        published = await self._tools.run_by_name(
            "n8n.actionpack_webhook",
            {
                "intent": FLOW_NAME,
                "user_id": result.meta["user_id"],
                "qa_status": result.qa_status,
                "action_pack": pack.model_dump(exclude_none=True),
            },
        )
        if not published.ok:
            LOGGER.warning(
                "Action pack publish failed: %s", published.error.message if published.error else "unknown error"
            )
        return response
