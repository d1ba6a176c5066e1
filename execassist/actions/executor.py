"""Plan -> approve -> execute state machine for side-effecting actions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from execassist.actions.audit import AuditLog
from execassist.actions.store import ActionStore
from execassist.config import (
    FLAG_ACTION_EXECUTION,
    FLAG_CALENDAR_WRITES,
    FLAG_GMAIL_DRAFTS,
    FLAG_GMAIL_SEND,
    FLAG_SHEETS_WRITES,
    Settings,
)
from execassist.contracts import ToolRequest
from execassist.models import ActionReceipt, PlannedAction
from execassist.tools.registry import ToolRegistry

LOGGER = logging.getLogger(__name__)

ExecutionMode = Literal["PLAN", "EXECUTE"]


@dataclass(slots=True)
class ExecutionContext:
    mode: ExecutionMode
    approved_by: str | None = None
    feature_flags: dict[str, bool] | None = None


@dataclass(frozen=True, slots=True)
class ConnectorRoute:
    """How one action type reaches its tool, and which flag guards it."""

    tool: str
    action: str
    flag: str | None
    disabled_message: str
    done_message: str


CONNECTOR_ROUTES: dict[str, ConnectorRoute] = {
    "calendar.create_event": ConnectorRoute(
        "calendar", "schedule", FLAG_CALENDAR_WRITES, "Calendar writes disabled", "Calendar event created"
    ),
    "gmail.draft_email": ConnectorRoute(
        "email", "draft", FLAG_GMAIL_DRAFTS, "Gmail drafts disabled", "Email drafted"
    ),
    "gmail.send_email": ConnectorRoute(
        "email", "send", FLAG_GMAIL_SEND, "Gmail send disabled", "Email sent"
    ),
    "sheets.append_row": ConnectorRoute(
        "sheets", "append_row", FLAG_SHEETS_WRITES, "Sheets writes disabled", "Sheets operation completed"
    ),
    "sheets.update_row": ConnectorRoute(
        "sheets", "update_row", FLAG_SHEETS_WRITES, "Sheets writes disabled", "Sheets operation completed"
    ),
    "task.create": ConnectorRoute("tasks", "create", None, "", "Task created"),
}

PROPOSAL_ONLY_TYPES = frozenset({"calendar.propose_block"})


@dataclass(slots=True)
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class ActionExecutor:
    """Gatekeeper between planned actions and the tools that perform them.

    Every outcome is a receipt: it is recorded on the action and appended to
    the audit log before ``execute_action`` returns. A receipt already stored
    under the same idempotency key is returned as-is, with no new audit entry
    and no tool call. Executions sharing an idempotency key are serialized.
    """

    def __init__(self, store: ActionStore, audit: AuditLog, tools: ToolRegistry, settings: Settings) -> None:
        self._store = store
        self._audit = audit
        self._tools = tools
        self._settings = settings
        self._locks: dict[str, _KeyLock] = {}

    def approve_action(self, action_id: str, approved_by: str, notes: str | None = None) -> PlannedAction | None:
        action = self._store.approve_action(action_id, approved_by, notes)
        if action is not None:
            self._audit.record_audit(action_id, "APPROVED", notes or f"Approved by {approved_by}")
        return action

    async def execute_action(self, action: PlannedAction, ctx: ExecutionContext) -> ActionReceipt:
        key = action.idempotency_key
        if not key:
            return await self._execute(action, ctx)
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _KeyLock()
        entry.holders += 1
        try:
            async with entry.lock:
                return await self._execute(action, ctx)
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del self._locks[key]

    def pending_keys(self) -> list[str]:
        """Idempotency keys with an execution in flight or waiting."""

        return list(self._locks)

    async def _execute(self, action: PlannedAction, ctx: ExecutionContext) -> ActionReceipt:
        prior = self._store.find_receipt(action.idempotency_key)
        if prior is not None:
            owner, receipt = prior
            LOGGER.info("Idempotent replay for key %s (action %s)", action.idempotency_key, owner.id)
            return receipt

        flags = {**self._settings.feature_flags(), **(ctx.feature_flags or {})}

        if ctx.mode == "PLAN":
            receipt = ActionReceipt(status="PLANNED", message="Plan mode - no side effects")
        elif action.requires_approval and action.status != "APPROVED":
            receipt = ActionReceipt(status="BLOCKED", message="Approval required")
        elif not flags.get(FLAG_ACTION_EXECUTION, False):
            receipt = ActionReceipt(status="BLOCKED", message="Execution disabled by flag")
        else:
            try:
                receipt = await self._route(action, flags)
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("Action %s (%s) failed: %s", action.id, action.type, exc)
                receipt = ActionReceipt(status="FAILED", message=str(exc))

        self._store.record_receipt(action.id, receipt)
        self._audit.record_audit(action.id, receipt.status, receipt.message, receipt.external_ref)
        return receipt

    async def _route(self, action: PlannedAction, flags: dict[str, bool]) -> ActionReceipt:
        if action.type in PROPOSAL_ONLY_TYPES:
            return ActionReceipt(status="PLANNED", message="Proposal only (no writes)")

        route = CONNECTOR_ROUTES.get(action.type)
        if route is None:
            return ActionReceipt(status="BLOCKED", message="Unknown action type")
        if route.flag is not None and not flags.get(route.flag, False):
            return ActionReceipt(status="BLOCKED", message=route.disabled_message)

        result = await self._tools.run_with_fallback(
            ToolRequest(
                tool=route.tool,
                action=route.action,
                input=dict(action.payload),
                meta={"action_id": action.id, "idempotency_key": action.idempotency_key},
            )
        )
        if not result.ok:
            message = result.error.message if result.error else "Tool call failed"
            return ActionReceipt(status="FAILED", message=message)

        output: dict[str, Any] = result.output if isinstance(result.output, dict) else {}
        external_ref = output.get("external_ref") or output.get("id")
        return ActionReceipt(
            status="EXECUTED",
            message=str(output.get("message") or route.done_message),
            external_ref=str(external_ref) if external_ref is not None else None,
            executed_at=datetime.now(timezone.utc),
        )
