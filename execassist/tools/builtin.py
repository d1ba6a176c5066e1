"""Tools registered by default."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

import httpx

from execassist.actions.store import ActionStore
from execassist.config import Settings
from execassist.contracts import ToolRequest, ToolResult
from execassist.tools.base import Tool
from execassist.tools.registry import ToolRegistry
from execassist.tools.remote import SIGNATURE_HEADER, sign_body

LOGGER = logging.getLogger(__name__)


class ListPendingActionsTool(Tool):
    """Read-only view of actions awaiting approval or execution."""

    tool = "actions"
    action = "list_pending"
    description = "List planned and approved actions without side effects."

    def __init__(self, store: ActionStore) -> None:
        self._store = store

    async def handle(self, request: ToolRequest) -> ToolResult:
        actions = [asdict(action) for action in self._store.list_pending_actions()]
        return ToolResult(ok=True, output={"actions": actions})


class ActionPackWebhookTool(Tool):
    """Best-effort POST of an action-pack event to an automation webhook.

    Delivery problems are logged and reported in the output; the result is
    always ok so callers never fail on notification.
    """

    tool = "n8n"
    action = "actionpack_webhook"
    description = "Publish a daily focus action pack to the configured webhook."
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "intent": {"type": "string"},
            "user_id": {"type": "string"},
            "qa_status": {"type": "string"},
            "action_pack": {"type": "object"},
            "timestamp": {"type": "string"},
        },
        "required": ["intent", "user_id", "qa_status", "action_pack"],
    }

    def __init__(self, settings: Settings) -> None:
        self._enabled = settings.enable_actionpack_webhook
        self._url = settings.actionpack_webhook_url
        self._secret = settings.actionpack_webhook_secret
        self._timeout_seconds = settings.actionpack_webhook_timeout_seconds

    async def handle(self, request: ToolRequest) -> ToolResult:
        if not self._enabled:
            return ToolResult(ok=True, output={"delivered": False, "reason": "disabled"})
        if not self._url:
            LOGGER.warning("Action pack webhook enabled but ACTIONPACK_WEBHOOK_URL missing")
            return ToolResult(ok=True, output={"delivered": False, "reason": "misconfigured"})

        event = {"timestamp": datetime.now(timezone.utc).isoformat(), **request.input}
        body = json.dumps(event).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self._secret:
            headers[SIGNATURE_HEADER] = sign_body(self._secret, body)

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                response = await client.post(self._url, content=body, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.warning("Action pack webhook post failed: %s", exc)
            return ToolResult(ok=True, output={"delivered": False, "reason": str(exc)})
        return ToolResult(ok=True, output={"delivered": True})


def register_builtin_tools(registry: ToolRegistry, store: ActionStore, settings: Settings) -> None:
    registry.register(ListPendingActionsTool(store))
    registry.register(ActionPackWebhookTool(settings))
