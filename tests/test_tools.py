import hashlib
import hmac
import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from execassist.actions.store import ActionStore
from execassist.config import Settings
from execassist.contracts import ToolRequest, ToolResult
from execassist.tools.base import Tool
from execassist.tools.builtin import ActionPackWebhookTool, ListPendingActionsTool, register_builtin_tools
from execassist.tools.registry import ToolRegistry
from execassist.tools.remote import RemoteToolClient


class EchoTool(Tool):
    tool = "echo"
    action = "say"
    description = "Echo the message back."
    parameters_schema = {
        "type": "object",
        "properties": {"message": {"type": "string"}, "times": {"type": "integer"}},
        "required": ["message"],
    }

    async def handle(self, request: ToolRequest) -> ToolResult:
        return ToolResult(ok=True, output={"said": request.input["message"] * request.input.get("times", 1)})


class BrokenTool(Tool):
    tool = "broken"
    action = "run"
    description = "Always raises."

    async def handle(self, request: ToolRequest) -> ToolResult:
        raise RuntimeError("kaboom")


def _mock_client(response: MagicMock | None = None, side_effect: Exception | None = None) -> AsyncMock:
    client = AsyncMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    client.post = AsyncMock(return_value=response, side_effect=side_effect)
    return client


def _mock_response(data: dict, status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = data
    return resp


def _remote_settings(**overrides) -> Settings:  # noqa: ANN003
    values = {
        "enable_remote_tools": True,
        "remote_tools_url": "https://tools.example.com/run",
        "remote_tools_shared_secret": "s3cret",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.mark.asyncio
async def test_tool_registry_validates_and_executes():
    registry = ToolRegistry()
    registry.register(EchoTool())

    result = await registry.run(ToolRequest(tool="echo", action="say", input={"message": "hi", "times": 2}))

    assert result.ok is True
    assert result.output == {"said": "hihi"}
    assert registry.list() == ["echo.say"]
    assert registry.get("echo", "say") is not None


@pytest.mark.asyncio
async def test_tool_registry_rejects_invalid_input():
    registry = ToolRegistry()
    registry.register(EchoTool())

    result = await registry.run(ToolRequest(tool="echo", action="say", input={"times": 2}))

    assert result.ok is False
    assert result.error.code == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_tool_registry_error_codes():
    registry = ToolRegistry()
    registry.register(BrokenTool())

    missing = await registry.run(ToolRequest(tool="calendar", action="schedule"))
    broken = await registry.run_by_name("broken.run")
    malformed = await registry.run_by_name("nodot")

    assert (missing.error.code, missing.error.message) == ("NOT_IMPLEMENTED", "Tool calendar.schedule not registered")
    assert (broken.error.code, broken.error.message) == ("TOOL_ERROR", "kaboom")
    assert malformed.error.code == "INVALID_TOOL"


def test_register_requires_tool_and_action():
    class Nameless(Tool):
        description = "no name"

        async def handle(self, request: ToolRequest) -> ToolResult:
            return ToolResult(ok=True)

    with pytest.raises(ValueError):
        ToolRegistry().register(Nameless())


@pytest.mark.asyncio
async def test_remote_client_disabled_and_misconfigured():
    disabled = await RemoteToolClient(Settings(_env_file=None)).run(ToolRequest(tool="a", action="b"))
    misconfigured = await RemoteToolClient(_remote_settings(remote_tools_url="")).run(
        ToolRequest(tool="a", action="b")
    )

    assert disabled.error.code == "REMOTE_DISABLED"
    assert misconfigured.error.code == "REMOTE_MISCONFIGURED"


@pytest.mark.asyncio
async def test_remote_client_signs_request_body():
    client = _mock_client(_mock_response({"external_ref": "remote-1"}))

    with patch("execassist.tools.remote.httpx.AsyncClient", return_value=client):
        result = await RemoteToolClient(_remote_settings()).run(
            ToolRequest(tool="tasks", action="create", input={"title": "x"})
        )

    assert result.ok is True
    assert result.output == {"external_ref": "remote-1"}
    kwargs = client.post.call_args.kwargs
    body = kwargs["content"]
    assert json.loads(body)["tool"] == "tasks"
    expected = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
    assert kwargs["headers"]["X-EM-Signature"] == expected


@pytest.mark.asyncio
async def test_remote_client_omits_signature_without_secret():
    client = _mock_client(_mock_response({}))

    with patch("execassist.tools.remote.httpx.AsyncClient", return_value=client):
        await RemoteToolClient(_remote_settings(remote_tools_shared_secret="")).run(ToolRequest(tool="a", action="b"))

    assert "X-EM-Signature" not in client.post.call_args.kwargs["headers"]


@pytest.mark.asyncio
async def test_remote_client_error_codes():
    http_error = _mock_client(_mock_response({}, status_code=502))
    timeout = _mock_client(side_effect=httpx.ReadTimeout("slow"))
    network = _mock_client(side_effect=httpx.ConnectError("refused"))
    request = ToolRequest(tool="a", action="b")

    results = []
    for client in (http_error, timeout, network):
        with patch("execassist.tools.remote.httpx.AsyncClient", return_value=client):
            results.append(await RemoteToolClient(_remote_settings()).run(request))

    assert (results[0].error.code, results[0].error.message) == ("REMOTE_HTTP_ERROR", "HTTP 502")
    assert results[1].error.code == "REMOTE_TIMEOUT"
    assert results[2].error.code == "REMOTE_ERROR"


@pytest.mark.asyncio
async def test_run_with_fallback_prefers_local_handler():
    registry = ToolRegistry(remote=RemoteToolClient(_remote_settings()))
    registry.register(EchoTool())
    client = _mock_client(_mock_response({}, status_code=500))

    with patch("execassist.tools.remote.httpx.AsyncClient", return_value=client):
        result = await registry.run_with_fallback(ToolRequest(tool="echo", action="say", input={"message": "hi"}))

    assert result.ok is True
    assert result.output == {"said": "hi"}
    client.post.assert_not_called()


@pytest.mark.asyncio
async def test_run_with_fallback_delegates_unregistered_tools_to_remote():
    registry = ToolRegistry(remote=RemoteToolClient(_remote_settings()))
    client = _mock_client(_mock_response({"external_ref": "evt-9"}))

    with patch("execassist.tools.remote.httpx.AsyncClient", return_value=client):
        result = await registry.run_with_fallback(ToolRequest(tool="calendar", action="schedule"))

    assert result.ok is True
    assert result.output == {"external_ref": "evt-9"}
    client.post.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_with_fallback_reports_not_implemented_when_remote_disabled():
    remote = MagicMock()
    remote.enabled = True
    remote.run = AsyncMock(return_value=ToolResult.failure("REMOTE_DISABLED", "off"))
    registry = ToolRegistry(remote=remote)

    result = await registry.run_with_fallback(ToolRequest(tool="calendar", action="schedule"))

    assert result.error.code == "NOT_IMPLEMENTED"
    remote.run.assert_awaited_once()


@pytest.mark.asyncio
async def test_list_pending_tool_reports_open_actions():
    store = ActionStore()
    pending = store.save_planned_action("task.create", requires_approval=True)
    store.save_planned_action("task.create", requires_approval=True, status="FAILED")
    registry = ToolRegistry()
    register_builtin_tools(registry, store, Settings(_env_file=None))

    result = await registry.run_by_name("actions.list_pending")

    assert result.ok is True
    assert [a["id"] for a in result.output["actions"]] == [pending.id]
    assert isinstance(registry.get("actions", "list_pending"), ListPendingActionsTool)


@pytest.mark.asyncio
async def test_actionpack_webhook_disabled_by_default():
    tool = ActionPackWebhookTool(Settings(_env_file=None))

    with patch("execassist.tools.builtin.httpx.AsyncClient") as client_cls:
        result = await tool.handle(
            ToolRequest(tool="n8n", action="actionpack_webhook", input={"intent": "x", "action_pack": {}})
        )

    assert result.ok is True
    assert result.output["delivered"] is False
    client_cls.assert_not_called()


@pytest.mark.asyncio
async def test_actionpack_webhook_posts_signed_event():
    settings = Settings(
        _env_file=None,
        enable_actionpack_webhook=True,
        actionpack_webhook_url="https://hooks.example.com/pack",
        actionpack_webhook_secret="hook-secret",
    )
    registry = ToolRegistry()
    registry.register(ActionPackWebhookTool(settings))
    client = _mock_client(_mock_response({}))

    with patch("execassist.tools.builtin.httpx.AsyncClient", return_value=client):
        result = await registry.run_by_name(
            "n8n.actionpack_webhook",
            {"intent": "DAILY-FOCUS", "user_id": "u1", "qa_status": "PASS", "action_pack": {"status": "ready"}},
        )

    assert result.output == {"delivered": True}
    kwargs = client.post.call_args.kwargs
    event = json.loads(kwargs["content"])
    assert event["user_id"] == "u1"
    assert event["action_pack"] == {"status": "ready"}
    assert "timestamp" in event
    expected = hmac.new(b"hook-secret", kwargs["content"], hashlib.sha256).hexdigest()
    assert kwargs["headers"]["X-EM-Signature"] == expected


@pytest.mark.asyncio
async def test_actionpack_webhook_failure_is_not_raised():
    settings = Settings(
        _env_file=None, enable_actionpack_webhook=True, actionpack_webhook_url="https://hooks.example.com/pack"
    )
    client = _mock_client(side_effect=httpx.ConnectError("refused"))

    with patch("execassist.tools.builtin.httpx.AsyncClient", return_value=client):
        result = await ActionPackWebhookTool(settings).handle(
            ToolRequest(tool="n8n", action="actionpack_webhook", input={"intent": "x"})
        )

    assert result.ok is True
    assert result.output["delivered"] is False
