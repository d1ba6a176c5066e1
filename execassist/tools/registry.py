"""Registry for tool registration and result-normalized execution."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError, create_model

from execassist.contracts import ToolRequest, ToolResult
from execassist.tools.base import Tool
from execassist.tools.remote import RemoteToolClient

LOGGER = logging.getLogger(__name__)


class ToolRegistry:
    """Explicit registry of tools keyed by ``<tool>.<action>``.

    ``run`` never raises: every failure comes back as a ``ToolResult`` with
    an error code.
    """

    def __init__(self, remote: RemoteToolClient | None = None) -> None:
        self._remote = remote
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        if not getattr(tool, "tool", None) or not getattr(tool, "action", None):
            raise ValueError(f"Tool {type(tool).__name__} must define both tool and action")
        self._tools[tool.name] = tool

    def get(self, tool: str, action: str) -> Tool | None:
        return self._tools.get(f"{tool}.{action}")

    def list(self) -> list[str]:
        return list(self._tools)

    def list_tool_specs(self) -> list[dict[str, Any]]:
        return [
            {"name": name, "description": tool.description, "parameters": tool.parameters_schema}
            for name, tool in self._tools.items()
        ]

    async def run(self, request: ToolRequest) -> ToolResult:
        tool = self.get(request.tool, request.action)
        if tool is None:
            return ToolResult.failure(
                "NOT_IMPLEMENTED", f"Tool {request.tool}.{request.action} not registered"
            )

        if tool.parameters_schema.get("properties"):
            try:
                validated = _validate_json_schema(tool.parameters_schema, request.input)
            except ValueError as exc:
                return ToolResult.failure("INVALID_INPUT", str(exc))
            request = request.model_copy(update={"input": validated})

        try:
            return await tool.handle(request)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Tool %s failed: %s", tool.name, exc)
            return ToolResult.failure("TOOL_ERROR", str(exc) or "Tool handler failed")

    async def run_by_name(
        self, tool_name: str, input: dict[str, Any] | None = None, meta: dict[str, Any] | None = None
    ) -> ToolResult:
        tool, _, action = tool_name.partition(".")
        if not tool or not action:
            return ToolResult.failure("INVALID_TOOL", f"Tool name {tool_name} must include tool.action")
        return await self.run(ToolRequest(tool=tool, action=action, input=input or {}, meta=meta))

    async def run_with_fallback(self, request: ToolRequest) -> ToolResult:
        """Run the local handler; delegate to the remote tool server only when none is registered."""

        local = self.get(request.tool, request.action)
        if local is None and self._remote is not None and self._remote.enabled:
            result = await self._remote.run(request)
            if result.ok or result.error is None or result.error.code != "REMOTE_DISABLED":
                return result
        return await self.run(request)


def _validate_json_schema(schema: dict[str, Any], payload: dict[str, Any]) -> dict[str, Any]:
    props = schema.get("properties", {})
    required = set(schema.get("required", []))
    fields: dict[str, tuple[type[Any], Any]] = {}
    for name, config in props.items():
        typ = _python_type(config.get("type", "string"))
        default = ... if name in required else None
        fields[name] = (typ | None if default is None else typ, default)

    model = create_model("ToolInputModel", **fields)
    try:
        value = model(**payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid input for tool: {exc}") from exc
    return value.model_dump(exclude_none=True)


def _python_type(schema_type: str) -> type[Any]:
    mapping: dict[str, type[Any]] = {
        "string": str,
        "integer": int,
        "number": float,
        "boolean": bool,
        "object": dict,
        "array": list,
    }
    return mapping.get(schema_type, str)
