"""Tool contracts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from execassist.contracts import ToolRequest, ToolResult


class Tool(ABC):
    """Base class for side-effecting tools, addressed as ``<tool>.<action>``."""

    tool: str
    action: str
    description: str
    # JSON schema for ``ToolRequest.input``. A schema without properties
    # leaves the input unvalidated.
    parameters_schema: dict[str, Any] = {"type": "object", "properties": {}}

    @property
    def name(self) -> str:
        return f"{self.tool}.{self.action}"

    @abstractmethod
    async def handle(self, request: ToolRequest) -> ToolResult:
        """Perform the tool's action with validated input."""
