"""Registry of keyed agent handlers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal

from execassist.contracts import AgentOutput

LOGGER = logging.getLogger(__name__)

AgentRunFn = Callable[[dict[str, Any]], Awaitable[AgentOutput | dict[str, Any]]]
AgentHealthFn = Callable[[], Awaitable[dict[str, Any]]]


@dataclass(slots=True)
class AgentDefinition:
    key: str
    run: AgentRunFn
    health: AgentHealthFn | None = None
    status: Literal["active", "frozen"] = "active"
    description: str = ""


class AgentRegistry:
    """Explicit key -> handler map. Registering an existing key replaces it."""

    def __init__(self) -> None:
        self._agents: dict[str, AgentDefinition] = {}

    def register(self, definition: AgentDefinition) -> None:
        if definition.key in self._agents:
            LOGGER.info("Replacing agent registration for %s", definition.key)
        self._agents[definition.key] = definition

    def get(self, key: str) -> AgentDefinition | None:
        return self._agents.get(key)

    def list(self) -> list[AgentDefinition]:
        return list(self._agents.values())

    async def health(self) -> dict[str, dict[str, Any]]:
        """Run every agent's health probe; agents without one report UNKNOWN."""

        async def probe(agent: AgentDefinition) -> tuple[str, dict[str, Any]]:
            if agent.health is None:
                return agent.key, {"status": "UNKNOWN"}
            try:
                return agent.key, await agent.health()
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("Health probe for %s failed: %s", agent.key, exc)
                return agent.key, {"status": "FAILED", "details": str(exc)}

        results = await asyncio.gather(*(probe(agent) for agent in self._agents.values()))
        return dict(results)
