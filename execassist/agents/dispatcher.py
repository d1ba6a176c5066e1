"""Concurrent fan-out of agent calls over the registry."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from pydantic import ValidationError

from execassist.agents.registry import AgentRegistry
from execassist.contracts import AgentOutput
from execassist.models import AgentCallRequest, AgentCallResult

LOGGER = logging.getLogger(__name__)


class AgentDispatcher:
    """Runs a batch of agent calls in parallel and normalizes every outcome.

    ``run_concurrently`` never raises: unregistered keys, handler errors,
    timeouts and malformed outputs all come back as results.
    """

    def __init__(self, registry: AgentRegistry, timeout_seconds: float | None = 30.0) -> None:
        self._registry = registry
        self._timeout_seconds = timeout_seconds

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    async def run_concurrently(
        self, requests: Iterable[AgentCallRequest]
    ) -> dict[str, AgentCallResult]:
        results = await asyncio.gather(*(self._run_one(request) for request in requests))
        # Duplicate keys: the later request's result wins.
        return {result.key: result for result in results}

    async def _run_one(self, request: AgentCallRequest) -> AgentCallResult:
        agent = self._registry.get(request.key)
        if agent is None:
            LOGGER.warning("Agent %s not registered; returning stub result", request.key)
            return AgentCallResult(
                key=request.key,
                success=False,
                status="SKIPPED",
                warnings=["Agent not registered"],
                used_stub=True,
            )

        try:
            raw = await asyncio.wait_for(agent.run(dict(request.payload)), timeout=self._timeout_seconds)
        except asyncio.TimeoutError:
            LOGGER.warning("Agent %s timed out after %ss", request.key, self._timeout_seconds)
            return AgentCallResult(
                key=request.key,
                success=False,
                status="FAILED",
                error=f"Agent timed out after {self._timeout_seconds}s",
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Agent %s raised: %s", request.key, exc)
            return AgentCallResult(key=request.key, success=False, status="FAILED", error=str(exc))

        try:
            output = raw if isinstance(raw, AgentOutput) else AgentOutput.model_validate(raw)
        except ValidationError as exc:
            LOGGER.warning("Agent %s returned invalid output: %s", request.key, exc)
            return AgentCallResult(
                key=request.key,
                success=False,
                status="FAILED",
                error=f"Invalid agent output: {exc.error_count()} validation error(s)",
                invalid_output=True,
            )

        return AgentCallResult(
            key=request.key,
            success=output.status == "OK",
            status=output.status,
            output=output.output,
            error=output.error,
            warnings=list(output.warnings or []),
        )
