"""Signed HTTP delegation of tool requests to a remote tool server."""

from __future__ import annotations

import hashlib
import hmac
import logging

import httpx

from execassist.config import Settings
from execassist.contracts import ToolRequest, ToolResult

LOGGER = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-EM-Signature"


def sign_body(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of the raw request body."""

    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class RemoteToolClient:
    """POSTs ``ToolRequest`` JSON to ``REMOTE_TOOLS_URL``."""

    def __init__(self, settings: Settings) -> None:
        self._enabled = settings.enable_remote_tools
        self._url = settings.remote_tools_url
        self._timeout_seconds = settings.remote_tools_timeout_seconds
        self._secret = settings.remote_tools_shared_secret

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def run(self, request: ToolRequest) -> ToolResult:
        if not self._enabled:
            return ToolResult.failure("REMOTE_DISABLED", "Remote tools disabled by flag")
        if not self._url:
            return ToolResult.failure("REMOTE_MISCONFIGURED", "REMOTE_TOOLS_URL missing")

        body = request.model_dump_json().encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self._secret:
            headers[SIGNATURE_HEADER] = sign_body(self._secret, body)

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                response = await client.post(self._url, content=body, headers=headers)
        except httpx.TimeoutException:
            LOGGER.warning("Remote tool %s.%s timed out", request.tool, request.action)
            return ToolResult.failure("REMOTE_TIMEOUT", "Remote tool request timed out")
        except httpx.HTTPError as exc:
            LOGGER.warning("Remote tool %s.%s failed: %s", request.tool, request.action, exc)
            return ToolResult.failure("REMOTE_ERROR", str(exc) or "Remote tool request failed")

        if response.status_code >= 400:
            return ToolResult.failure("REMOTE_HTTP_ERROR", f"HTTP {response.status_code}")
        try:
            output = response.json()
        except ValueError as exc:
            return ToolResult.failure("REMOTE_ERROR", f"Invalid JSON from remote tool server: {exc}")
        return ToolResult(ok=True, output=output)
