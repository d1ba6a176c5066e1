"""Post-aggregation QA verdict for a flow run."""

from __future__ import annotations

from execassist.contracts import VerifyRunPayload, VerifyRunResult


def verify_run(payload: VerifyRunPayload) -> VerifyRunResult:
    """Grade a run as PASS, DEGRADED or FAIL.

    Debug failure, a stub runtime or bypassing the registry is a hard FAIL.
    Any other reason collected below only degrades the run.
    """

    reasons: list[str] = []
    if not payload.agents_ran:
        reasons.append("No agents ran")
    if not payload.registry_used:
        reasons.append("Registry not used")
    if payload.runtime_stub_used:
        reasons.append("Stub runtime used")
    reasons.extend(payload.errors)
    if payload.debug_fail:
        reasons.append("Debug fail requested")
    if payload.status_hints and not any(payload.status_hints.values()):
        reasons.append("All outputs missing")

    if payload.debug_fail or payload.runtime_stub_used or not payload.registry_used:
        return VerifyRunResult(status="FAIL", reasons=reasons)
    if reasons:
        return VerifyRunResult(status="DEGRADED", reasons=reasons)
    return VerifyRunResult(status="PASS")
