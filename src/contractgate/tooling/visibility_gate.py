from __future__ import annotations

import os
from typing import Mapping

from contractgate.allowlist import read_allowlist
from contractgate.config import Settings
from contractgate.document import read_document
from contractgate.tooling.gate_runtime import (
    GateResult,
    GateStatus,
    disabled_result,
    gate_enabled,
    gate_policy,
    guarded,
    violation_result,
)
from contractgate.visibility import (
    ReleaseState,
    environment_violations,
    evaluate,
    quality_violations,
)


def check_visibility_gate(
    settings: Settings,
    state: ReleaseState,
    *,
    environ: Mapping[str, str] | None = None,
    enabled: bool | None = None,
) -> GateResult:
    policy = gate_policy("visibility")
    if not gate_enabled(policy, enabled):
        return disabled_result(policy)

    def _run() -> GateResult:
        document = read_document(settings.spec_path)
        allowlist = read_allowlist(settings.allowlist_path) if state is ReleaseState.UAT else None
        violations = evaluate(
            state,
            document,
            allowlist,
            placeholder_ref=settings.placeholder_ref,
        )
        violations.extend(
            environment_violations(
                state,
                os.environ if environ is None else environ,
                flags=settings.guarded_env_flags,
            )
        )
        header = (f"Release state: {state.value}",)
        if violations:
            footer: tuple[str, ...] = ()
            if state is ReleaseState.UAT and allowlist is not None:
                footer = (
                    f"Allowed endpoints ({len(allowlist)}):",
                    *(f"  {key}" for key in allowlist),
                )
            return violation_result(policy, violations, header=header, footer=footer)
        public_count = len(document.public_operations())
        return GateResult(
            policy.gate_id,
            GateStatus.PASS,
            (*header, f"{policy.ok_prefix}: {state.value} mode, public operations={public_count}"),
        )

    return guarded(policy.gate_id, _run)


def check_quality_gate(settings: Settings, *, enabled: bool | None = None) -> GateResult:
    """Contract-quality bar for public operations, independent of release state."""
    policy = gate_policy("quality")
    if not gate_enabled(policy, enabled):
        return disabled_result(policy)

    def _run() -> GateResult:
        document = read_document(settings.spec_path)
        violations = quality_violations(document, placeholder_ref=settings.placeholder_ref)
        if violations:
            return violation_result(policy, violations)
        return GateResult(policy.gate_id, GateStatus.PASS, (policy.ok_prefix,))

    return guarded(policy.gate_id, _run)
