from __future__ import annotations

from pathlib import Path

from contractgate.compat import compare, load_base_from_file, load_base_from_git
from contractgate.config import Settings
from contractgate.document import APISpecDocument, read_document
from contractgate.exceptions import ConfigurationError
from contractgate.tooling.gate_runtime import (
    GateResult,
    GateStatus,
    disabled_result,
    gate_enabled,
    gate_policy,
    guarded,
    violation_result,
)


def _load_base(
    settings: Settings,
    *,
    base_ref: str | None,
    base_file: Path | None,
) -> APISpecDocument | None:
    if base_file is not None:
        return load_base_from_file(base_file)
    if base_ref:
        return load_base_from_git(settings.root, base_ref, settings.spec_relpath())
    raise ConfigurationError("compat needs --base-ref or --base-file")


def check_compat_gate(
    settings: Settings,
    *,
    base_ref: str | None = None,
    base_file: Path | None = None,
    enabled: bool | None = None,
) -> GateResult:
    policy = gate_policy("compat")
    if not gate_enabled(policy, enabled):
        return disabled_result(policy)

    def _run() -> GateResult:
        current = read_document(settings.spec_path)
        base = _load_base(settings, base_ref=base_ref, base_file=base_file)
        if base is None:
            return GateResult(policy.gate_id, GateStatus.SKIPPED, (policy.skipped_message,))
        violations = compare(base, current)
        if violations:
            return violation_result(policy, violations)
        return GateResult(
            policy.gate_id,
            GateStatus.PASS,
            (f"{policy.ok_prefix} ({len(base.public_operations())} public operations in base)",),
        )

    return guarded(policy.gate_id, _run)
