from __future__ import annotations

from contractgate.allowlist import coverage, enforce_cap, read_allowlist, read_tested_endpoints
from contractgate.config import Settings
from contractgate.document import split_operation_key
from contractgate.exceptions import CapExceeded
from contractgate.tooling.gate_runtime import (
    GateResult,
    GateStatus,
    disabled_result,
    gate_enabled,
    gate_policy,
    guarded,
)
from contractgate.violations import CapDetail, CoverageDetail, Violation, make_violation
from contractgate.visibility import ReleaseState


def check_uat_cap_gate(
    settings: Settings,
    state: ReleaseState,
    *,
    cap: int | None = None,
    enabled: bool | None = None,
) -> GateResult:
    policy = gate_policy("uat_cap")
    if not gate_enabled(policy, enabled):
        return disabled_result(policy)
    if state is not ReleaseState.UAT:
        return GateResult(policy.gate_id, GateStatus.SKIPPED, (f"{policy.skipped_message}: {state.value}",))
    limit = settings.uat_cap if cap is None else cap

    def _run() -> GateResult:
        allowlist = read_allowlist(settings.allowlist_path)
        try:
            enforce_cap(allowlist, limit)
        except CapExceeded as exc:
            violation = make_violation(
                "",
                "",
                str(exc),
                CapDetail(count=exc.count, cap=exc.cap),
            )
            lines = (
                f"{policy.blocking_prefix}: {exc.count} > {exc.cap} ({settings.allowlist_path})",
                "Current allowlist:",
                *(f"  {index}. {key}" for index, key in enumerate(allowlist, start=1)),
            )
            return GateResult(policy.gate_id, GateStatus.FAIL, lines, (violation,))
        return GateResult(policy.gate_id, GateStatus.PASS, (f"{policy.ok_prefix}: {len(allowlist)}/{limit}",))

    return guarded(policy.gate_id, _run)


def _coverage_violation(key: str, category: str, reason: str) -> Violation:
    parsed = split_operation_key(key)
    method, path = parsed if parsed is not None else ("", key)
    return make_violation(method, path, reason, CoverageDetail(category=category))


def check_uat_coverage_gate(settings: Settings, *, enabled: bool | None = None) -> GateResult:
    policy = gate_policy("uat_coverage")
    if not gate_enabled(policy, enabled):
        return disabled_result(policy)

    def _run() -> GateResult:
        allowlist = read_allowlist(settings.allowlist_path)
        tested = read_tested_endpoints(settings.smoke_endpoints_path)
        report = coverage(allowlist, tested)
        header = [
            f"UAT allowlist: {len(allowlist)} endpoints",
            f"Smoke tests: {len(tested)} endpoints",
        ]
        if report.ok:
            return GateResult(
                policy.gate_id,
                GateStatus.PASS,
                (*header, policy.ok_prefix, *(f"  {key}" for key in sorted(allowlist))),
            )
        violations = [
            _coverage_violation(key, "missing_from_tests", "allowlisted but not smoke tested")
            for key in report.missing_from_tests
        ]
        violations.extend(
            _coverage_violation(key, "extra_in_tests", "smoke tested but not allowlisted")
            for key in report.extra_in_tests
        )
        lines = [*header, f"{policy.blocking_prefix}:"]
        if report.missing_from_tests:
            lines.append(f"Smoke tests missing endpoints ({len(report.missing_from_tests)}):")
            lines.extend(f"- {key}" for key in report.missing_from_tests)
        if report.extra_in_tests:
            lines.append(f"Smoke tests include non-allowlisted endpoints ({len(report.extra_in_tests)}):")
            lines.extend(f"- {key}" for key in report.extra_in_tests)
        return GateResult(policy.gate_id, GateStatus.FAIL, tuple(lines), tuple(violations))

    return guarded(policy.gate_id, _run)
