from __future__ import annotations

from pathlib import Path

from contractgate.config import Settings
from contractgate.document import read_document, split_operation_key
from contractgate.drift import (
    DriftReport,
    declared_keys,
    load_observed,
    read_patterns,
    reconcile,
    scan_tree,
    suppress,
)
from contractgate.exceptions import ConfigurationError
from contractgate.runtime import env_policy
from contractgate.runtime.atomic_io import atomic_write_text
from contractgate.tooling.gate_runtime import (
    GateResult,
    GateStatus,
    disabled_result,
    gate_enabled,
    gate_policy,
    guarded,
)
from contractgate.violations import DriftDetail, Violation, make_violation

MISSING_IN_DOCS_NAME = "missing_in_docs.txt"
MISSING_IN_CODE_NAME = "missing_in_code.txt"


def _drift_violation(key: str) -> Violation:
    parsed = split_operation_key(key) if not key.startswith("/") else None
    method, path = parsed if parsed is not None else ("", key)
    return make_violation(
        method,
        path,
        "called by frontend but not documented",
        DriftDetail(category="frontend_only", key=key),
    )


def _write_list(path: Path, keys: tuple[str, ...]) -> None:
    atomic_write_text(path, "\n".join(keys) + ("\n" if keys else ""))


def collect_observed(
    settings: Settings,
    *,
    observed_path: Path | None = None,
    scan_roots: tuple[Path, ...] | None = None,
) -> set[str]:
    if observed_path is not None:
        if not observed_path.exists():
            raise ConfigurationError(f"observed usage list not found: {observed_path}")
        try:
            return load_observed(observed_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeError) as exc:
            raise ConfigurationError(f"observed usage list unreadable: {observed_path}: {exc}") from exc
    roots = scan_roots if scan_roots is not None else tuple(settings.root / name for name in settings.source_roots)
    observed: set[str] = set()
    for root in roots:
        if root.is_dir():
            observed |= scan_tree(root, prefix=settings.api_prefix)
    return observed


def render_drift_report(report: DriftReport, *, observed: int, declared: int) -> list[str]:
    lines = [
        "=== API Drift Report ===",
        f"Observed usages: {observed}",
        f"Declared operations: {declared}",
        f"In both: {len(report.shared)}",
        f"Frontend only (undocumented): {len(report.frontend_only)}",
        f"Spec only (unused documentation): {len(report.spec_only)}",
    ]
    if report.frontend_only:
        lines.append("-- Frontend calls undocumented APIs --")
        lines.extend(f"- {key}" for key in report.frontend_only)
    if report.spec_only:
        lines.append("-- Documented but not called --")
        lines.extend(f"- {key}" for key in report.spec_only)
    return lines


def check_drift_gate(
    settings: Settings,
    *,
    observed_path: Path | None = None,
    scan_roots: tuple[Path, ...] | None = None,
    strict: bool | None = None,
    write_artifacts: bool = False,
    enabled: bool | None = None,
) -> GateResult:
    policy = gate_policy("drift")
    if not gate_enabled(policy, enabled):
        return disabled_result(policy)
    if strict is None:
        strict = settings.drift_strict or env_policy.env_enabled_flag(env_policy.DRIFT_STRICT_ENV)
    blocking = strict or policy.blocking

    def _run() -> GateResult:
        document = read_document(settings.spec_path)
        observed = collect_observed(settings, observed_path=observed_path, scan_roots=scan_roots)
        declared = declared_keys(document)
        report = suppress(reconcile(observed, declared), read_patterns(settings.drift_ignore_path))
        if write_artifacts:
            _write_list(settings.audit_dir / MISSING_IN_DOCS_NAME, report.frontend_only)
            _write_list(settings.audit_dir / MISSING_IN_CODE_NAME, report.spec_only)
        lines = render_drift_report(report, observed=len(observed), declared=len(declared))
        warnings = tuple(f"documented but not called: {key}" for key in report.spec_only)
        if report.has_undocumented and blocking:
            violations = tuple(_drift_violation(key) for key in report.frontend_only)
            lines.append(f"{policy.blocking_prefix}: {len(violations)} undocumented usages.")
            return GateResult(policy.gate_id, GateStatus.FAIL, tuple(lines), violations, warnings)
        if report.has_undocumented:
            lines.append(f"{policy.warning_prefix}: {len(report.frontend_only)} undocumented usages.")
            warnings = tuple(f"called but not documented: {key}" for key in report.frontend_only) + warnings
            return GateResult(policy.gate_id, GateStatus.WARNING, tuple(lines), (), warnings)
        if warnings:
            lines.append(f"{policy.warning_prefix}: {len(warnings)} documented operations are not called.")
            return GateResult(policy.gate_id, GateStatus.WARNING, tuple(lines), (), warnings)
        lines.append(f"{policy.ok_prefix} ({len(report.shared)} shared).")
        return GateResult(policy.gate_id, GateStatus.PASS, tuple(lines))

    return guarded(policy.gate_id, _run)
