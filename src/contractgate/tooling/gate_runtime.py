"""Shared result type and failure handling for gate runners.

Exit codes: 0 pass/warning/skipped/disabled, 1 policy violations, 2 fatal
error (unparseable document, missing or malformed configuration).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Callable, Iterable

from contractgate.exceptions import ConfigurationError, ParseError
from contractgate.runtime import env_policy
from contractgate.schema import GateReportDTO, ViolationDTO
from contractgate.tooling.governance_rules import GatePolicy, load_governance_rules
from contractgate.violations import Violation, render_violations


class GateStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARNING = "warning"
    SKIPPED = "skipped"
    DISABLED = "disabled"
    ERROR = "error"


_EXIT_CODES = {
    GateStatus.PASS: 0,
    GateStatus.WARNING: 0,
    GateStatus.SKIPPED: 0,
    GateStatus.DISABLED: 0,
    GateStatus.FAIL: 1,
    GateStatus.ERROR: 2,
}


@dataclass(frozen=True)
class GateResult:
    gate_id: str
    status: GateStatus
    lines: tuple[str, ...] = ()
    violations: tuple[Violation, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self.status]

    def to_dto(self) -> GateReportDTO:
        return GateReportDTO(
            gate=self.gate_id,
            status=self.status.value,
            exit_code=self.exit_code,
            messages=list(self.lines),
            violations=[
                ViolationDTO(
                    kind=item.kind.value,
                    method=item.method,
                    path=item.path,
                    reason=item.reason,
                    detail=asdict(item.detail),
                )
                for item in self.violations
            ],
            warnings=list(self.warnings),
        )


def gate_policy(gate_id: str) -> GatePolicy:
    return load_governance_rules().gate(gate_id)


def gate_enabled(policy: GatePolicy, enabled: bool | None = None) -> bool:
    if enabled is not None:
        return enabled
    return env_policy.env_enabled_default_true(policy.env_flag)


def disabled_result(policy: GatePolicy) -> GateResult:
    return GateResult(policy.gate_id, GateStatus.DISABLED, (policy.disabled_message,))


def violation_result(
    policy: GatePolicy,
    violations: Iterable[Violation],
    *,
    header: Iterable[str] = (),
    footer: Iterable[str] = (),
) -> GateResult:
    found = tuple(violations)
    lines = [*header, f"{policy.blocking_prefix} ({len(found)}):", *render_violations(found), *footer]
    return GateResult(policy.gate_id, GateStatus.FAIL, tuple(lines), found)


def guarded(gate_id: str, run: Callable[[], GateResult]) -> GateResult:
    """Run a gate, turning fatal input errors into an ``error`` result."""
    try:
        return run()
    except ParseError as exc:
        return GateResult(gate_id, GateStatus.ERROR, (f"parse error: {exc}",))
    except ConfigurationError as exc:
        return GateResult(gate_id, GateStatus.ERROR, (f"configuration error: {exc}",))


def combined_status(results: Iterable[GateResult]) -> GateStatus:
    statuses = {result.status for result in results}
    if GateStatus.ERROR in statuses:
        return GateStatus.ERROR
    if GateStatus.FAIL in statuses:
        return GateStatus.FAIL
    if GateStatus.WARNING in statuses:
        return GateStatus.WARNING
    return GateStatus.PASS
