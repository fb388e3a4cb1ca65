from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from contractgate.config import Settings
from contractgate.schema import PreflightReportDTO
from contractgate.tooling.compat_gate import check_compat_gate
from contractgate.tooling.drift_gate import check_drift_gate
from contractgate.tooling.gate_runtime import GateResult, GateStatus, combined_status
from contractgate.tooling.uat_gates import check_uat_cap_gate
from contractgate.tooling.visibility_gate import check_quality_gate, check_visibility_gate
from contractgate.visibility import ReleaseState

_EXIT_CODES = {GateStatus.ERROR: 2, GateStatus.FAIL: 1}


@dataclass(frozen=True)
class PreflightResult:
    results: tuple[GateResult, ...]

    @property
    def status(self) -> GateStatus:
        return combined_status(self.results)

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES.get(self.status, 0)

    def lines(self) -> list[str]:
        rendered: list[str] = []
        for result in self.results:
            rendered.append(f"[{result.gate_id}] {result.status.value}")
            rendered.extend(f"  {line}" for line in result.lines)
        rendered.append(f"Preflight: {self.status.value}")
        return rendered

    def to_dto(self) -> PreflightReportDTO:
        return PreflightReportDTO(
            status=self.status.value,
            exit_code=self.exit_code,
            gates=[result.to_dto() for result in self.results],
        )


def run_preflight(
    settings: Settings,
    state: ReleaseState,
    *,
    base_ref: str | None = None,
    base_file: Path | None = None,
    observed_path: Path | None = None,
) -> PreflightResult:
    """Run every commit-time gate in-process and collect all results.

    Compatibility runs only when a base snapshot is named and drift only when
    an observed-usage list is given. Under ``live`` the visibility gate already
    applies the quality bar, so the separate quality gate is not run.
    """
    results = [
        check_visibility_gate(settings, state),
        check_uat_cap_gate(settings, state),
    ]
    if state is not ReleaseState.LIVE:
        results.append(check_quality_gate(settings))
    if base_ref or base_file is not None:
        results.append(check_compat_gate(settings, base_ref=base_ref, base_file=base_file))
    if observed_path is not None:
        results.append(check_drift_gate(settings, observed_path=observed_path))
    return PreflightResult(tuple(results))
