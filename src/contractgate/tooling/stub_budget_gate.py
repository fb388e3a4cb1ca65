from __future__ import annotations

from contractgate.config import Settings
from contractgate.document import read_document
from contractgate.exceptions import StubBudgetExceeded
from contractgate.runtime import env_policy
from contractgate.runtime.atomic_io import atomic_write_text
from contractgate.stubs import run_stub_budget, stub_keys
from contractgate.tooling.gate_runtime import (
    GateResult,
    GateStatus,
    disabled_result,
    gate_enabled,
    gate_policy,
    guarded,
)
from contractgate.violations import BudgetDetail, make_violation

STUB_LIST_NAME = "stub_list.txt"
STUB_COUNT_NAME = "stub_count.txt"


def check_stub_budget_gate(
    settings: Settings,
    *,
    override: int | None = None,
    write_artifacts: bool = True,
    enabled: bool | None = None,
) -> GateResult:
    policy = gate_policy("stub_budget")
    if not gate_enabled(policy, enabled):
        return disabled_result(policy)

    def _run() -> GateResult:
        document = read_document(settings.spec_path)
        budget_override = env_policy.stub_budget_override(override)
        if write_artifacts:
            keys = stub_keys(document)
            atomic_write_text(
                settings.audit_dir / STUB_LIST_NAME,
                "\n".join(keys) + ("\n" if keys else ""),
            )
            atomic_write_text(settings.audit_dir / STUB_COUNT_NAME, str(len(keys)))
        try:
            outcome = run_stub_budget(document, settings.stub_budget_path, override=budget_override)
        except StubBudgetExceeded as exc:
            violation = make_violation(
                "",
                "",
                str(exc),
                BudgetDetail(count=exc.count, ceiling=exc.ceiling),
            )
            return GateResult(
                policy.gate_id,
                GateStatus.FAIL,
                (f"{policy.blocking_prefix}: {exc.count} > {exc.ceiling}",),
                (violation,),
            )
        if outcome.initialized:
            return GateResult(
                policy.gate_id,
                GateStatus.PASS,
                (f"Initialized stub budget at {outcome.count} ({settings.stub_budget_path})",),
            )
        return GateResult(
            policy.gate_id,
            GateStatus.PASS,
            (f"{policy.ok_prefix}: {outcome.count} <= {outcome.ceiling} ({outcome.source})",),
        )

    return guarded(policy.gate_id, _run)
