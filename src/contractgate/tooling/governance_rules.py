from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Mapping

import yaml

DEFAULT_RULES_PATH = Path(__file__).resolve().parents[1] / "governance_rules.yaml"
_SEVERITIES = ("blocking", "warning")


@dataclass(frozen=True)
class GatePolicy:
    gate_id: str
    env_flag: str
    severity: str
    disabled_message: str
    skipped_message: str
    warning_prefix: str
    blocking_prefix: str
    ok_prefix: str

    @property
    def blocking(self) -> bool:
        return self.severity == "blocking"


@dataclass(frozen=True)
class GovernanceRules:
    gates: Mapping[str, GatePolicy]

    def gate(self, gate_id: str) -> GatePolicy:
        policy = self.gates.get(gate_id)
        if policy is None:
            raise ValueError(f"governance policy missing gate: {gate_id}")
        return policy


def _yaml_loader():
    class Loader(yaml.SafeLoader):
        pass

    # Keep "on"/"off"/"yes"/"no" as strings (YAML 1.1 quirk).
    for key, values in list(Loader.yaml_implicit_resolvers.items()):
        Loader.yaml_implicit_resolvers[key] = [
            (tag, regexp) for tag, regexp in values if tag != "tag:yaml.org,2002:bool"
        ]
    return Loader


def _gate_from_mapping(gate_id: str, payload: Mapping[str, object]) -> GatePolicy:
    env_flag = payload.get("env_flag")
    if not isinstance(env_flag, str) or not env_flag:
        raise ValueError(f"governance_rules invalid gates.{gate_id}.env_flag")
    severity = str(payload.get("severity", "blocking"))
    if severity not in _SEVERITIES:
        raise ValueError(f"governance_rules invalid gates.{gate_id}.severity: {severity}")
    return GatePolicy(
        gate_id=gate_id,
        env_flag=env_flag,
        severity=severity,
        disabled_message=str(payload.get("disabled_message", "Gate disabled by policy override.")),
        skipped_message=str(payload.get("skipped_message", "Gate skipped")),
        warning_prefix=str(payload.get("warning_prefix", "Gate warning")),
        blocking_prefix=str(payload.get("blocking_prefix", "Gate blocking")),
        ok_prefix=str(payload.get("ok_prefix", "Gate OK")),
    )


@lru_cache(maxsize=4)
def load_governance_rules(path: Path | None = None) -> GovernanceRules:
    rule_path = DEFAULT_RULES_PATH if path is None else path
    with rule_path.open("r", encoding="utf-8") as handle:
        raw = yaml.load(handle, Loader=_yaml_loader()) or {}
    if not isinstance(raw, Mapping):
        raise ValueError("governance_rules root must be a mapping")
    gates_raw = raw.get("gates")
    if not isinstance(gates_raw, Mapping):
        raise ValueError("governance_rules must define gates")
    gates: dict[str, GatePolicy] = {}
    for gate_id, gate_payload in gates_raw.items():
        if isinstance(gate_id, str) and isinstance(gate_payload, Mapping):
            gates[gate_id] = _gate_from_mapping(gate_id, gate_payload)
    return GovernanceRules(gates=gates)
