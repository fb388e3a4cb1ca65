from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, TypeAlias


class ViolationKind(str, Enum):
    VISIBILITY = "visibility"
    CAP = "cap"
    QUALITY = "quality"
    COMPATIBILITY = "compatibility"
    BUDGET = "budget"
    DRIFT = "drift"
    ENVIRONMENT = "environment"
    COVERAGE = "coverage"


@dataclass(frozen=True)
class VisibilityDetail:
    state: str
    allowlisted: bool = False


@dataclass(frozen=True)
class CapDetail:
    count: int
    cap: int


@dataclass(frozen=True)
class QualityDetail:
    attribute: str
    status_code: str | None = None


@dataclass(frozen=True)
class CompatibilityDetail:
    missing_fields: tuple[str, ...]


@dataclass(frozen=True)
class BudgetDetail:
    count: int
    ceiling: int


@dataclass(frozen=True)
class DriftDetail:
    category: str
    key: str


@dataclass(frozen=True)
class EnvironmentDetail:
    variable: str
    state: str


@dataclass(frozen=True)
class CoverageDetail:
    category: str


ViolationDetail: TypeAlias = (
    VisibilityDetail
    | CapDetail
    | QualityDetail
    | CompatibilityDetail
    | BudgetDetail
    | DriftDetail
    | EnvironmentDetail
    | CoverageDetail
)

_DETAIL_KIND: dict[type, ViolationKind] = {
    VisibilityDetail: ViolationKind.VISIBILITY,
    CapDetail: ViolationKind.CAP,
    QualityDetail: ViolationKind.QUALITY,
    CompatibilityDetail: ViolationKind.COMPATIBILITY,
    BudgetDetail: ViolationKind.BUDGET,
    DriftDetail: ViolationKind.DRIFT,
    EnvironmentDetail: ViolationKind.ENVIRONMENT,
    CoverageDetail: ViolationKind.COVERAGE,
}


@dataclass(frozen=True)
class Violation:
    """One policy failure.

    ``kind`` is the discriminant; ``detail`` carries the payload for that
    kind and must be the matching detail type. ``method`` and ``path`` are
    empty for violations that are not about a single operation (cap, budget,
    environment).
    """

    kind: ViolationKind
    method: str
    path: str
    reason: str
    detail: ViolationDetail

    def __post_init__(self) -> None:
        expected = _DETAIL_KIND.get(type(self.detail))
        if expected is not self.kind:
            raise TypeError(
                f"violation detail {type(self.detail).__name__} does not match kind {self.kind.value}"
            )

    @property
    def key(self) -> str:
        if not self.method and not self.path:
            return ""
        return f"{self.method} {self.path}".strip()

    def render(self) -> str:
        if self.key:
            return f"{self.key} - {self.reason}"
        return self.reason


def make_violation(method: str, path: str, reason: str, detail: ViolationDetail) -> Violation:
    return Violation(
        kind=_DETAIL_KIND[type(detail)],
        method=method,
        path=path,
        reason=reason,
        detail=detail,
    )


def render_violations(violations: Iterable[Violation]) -> list[str]:
    return [f"- {item.render()}" for item in violations]
