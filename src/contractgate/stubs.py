"""Ratchet on the number of ``x-status: stub`` operations.

The persisted ceiling is only ever written on the first run. A falling stub
count does not tighten it; raising or lowering it is an explicit decision made
through the override or by editing the ceiling file.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from contractgate.document import APISpecDocument, OperationStatus
from contractgate.exceptions import ConfigurationError, StubBudgetExceeded
from contractgate.runtime.atomic_io import atomic_write_text


def stub_keys(document: APISpecDocument) -> list[str]:
    return sorted(
        operation.key
        for operation in document.iter_operations()
        if operation.status is OperationStatus.STUB
    )


def count_stubs(document: APISpecDocument) -> int:
    return len(stub_keys(document))


@dataclass(frozen=True)
class StubBudgetOutcome:
    count: int
    ceiling: int
    initialized: bool
    source: str


def check_stub_budget(
    count: int,
    ceiling: int | None,
    *,
    override: int | None = None,
) -> StubBudgetOutcome:
    if override is not None:
        limit, source = override, "override"
    elif ceiling is not None:
        limit, source = ceiling, "ceiling"
    else:
        return StubBudgetOutcome(count=count, ceiling=count, initialized=True, source="initial")
    if count > limit:
        raise StubBudgetExceeded(count, limit)
    return StubBudgetOutcome(count=count, ceiling=limit, initialized=False, source=source)


def parse_ceiling(text: str, *, source: str = "stub budget") -> int:
    value = text.strip()
    try:
        ceiling = int(value)
    except ValueError as exc:
        raise ConfigurationError(f"invalid {source}: {value!r}") from exc
    if ceiling < 0:
        raise ConfigurationError(f"invalid {source}: {value!r}")
    return ceiling


def read_ceiling(path: Path) -> int | None:
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeError) as exc:
        raise ConfigurationError(f"stub budget unreadable: {path}: {exc}") from exc
    return parse_ceiling(text, source=f"stub budget in {path}")


def write_ceiling(path: Path, ceiling: int) -> None:
    atomic_write_text(path, f"{ceiling}\n")


def run_stub_budget(
    document: APISpecDocument,
    ceiling_path: Path,
    *,
    override: int | None = None,
) -> StubBudgetOutcome:
    """Check the document against the persisted ceiling, creating it on first run."""
    ceiling = read_ceiling(ceiling_path)
    outcome = check_stub_budget(count_stubs(document), ceiling, override=override)
    if outcome.initialized:
        write_ceiling(ceiling_path, outcome.ceiling)
    return outcome
