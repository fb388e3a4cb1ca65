from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Mapping

from contractgate.document import operation_key, split_operation_key
from contractgate.exceptions import CapExceeded, ConfigurationError

COMMENT_MARKER = "#"
DEFAULT_UAT_CAP = 3


class Allowlist:
    """Ordered set of ``"METHOD PATH"`` keys; later duplicates are dropped."""

    def __init__(self, keys: Iterable[str] = ()) -> None:
        self._keys: dict[str, None] = {}
        for key in keys:
            self._keys.setdefault(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Allowlist):
            return NotImplemented
        return list(self._keys) == list(other._keys)

    def __repr__(self) -> str:
        return f"Allowlist({list(self._keys)!r})"

    def pairs(self) -> list[tuple[str, str]]:
        result: list[tuple[str, str]] = []
        for key in self._keys:
            parsed = split_operation_key(key)
            if parsed is not None:
                result.append(parsed)
        return result


def _normalize_line(line: str, *, lineno: int) -> str:
    parsed = split_operation_key(line)
    if parsed is None:
        raise ConfigurationError(
            f"allowlist line {lineno} must be 'METHOD PATH', got {line!r}"
        )
    method, path = parsed
    return operation_key(method, path)


def load_allowlist(text: str) -> Allowlist:
    keys: list[str] = []
    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_MARKER):
            continue
        keys.append(_normalize_line(line, lineno=lineno))
    return Allowlist(keys)


def read_allowlist(path: Path, *, required: bool = True) -> Allowlist:
    if not path.exists():
        if required:
            raise ConfigurationError(f"allowlist not found: {path}")
        return Allowlist()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeError) as exc:
        raise ConfigurationError(f"allowlist unreadable: {path}: {exc}") from exc
    return load_allowlist(text)


def enforce_cap(allowlist: Allowlist, cap: int) -> None:
    if len(allowlist) > cap:
        raise CapExceeded(len(allowlist), cap)


@dataclass(frozen=True)
class CoverageReport:
    missing_from_tests: tuple[str, ...]
    extra_in_tests: tuple[str, ...]

    @property
    def ok(self) -> bool:
        return not self.missing_from_tests and not self.extra_in_tests


def coverage(allowlist: Allowlist, tested: Iterable[str]) -> CoverageReport:
    tested_keys = set(tested)
    allowed_keys = set(allowlist)
    return CoverageReport(
        missing_from_tests=tuple(sorted(allowed_keys - tested_keys)),
        extra_in_tests=tuple(sorted(tested_keys - allowed_keys)),
    )


def load_tested_endpoints(text: str) -> set[str]:
    """Parse a smoke-test endpoint list: ``[{"method": "GET", "path": "/x"}, ...]``."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"smoke endpoint list is not valid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise ConfigurationError("smoke endpoint list must be a JSON array")
    keys: set[str] = set()
    for index, entry in enumerate(payload):
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"smoke endpoint #{index} must be an object")
        path = entry.get("path")
        if not isinstance(path, str) or not path.strip():
            raise ConfigurationError(f"smoke endpoint #{index} is missing 'path'")
        method = entry.get("method") or "GET"
        keys.add(operation_key(str(method), path.strip()))
    return keys


def read_tested_endpoints(path: Path) -> set[str]:
    if not path.exists():
        raise ConfigurationError(f"smoke endpoint list not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeError) as exc:
        raise ConfigurationError(f"smoke endpoint list unreadable: {path}: {exc}") from exc
    return load_tested_endpoints(text)
