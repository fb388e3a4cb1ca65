"""Reconcile API usage observed in calling code against the declared document.

Extraction (``scan``/``scan_tree``) is a heuristic regex pass over source
text; its output is an untrusted signal. Reconciliation works on canonical
keys where every path parameter, whatever its spelling, becomes ``{}``.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Sequence

from contractgate.document import APISpecDocument, METHOD_ORDER, operation_sort_key
from contractgate.exceptions import ConfigurationError

DEFAULT_API_PREFIX = "/api/"
DEFAULT_SOURCE_SUFFIXES: tuple[str, ...] = (".ts", ".tsx", ".js", ".jsx", ".mjs")
CANONICAL_PLACEHOLDER = "{}"

_PARAM_SEGMENT_RE = re.compile(
    r"""^(?:
        \{[^{}]*\}
      | :[A-Za-z_][\w-]*
      | \$\{[^{}]*\}
      | \d+
      | [0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}
    )$""",
    re.VERBOSE,
)
_METHODS_RE = "|".join(method.lower() for method in METHOD_ORDER)
_CALL_RE = re.compile(
    rf"""\b(?:axios|api|app|router|fastify|client|http)\s*\.\s*({_METHODS_RE})\s*\(\s*['"`]([^'"`)]+)['"`]""",
    re.IGNORECASE,
)
_FETCH_RE = re.compile(r"""\bfetch\s*\(\s*['"`]([^'"`)]+)['"`]""")


def canonical_path(path: str) -> str:
    text = path.strip().split("?", 1)[0].split("#", 1)[0]
    segments = [segment for segment in text.split("/") if segment]
    canonical = [
        CANONICAL_PLACEHOLDER if _PARAM_SEGMENT_RE.match(segment) else segment
        for segment in segments
    ]
    return "/" + "/".join(canonical)


def _split_key(key: str) -> tuple[str | None, str]:
    text = key.strip()
    if text.startswith("/"):
        return None, text
    parts = text.split(None, 1)
    if len(parts) != 2:
        return None, text
    return parts[0].upper(), parts[1]


def canonical_key(key: str) -> str:
    method, path = _split_key(key)
    canonical = canonical_path(path)
    return canonical if method is None else f"{method} {canonical}"


def _key_sort(key: str) -> tuple[str, int, str]:
    method, path = _split_key(key)
    return operation_sort_key(method or "", path)


@dataclass(frozen=True)
class DriftReport:
    frontend_only: tuple[str, ...]
    shared: tuple[str, ...]
    spec_only: tuple[str, ...]

    @property
    def has_undocumented(self) -> bool:
        return bool(self.frontend_only)


def declared_keys(document: APISpecDocument) -> set[str]:
    return {operation.key for operation in document.iter_operations()}


def reconcile(observed: Iterable[str], declared: Iterable[str]) -> DriftReport:
    """Observed entries may be ``"METHOD /path"`` or a bare ``/path``.

    A bare path is matched by any declared operation on the same canonical
    path; declared entries are always ``"METHOD /path"`` keys.
    """
    declared_canonical = {canonical_key(key) for key in declared}
    by_path: dict[str, set[str]] = {}
    for key in declared_canonical:
        by_path.setdefault(_split_key(key)[1], set()).add(key)

    shared: set[str] = set()
    frontend_only: set[str] = set()
    matched: set[str] = set()
    for key in {canonical_key(entry) for entry in observed}:
        method, path = _split_key(key)
        if method is None:
            hits = by_path.get(path, set())
        else:
            hits = {key} & declared_canonical
        if hits:
            shared.add(key)
            matched |= hits
        else:
            frontend_only.add(key)
    spec_only = declared_canonical - matched
    return DriftReport(
        frontend_only=tuple(sorted(frontend_only, key=_key_sort)),
        shared=tuple(sorted(shared, key=_key_sort)),
        spec_only=tuple(sorted(spec_only, key=_key_sort)),
    )


def suppress(report: DriftReport, patterns: Sequence[re.Pattern[str]]) -> DriftReport:
    if not patterns:
        return report
    kept = tuple(
        key for key in report.frontend_only if not any(pattern.search(key) for pattern in patterns)
    )
    return replace(report, frontend_only=kept)


def load_patterns(text: str) -> list[re.Pattern[str]]:
    patterns: list[re.Pattern[str]] = []
    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            patterns.append(re.compile(line))
        except re.error as exc:
            raise ConfigurationError(f"ignore pattern on line {lineno} is invalid: {exc}") from exc
    return patterns


def read_patterns(path: Path) -> list[re.Pattern[str]]:
    if not path.exists():
        return []
    try:
        return load_patterns(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeError) as exc:
        raise ConfigurationError(f"ignore pattern file unreadable: {path}: {exc}") from exc


def _path_literal_re(prefix: str) -> re.Pattern[str]:
    return re.compile(re.escape(prefix) + r"[\w\-/{}:$]*")


def scan(matches: Iterable[str], *, prefix: str = DEFAULT_API_PREFIX) -> set[str]:
    """Extract API usage keys from arbitrary text.

    Call sites that name a method (``axios.get('/api/x')``) yield
    ``"GET /api/x"``; any other path literal under ``prefix`` yields the bare
    path.
    """
    literal_re = _path_literal_re(prefix)
    found: set[str] = set()
    for text in matches:
        keyed_paths: set[str] = set()
        for match in _CALL_RE.finditer(text):
            path = match.group(2).strip()
            if path.startswith(prefix):
                found.add(f"{match.group(1).upper()} {path}")
                keyed_paths.add(path)
        for match in _FETCH_RE.finditer(text):
            path = match.group(1).strip()
            if path.startswith(prefix) and path not in keyed_paths:
                found.add(path)
                keyed_paths.add(path)
        for match in literal_re.finditer(text):
            path = match.group(0)
            if path not in keyed_paths and not any(key.startswith(path) for key in keyed_paths):
                found.add(path)
    return found


def iter_source_files(
    root: Path,
    *,
    suffixes: Sequence[str] = DEFAULT_SOURCE_SUFFIXES,
) -> list[Path]:
    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            name for name in dirnames if name != "node_modules" and not name.startswith(".")
        )
        for name in sorted(filenames):
            if name.endswith(tuple(suffixes)):
                files.append(Path(dirpath) / name)
    return files


def scan_tree(
    root: Path,
    *,
    prefix: str = DEFAULT_API_PREFIX,
    suffixes: Sequence[str] = DEFAULT_SOURCE_SUFFIXES,
) -> set[str]:
    texts = [
        path.read_text(encoding="utf-8", errors="replace")
        for path in iter_source_files(root, suffixes=suffixes)
    ]
    return scan(texts, prefix=prefix)


def load_observed(text: str) -> set[str]:
    """Observed usage list: one ``METHOD /path`` or ``/path`` per line."""
    return {
        line.strip()
        for line in text.splitlines()
        if line.strip() and not line.strip().startswith("#")
    }
