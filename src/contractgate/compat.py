"""Additive-only compatibility check for public success responses."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Mapping

from contractgate.document import APISpecDocument, load_document, operation_sort_key
from contractgate.exceptions import ConfigurationError
from contractgate.violations import CompatibilityDetail, Violation, make_violation

_COMBINATORS = ("allOf", "oneOf", "anyOf")


def schema_fields(
    schema: object,
    document: APISpecDocument,
    *,
    prefix: str = "",
    seen: frozenset[str] = frozenset(),
) -> set[str]:
    """Every field path reachable in ``schema`` (``data.items[].id`` style)."""
    if not isinstance(schema, Mapping):
        return set()
    ref = schema.get("$ref")
    if isinstance(ref, str):
        if ref in seen:
            return set()
        target = document.resolve_ref(ref)
        if target is None:
            return {f"{prefix}@{ref}"}
        return schema_fields(target, document, prefix=prefix, seen=seen | {ref})
    fields: set[str] = set()
    for combinator in _COMBINATORS:
        branches = schema.get(combinator)
        if isinstance(branches, list):
            for branch in branches:
                fields |= schema_fields(branch, document, prefix=prefix, seen=seen)
    properties = schema.get("properties")
    if isinstance(properties, Mapping):
        for name, subschema in properties.items():
            field = f"{prefix}.{name}" if prefix else str(name)
            fields.add(field)
            fields |= schema_fields(subschema, document, prefix=field, seen=seen)
    items = schema.get("items")
    if isinstance(items, Mapping):
        fields |= schema_fields(items, document, prefix=f"{prefix}[]", seen=seen)
    return fields


def _missing_fields(
    base: APISpecDocument,
    current: APISpecDocument,
    method: str,
    path: str,
) -> list[str]:
    base_op = base.get(method, path)
    current_op = current.get(method, path)
    if base_op is None or current_op is None:
        return []
    current_codes = set(current_op.success_codes())
    missing: list[str] = []
    for code in base_op.success_codes():
        base_fields = schema_fields(base_op.response_schema(code), base)
        if code not in current_codes:
            if not base_fields:
                missing.append(code)
            missing.extend(f"{code}: {field}" for field in sorted(base_fields))
            continue
        current_fields = schema_fields(current_op.response_schema(code), current)
        missing.extend(f"{code}: {field}" for field in sorted(base_fields - current_fields))
    return missing


def compare(base: APISpecDocument, current: APISpecDocument) -> list[Violation]:
    violations: list[Violation] = []
    for operation in base.public_operations():
        missing = _missing_fields(base, current, operation.method, operation.path)
        if not missing:
            continue
        violations.append(
            make_violation(
                operation.method,
                operation.path,
                "breaking change in 2xx schema: removed " + ", ".join(missing),
                CompatibilityDetail(missing_fields=tuple(missing)),
            )
        )
    violations.sort(key=lambda item: operation_sort_key(item.method, item.path))
    return violations


# The revision resolved but holds no document at that path.
_ABSENT_MARKERS = (
    "does not exist in",
    "exists on disk, but not in",
)


def load_base_from_git(root: Path, ref: str, spec_path: str) -> APISpecDocument | None:
    """Fetch the base snapshot; ``None`` means the revision has no document.

    Any other git failure raises, including a revision that does not resolve,
    so an unreadable base is never mistaken for an absent one.
    """
    proc = subprocess.run(
        ["git", "show", f"{ref}:{spec_path}"],
        cwd=root,
        check=False,
        capture_output=True,
    )
    if proc.returncode != 0:
        message = proc.stderr.decode("utf-8", "replace").strip() or "git show failed"
        if any(marker in message.lower() for marker in _ABSENT_MARKERS):
            return None
        raise ConfigurationError(f"base revision {ref!r} unreadable: {message}")
    return load_document(proc.stdout, source=f"{ref}:{spec_path}")


def load_base_from_file(path: Path) -> APISpecDocument | None:
    if not path.exists():
        return None
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ConfigurationError(f"base snapshot unreadable: {path}: {exc}") from exc
    return load_document(data, source=str(path))
