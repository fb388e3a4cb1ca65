from __future__ import annotations

import re
from typing import Iterable

from contractgate.allowlist import Allowlist
from contractgate.document import (
    METHOD_ORDER,
    STATUS_KEY,
    VISIBILITY_KEY,
    APISpecDocument,
    OperationStatus,
    Visibility,
    operation_key,
    split_operation_key,
)

DEFAULT_SECURITY_SCHEME = "bearerAuth"
_VERSION_SEGMENT_RE = re.compile(r"^v\d+$", re.IGNORECASE)


def _pascal(text: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[^A-Za-z0-9]+", text) if part)


def _first_resource_segment(path: str) -> str | None:
    for segment in path.split("/"):
        if not segment or segment == "api" or segment.startswith(("{", ":")):
            continue
        if _VERSION_SEGMENT_RE.match(segment):
            continue
        return segment
    return None


def default_operation_id(method: str, path: str) -> str:
    return f"{method.lower()}_{re.sub(r'[/{}:]', '_', path)}"


def _unique_operation_id(candidate: str, taken: set[str]) -> str:
    operation_id = candidate
    suffix = 2
    while operation_id in taken:
        operation_id = f"{candidate}_{suffix}"
        suffix += 1
    return operation_id


def _fill_contract(
    raw_op: dict[str, object],
    method: str,
    path: str,
    scheme: str,
    taken: set[str],
) -> None:
    security = raw_op.get("security")
    if not isinstance(security, list) or not security:
        raw_op["security"] = [{scheme: []}]
    tags = raw_op.get("tags")
    if not isinstance(tags, list) or not tags:
        segment = _first_resource_segment(path)
        raw_op["tags"] = [_pascal(segment) if segment else "Public"]
    operation_id = raw_op.get("operationId")
    if not isinstance(operation_id, str) or not operation_id.strip():
        operation_id = _unique_operation_id(default_operation_id(method, path), taken)
        raw_op["operationId"] = operation_id
        taken.add(operation_id)


def promote(
    document: APISpecDocument,
    allowlist: Allowlist,
    *,
    fill_contract: bool = False,
    security_scheme: str = DEFAULT_SECURITY_SCHEME,
) -> APISpecDocument:
    """Mark every allowlisted operation public; unknown keys are skipped.

    With ``fill_contract`` the promoted operation also gets a security
    requirement, tags and an operationId when it has none. Existing values are
    never overwritten, so promoting twice is a no-op. A generated operationId
    that collides with one already in the document gets a numeric suffix.
    """
    updated = document.copy()
    taken = {operation.operation_id for operation in updated.iter_operations() if operation.operation_id}
    for method, path in allowlist.pairs():
        raw_op = updated.mutable_operation(method, path)
        if raw_op is None:
            continue
        raw_op[VISIBILITY_KEY] = Visibility.PUBLIC.value
        if fill_contract:
            _fill_contract(raw_op, method, path, security_scheme, taken)
    return updated


def promoted_keys(document: APISpecDocument, allowlist: Allowlist) -> list[str]:
    return [
        operation_key(method, path)
        for method, path in allowlist.pairs()
        if document.get(method, path) is not None
    ]


def demote_all(document: APISpecDocument) -> APISpecDocument:
    updated = document.copy()
    for operation in document.public_operations():
        raw_op = updated.mutable_operation(operation.method, operation.path)
        if raw_op is not None:
            raw_op[VISIBILITY_KEY] = Visibility.INTERNAL.value
    return updated


def public_only(document: APISpecDocument) -> APISpecDocument:
    """Projection holding only public operations, for publishing externally."""
    projected = document.copy()
    method_keys = {method.lower() for method in METHOD_ORDER}
    public = {(operation.method.lower(), operation.path) for operation in document.public_operations()}
    paths: dict[str, object] = {}
    source_paths = projected.raw.get("paths")
    if isinstance(source_paths, dict):
        for path, item in source_paths.items():
            if not isinstance(item, dict):
                continue
            kept = {
                key: value
                for key, value in item.items()
                if key not in method_keys or (key, path) in public
            }
            if any(key in method_keys for key in kept):
                paths[path] = kept
    projected.raw["paths"] = paths
    return projected


def tag_stubs(document: APISpecDocument, keys: Iterable[str]) -> APISpecDocument:
    """Record operations that calling code needs but nothing implements yet."""
    updated = document.copy()
    for key in keys:
        parsed = split_operation_key(key)
        if parsed is None or parsed[0] not in METHOD_ORDER:
            continue
        method, path = parsed
        raw_op = updated.ensure_operation(method, path)
        if not raw_op:
            raw_op["responses"] = {"501": {"description": "Not Implemented"}}
        raw_op[STATUS_KEY] = OperationStatus.STUB.value
    return updated
