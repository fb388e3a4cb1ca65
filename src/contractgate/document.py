"""In-memory model of the OpenAPI document that the gates govern.

The document keeps the decoded JSON tree as-is and exposes typed views over
it, so any key the model does not understand survives a load/save cycle.
Mutating operations (promotion, demotion, stub tagging) work on a ``copy()``
and return the new document; nothing edits a loaded document in place.
"""

from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Mapping

from contractgate.exceptions import ConfigurationError, ParseError
from contractgate.runtime.atomic_io import atomic_write_bytes

METHOD_ORDER: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD")
_METHOD_RANK = {method: rank for rank, method in enumerate(METHOD_ORDER)}

_SUCCESS_CODE_RE = re.compile(r"^2[0-9X]{2}$", re.IGNORECASE)

VISIBILITY_KEY = "x-visibility"
STATUS_KEY = "x-status"


class Visibility(str, Enum):
    INTERNAL = "internal"
    PUBLIC = "public"


class OperationStatus(str, Enum):
    STUB = "stub"
    BASELINE = "baseline"
    IMPLEMENTED = "implemented"


def operation_key(method: str, path: str) -> str:
    return f"{method.upper()} {path}"


def split_operation_key(key: str) -> tuple[str, str] | None:
    parts = key.strip().split(None, 1)
    if len(parts) != 2:
        return None
    method, path = parts
    return method.upper(), path.strip()


def method_rank(method: str) -> int:
    return _METHOD_RANK.get(method.upper(), len(METHOD_ORDER))


def operation_sort_key(method: str, path: str) -> tuple[str, int, str]:
    return (path, method_rank(method), method.upper())


def _mapping(value: object) -> Mapping[str, object]:
    return value if isinstance(value, Mapping) else {}


def _text(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


@dataclass(frozen=True)
class APIOperation:
    method: str
    path: str
    raw: Mapping[str, object]

    @property
    def key(self) -> str:
        return operation_key(self.method, self.path)

    @property
    def visibility(self) -> Visibility:
        if self.raw.get(VISIBILITY_KEY) == Visibility.PUBLIC.value:
            return Visibility.PUBLIC
        return Visibility.INTERNAL

    @property
    def is_public(self) -> bool:
        return self.visibility is Visibility.PUBLIC

    @property
    def status(self) -> OperationStatus:
        value = self.raw.get(STATUS_KEY)
        for status in OperationStatus:
            if value == status.value:
                return status
        return OperationStatus.IMPLEMENTED

    @property
    def operation_id(self) -> str:
        return _text(self.raw.get("operationId"))

    @property
    def summary(self) -> str:
        return _text(self.raw.get("summary"))

    @property
    def tags(self) -> tuple[str, ...]:
        raw_tags = self.raw.get("tags")
        if not isinstance(raw_tags, list):
            return ()
        return tuple(str(tag) for tag in raw_tags if _text(tag))

    @property
    def security(self) -> tuple[Mapping[str, object], ...]:
        raw_security = self.raw.get("security")
        if not isinstance(raw_security, list):
            return ()
        return tuple(item for item in raw_security if isinstance(item, Mapping))

    @property
    def responses(self) -> Mapping[str, object]:
        return _mapping(self.raw.get("responses"))

    def success_codes(self) -> list[str]:
        """2xx status keys, including range keys such as ``2XX``."""
        return sorted(str(code) for code in self.responses if _SUCCESS_CODE_RE.match(str(code)))

    def response_schema(self, code: str) -> object | None:
        """Schema of the JSON body for ``code``; falls back to the first media type."""
        content = _mapping(_mapping(self.responses.get(code)).get("content"))
        if not content:
            return None
        media = content.get("application/json")
        if not isinstance(media, Mapping):
            media = next((item for item in content.values() if isinstance(item, Mapping)), {})
        return media.get("schema")


class APISpecDocument:
    def __init__(self, raw: dict[str, object]) -> None:
        self._raw = raw

    @property
    def raw(self) -> dict[str, object]:
        return self._raw

    @property
    def paths(self) -> Mapping[str, object]:
        return _mapping(self._raw.get("paths"))

    @property
    def schemas(self) -> Mapping[str, object]:
        return _mapping(_mapping(self._raw.get("components")).get("schemas"))

    @property
    def security(self) -> list[object]:
        value = self._raw.get("security")
        return list(value) if isinstance(value, list) else []

    def operations(self) -> list[tuple[str, str, APIOperation]]:
        found: list[tuple[str, str, APIOperation]] = []
        for path in sorted(self.paths):
            item = _mapping(self.paths[path])
            for raw_method, raw_op in item.items():
                method = raw_method.upper()
                if raw_method != raw_method.lower() or method not in _METHOD_RANK:
                    continue
                if isinstance(raw_op, Mapping):
                    found.append((method, path, APIOperation(method, path, raw_op)))
        found.sort(key=lambda entry: operation_sort_key(entry[0], entry[1]))
        return found

    def iter_operations(self) -> Iterator[APIOperation]:
        for _method, _path, operation in self.operations():
            yield operation

    def public_operations(self) -> list[APIOperation]:
        return [operation for operation in self.iter_operations() if operation.is_public]

    def get(self, method: str, path: str) -> APIOperation | None:
        raw_op = _mapping(self.paths.get(path)).get(method.lower())
        if not isinstance(raw_op, Mapping):
            return None
        return APIOperation(method.upper(), path, raw_op)

    def resolve_ref(self, ref: str) -> object | None:
        """Resolve a local JSON pointer such as ``#/components/schemas/Ride``."""
        if not ref.startswith("#/"):
            return None
        node: object = self._raw
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(node, Mapping) or part not in node:
                return None
            node = node[part]
        return node

    def copy(self) -> "APISpecDocument":
        return APISpecDocument(copy.deepcopy(self._raw))

    def mutable_operation(self, method: str, path: str) -> dict[str, object] | None:
        """Raw operation mapping for editing; only call this on a fresh ``copy()``."""
        paths = self._raw.get("paths")
        if not isinstance(paths, dict):
            return None
        item = paths.get(path)
        if not isinstance(item, dict):
            return None
        raw_op = item.get(method.lower())
        return raw_op if isinstance(raw_op, dict) else None

    def ensure_operation(self, method: str, path: str) -> dict[str, object]:
        paths = self._raw.setdefault("paths", {})
        if not isinstance(paths, dict):
            raise ParseError("'paths' must be an object")
        item = paths.setdefault(path, {})
        if not isinstance(item, dict):
            raise ParseError(f"path item {path!r} must be an object")
        raw_op = item.setdefault(method.lower(), {})
        if not isinstance(raw_op, dict):
            raise ParseError(f"operation {operation_key(method, path)!r} must be an object")
        return raw_op

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, APISpecDocument):
            return NotImplemented
        return self._raw == other._raw

    def __repr__(self) -> str:
        return f"APISpecDocument(paths={len(self.paths)})"


def load_document(data: bytes, *, source: str | None = None) -> APISpecDocument:
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"document is not valid UTF-8: {exc}", source=source) from exc
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"document is not valid JSON: {exc}", source=source) from exc
    if not isinstance(raw, dict):
        raise ParseError("document root must be an object", source=source)
    paths = raw.get("paths", {})
    if not isinstance(paths, dict):
        raise ParseError("'paths' must be an object", source=source)
    for path, item in paths.items():
        if not isinstance(item, dict):
            raise ParseError(f"path item {path!r} must be an object", source=source)
        for key, raw_op in item.items():
            if not isinstance(key, str) or key.upper() not in _METHOD_RANK:
                continue
            if key != key.lower():
                raise ParseError(
                    f"method key {key!r} under {path!r} must be lowercase",
                    source=source,
                )
            if not isinstance(raw_op, dict):
                raise ParseError(
                    f"operation {operation_key(key, path)!r} must be an object",
                    source=source,
                )
    return APISpecDocument(raw)


def dump_document(document: APISpecDocument) -> bytes:
    return (json.dumps(document.raw, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


def read_document(path: Path) -> APISpecDocument:
    try:
        data = path.read_bytes()
    except FileNotFoundError as exc:
        raise ConfigurationError(f"API specification not found: {path}") from exc
    except OSError as exc:
        raise ConfigurationError(f"API specification unreadable: {path}: {exc}") from exc
    return load_document(data, source=str(path))


def write_document(path: Path, document: APISpecDocument) -> None:
    atomic_write_bytes(path, dump_document(document))
