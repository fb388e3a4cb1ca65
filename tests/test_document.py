from __future__ import annotations

import json
import stat
from pathlib import Path

import pytest

from contractgate.document import (
    APISpecDocument,
    OperationStatus,
    Visibility,
    dump_document,
    load_document,
    read_document,
    split_operation_key,
    write_document,
)
from contractgate.exceptions import ConfigurationError, ParseError
from contractgate.runtime import atomic_io
from tests.spec_helpers import json_response, make_spec


def _load(spec: dict[str, object]) -> APISpecDocument:
    return load_document(json.dumps(spec).encode("utf-8"))


def test_operations_sorted_by_path_then_method_table() -> None:
    document = _load(
        make_spec(
            {
                "/b": {"post": {}, "get": {}, "parameters": []},
                "/a": {"delete": {}, "x-summary": {}},
            }
        )
    )
    assert [operation.key for operation in document.iter_operations()] == [
        "DELETE /a",
        "GET /b",
        "POST /b",
    ]


def test_absent_extensions_default_to_internal_and_implemented() -> None:
    document = _load(make_spec({"/api/rides": {"get": {}}}))
    operation = document.get("GET", "/api/rides")
    assert operation is not None
    assert operation.visibility is Visibility.INTERNAL
    assert operation.status is OperationStatus.IMPLEMENTED
    assert document.public_operations() == []


def test_unknown_keys_survive_round_trip() -> None:
    spec = make_spec({"/api/rides": {"get": {"x-owner": "dispatch", "x-visibility": "public"}}})
    spec["x-generated-by"] = {"tool": "codegen", "nested": [1, 2]}
    document = _load(spec)
    restored = json.loads(dump_document(document).decode("utf-8"))
    assert restored == spec


def test_parse_errors_are_fatal() -> None:
    with pytest.raises(ParseError):
        load_document(b"{not json")
    with pytest.raises(ParseError):
        load_document(b"[]")
    with pytest.raises(ParseError):
        load_document(json.dumps({"paths": []}).encode("utf-8"))
    with pytest.raises(ParseError):
        load_document(json.dumps({"paths": {"/x": {"get": "nope"}}}).encode("utf-8"))
    with pytest.raises(ParseError) as exc_info:
        load_document(b"\xff\xfe", source="openapi.json")
    assert str(exc_info.value).startswith("openapi.json: ")


def test_uppercase_method_keys_are_rejected() -> None:
    spec = make_spec({"/api/rides": {"POST": {"x-visibility": "public"}}})
    with pytest.raises(ParseError, match="must be lowercase"):
        _load(spec)


def test_read_document_missing_is_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        read_document(tmp_path / "missing.json")


def test_write_document_replaces_file_without_leftovers(tmp_path: Path) -> None:
    target = tmp_path / "docs" / "openapi.json"
    document = APISpecDocument(make_spec({"/api/rides": {"get": {}}}))
    write_document(target, document)
    write_document(target, document)
    assert read_document(target) == document
    assert sorted(path.name for path in target.parent.iterdir()) == ["openapi.json"]
    assert target.read_bytes().endswith(b"\n")


def test_write_document_keeps_file_mode(tmp_path: Path) -> None:
    document = APISpecDocument(make_spec({"/api/rides": {"get": {}}}))
    created = tmp_path / "openapi.public.json"
    write_document(created, document)
    assert stat.S_IMODE(created.stat().st_mode) == 0o644

    existing = tmp_path / "openapi.json"
    existing.write_text("{}", encoding="utf-8")
    existing.chmod(0o640)
    write_document(existing, document)
    assert stat.S_IMODE(existing.stat().st_mode) == 0o640


def test_failed_write_leaves_target_and_no_temp_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    target = tmp_path / "openapi.json"
    target.write_text("{}", encoding="utf-8")

    def _fail(fd: int) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(atomic_io.os, "fsync", _fail)
    with pytest.raises(OSError, match="disk full"):
        write_document(target, APISpecDocument(make_spec({"/api/rides": {"get": {}}})))
    assert target.read_text(encoding="utf-8") == "{}"
    assert [path.name for path in tmp_path.iterdir()] == ["openapi.json"]


def test_success_codes_and_response_schema() -> None:
    responses = {
        **json_response({"type": "object"}, "201"),
        "200": {"content": {"text/plain": {"schema": {"type": "string"}}}},
        "404": {"description": "Not found"},
        "2XX": {"description": "range"},
    }
    document = _load(make_spec({"/api/rides": {"post": {"responses": responses}}}))
    operation = document.get("POST", "/api/rides")
    assert operation is not None
    assert operation.success_codes() == ["200", "201", "2XX"]
    assert operation.response_schema("201") == {"type": "object"}
    assert operation.response_schema("200") == {"type": "string"}
    assert operation.response_schema("404") is None


def test_resolve_ref_handles_escaped_segments() -> None:
    spec = make_spec({}, schemas={"Ride": {"type": "object"}})
    spec["components"]["x-paths"] = {"a/b": {"type": "string"}}
    document = _load(spec)
    assert document.resolve_ref("#/components/schemas/Ride") == {"type": "object"}
    assert document.resolve_ref("#/components/x-paths/a~1b") == {"type": "string"}
    assert document.resolve_ref("#/components/schemas/Missing") is None
    assert document.resolve_ref("other.json#/Ride") is None
    assert set(document.schemas) == {"Ride"}
    assert document.security == []


def test_copy_is_independent() -> None:
    document = _load(make_spec({"/api/rides": {"get": {}}}))
    duplicate = document.copy()
    raw_op = duplicate.mutable_operation("GET", "/api/rides")
    assert raw_op is not None
    raw_op["x-visibility"] = "public"
    assert document != duplicate
    assert document.public_operations() == []


def test_split_operation_key() -> None:
    assert split_operation_key("get /api/rides") == ("GET", "/api/rides")
    assert split_operation_key("/api/rides") is None
