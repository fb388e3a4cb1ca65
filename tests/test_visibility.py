from __future__ import annotations

import json

import pytest

from contractgate.allowlist import Allowlist
from contractgate.tooling.gate_runtime import GateStatus
from contractgate.tooling.visibility_gate import check_visibility_gate
from contractgate.violations import (
    CapDetail,
    QualityDetail,
    Violation,
    ViolationKind,
    VisibilityDetail,
    make_violation,
)
from contractgate.visibility import (
    ReleaseState,
    duplicate_operation_ids,
    environment_violations,
    evaluate,
)
from tests.spec_helpers import internal_op, json_response, make_document, public_op


@pytest.mark.parametrize("state", [ReleaseState.PARKED, ReleaseState.STAGING])
def test_internal_only_states_flag_every_public_operation(state: ReleaseState) -> None:
    document = make_document(
        {
            "/api/rides": {"get": public_op(operationId="listRides"), "post": internal_op()},
            "/api/drivers": {"get": public_op(operationId="listDrivers")},
        }
    )
    violations = evaluate(state, document)
    assert [item.key for item in violations] == ["GET /api/drivers", "GET /api/rides"]
    assert all(item.kind is ViolationKind.VISIBILITY for item in violations)


@pytest.mark.parametrize("state", [ReleaseState.PARKED, ReleaseState.STAGING])
def test_internal_only_states_pass_without_public_operations(state: ReleaseState) -> None:
    document = make_document({"/api/rides": {"get": internal_op()}})
    assert evaluate(state, document) == []


def test_uat_allowlist_exact_keys() -> None:
    document = make_document(
        {
            "/api/rides": {"get": public_op(operationId="listRides")},
            "/api/drivers": {"get": public_op(operationId="listDrivers")},
        }
    )
    both = Allowlist(["GET /api/rides", "GET /api/drivers"])
    assert evaluate(ReleaseState.UAT, document, both) == []

    violations = evaluate(ReleaseState.UAT, document, Allowlist(["GET /api/rides"]))
    assert len(violations) == 1
    assert violations[0].key == "GET /api/drivers"
    assert violations[0].detail == VisibilityDetail(state="uat", allowlisted=False)


def test_uat_allowlist_is_method_sensitive() -> None:
    document = make_document({"/api/rides": {"post": public_op()}})
    violations = evaluate(ReleaseState.UAT, document, Allowlist(["GET /api/rides"]))
    assert [item.key for item in violations] == ["POST /api/rides"]


def test_live_reports_one_violation_per_missing_attribute() -> None:
    ride = public_op(operationId="createRide")
    del ride["security"]
    del ride["summary"]
    document = make_document({"/api/rides": {"post": ride}})
    violations = evaluate(ReleaseState.LIVE, document)
    assert [item.render() for item in violations] == [
        "POST /api/rides - missing security",
        "POST /api/rides - missing summary",
    ]
    assert {item.detail for item in violations} == {
        QualityDetail("security"),
        QualityDetail("summary"),
    }


def test_live_ignores_internal_operations() -> None:
    document = make_document({"/api/rides": {"get": internal_op()}})
    assert evaluate(ReleaseState.LIVE, document) == []


def test_live_flags_duplicate_operation_ids_and_missing_tags() -> None:
    document = make_document(
        {
            "/api/rides": {"get": public_op(operationId="list", tags=[])},
            "/api/drivers": {"get": public_op(operationId="list")},
        }
    )
    assert duplicate_operation_ids(document) == {"list"}
    reasons = [item.render() for item in evaluate(ReleaseState.LIVE, document)]
    assert reasons == [
        "GET /api/drivers - duplicate operationId 'list'",
        "GET /api/rides - duplicate operationId 'list'",
        "GET /api/rides - missing tags",
    ]


def test_live_flags_placeholder_success_schema() -> None:
    placeholder = {"$ref": "#/components/schemas/GenericObject"}
    document = make_document(
        {
            "/api/rides": {
                "get": public_op(
                    responses={
                        **json_response({"type": "array", "items": placeholder}),
                        **json_response(placeholder, "400"),
                    }
                )
            }
        },
        schemas={"GenericObject": {"type": "object"}},
    )
    violations = evaluate(ReleaseState.LIVE, document)
    assert [item.reason for item in violations] == [
        "200 response uses placeholder schema GenericObject",
    ]
    assert violations[0].detail == QualityDetail("responses", status_code="200")


def test_live_flags_placeholder_under_range_status() -> None:
    placeholder = {"$ref": "#/components/schemas/GenericObject"}
    document = make_document(
        {"/api/rides": {"get": public_op(responses=json_response(placeholder, "2XX"))}},
        schemas={"GenericObject": {"type": "object"}},
    )
    violations = evaluate(ReleaseState.LIVE, document)
    assert [item.reason for item in violations] == [
        "2XX response uses placeholder schema GenericObject",
    ]


def test_uppercase_method_key_fails_the_gate(settings, write_text) -> None:
    write_text(
        "docs/api/openapi.json",
        json.dumps({"paths": {"/api/rides": {"POST": {"x-visibility": "public"}}}}),
    )
    result = check_visibility_gate(settings, ReleaseState.PARKED, environ={})
    assert result.status is GateStatus.ERROR
    assert result.exit_code == 2
    assert "must be lowercase" in result.lines[0]


def test_environment_guard_outside_live() -> None:
    environ = {"ENABLE_PUBLIC_API": "true", "LIVE_TRAFFIC_ENABLED": "false"}
    violations = environment_violations(ReleaseState.UAT, environ)
    assert [item.reason for item in violations] == ["ENABLE_PUBLIC_API is set to true in uat mode"]
    assert violations[0].key == ""
    assert environment_violations(ReleaseState.LIVE, environ) == []


def test_release_state_parse() -> None:
    assert ReleaseState.parse(" UAT ") is ReleaseState.UAT
    with pytest.raises(ValueError):
        ReleaseState.parse("prod")


def test_violation_detail_must_match_kind() -> None:
    with pytest.raises(TypeError):
        Violation(ViolationKind.CAP, "", "", "bad", QualityDetail("summary"))
    violation = make_violation("", "", "UAT cap exceeded: 4 > 3", CapDetail(count=4, cap=3))
    assert violation.kind is ViolationKind.CAP
    assert violation.render() == "UAT cap exceeded: 4 > 3"
