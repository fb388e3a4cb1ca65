from __future__ import annotations

from contractgate.allowlist import Allowlist
from contractgate.document import dump_document
from contractgate.promotion import (
    default_operation_id,
    demote_all,
    promote,
    promoted_keys,
    public_only,
    tag_stubs,
)
from contractgate.visibility import duplicate_operation_ids
from tests.spec_helpers import internal_op, make_document, public_op


def _document():
    return make_document(
        {
            "/api/v1/rides/{id}": {"get": internal_op(), "delete": internal_op()},
            "/api/drivers": {"get": internal_op(operationId="listDrivers", tags=["Fleet"])},
        }
    )


def test_promote_is_idempotent_to_the_byte() -> None:
    allowlist = Allowlist(["GET /api/v1/rides/{id}", "GET /api/drivers"])
    once = promote(_document(), allowlist)
    twice = promote(once, allowlist)
    assert dump_document(twice) == dump_document(once)
    assert [operation.key for operation in once.public_operations()] == [
        "GET /api/drivers",
        "GET /api/v1/rides/{id}",
    ]


def test_promote_ignores_unknown_keys_and_leaves_input_untouched() -> None:
    document = _document()
    allowlist = Allowlist(["POST /api/unknown", "DELETE /api/v1/rides/{id}"])
    promoted = promote(document, allowlist)
    assert [operation.key for operation in promoted.public_operations()] == ["DELETE /api/v1/rides/{id}"]
    assert promoted_keys(document, allowlist) == ["DELETE /api/v1/rides/{id}"]
    assert document.public_operations() == []


def test_fill_contract_fills_only_missing_attributes() -> None:
    allowlist = Allowlist(["GET /api/v1/rides/{id}", "GET /api/drivers"])
    promoted = promote(_document(), allowlist, fill_contract=True)
    ride = promoted.get("GET", "/api/v1/rides/{id}")
    driver = promoted.get("GET", "/api/drivers")
    assert ride is not None and driver is not None
    assert list(ride.security) == [{"bearerAuth": []}]
    assert ride.tags == ("Rides",)
    assert ride.operation_id == "get__api_v1_rides__id_"
    assert driver.tags == ("Fleet",)
    assert driver.operation_id == "listDrivers"
    again = promote(promoted, allowlist, fill_contract=True, security_scheme="apiKey")
    assert dump_document(again) == dump_document(promoted)


def test_fill_contract_defaults_tag_for_root_paths() -> None:
    document = make_document({"/api/{id}": {"get": internal_op()}})
    promoted = promote(document, Allowlist(["GET /api/{id}"]), fill_contract=True, security_scheme="apiKey")
    operation = promoted.get("GET", "/api/{id}")
    assert operation is not None
    assert operation.tags == ("Public",)
    assert list(operation.security) == [{"apiKey": []}]


def test_fill_contract_keeps_operation_ids_unique() -> None:
    document = make_document(
        {
            "/api/a/b": {"get": internal_op()},
            "/api/a_b": {"get": internal_op()},
            "/api/other": {"get": internal_op(operationId="get__api_a_b_2")},
        }
    )
    promoted = promote(document, Allowlist(["GET /api/a/b", "GET /api/a_b"]), fill_contract=True)
    ids = [operation.operation_id for operation in promoted.public_operations()]
    assert ids == ["get__api_a_b", "get__api_a_b_3"]
    assert duplicate_operation_ids(promoted) == set()


def test_default_operation_id() -> None:
    assert default_operation_id("POST", "/api/rides/:rideId/cancel") == "post__api_rides__rideId_cancel"


def test_demote_all() -> None:
    document = make_document({"/api/rides": {"get": public_op(), "post": public_op(operationId="create")}})
    demoted = demote_all(document)
    assert demoted.public_operations() == []
    assert len(document.public_operations()) == 2
    assert demoted.get("GET", "/api/rides").raw["x-visibility"] == "internal"


def test_public_only_projection() -> None:
    document = make_document(
        {
            "/api/rides": {
                "parameters": [{"name": "X-Region", "in": "header"}],
                "get": public_op(),
                "post": internal_op(),
            },
            "/api/admin": {"get": internal_op()},
        }
    )
    projected = public_only(document)
    assert list(projected.paths) == ["/api/rides"]
    assert set(projected.paths["/api/rides"]) == {"parameters", "get"}
    assert projected.raw["info"] == document.raw["info"]
    assert "/api/admin" in document.paths


def test_tag_stubs_adds_and_marks_operations() -> None:
    document = make_document({"/api/rides": {"get": internal_op()}})
    tagged = tag_stubs(document, ["GET /api/rides", "POST /api/payouts", "FETCH /api/x", "/api/bare"])
    rides = tagged.get("GET", "/api/rides")
    payouts = tagged.get("POST", "/api/payouts")
    assert rides is not None and payouts is not None
    assert rides.raw["x-status"] == "stub"
    assert rides.raw["responses"] == {"200": {"description": "OK"}}
    assert payouts.raw == {"responses": {"501": {"description": "Not Implemented"}}, "x-status": "stub"}
    assert tagged.get("GET", "/api/x") is None
    assert document.get("POST", "/api/payouts") is None
