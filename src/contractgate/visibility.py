"""Release-stage visibility policy and the live contract-quality gate.

``evaluate`` is a stateless predicate over (state, document, allowlist); the
deployment pipeline owns transitions between states.
"""

from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import Iterable, Mapping

from contractgate.allowlist import Allowlist
from contractgate.document import APIOperation, APISpecDocument
from contractgate.violations import (
    EnvironmentDetail,
    QualityDetail,
    Violation,
    VisibilityDetail,
    make_violation,
)

DEFAULT_PLACEHOLDER_SCHEMA_REF = "#/components/schemas/GenericObject"
DEFAULT_GUARDED_ENV_FLAGS: tuple[str, ...] = (
    "DEPLOY_TO_PRODUCTION",
    "ENABLE_PUBLIC_API",
    "LIVE_TRAFFIC_ENABLED",
)


class ReleaseState(str, Enum):
    PARKED = "parked"
    UAT = "uat"
    STAGING = "staging"
    LIVE = "live"

    @classmethod
    def parse(cls, value: str) -> "ReleaseState":
        text = value.strip().lower()
        for state in cls:
            if state.value == text:
                return state
        allowed = ", ".join(state.value for state in cls)
        raise ValueError(f"unknown release state {value!r} (expected one of: {allowed})")


_INTERNAL_ONLY_REASONS = {
    ReleaseState.PARKED: "public operation not allowed while parked",
    ReleaseState.STAGING: "public operation not allowed in staging (internal-only validation)",
}


def evaluate(
    state: ReleaseState,
    document: APISpecDocument,
    allowlist: Allowlist | None = None,
    *,
    placeholder_ref: str = DEFAULT_PLACEHOLDER_SCHEMA_REF,
) -> list[Violation]:
    if state in _INTERNAL_ONLY_REASONS:
        reason = _INTERNAL_ONLY_REASONS[state]
        return [
            make_violation(
                operation.method,
                operation.path,
                reason,
                VisibilityDetail(state=state.value),
            )
            for operation in document.public_operations()
        ]
    if state is ReleaseState.UAT:
        allowed = allowlist if allowlist is not None else Allowlist()
        return [
            make_violation(
                operation.method,
                operation.path,
                "public operation not in UAT allowlist",
                VisibilityDetail(state=state.value, allowlisted=False),
            )
            for operation in document.public_operations()
            if operation.key not in allowed
        ]
    return quality_violations(document, placeholder_ref=placeholder_ref)


def _references(schema: object, ref: str) -> bool:
    if isinstance(schema, Mapping):
        if schema.get("$ref") == ref:
            return True
        return any(_references(value, ref) for value in schema.values())
    if isinstance(schema, list):
        return any(_references(item, ref) for item in schema)
    return False


def _placeholder_codes(operation: APIOperation, ref: str) -> list[str]:
    codes: list[str] = []
    for code in operation.success_codes():
        response = operation.responses.get(code)
        content = response.get("content") if isinstance(response, Mapping) else None
        if not isinstance(content, Mapping):
            continue
        if any(
            isinstance(media, Mapping) and _references(media.get("schema"), ref)
            for media in content.values()
        ):
            codes.append(code)
    return codes


def _operation_quality(
    operation: APIOperation,
    *,
    duplicate_ids: set[str],
    placeholder_ref: str,
) -> Iterable[Violation]:
    method, path = operation.method, operation.path
    if not operation.security:
        yield make_violation(method, path, "missing security", QualityDetail("security"))
    if not operation.summary:
        yield make_violation(method, path, "missing summary", QualityDetail("summary"))
    if not operation.operation_id:
        yield make_violation(method, path, "missing operationId", QualityDetail("operationId"))
    elif operation.operation_id in duplicate_ids:
        yield make_violation(
            method,
            path,
            f"duplicate operationId {operation.operation_id!r}",
            QualityDetail("operationId"),
        )
    if not operation.tags:
        yield make_violation(method, path, "missing tags", QualityDetail("tags"))
    schema_name = placeholder_ref.rsplit("/", 1)[-1]
    for code in _placeholder_codes(operation, placeholder_ref):
        yield make_violation(
            method,
            path,
            f"{code} response uses placeholder schema {schema_name}",
            QualityDetail("responses", status_code=code),
        )


def duplicate_operation_ids(document: APISpecDocument) -> set[str]:
    counts = Counter(
        operation.operation_id
        for operation in document.iter_operations()
        if operation.operation_id
    )
    return {operation_id for operation_id, count in counts.items() if count > 1}


def quality_violations(
    document: APISpecDocument,
    *,
    placeholder_ref: str = DEFAULT_PLACEHOLDER_SCHEMA_REF,
) -> list[Violation]:
    duplicate_ids = duplicate_operation_ids(document)
    violations: list[Violation] = []
    for operation in document.public_operations():
        violations.extend(
            _operation_quality(
                operation,
                duplicate_ids=duplicate_ids,
                placeholder_ref=placeholder_ref,
            )
        )
    return violations


def environment_violations(
    state: ReleaseState,
    environ: Mapping[str, str],
    *,
    flags: Iterable[str] = DEFAULT_GUARDED_ENV_FLAGS,
) -> list[Violation]:
    if state is ReleaseState.LIVE:
        return []
    return [
        make_violation(
            "",
            "",
            f"{flag} is set to true in {state.value} mode",
            EnvironmentDetail(variable=flag, state=state.value),
        )
        for flag in flags
        if environ.get(flag, "").strip().lower() == "true"
    ]
