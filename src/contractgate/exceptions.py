"""Error taxonomy for contract governance runs."""

from __future__ import annotations


class ContractGateError(RuntimeError):
    """Base class for every error raised by contractgate."""


class ParseError(ContractGateError):
    """The API specification document could not be read as a document.

    Fatal: a run that hits this aborts without a partial report.
    """

    def __init__(self, message: str, *, source: str | None = None) -> None:
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class ConfigurationError(ContractGateError):
    """A required input is missing or malformed (allowlist, ceiling file, ...)."""


class PolicyViolationError(ContractGateError):
    """A policy bar was not met; gate runners turn these into violations."""


class CapExceeded(PolicyViolationError):
    def __init__(self, count: int, cap: int) -> None:
        self.count = count
        self.cap = cap
        super().__init__(f"UAT cap exceeded: {count} > {cap}")


class StubBudgetExceeded(PolicyViolationError):
    def __init__(self, count: int, ceiling: int) -> None:
        self.count = count
        self.ceiling = ceiling
        super().__init__(f"Stub budget exceeded: {count} > {ceiling}")
