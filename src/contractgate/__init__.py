"""contractgate package root."""

from contractgate.exceptions import (
    CapExceeded,
    ConfigurationError,
    ContractGateError,
    ParseError,
    PolicyViolationError,
    StubBudgetExceeded,
)

__all__ = [
    "__version__",
    "CapExceeded",
    "ConfigurationError",
    "ContractGateError",
    "ParseError",
    "PolicyViolationError",
    "StubBudgetExceeded",
]

__version__ = "0.1.0"
