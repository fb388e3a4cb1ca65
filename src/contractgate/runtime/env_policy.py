from __future__ import annotations

import os

from contractgate.exceptions import ConfigurationError

RELEASE_STATE_ENV = "RELEASE_STATE"
STUB_BUDGET_ENV = "STUB_BUDGET"
DRIFT_STRICT_ENV = "CONTRACTGATE_DRIFT_STRICT"
DEFAULT_RELEASE_STATE = "parked"

_TRUTHY_VALUES = {"1", "true", "yes", "on"}
_FALSEY_VALUES = {"0", "false", "no", "off"}


def env_text(name: str, *, default: str = "") -> str:
    return os.getenv(name, default).strip()


def env_enabled_default_true(name: str, *, value: str | None = None) -> bool:
    text = value.strip().lower() if isinstance(value, str) else os.getenv(name)
    if text is None:
        return True
    return text.strip().lower() not in _FALSEY_VALUES


def env_enabled_flag(name: str, *, value: str | None = None) -> bool:
    text = value if isinstance(value, str) else os.getenv(name, "")
    return text.strip().lower() in _TRUTHY_VALUES


def release_state_text(explicit: str | None = None) -> str:
    if explicit is not None and explicit.strip():
        return explicit.strip()
    return env_text(RELEASE_STATE_ENV) or DEFAULT_RELEASE_STATE


def stub_budget_override(explicit: int | None = None) -> int | None:
    if explicit is not None:
        if explicit < 0:
            raise ConfigurationError(f"invalid stub budget override: {explicit}")
        return explicit
    raw = env_text(STUB_BUDGET_ENV)
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"invalid {STUB_BUDGET_ENV}: {raw!r}") from exc
    if value < 0:
        raise ConfigurationError(f"invalid {STUB_BUDGET_ENV}: {raw!r}")
    return value
