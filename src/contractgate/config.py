from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

from contractgate.allowlist import DEFAULT_UAT_CAP
from contractgate.drift import DEFAULT_API_PREFIX
from contractgate.exceptions import ConfigurationError
from contractgate.promotion import DEFAULT_SECURITY_SCHEME
from contractgate.visibility import DEFAULT_GUARDED_ENV_FLAGS, DEFAULT_PLACEHOLDER_SCHEMA_REF

DEFAULT_CONFIG_NAME = "contractgate.toml"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]

DEFAULT_PATHS: dict[str, str] = {
    "spec": "docs/api/openapi.json",
    "public_spec": "docs/api/openapi.public.json",
    "allowlist": "audit/uat_public.txt",
    "candidates": "audit/public_candidates.txt",
    "smoke_endpoints": "audit/uat_endpoints.json",
    "drift_ignore": "audit/drift-ignore.txt",
    "stub_budget": "audit/stub_budget.max",
    "audit_dir": "audit",
}


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise ConfigurationError(f"config unreadable: {path}: {exc}") from exc
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"config is not valid TOML: {path}: {exc}") from exc
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def _section(data: TomlTable, name: str) -> TomlTable:
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def _normalize_name_list(value: TomlValue) -> list[str]:
    items: list[str] = []
    if value is None:
        return items
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            if isinstance(item, str):
                items.extend([part.strip() for part in item.split(",") if part.strip()])
    return [item for item in items if item]


def _as_bool(value: TomlValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _as_int(value: TomlValue, *, field_name: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigurationError(f"config {field_name} must be an integer")
    try:
        number = int(value)
    except ValueError as exc:
        raise ConfigurationError(f"config {field_name} must be an integer") from exc
    if number < 0:
        raise ConfigurationError(f"config {field_name} must not be negative")
    return number


@dataclass(frozen=True)
class Settings:
    root: Path
    spec_path: Path
    public_spec_path: Path
    allowlist_path: Path
    candidates_path: Path
    smoke_endpoints_path: Path
    drift_ignore_path: Path
    stub_budget_path: Path
    audit_dir: Path
    uat_cap: int = DEFAULT_UAT_CAP
    placeholder_ref: str = DEFAULT_PLACEHOLDER_SCHEMA_REF
    drift_strict: bool = False
    api_prefix: str = DEFAULT_API_PREFIX
    source_roots: tuple[str, ...] = ("src", "apps", "packages")
    security_scheme: str = DEFAULT_SECURITY_SCHEME
    guarded_env_flags: tuple[str, ...] = DEFAULT_GUARDED_ENV_FLAGS

    def spec_relpath(self) -> str:
        try:
            return self.spec_path.relative_to(self.root).as_posix()
        except ValueError:
            return self.spec_path.as_posix()


def load_settings(root: Path | None = None, config_path: Path | None = None) -> Settings:
    base = root if root is not None else Path.cwd()
    data = load_config(root=base, config_path=config_path)
    paths_section = _section(data, "paths")
    resolved: dict[str, Path] = {}
    for name, default in DEFAULT_PATHS.items():
        value = paths_section.get(name, default)
        if not isinstance(value, str) or not value.strip():
            raise ConfigurationError(f"config paths.{name} must be a non-empty string")
        resolved[name] = base / value
    uat = _section(data, "uat")
    quality = _section(data, "quality")
    drift = _section(data, "drift")
    promotion = _section(data, "promotion")
    environment = _section(data, "environment")
    source_roots = _normalize_name_list(drift.get("source_roots"))
    guarded_flags = _normalize_name_list(environment.get("guarded_flags"))
    return Settings(
        root=base,
        spec_path=resolved["spec"],
        public_spec_path=resolved["public_spec"],
        allowlist_path=resolved["allowlist"],
        candidates_path=resolved["candidates"],
        smoke_endpoints_path=resolved["smoke_endpoints"],
        drift_ignore_path=resolved["drift_ignore"],
        stub_budget_path=resolved["stub_budget"],
        audit_dir=resolved["audit_dir"],
        uat_cap=_as_int(uat.get("cap"), field_name="uat.cap", default=DEFAULT_UAT_CAP),
        placeholder_ref=str(quality.get("placeholder_ref", DEFAULT_PLACEHOLDER_SCHEMA_REF)),
        drift_strict=_as_bool(drift.get("strict", False)),
        api_prefix=str(drift.get("api_prefix", DEFAULT_API_PREFIX)),
        source_roots=tuple(source_roots) if source_roots else ("src", "apps", "packages"),
        security_scheme=str(promotion.get("security_scheme", DEFAULT_SECURITY_SCHEME)),
        guarded_env_flags=tuple(guarded_flags) if guarded_flags else DEFAULT_GUARDED_ENV_FLAGS,
    )
