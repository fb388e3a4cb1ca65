from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import typer

from contractgate.config import Settings, load_settings
from contractgate.exceptions import ConfigurationError
from contractgate.runtime import env_policy
from contractgate.tooling.compat_gate import check_compat_gate
from contractgate.tooling.drift_gate import check_drift_gate
from contractgate.tooling.gate_runtime import GateResult
from contractgate.tooling.preflight import run_preflight
from contractgate.tooling.spec_mutations import (
    run_demote,
    run_export_public,
    run_promote,
    run_tag_stubs,
)
from contractgate.tooling.stub_budget_gate import check_stub_budget_gate
from contractgate.tooling.uat_gates import check_uat_cap_gate, check_uat_coverage_gate
from contractgate.tooling.visibility_gate import check_quality_gate, check_visibility_gate
from contractgate.visibility import ReleaseState

app = typer.Typer(add_completion=False, help="Governance gates for an OpenAPI contract.")

_ROOT_OPTION = typer.Option(Path("."), "--root", help="Repository root; relative paths resolve here.")
_CONFIG_OPTION = typer.Option(None, "--config", help="Config file (default: <root>/contractgate.toml).")
_SPEC_OPTION = typer.Option(None, "--spec", help="OpenAPI document to govern.")
_STATE_OPTION = typer.Option(
    None,
    "--state",
    help="Release state: parked, uat, staging or live (default: $RELEASE_STATE or parked).",
)
_JSON_OPTION = typer.Option(False, "--json", help="Emit the report as JSON.")


def _resolve_under(root: Path, path: Path) -> Path:
    return path if path.is_absolute() else root / path


def _settings(root: Path, config: Optional[Path], spec: Optional[Path]) -> Settings:
    try:
        settings = load_settings(
            root=root,
            config_path=_resolve_under(root, config) if config is not None else None,
        )
    except ConfigurationError as exc:
        typer.secho(f"configuration error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    if spec is not None:
        settings = replace(settings, spec_path=_resolve_under(root, spec))
    return settings


def _release_state(state: Optional[str]) -> ReleaseState:
    text = env_policy.release_state_text(state)
    try:
        return ReleaseState.parse(text)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--state") from exc


def _emit(result: GateResult, json_output: bool) -> None:
    if json_output:
        typer.echo(result.to_dto().model_dump_json(indent=2))
    else:
        for line in result.lines:
            typer.echo(line)
    raise typer.Exit(code=result.exit_code)


@app.command()
def visibility(
    state: Optional[str] = _STATE_OPTION,
    spec: Optional[Path] = _SPEC_OPTION,
    root: Path = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Check which operations may be public in the current release state."""
    release_state = _release_state(state)
    settings = _settings(root, config, spec)
    _emit(check_visibility_gate(settings, release_state), json_output)


@app.command()
def quality(
    spec: Optional[Path] = _SPEC_OPTION,
    root: Path = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Check the contract quality bar for every public operation."""
    settings = _settings(root, config, spec)
    _emit(check_quality_gate(settings), json_output)


@app.command("uat-cap")
def uat_cap(
    state: Optional[str] = _STATE_OPTION,
    cap: Optional[int] = typer.Option(None, "--cap", min=0, help="Override the configured cap."),
    allowlist: Optional[Path] = typer.Option(None, "--allowlist"),
    root: Path = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Fail when the UAT allowlist holds more entries than the cap."""
    release_state = _release_state(state)
    settings = _settings(root, config, None)
    if allowlist is not None:
        settings = replace(settings, allowlist_path=_resolve_under(root, allowlist))
    _emit(check_uat_cap_gate(settings, release_state, cap=cap), json_output)


@app.command("uat-coverage")
def uat_coverage(
    allowlist: Optional[Path] = typer.Option(None, "--allowlist"),
    endpoints: Optional[Path] = typer.Option(None, "--endpoints", help="Smoke-tested endpoints JSON."),
    root: Path = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Compare the UAT allowlist with the smoke-tested endpoint list."""
    settings = _settings(root, config, None)
    if allowlist is not None:
        settings = replace(settings, allowlist_path=_resolve_under(root, allowlist))
    if endpoints is not None:
        settings = replace(settings, smoke_endpoints_path=_resolve_under(root, endpoints))
    _emit(check_uat_coverage_gate(settings), json_output)


@app.command()
def drift(
    observed: Optional[Path] = typer.Option(
        None,
        "--observed",
        help="Observed usage list (one key per line). Without it, source roots are scanned.",
    ),
    scan: List[Path] = typer.Option([], "--scan", help="Source directory to scan; repeatable."),
    strict: Optional[bool] = typer.Option(
        None,
        "--strict/--no-strict",
        help="Fail on undocumented usages (default: config or $CONTRACTGATE_DRIFT_STRICT).",
    ),
    write_artifacts: bool = typer.Option(False, "--write-artifacts/--no-write-artifacts"),
    spec: Optional[Path] = _SPEC_OPTION,
    root: Path = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Reconcile API calls made by code with the operations the document declares."""
    settings = _settings(root, config, spec)
    scan_roots = tuple(_resolve_under(root, path) for path in scan) if scan else None
    result = check_drift_gate(
        settings,
        observed_path=_resolve_under(root, observed) if observed is not None else None,
        scan_roots=scan_roots,
        strict=strict,
        write_artifacts=write_artifacts,
    )
    _emit(result, json_output)


@app.command()
def compat(
    base_ref: Optional[str] = typer.Option(None, "--base-ref", help="Git revision holding the base document."),
    base_file: Optional[Path] = typer.Option(None, "--base-file", help="Base document on disk."),
    spec: Optional[Path] = _SPEC_OPTION,
    root: Path = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Fail when a public 2xx response loses a field present in the base document."""
    settings = _settings(root, config, spec)
    result = check_compat_gate(
        settings,
        base_ref=base_ref,
        base_file=_resolve_under(root, base_file) if base_file is not None else None,
    )
    _emit(result, json_output)


@app.command("stub-budget")
def stub_budget(
    override: Optional[int] = typer.Option(
        None,
        "--override",
        min=0,
        help="Ceiling for this run only (default: $STUB_BUDGET).",
    ),
    write_artifacts: bool = typer.Option(True, "--write-artifacts/--no-write-artifacts"),
    spec: Optional[Path] = _SPEC_OPTION,
    root: Path = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Fail when the number of stub operations grows past the recorded ceiling."""
    settings = _settings(root, config, spec)
    _emit(
        check_stub_budget_gate(settings, override=override, write_artifacts=write_artifacts),
        json_output,
    )


@app.command()
def promote(
    candidates: Optional[Path] = typer.Option(None, "--candidates", help="Keys to promote."),
    fill_contract: bool = typer.Option(
        False,
        "--fill-contract/--no-fill-contract",
        help="Also fill missing security, tags and operationId.",
    ),
    dry_run: bool = typer.Option(False, "--dry-run"),
    spec: Optional[Path] = _SPEC_OPTION,
    root: Path = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Mark the candidate operations public."""
    settings = _settings(root, config, spec)
    result = run_promote(
        settings,
        candidates_path=_resolve_under(root, candidates) if candidates is not None else None,
        fill_contract=fill_contract,
        dry_run=dry_run,
    )
    _emit(result, json_output)


@app.command()
def demote(
    dry_run: bool = typer.Option(False, "--dry-run"),
    spec: Optional[Path] = _SPEC_OPTION,
    root: Path = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Mark every public operation internal."""
    settings = _settings(root, config, spec)
    _emit(run_demote(settings, dry_run=dry_run), json_output)


@app.command("export-public")
def export_public(
    output: Optional[Path] = typer.Option(None, "--output", help="Destination for the public projection."),
    spec: Optional[Path] = _SPEC_OPTION,
    root: Path = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Write a copy of the document holding only public operations."""
    settings = _settings(root, config, spec)
    result = run_export_public(
        settings,
        output_path=_resolve_under(root, output) if output is not None else None,
    )
    _emit(result, json_output)


@app.command("tag-stubs")
def tag_stubs(
    keys: Path = typer.Option(..., "--keys", help="File of 'METHOD /path' keys to tag as stub."),
    dry_run: bool = typer.Option(False, "--dry-run"),
    spec: Optional[Path] = _SPEC_OPTION,
    root: Path = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Add or mark operations as ``x-status: stub``."""
    settings = _settings(root, config, spec)
    _emit(run_tag_stubs(settings, _resolve_under(root, keys), dry_run=dry_run), json_output)


@app.command()
def preflight(
    state: Optional[str] = _STATE_OPTION,
    base_ref: Optional[str] = typer.Option(None, "--base-ref"),
    base_file: Optional[Path] = typer.Option(None, "--base-file"),
    observed: Optional[Path] = typer.Option(None, "--observed"),
    spec: Optional[Path] = _SPEC_OPTION,
    root: Path = _ROOT_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Run the visibility, cap, quality, compat and drift gates together."""
    release_state = _release_state(state)
    settings = _settings(root, config, spec)
    report = run_preflight(
        settings,
        release_state,
        base_ref=base_ref,
        base_file=_resolve_under(root, base_file) if base_file is not None else None,
        observed_path=_resolve_under(root, observed) if observed is not None else None,
    )
    if json_output:
        typer.echo(report.to_dto().model_dump_json(indent=2))
    else:
        for line in report.lines():
            typer.echo(line)
    raise typer.Exit(code=report.exit_code)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
