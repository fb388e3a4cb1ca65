"""Commands that rewrite the API document: promote, demote, export, stub tagging.

Each returns a ``GateResult`` so the CLI reports and exits the same way it
does for the read-only gates. Writes are skipped under ``dry_run``.
"""

from __future__ import annotations

from pathlib import Path

from contractgate.allowlist import load_allowlist, read_allowlist
from contractgate.config import Settings
from contractgate.document import read_document, write_document
from contractgate.exceptions import ConfigurationError
from contractgate.promotion import demote_all, promote, promoted_keys, public_only, tag_stubs
from contractgate.tooling.gate_runtime import GateResult, GateStatus, guarded


def run_promote(
    settings: Settings,
    *,
    candidates_path: Path | None = None,
    fill_contract: bool = False,
    dry_run: bool = False,
) -> GateResult:
    source = candidates_path if candidates_path is not None else settings.candidates_path

    def _run() -> GateResult:
        document = read_document(settings.spec_path)
        candidates = read_allowlist(source)
        keys = promoted_keys(document, candidates)
        updated = promote(
            document,
            candidates,
            fill_contract=fill_contract,
            security_scheme=settings.security_scheme,
        )
        skipped = [key for key in candidates if key not in keys]
        lines = [f"Promoted {len(keys)} operations to public"]
        lines.extend(f"  {key}" for key in keys)
        if skipped:
            lines.append(f"Skipped {len(skipped)} keys not present in the document:")
            lines.extend(f"  {key}" for key in skipped)
        if dry_run:
            lines.append("DRY RUN: document not written")
        elif updated != document:
            write_document(settings.spec_path, updated)
        return GateResult("promote", GateStatus.PASS, tuple(lines))

    return guarded("promote", _run)


def run_demote(settings: Settings, *, dry_run: bool = False) -> GateResult:
    def _run() -> GateResult:
        document = read_document(settings.spec_path)
        public = [operation.key for operation in document.public_operations()]
        updated = demote_all(document)
        lines = [f"Demoted {len(public)} operations to internal"]
        lines.extend(f"  {key}" for key in public)
        if dry_run:
            lines.append("DRY RUN: document not written")
        elif updated != document:
            write_document(settings.spec_path, updated)
        return GateResult("demote", GateStatus.PASS, tuple(lines))

    return guarded("demote", _run)


def run_export_public(settings: Settings, *, output_path: Path | None = None) -> GateResult:
    target = output_path if output_path is not None else settings.public_spec_path

    def _run() -> GateResult:
        projected = public_only(read_document(settings.spec_path))
        write_document(target, projected)
        count = len(projected.public_operations())
        return GateResult(
            "export-public",
            GateStatus.PASS,
            (f"Wrote {count} public operations to {target}",),
        )

    return guarded("export-public", _run)


def _read_stub_keys(path: Path) -> list[str]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeError) as exc:
        raise ConfigurationError(f"stub key list unreadable: {path}: {exc}") from exc
    return list(load_allowlist(text))


def run_tag_stubs(settings: Settings, keys_path: Path, *, dry_run: bool = False) -> GateResult:
    def _run() -> GateResult:
        if not keys_path.exists():
            return GateResult(
                "tag-stubs",
                GateStatus.SKIPPED,
                (f"No stub key list at {keys_path}; nothing to tag",),
            )
        keys = _read_stub_keys(keys_path)
        document = read_document(settings.spec_path)
        updated = tag_stubs(document, keys)
        lines = [f"Tagged {len(keys)} operations as stub"]
        lines.extend(f"  {key}" for key in keys)
        if dry_run:
            lines.append("DRY RUN: document not written")
        elif updated != document:
            write_document(settings.spec_path, updated)
        return GateResult("tag-stubs", GateStatus.PASS, tuple(lines))

    return guarded("tag-stubs", _run)
