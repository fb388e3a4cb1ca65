from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path

DEFAULT_FILE_MODE = 0o644


def _target_mode(destination: Path) -> int:
    try:
        return stat.S_IMODE(destination.stat().st_mode)
    except FileNotFoundError:
        return DEFAULT_FILE_MODE


def atomic_write_bytes(destination: Path, data: bytes) -> None:
    """Replace ``destination`` with ``data`` so readers never see a partial file.

    The replacement keeps the mode of the file it replaces; a new file gets
    ``0644``.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    mode = _target_mode(destination)
    with tempfile.NamedTemporaryFile(
        dir=destination.parent,
        prefix=f".{destination.name}.",
        delete=False,
    ) as tmp:
        temp_path = Path(tmp.name)
        try:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise
    try:
        os.chmod(temp_path, mode)
        os.replace(temp_path, destination)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise


def atomic_write_text(destination: Path, text: str, *, encoding: str = "utf-8") -> None:
    atomic_write_bytes(destination, text.encode(encoding))
