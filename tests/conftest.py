from __future__ import annotations

import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


import pytest

from contractgate.config import load_settings
from tests.env_helpers import cleared_env


@pytest.fixture(autouse=True)
def _clean_gate_env():
    with cleared_env():
        yield


@pytest.fixture
def write_spec(tmp_path: Path):
    def _write(spec: dict[str, object], rel_path: str = "docs/api/openapi.json") -> Path:
        path = tmp_path / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(spec, indent=2) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_text(tmp_path: Path):
    def _write(rel_path: str, text: str) -> Path:
        path = tmp_path / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def settings(tmp_path: Path):
    return load_settings(root=tmp_path)
