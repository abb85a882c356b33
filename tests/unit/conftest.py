from __future__ import annotations

import json
from pathlib import Path

import pytest

from extension_e2e.config import HarnessConfig

from fakes import RecordingLog


@pytest.fixture
def extension_root(tmp_path: Path) -> Path:
    root = tmp_path / "extension"
    root.mkdir()
    (root / "manifest.json").write_text(
        json.dumps({"manifest_version": 3, "name": "Web Buddy", "version": "1.0.0"}),
        encoding="utf-8",
    )
    return root


@pytest.fixture
def config(tmp_path: Path, extension_root: Path) -> HarnessConfig:
    return HarnessConfig(
        extension_root=extension_root,
        profile_dir=tmp_path / ".e2e-profile",
        artifacts_dir=tmp_path / "artifacts",
        startup_wait_s=0,
        message_timeout_ms=100,
    )


@pytest.fixture
def log() -> RecordingLog:
    return RecordingLog()
