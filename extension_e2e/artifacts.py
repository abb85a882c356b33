"""
Paths for diagnostic artifacts (screenshots, dumps) written on failure.

Files land in `test/artifacts/` under the working directory, named
`<timestamp>-<label>` where the timestamp is ISO-8601 with `:` and `.`
replaced by `-` so the name is safe on every filesystem.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path


def default_artifacts_dir() -> Path:
    return Path.cwd() / "test" / "artifacts"


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def timestamp(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    iso = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return iso.replace(":", "-").replace(".", "-")


def artifact_path(label: str, base_dir: Path | None = None) -> Path:
    """Return a fresh path for `label`, creating the artifacts directory.

    Filesystem errors propagate; callers decide whether capture is best-effort.
    """
    directory = ensure_dir(base_dir or default_artifacts_dir())
    return directory / f"{timestamp()}-{label}"
