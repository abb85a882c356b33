"""
Harness configuration.

Environment signals:
  E2E_HEADED   truthy -> force a headed browser
  DISPLAY      present -> a display server exists, run headed (e.g. under xvfb-run)
  E2E_DEBUG    truthy -> debug logging, close-order logging, forced-exit safety valve
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping


DEFAULT_EXECUTABLE = Path("/usr/bin/chromium")

_FALSY = {"", "0", "false", "no", "off"}


def env_flag(environ: Mapping[str, str], name: str) -> bool:
    value = environ.get(name)
    if value is None:
        return False
    return value.strip().lower() not in _FALSY


def should_run_headed(environ: Mapping[str, str]) -> bool:
    """Headless unless forced headed or a display server is available."""
    return env_flag(environ, "E2E_HEADED") or bool(environ.get("DISPLAY"))


def _default_executable() -> Path | None:
    return DEFAULT_EXECUTABLE if DEFAULT_EXECUTABLE.exists() else None


# Content scripts run in an isolated world, so window flags they set are not
# visible to page.evaluate; a DOM attribute on the root element is.
MARKER_JS = "(attr) => document.documentElement.hasAttribute(attr)"


@dataclass(frozen=True)
class ExtensionContract:
    """What the harness expects the extension under test to expose."""

    injection_attribute: str = "data-web-buddy-injected"
    popup_path: str = "src/popup.html"
    popup_control_selector: str = "#record"
    content_script_path: str = "src/content.js"


@dataclass(frozen=True)
class HarnessConfig:
    extension_root: Path
    profile_dir: Path
    artifacts_dir: Path
    headed: bool = False
    debug: bool = False
    executable_path: Path | None = None
    startup_wait_s: float = 2.5
    message_timeout_ms: int = 5000
    force_exit_delay_s: float = 3.0
    contract: ExtensionContract = field(default_factory=ExtensionContract)

    @property
    def manifest_path(self) -> Path:
        return self.extension_root / "manifest.json"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, extension_root: Path | None = None, **overrides) -> "HarnessConfig":
        if environ is None:
            environ = os.environ
        cwd = Path.cwd()
        root = Path(extension_root or cwd).resolve()
        config = cls(
            extension_root=root,
            profile_dir=root / ".e2e-profile",
            artifacts_dir=cwd / "test" / "artifacts",
            headed=should_run_headed(environ),
            debug=env_flag(environ, "E2E_DEBUG"),
            executable_path=_default_executable(),
        )
        return replace(config, **overrides) if overrides else config
