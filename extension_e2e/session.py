"""
Browser session: one persistent Chromium profile with the unpacked extension loaded.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

from playwright.async_api import BrowserContext, async_playwright

from extension_e2e.config import HarnessConfig
from extension_e2e.log import HarnessLog


class SetupError(RuntimeError):
    """A precondition for launching the browser is missing; the run cannot start."""


def load_manifest(manifest_path: Path) -> dict:
    if not manifest_path.exists():
        raise SetupError(f"manifest.json not found in {manifest_path.parent}; cannot load extension")
    try:
        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise SetupError(f"manifest.json at {manifest_path} is not readable JSON: {e}") from e
    if not isinstance(manifest, dict):
        raise SetupError(f"manifest.json at {manifest_path} must be a JSON object")
    return manifest


def launch_args(extension_root: Path) -> list[str]:
    extension_path_str = str(extension_root.absolute())
    return [
        f"--disable-extensions-except={extension_path_str}",
        f"--load-extension={extension_path_str}",
        "--no-sandbox",
        "--disable-gpu",
        "--disable-dev-shm-usage",
    ]


class BrowserSession:
    def __init__(self, config: HarnessConfig, log: HarnessLog, playwright_factory: Callable[[], Any] = async_playwright):
        self.config = config
        self.log = log
        self.manifest: dict | None = None
        self.context: BrowserContext | None = None
        self._playwright_factory = playwright_factory
        self._playwright = None
        self._closed = False

    async def launch(self) -> BrowserContext:
        """Validate the extension root, then launch Chromium with only that extension enabled."""
        self.manifest = load_manifest(self.config.manifest_path)
        self.config.profile_dir.mkdir(parents=True, exist_ok=True)

        headless = not self.config.headed
        self.log.log(f"Launching Chromium ({'headless' if headless else 'headed'}) with extension...", "info")
        self.log.log(f"Extension path: {self.config.extension_root}", "debug")
        self.log.log(f"Profile dir: {self.config.profile_dir}", "debug")

        try:
            self._playwright = await self._playwright_factory().start()
            self.context = await self._playwright.chromium.launch_persistent_context(
                user_data_dir=str(self.config.profile_dir),
                headless=headless,
                executable_path=str(self.config.executable_path) if self.config.executable_path else None,
                # Playwright passes --disable-extensions by default, which would
                # block --load-extension.
                ignore_default_args=["--disable-extensions"],
                args=launch_args(self.config.extension_root),
            )
        except Exception as e:
            raise SetupError(f"Browser failed to launch: {e}") from e

        self.log.log("Chromium launched with extension", "success")
        return self.context

    async def close(self) -> None:
        """Close the context and stop Playwright. Runs at most once and never raises."""
        if self._closed:
            return
        self._closed = True
        debug = self.config.debug

        if self.context is not None:
            try:
                if debug:
                    self.log.log("finally: closing playwright context...", "info")
                await self.context.close()
                if debug:
                    self.log.log("finally: context closed", "info")
            except Exception as e:
                self.log.log(f"finally: error closing context: {e}", "error")

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                self.log.log(f"finally: error stopping playwright: {e}", "error")
