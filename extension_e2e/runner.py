"""
End-to-end harness for the unpacked browser extension.

Launches Chromium with the extension loaded, then checks:
- background page / service worker registration
- content script injection into a page served from 127.0.0.1
- runtime messaging round trips (echo_test, ping_storage)
- popup page loads and exposes its main control
Screenshots of failures are written to test/artifacts/.

Exit status: 0 all passed or skipped, 2 check failures, 3 harness error.

Usage:
    python -m extension_e2e.runner [--extension-root DIR] [--headed] [--debug]
    E2E_HEADED=1 E2E_DEBUG=1 extension-e2e
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
import threading
from pathlib import Path

from extension_e2e.checks import DEFAULT_CHECKS, CheckContext, CheckSequencer
from extension_e2e.config import HarnessConfig
from extension_e2e.diagnostics import capture_all_pages, probe_extension_startup
from extension_e2e.log import HarnessLog
from extension_e2e.outcomes import EXIT_HARNESS_ERROR, RunResult, report
from extension_e2e.probe_server import ProbeServer
from extension_e2e.session import BrowserSession, SetupError


async def run_harness(
    config: HarnessConfig,
    log: HarnessLog,
    session: BrowserSession | None = None,
    server: ProbeServer | None = None,
    checks=DEFAULT_CHECKS,
) -> RunResult:
    session = session or BrowserSession(config, log)
    server = server or ProbeServer(log)
    outcomes: list = []
    try:
        context = await session.launch()
        # Give the background page / service worker time to register.
        await asyncio.sleep(config.startup_wait_s)
        await probe_extension_startup(context, config, log)

        probe_url = server.start_or_fallback()
        outcomes = await CheckSequencer(checks).run(CheckContext(context, config, log, probe_url))
        return RunResult(outcomes=tuple(outcomes))
    except SetupError as e:
        log.log(str(e), "error")
        return RunResult(harness_error=str(e))
    except Exception as e:
        log.log(f"E2E harness error: {e!r}", "error")
        await capture_all_pages(session.context, config.artifacts_dir, log)
        return RunResult(outcomes=tuple(outcomes), harness_error=repr(e))
    finally:
        await session.close()
        if config.debug:
            log.log("finally: closing local test server...", "info")
        server.stop()
        if config.debug:
            log.log("finally: server closed", "info")


def schedule_forced_exit(status: int, delay_s: float, log: HarnessLog) -> threading.Timer:
    """Kill the process after `delay_s` in case a browser/driver process keeps it alive."""

    def _exit() -> None:
        log.log(f"exiting process explicitly with code {status}", "info")
        os._exit(status)

    timer = threading.Timer(delay_s, _exit)
    timer.daemon = True
    timer.start()
    return timer


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Browser extension E2E harness (Chromium, unpacked extension).")
    parser.add_argument("--extension-root", type=Path, default=None, help="Directory containing manifest.json (default: cwd)")
    parser.add_argument("--headed", action="store_true", help="Force a headed browser (same as E2E_HEADED=1)")
    parser.add_argument("--debug", action="store_true", help="Debug output and forced-exit safety valve (same as E2E_DEBUG=1)")
    parser.add_argument("--executable-path", type=Path, default=None, help="Chromium binary (default: /usr/bin/chromium if present)")
    parser.add_argument("--artifacts-dir", type=Path, default=None, help="Where failure screenshots go (default: ./test/artifacts)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    overrides = {}
    if args.headed:
        overrides["headed"] = True
    if args.debug:
        overrides["debug"] = True
    if args.executable_path:
        overrides["executable_path"] = args.executable_path
    if args.artifacts_dir:
        overrides["artifacts_dir"] = args.artifacts_dir.resolve()
    config = HarnessConfig.from_env(os.environ, extension_root=args.extension_root, **overrides)
    log = HarnessLog(debug=config.debug)

    try:
        result = asyncio.run(run_harness(config, log))
    except Exception as e:
        log.log(f"E2E harness crashed: {e!r}", "error")
        status = EXIT_HARNESS_ERROR
    else:
        status = report(result, log)

    # Only in debug mode, so CI runs exit with their natural status.
    if config.debug:
        schedule_forced_exit(status, config.force_exit_delay_s, log)
    return status


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
