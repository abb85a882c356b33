"""
Diagnostic probes.

Everything here is best-effort: errors are logged and dropped so a probe can
never flip a check result. Check assertions live in `checks.py` and have
their own error handling.
"""

from __future__ import annotations

from pathlib import Path

from playwright.async_api import BrowserContext, ConsoleMessage, Page

from extension_e2e.artifacts import artifact_path
from extension_e2e.config import MARKER_JS, HarnessConfig
from extension_e2e.identity import parse_identifier_from_url
from extension_e2e.log import HarnessLog


FETCH_TIMEOUT_MS = 3000
SNIPPET_CHARS = 500

_PAGE_TEXT_JS = """
() => {
    const t = document.documentElement && document.documentElement.innerText;
    return t ? t.slice(0, 2000) : '';
}
"""


class PageEventForwarder:
    """Forwards a page's console messages and uncaught errors to the harness log."""

    def __init__(self, log: HarnessLog):
        self.log = log
        self._page: Page | None = None

    def attach(self, page: Page) -> None:
        self._page = page
        page.on("console", self._on_console)
        page.on("pageerror", self._on_page_error)
        page.on("close", self._on_close)

    def detach(self) -> None:
        page, self._page = self._page, None
        if page is None:
            return
        for event, handler in (
            ("console", self._on_console),
            ("pageerror", self._on_page_error),
            ("close", self._on_close),
        ):
            try:
                page.remove_listener(event, handler)
            except Exception as e:
                self.log.log(f"diagnostic: could not unsubscribe {event}: {e}", "debug")

    def _on_console(self, msg: ConsoleMessage) -> None:
        try:
            self.log.log(f"page.console: {msg.type} {msg.text}", "info")
        except Exception as e:
            self.log.log(f"page.console handler error: {e}", "error")

    def _on_page_error(self, error) -> None:
        self.log.log(f"page.pageerror: {error}", "error")

    def _on_close(self, _page: Page) -> None:
        self.detach()


async def capture_screenshot(page: Page, label: str, artifacts_dir: Path, log: HarnessLog) -> Path | None:
    try:
        path = artifact_path(label, artifacts_dir)
        await page.screenshot(path=str(path))
    except Exception as e:
        log.log(f"diagnostic: screenshot '{label}' failed: {e}", "error")
        return None
    log.log(f"Screenshot saved: {path}", "info")
    return path


async def capture_all_pages(context: BrowserContext | None, artifacts_dir: Path, log: HarnessLog) -> None:
    if context is None:
        return
    try:
        pages = list(context.pages)
    except Exception as e:
        log.log(f"diagnostic: could not list pages: {e}", "error")
        return
    for i, page in enumerate(pages):
        await capture_screenshot(page, f"error-page-{i}.png", artifacts_dir, log)


async def _fetch_snippet(page: Page, url: str, what: str, log: HarnessLog) -> None:
    log.log(f"diagnostic: trying to open {url}", "info")
    try:
        await page.goto(url, wait_until="domcontentloaded", timeout=FETCH_TIMEOUT_MS)
    except Exception as e:
        log.log(f"diagnostic: {what} fetch failed: {e}", "error")
    try:
        body = await page.evaluate(_PAGE_TEXT_JS)
        log.log(f"diagnostic: {what} snippet {(body or '')[:SNIPPET_CHARS]}", "info")
    except Exception as e:
        log.log(f"diagnostic: {what} read failed: {e}", "error")


async def probe_extension_startup(context: BrowserContext, config: HarnessConfig, log: HarnessLog) -> None:
    """Log which extension contexts registered, and fetch the manifest and content script when possible."""
    try:
        bg_pages = context.background_pages
        log.log(f"diagnostic: backgroundPages count after wait {len(bg_pages)}", "info")
        for i, bg in enumerate(bg_pages):
            log.log(f"diagnostic: bgpage {i} {bg.url}", "info")
    except Exception as e:
        log.log(f"diagnostic: backgroundPages error: {e}", "error")

    try:
        workers = context.service_workers
        log.log(f"diagnostic: serviceWorkers count after wait {len(workers)}", "info")
        for i, sw in enumerate(workers):
            log.log(f"diagnostic: serviceWorker {i} {sw.url}", "info")
    except Exception as e:
        log.log(f"diagnostic: serviceWorkers error: {e}", "error")
        return
    if not workers:
        return

    ext_id = parse_identifier_from_url(workers[0].url)
    if not ext_id:
        return
    log.log(f"diagnostic: inferred extension id {ext_id}", "info")

    try:
        debug_page = await context.new_page()
    except Exception as e:
        log.log(f"diagnostic: debug fetch page failed: {e}", "error")
        return
    try:
        await _fetch_snippet(debug_page, f"chrome-extension://{ext_id}/manifest.json", "manifest", log)
        await _fetch_snippet(
            debug_page,
            f"chrome-extension://{ext_id}/{config.contract.content_script_path}",
            "content script",
            log,
        )
    finally:
        try:
            await debug_page.close()
        except Exception as e:
            log.log(f"diagnostic: debug page close failed: {e}", "error")


async def probe_page_state(page: Page, config: HarnessConfig, log: HarnessLog) -> None:
    try:
        log.log(f"diagnostic: navigated to {page.url}", "info")
        ua = await page.evaluate("() => navigator.userAgent")
        log.log(f"diagnostic: page userAgent {ua}", "info")
        has_chrome = await page.evaluate("() => typeof chrome !== 'undefined'")
        log.log(f"diagnostic: page has chrome global? {has_chrome}", "info")
        marked = await page.evaluate(MARKER_JS, config.contract.injection_attribute)
        log.log(f"diagnostic: injection marker initial? {marked}", "info")
    except Exception as e:
        log.log(f"diagnostic: page eval error: {e}", "error")
