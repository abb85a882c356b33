"""
The ordered E2E checks run against a live extension session.

Each check yields exactly one CheckOutcome. An exception inside a check is
recorded as that check's failure and the sequence carries on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from playwright.async_api import BrowserContext, Error as PlaywrightError, Page

from extension_e2e.config import MARKER_JS, HarnessConfig
from extension_e2e.diagnostics import PageEventForwarder, capture_screenshot, probe_page_state
from extension_e2e.identity import resolve_extension_id
from extension_e2e.log import HarnessLog
from extension_e2e.outcomes import CheckOutcome


SKIP_NO_EXTENSION_ID = "no-extension-id"

ECHO_REQUEST = {"operation": "echo_test", "payload": "ping"}
STORAGE_PING_REQUEST = {"operation": "ping_storage"}

# Set by SEND_MESSAGE_JS itself on timeout or exception, never by the extension.
HARNESS_ERROR_KEY = "__harnessError"

SEND_MESSAGE_JS = """
({ message, timeoutMs }) => new Promise((resolve) => {
    const timer = setTimeout(() => resolve({ __harnessError: `no response within ${timeoutMs}ms` }), timeoutMs);
    try {
        chrome.runtime.sendMessage(message, (r) => {
            clearTimeout(timer);
            // Touch lastError so "no listener" does not surface as an unchecked error.
            void (chrome.runtime && chrome.runtime.lastError);
            resolve(r === undefined ? null : r);
        });
    } catch (e) {
        clearTimeout(timer);
        resolve({ __harnessError: String(e) });
    }
})
"""


@dataclass
class CheckContext:
    context: BrowserContext
    config: HarnessConfig
    log: HarnessLog
    probe_url: str
    page: Page | None = None

    def require_page(self) -> Page:
        if self.page is None:
            raise RuntimeError("test page was never opened")
        return self.page

    async def close_page(self) -> None:
        page, self.page = self.page, None
        if page is None:
            return
        try:
            await page.close()
        except Exception as e:
            self.log.log(f"Error closing test page: {e}", "error")


def response_error(response: Any) -> str | None:
    """Error text from a timeout/exception in the page, or from an extension reply with a truthy `error`."""
    if not isinstance(response, dict):
        return None
    for key in (HARNESS_ERROR_KEY, "error"):
        if response.get(key):
            return str(response[key])
    return None


async def send_runtime_message(page: Page, message: dict, timeout_ms: int) -> Any:
    return await page.evaluate(SEND_MESSAGE_JS, {"message": message, "timeoutMs": timeout_ms})


async def check_background_pages(ctx: CheckContext, name: str) -> CheckOutcome:
    # Zero is informational: MV3 builds register a service worker instead.
    bgs = ctx.context.background_pages
    ctx.log.log(f"background pages count: {len(bgs)}", "info")
    return CheckOutcome(name=name, ok=True, payload=len(bgs))


async def check_content_injection(ctx: CheckContext, name: str) -> CheckOutcome:
    page = await ctx.context.new_page()
    ctx.page = page
    PageEventForwarder(ctx.log).attach(page)

    await page.goto(ctx.probe_url)
    await probe_page_state(page, ctx.config, ctx.log)

    await page.wait_for_timeout(1000)
    await page.wait_for_load_state("load")
    await page.wait_for_timeout(1000)
    # Reload in case the content script missed the first navigation.
    try:
        await page.reload()
    except PlaywrightError as e:
        ctx.log.log(f"Reload of test page failed: {e}", "warning")
    await page.wait_for_timeout(1500)

    injected = bool(await page.evaluate(MARKER_JS, ctx.config.contract.injection_attribute))
    if not injected:
        await capture_screenshot(page, "content-not-injected.png", ctx.config.artifacts_dir, ctx.log)
        ctx.log.log("Content script not injected", "error")
    else:
        ctx.log.log("Content script injected", "success")
    return CheckOutcome(name=name, ok=injected)


async def check_runtime_message(ctx: CheckContext, name: str) -> CheckOutcome:
    # A null response means no listener answered; that is accepted.
    response = await send_runtime_message(ctx.require_page(), ECHO_REQUEST, ctx.config.message_timeout_ms)
    ctx.log.log(f"runtime.sendMessage echo response: {response!r}", "info")
    if response is None:
        return CheckOutcome(name=name, ok=True, payload=None)
    error = response_error(response)
    if error:
        return CheckOutcome(name=name, ok=False, payload=response, error=error)
    return CheckOutcome(name=name, ok=isinstance(response, (dict, list)), payload=response)


async def check_popup_load(ctx: CheckContext, name: str) -> CheckOutcome:
    extension_id = resolve_extension_id(ctx.context)
    if not extension_id:
        ctx.log.log("Could not determine extension id; skipping popup checks", "warning")
        return CheckOutcome(name=name, ok=False, skip_reason=SKIP_NO_EXTENSION_ID)

    contract = ctx.config.contract
    popup_url = f"chrome-extension://{extension_id}/{contract.popup_path}"
    popup = await ctx.context.new_page()
    try:
        await popup.goto(popup_url)
        await popup.wait_for_timeout(800)
        found = await popup.query_selector(contract.popup_control_selector) is not None
        if not found:
            await capture_screenshot(popup, "popup-missing-record.png", ctx.config.artifacts_dir, ctx.log)
            ctx.log.log(f"Popup control {contract.popup_control_selector} not found", "error")
        return CheckOutcome(name=name, ok=found, payload=popup_url)
    finally:
        try:
            await popup.close()
        except Exception as e:
            ctx.log.log(f"Error closing popup page: {e}", "error")


async def check_storage_ping(ctx: CheckContext, name: str) -> CheckOutcome:
    response = await send_runtime_message(ctx.require_page(), STORAGE_PING_REQUEST, ctx.config.message_timeout_ms)
    ctx.log.log(f"ping_storage response: {response!r}", "info")
    error = response_error(response)
    if error:
        return CheckOutcome(name=name, ok=False, payload=response, error=error)
    return CheckOutcome(name=name, ok=bool(response), payload=response)


CheckFn = Callable[[CheckContext, str], Awaitable[CheckOutcome]]

DEFAULT_CHECKS: tuple[tuple[str, CheckFn], ...] = (
    ("background-pages", check_background_pages),
    ("content-injection", check_content_injection),
    ("runtime-sendMessage", check_runtime_message),
    ("popup-load", check_popup_load),
    ("background-storage-ping", check_storage_ping),
)


class CheckSequencer:
    def __init__(self, checks: tuple[tuple[str, CheckFn], ...] = DEFAULT_CHECKS):
        self.checks = checks

    async def run(self, ctx: CheckContext) -> list[CheckOutcome]:
        """Run every check in order; returns one outcome per check."""
        outcomes: list[CheckOutcome] = []
        try:
            for name, check in self.checks:
                ctx.log.log(f"check: {name}", "info")
                try:
                    outcome = await check(ctx, name)
                except Exception as e:
                    ctx.log.log(f"{name} check failed: {e!r}", "error")
                    outcome = CheckOutcome(name=name, ok=False, error=str(e) or type(e).__name__)
                outcomes.append(outcome)
        finally:
            await ctx.close_page()
        return outcomes
