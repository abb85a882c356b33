"""Extension id discovery from live background / service worker contexts."""

from __future__ import annotations

import re

from playwright.async_api import BrowserContext


EXTENSION_URL_RE = re.compile(r"^chrome-extension://([a-zA-Z0-9_\-]+)/.*$")


def parse_identifier_from_url(url: str | None) -> str | None:
    if not url:
        return None
    m = EXTENSION_URL_RE.match(url)
    return m.group(1) if m else None


def resolve_extension_id(context: BrowserContext) -> str | None:
    """Return the extension id, or None if no extension context is visible.

    MV2 builds expose a persistent background page, MV3 builds a service
    worker; either may be the only one present.
    """
    background_pages = context.background_pages
    if background_pages:
        ext_id = parse_identifier_from_url(background_pages[0].url)
        if ext_id:
            return ext_id

    service_workers = context.service_workers
    if service_workers:
        return parse_identifier_from_url(service_workers[0].url)

    return None
