"""
Loopback HTTP server for the synthetic probe page.

Chromium does not reliably inject content scripts into file:// or data:
documents, so the page is served over 127.0.0.1 on an ephemeral port.
"""

from __future__ import annotations

import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import quote

from extension_e2e.log import HarnessLog


PROBE_HTML = '<html><body><h1 id="hello">Hello E2E</h1><button id="btn">Click</button></body></html>'


def fallback_url() -> str:
    """Inline copy of the probe page, used when the server cannot start."""
    return "data:text/html," + quote(PROBE_HTML)


class _ProbeHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:
        body = PROBE_HTML.encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "text/html")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *_args: Any) -> None:
        return


class ProbeServer:
    def __init__(self, log: HarnessLog, host: str = "127.0.0.1"):
        self.log = log
        self.host = host
        self._httpd: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> str:
        """Bind to an OS-assigned port and serve in a daemon thread; returns the page URL."""
        self._httpd = ThreadingHTTPServer((self.host, 0), _ProbeHandler)
        port = self._httpd.server_address[1]
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)
        self._thread.start()
        url = f"http://{self.host}:{port}/"
        self.log.log(f"Probe server listening on {url}", "debug")
        return url

    def start_or_fallback(self) -> str:
        try:
            return self.start()
        except OSError as e:
            self.log.log(f"Failed to start local test server; falling back to data URL: {e}", "warning")
            return fallback_url()

    def stop(self) -> None:
        """Shut the server down. Safe to call more than once or before start()."""
        httpd, self._httpd = self._httpd, None
        if httpd is None:
            return
        try:
            httpd.shutdown()
            httpd.server_close()
        except Exception as e:
            self.log.log(f"Error closing local test server: {e}", "error")
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
