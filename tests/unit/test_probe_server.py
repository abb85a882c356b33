from __future__ import annotations

import urllib.request

import pytest

import extension_e2e.probe_server as probe_server
from extension_e2e.probe_server import PROBE_HTML, ProbeServer, fallback_url


@pytest.mark.slow
class TestProbeServer:
    def test_serves_probe_page_on_loopback(self, log):
        server = ProbeServer(log)
        url = server.start()
        try:
            assert url.startswith("http://127.0.0.1:")
            assert not url.endswith(":0/")
            with urllib.request.urlopen(url, timeout=5) as resp:
                body = resp.read().decode("utf-8")
                assert resp.headers["Content-Type"] == "text/html"
            assert 'id="hello"' in body
            assert 'id="btn"' in body
        finally:
            server.stop()

    def test_any_path_gets_the_same_page(self, log):
        server = ProbeServer(log)
        url = server.start()
        try:
            with urllib.request.urlopen(url + "some/other/path", timeout=5) as resp:
                assert resp.read().decode("utf-8") == PROBE_HTML
        finally:
            server.stop()

    def test_two_servers_get_different_ports(self, log):
        a, b = ProbeServer(log), ProbeServer(log)
        try:
            assert a.start() != b.start()
        finally:
            a.stop()
            b.stop()

    def test_stop_is_idempotent(self, log):
        server = ProbeServer(log)
        server.stop()
        server.start()
        server.stop()
        server.stop()


class TestFallback:
    def test_fallback_url_is_inline_document(self):
        url = fallback_url()
        assert url.startswith("data:text/html,")
        assert "hello" in url

    def test_start_failure_degrades_to_inline_document(self, log, monkeypatch):
        def refuse(*_args, **_kwargs):
            raise OSError("address unavailable")

        monkeypatch.setattr(probe_server, "ThreadingHTTPServer", refuse)
        server = ProbeServer(log)

        assert server.start_or_fallback() == fallback_url()
        assert "falling back to data URL" in log.text("warning")
        server.stop()
