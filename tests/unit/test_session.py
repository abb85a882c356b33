from __future__ import annotations

import dataclasses

import pytest

from extension_e2e.session import BrowserSession, SetupError, launch_args, load_manifest

from fakes import FakeContext, FakeManager


class TestManifest:
    def test_missing_manifest(self, tmp_path):
        with pytest.raises(SetupError, match="manifest.json not found"):
            load_manifest(tmp_path / "manifest.json")

    def test_unparseable_manifest(self, tmp_path):
        (tmp_path / "manifest.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(SetupError, match="not readable JSON"):
            load_manifest(tmp_path / "manifest.json")

    def test_manifest_must_be_object(self, tmp_path):
        (tmp_path / "manifest.json").write_text("[]", encoding="utf-8")
        with pytest.raises(SetupError, match="JSON object"):
            load_manifest(tmp_path / "manifest.json")

    def test_valid_manifest(self, extension_root):
        assert load_manifest(extension_root / "manifest.json")["manifest_version"] == 3


class TestLaunch:
    @pytest.mark.asyncio
    async def test_missing_manifest_never_starts_browser(self, config, log, tmp_path):
        manager = FakeManager()
        config = dataclasses.replace(config, extension_root=tmp_path / "empty")
        session = BrowserSession(config, log, playwright_factory=lambda: manager)

        with pytest.raises(SetupError):
            await session.launch()

        assert manager.started == 0
        assert session.context is None

    @pytest.mark.asyncio
    async def test_launch_loads_only_the_extension(self, config, log):
        manager = FakeManager()
        session = BrowserSession(config, log, playwright_factory=lambda: manager)

        context = await session.launch()

        kwargs = manager.play.chromium.launch_kwargs
        assert context is manager.play.chromium.context
        assert kwargs["headless"] is True
        assert kwargs["ignore_default_args"] == ["--disable-extensions"]
        assert kwargs["user_data_dir"] == str(config.profile_dir)
        assert config.profile_dir.is_dir()
        assert f"--load-extension={config.extension_root.absolute()}" in kwargs["args"]
        assert f"--disable-extensions-except={config.extension_root.absolute()}" in kwargs["args"]
        assert "--no-sandbox" in kwargs["args"]
        assert "--disable-gpu" in kwargs["args"]

    @pytest.mark.asyncio
    async def test_headed_config(self, config, log):
        manager = FakeManager()
        session = BrowserSession(dataclasses.replace(config, headed=True), log, playwright_factory=lambda: manager)
        await session.launch()
        assert manager.play.chromium.launch_kwargs["headless"] is False

    @pytest.mark.asyncio
    async def test_launch_failure_is_setup_error(self, config, log):
        manager = FakeManager(launch_error=RuntimeError("chromium not found"))
        session = BrowserSession(config, log, playwright_factory=lambda: manager)

        with pytest.raises(SetupError, match="chromium not found"):
            await session.launch()

        await session.close()
        assert manager.play.stopped == 1

    def test_launch_args_disable_container_features(self, extension_root):
        args = launch_args(extension_root)
        assert "--disable-dev-shm-usage" in args


class TestClose:
    @pytest.mark.asyncio
    async def test_close_runs_once(self, config, log):
        context = FakeContext()
        manager = FakeManager(context)
        session = BrowserSession(config, log, playwright_factory=lambda: manager)
        await session.launch()

        await session.close()
        await session.close()

        assert context.close_calls == 1
        assert manager.play.stopped == 1

    @pytest.mark.asyncio
    async def test_close_before_launch(self, config, log):
        session = BrowserSession(config, log, playwright_factory=FakeManager)
        await session.close()

    @pytest.mark.asyncio
    async def test_close_errors_are_logged_not_raised(self, config, log):
        context = FakeContext(close_error=RuntimeError("target closed"))
        manager = FakeManager(context)
        session = BrowserSession(config, log, playwright_factory=lambda: manager)
        await session.launch()

        await session.close()

        assert "target closed" in log.text("error")
        assert manager.play.stopped == 1

    @pytest.mark.asyncio
    async def test_debug_logs_close_ordering(self, config, log):
        manager = FakeManager()
        session = BrowserSession(dataclasses.replace(config, debug=True), log, playwright_factory=lambda: manager)
        await session.launch()
        await session.close()

        text = log.text()
        assert text.index("closing playwright context") < text.index("context closed")
