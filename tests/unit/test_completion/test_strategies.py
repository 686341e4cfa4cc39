"""Tests for the built-in completion strategies."""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path

import pytest

from replywatch.completion.registry import create_strategy
from replywatch.completion.session import TargetSession
from replywatch.completion.strategies import (
    ClipboardStrategy,
    DelayStrategy,
    FileStrategy,
    LatestFileStrategy,
    ScreenStrategy,
)
from replywatch.domain.models import WatchConfig
from replywatch.errors import WatchCancelledError, WatchTimeoutError
from replywatch.watcher.clipboard import ClipboardMonitor
from replywatch.watcher.files import FileSystemWatcher
from replywatch.watcher.screen import ScreenStabilityMonitor


async def _write_later(path: Path, content: str, delay: float = 0.05) -> None:
    await asyncio.sleep(delay)
    path.write_text(content, encoding="utf-8")


class TestFileStrategy:
    @pytest.mark.asyncio
    async def test_baseline_taken_in_prepare(self, tmp_path: Path, fast_config: WatchConfig) -> None:
        responses = tmp_path / "responses"
        strategy = FileStrategy(FileSystemWatcher(responses), fast_config)
        await strategy.open()
        (responses / "before.md").write_text("old")

        episode = TargetSession("App").begin_episode()
        await strategy.prepare(episode)
        writer = asyncio.create_task(_write_later(responses / "after.md", "new"))
        result = await strategy.wait(strategy.config, episode)
        await writer

        assert result.is_text
        assert result.payload.content == "new"
        assert result.strategy == "file"

    def test_housekeeping_purges_old_files(self, tmp_path: Path, fast_config: WatchConfig) -> None:
        old = tmp_path / "old.md"
        old.write_text("x")
        os.utime(old, (time.time() - 7200, time.time() - 7200))
        strategy = FileStrategy(FileSystemWatcher(tmp_path), fast_config, purge_max_age=3600)
        assert strategy.housekeeping() == 1


class TestLatestFileStrategy:
    @pytest.mark.asyncio
    async def test_uses_submission_time(self, tmp_path: Path, fast_config: WatchConfig) -> None:
        (tmp_path / "earlier.md").write_text("earlier")
        strategy = LatestFileStrategy(FileSystemWatcher(tmp_path), fast_config)

        episode = TargetSession("App").begin_episode()
        await asyncio.sleep(0.02)
        episode.submitted_at = time.time()
        writer = asyncio.create_task(_write_later(tmp_path / "reply.md", "reply"))
        result = await strategy.wait(strategy.config, episode)
        await writer

        assert result.payload.content == "reply"
        assert result.strategy == "latest_file"

    @pytest.mark.asyncio
    async def test_cancelled_by_episode(self, tmp_path: Path, fast_config: WatchConfig) -> None:
        strategy = LatestFileStrategy(FileSystemWatcher(tmp_path), fast_config)
        episode = TargetSession("App").begin_episode()
        episode.cancel.set()
        with pytest.raises(WatchCancelledError):
            await strategy.wait(strategy.config, episode)


class TestClipboardStrategy:
    @pytest.mark.asyncio
    async def test_stale_copy_is_cleared(self, clipboard, fast_config: WatchConfig) -> None:
        clipboard.pending[2] = "copied reply"
        strategy = ClipboardStrategy(ClipboardMonitor(clipboard), fast_config)

        episode = TargetSession("App").begin_episode()
        result = await strategy.wait(strategy.config, episode)

        assert clipboard.writes == [""]
        assert result.payload.content == "copied reply"

    @pytest.mark.asyncio
    async def test_check_available(self, clipboard, fast_config: WatchConfig) -> None:
        strategy = ClipboardStrategy(ClipboardMonitor(clipboard), fast_config)
        assert (await strategy.check_available()).available


class TestScreenStrategy:
    @pytest.mark.asyncio
    async def test_returns_image(self, scripted_capture) -> None:
        capture = scripted_capture([b"A", b"B", b"B", b"B"])
        config = WatchConfig(poll_interval=0.02, timeout=1.0, stabilization_count=2, stabilization_delay=0)
        strategy = ScreenStrategy(ScreenStabilityMonitor(capture), config)

        episode = TargetSession("App").begin_episode()
        await strategy.open()
        try:
            result = await strategy.wait(strategy.config, episode)
        finally:
            await strategy.close()

        assert result.is_image
        assert result.payload.path == capture.captured[1]


class TestDelayStrategy:
    @pytest.mark.asyncio
    async def test_waits_then_captures_once(self, scripted_capture) -> None:
        capture = scripted_capture([b"frame"])
        strategy = DelayStrategy(capture, wait=0.1)
        assert strategy.config.stabilization_delay == 0.1

        episode = TargetSession("App").begin_episode()
        started = time.monotonic()
        result = await strategy.wait(strategy.config, episode)

        assert time.monotonic() - started >= 0.1
        assert result.payload.path == capture.captured[0]
        assert len(capture.captured) == 1

    @pytest.mark.asyncio
    async def test_cancelled_before_capture(self, scripted_capture) -> None:
        capture = scripted_capture([b"frame"])
        strategy = DelayStrategy(capture, wait=5.0)
        episode = TargetSession("App").begin_episode()
        asyncio.get_running_loop().call_later(0.02, episode.cancel.set)

        with pytest.raises(WatchTimeoutError):
            await strategy.wait(strategy.config, episode)
        assert capture.captured == []


class TestFactories:
    def test_file_strategies_watch_responses_dir(self, settings) -> None:
        for name in ("file", "latest_file"):
            strategy = create_strategy(name, settings)
            assert strategy.watcher.watch_dir == settings.storage.responses_path

    def test_screen_strategy_config(self, settings) -> None:
        strategy = create_strategy("screen", settings)
        assert strategy.config.stabilization_count == 2

    def test_delay_strategy(self, settings) -> None:
        assert create_strategy("delay", settings).config.stabilization_delay == 0.05
