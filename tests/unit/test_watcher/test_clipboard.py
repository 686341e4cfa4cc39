"""Tests for clipboard-content diffing."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from replywatch.domain.models import WatchConfig
from replywatch.errors import AutomationFailure, WatchCancelledError, WatchTimeoutError
from replywatch.utils.process import CommandResult
from replywatch.watcher.clipboard import (
    ClipboardMonitor,
    PasteboardBackend,
    PyperclipBackend,
    create_clipboard_backend,
)


class TestClipboardMonitor:
    @pytest.mark.asyncio
    async def test_clears_then_returns_new_content(
        self, clipboard, fast_config: WatchConfig
    ) -> None:
        clipboard.pending[3] = "hello"
        monitor = ClipboardMonitor(clipboard)

        content = await monitor.wait_for_new_content(fast_config)

        assert content == "hello"
        assert clipboard.writes == [""]

    @pytest.mark.asyncio
    async def test_stale_content_is_not_a_response(self, clipboard) -> None:
        """Content equal to the initial value never counts."""
        config = WatchConfig(poll_interval=0.02, timeout=0.15, stabilization_delay=0)
        monitor = ClipboardMonitor(clipboard)
        with pytest.raises(WatchTimeoutError):
            await monitor.wait_for_change(clipboard.value, config)

    @pytest.mark.asyncio
    async def test_empty_clipboard_times_out(self, clipboard) -> None:
        config = WatchConfig(poll_interval=0.02, timeout=0.15, stabilization_delay=0)
        monitor = ClipboardMonitor(clipboard)
        with pytest.raises(WatchTimeoutError, match="clipboard watch timed out"):
            await monitor.wait_for_new_content(config)
        assert clipboard.reads >= 2

    @pytest.mark.asyncio
    async def test_read_failure_is_retried(self, clipboard, fast_config: WatchConfig) -> None:
        clipboard.pending[1] = AutomationFailure("pasteboard busy")
        clipboard.pending[2] = "answer"
        monitor = ClipboardMonitor(clipboard)

        assert await monitor.wait_for_change("", fast_config) == "answer"

    @pytest.mark.asyncio
    async def test_clear_failure_is_logged(self, failing_clipboard, fast_config: WatchConfig) -> None:
        failing_clipboard.pending[2] = "late copy"
        monitor = ClipboardMonitor(failing_clipboard)
        assert await monitor.wait_for_new_content(fast_config) == "late copy"

    @pytest.mark.asyncio
    async def test_cancelled(self, clipboard, fast_config: WatchConfig) -> None:
        cancel = asyncio.Event()
        monitor = ClipboardMonitor(clipboard)

        async def cancel_later() -> None:
            await asyncio.sleep(0.05)
            cancel.set()

        canceller = asyncio.create_task(cancel_later())
        with pytest.raises(WatchCancelledError):
            await monitor.wait_for_new_content(fast_config, cancel)
        await canceller


class TestPasteboardBackend:
    @pytest.mark.asyncio
    async def test_read(self) -> None:
        with patch(
            "replywatch.watcher.clipboard.run_command",
            AsyncMock(return_value=CommandResult(0, "copied text", "")),
        ) as run:
            assert await PasteboardBackend().read() == "copied text"
        assert run.call_args.args[0] == ["pbpaste"]

    @pytest.mark.asyncio
    async def test_write_passes_stdin(self) -> None:
        with patch(
            "replywatch.watcher.clipboard.run_command",
            AsyncMock(return_value=CommandResult(0, "", "")),
        ) as run:
            await PasteboardBackend().write("prompt")
        assert run.call_args.kwargs["input_text"] == "prompt"

    @pytest.mark.asyncio
    async def test_missing_tool(self) -> None:
        with patch(
            "replywatch.watcher.clipboard.run_command",
            AsyncMock(side_effect=FileNotFoundError("pbpaste")),
        ):
            with pytest.raises(AutomationFailure):
                await PasteboardBackend().read()


class TestPyperclipBackend:
    @pytest.mark.asyncio
    async def test_read_wraps_errors(self) -> None:
        import pyperclip

        with patch("pyperclip.paste", side_effect=pyperclip.PyperclipException("no display")):
            with pytest.raises(AutomationFailure, match="no display"):
                await PyperclipBackend().read()

    @pytest.mark.asyncio
    async def test_write(self) -> None:
        with patch("pyperclip.copy") as copy:
            await PyperclipBackend().write("text")
        copy.assert_called_once_with("text")


def test_create_clipboard_backend() -> None:
    assert isinstance(create_clipboard_backend("pasteboard"), PasteboardBackend)
    assert isinstance(create_clipboard_backend("pyperclip"), PyperclipBackend)
