"""Shared test fixtures for the replywatch test suite.

Provides scaled-down watch timings, scripted capture sources and
clipboards, and settings rooted in a temporary directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence

import numpy as np
import pytest

from replywatch.capture.base import CaptureError, CaptureSource
from replywatch.config.settings import Settings, StorageConfig
from replywatch.domain.models import CapturedFrame, DependencyStatus, WatchConfig
from replywatch.errors import AutomationFailure
from replywatch.watcher.clipboard import ClipboardBackend


# ---------------------------------------------------------------------------
# Timing Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fast_config() -> WatchConfig:
    """Watch timings scaled down so a test finishes in well under a second."""
    return WatchConfig(
        poll_interval=0.02,
        timeout=1.0,
        stabilization_count=1,
        stabilization_delay=0.0,
    )


@pytest.fixture
def sample_image() -> np.ndarray:
    """A 64x64 white image with a black bar."""
    image = np.full((64, 64, 3), 255, dtype=np.uint8)
    image[20:30, 8:56] = 0
    return image


# ---------------------------------------------------------------------------
# Scripted Capture Source
# ---------------------------------------------------------------------------


class ScriptedCapture(CaptureSource):
    """Writes a scripted sequence of byte payloads as capture artifacts.

    Each capture_frame() consumes the next item; an exception item is
    raised instead. Once the script runs out, the last payload repeats.
    """

    name = "scripted"

    def __init__(self, output_dir: Path, script: Sequence[bytes | Exception]) -> None:
        super().__init__(output_dir, prefix="monitor_")
        self._script = list(script)
        self._index = 0
        self._last: bytes | None = None
        self.captured: list[Path] = []

    async def capture_frame(self) -> CapturedFrame:
        if self._index < len(self._script):
            item = self._script[self._index]
            self._index += 1
        elif self._last is not None:
            item = self._last
        else:
            raise CaptureError("script exhausted", backend=self.name)
        if isinstance(item, Exception):
            raise item
        self._last = item
        path = self._output_dir / f"{self._prefix}{len(self.captured):04d}.png"
        self._output_dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(item)
        self.captured.append(path)
        return self._make_frame(path)

    async def check_available(self) -> DependencyStatus:
        return DependencyStatus(name="scripted", available=True, detail="test")


@pytest.fixture
def scripted_capture(tmp_path: Path) -> Callable[[Sequence[bytes | Exception]], ScriptedCapture]:
    """Factory for ScriptedCapture instances writing under tmp_path."""

    def make(script: Sequence[bytes | Exception]) -> ScriptedCapture:
        return ScriptedCapture(tmp_path / "shots", script)

    return make


# ---------------------------------------------------------------------------
# Scripted Clipboard
# ---------------------------------------------------------------------------


class ScriptedClipboard(ClipboardBackend):
    """In-memory clipboard that can change its value after N reads."""

    name = "scripted"

    def __init__(self, value: str = "") -> None:
        self.value = value
        self.reads = 0
        self.writes: list[str] = []
        self.pending: dict[int, str | Exception] = {}

    async def read(self) -> str:
        self.reads += 1
        item = self.pending.pop(self.reads, None)
        if isinstance(item, Exception):
            raise item
        if item is not None:
            self.value = item
        return self.value

    async def write(self, text: str) -> None:
        self.writes.append(text)
        self.value = text

    async def check_available(self) -> DependencyStatus:
        return DependencyStatus(name="scripted", available=True, detail="test")


@pytest.fixture
def clipboard() -> ScriptedClipboard:
    """A clipboard holding stale content from before the episode."""
    return ScriptedClipboard("stale text from earlier")


class FailingClipboard(ScriptedClipboard):
    async def write(self, text: str) -> None:
        raise AutomationFailure("pasteboard locked", backend=self.name)


@pytest.fixture
def failing_clipboard() -> FailingClipboard:
    return FailingClipboard("")


# ---------------------------------------------------------------------------
# Settings Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with scratch storage under tmp_path and fast timings."""
    return Settings(
        storage=StorageConfig(root=tmp_path / "scratch"),
        file_watch={
            "poll_interval": 0.02,
            "timeout": 2.0,
            "stabilization_delay": 0.0,
        },
        clipboard={"poll_interval": 0.02, "timeout": 1.0},
        screen={
            "poll_interval": 0.02,
            "timeout": 1.0,
            "stabilization_count": 2,
            "stabilization_delay": 0.0,
        },
        delay={"wait": 0.05},
        automation={"backend": "manual"},
        extraction={"enabled": False},
    )
