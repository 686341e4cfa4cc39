"""Built-in completion strategies."""

from __future__ import annotations

import logging
import time

from replywatch.capture import create_capture_source
from replywatch.capture.base import CaptureSource
from replywatch.completion.base import CompletionStrategy
from replywatch.completion.registry import register_strategy
from replywatch.config.settings import Settings
from replywatch.domain.models import (
    CompletionResult,
    DependencyStatus,
    WatchConfig,
    WatchEpisode,
)
from replywatch.watcher.clipboard import ClipboardMonitor, create_clipboard_backend
from replywatch.watcher.files import FileSystemWatcher
from replywatch.watcher.hashing import ContentHasher
from replywatch.watcher.polling import PollClock
from replywatch.watcher.screen import ScreenStabilityMonitor

logger = logging.getLogger(__name__)


class FileStrategy(CompletionStrategy):
    """Completes on the first new or modified response file."""

    def __init__(
        self,
        watcher: FileSystemWatcher,
        config: WatchConfig,
        purge_max_age: float = 3600.0,
    ) -> None:
        super().__init__(config)
        self._watcher = watcher
        self._purge_max_age = purge_max_age

    @property
    def name(self) -> str:
        return "file"

    @property
    def watcher(self) -> FileSystemWatcher:
        return self._watcher

    async def open(self) -> None:
        self._watcher.ensure_directory()

    async def prepare(self, episode: WatchEpisode) -> None:
        episode.baseline = self._watcher.snapshot()

    async def wait(self, config: WatchConfig, episode: WatchEpisode) -> CompletionResult:
        change = await self._watcher.wait_for_new_file(
            episode.baseline, config, episode.cancel, episode.started_at
        )
        return CompletionResult.text(change.content, self.name, self.elapsed(episode))

    async def check_available(self) -> DependencyStatus:
        return await self._watcher.check_available()

    def housekeeping(self) -> int:
        return self._watcher.purge_older_than(self._purge_max_age)


class LatestFileStrategy(FileStrategy):
    """Completes on the newest response file written after submission."""

    @property
    def name(self) -> str:
        return "latest_file"

    async def prepare(self, episode: WatchEpisode) -> None:
        # The reference instant is the submission time, set by the orchestrator
        pass

    async def wait(self, config: WatchConfig, episode: WatchEpisode) -> CompletionResult:
        reference = episode.submitted_at if episode.submitted_at is not None else time.time()
        change = await self._watcher.wait_for_latest_after(
            reference, config, episode.cancel, episode.started_at
        )
        return CompletionResult.text(change.content, self.name, self.elapsed(episode))


class ClipboardStrategy(CompletionStrategy):
    """Completes when new text is copied to the clipboard.

    The clipboard is cleared at the start of ``wait()``, i.e. after
    input delivery, because pasting the prompt goes through it.
    """

    def __init__(self, monitor: ClipboardMonitor, config: WatchConfig) -> None:
        super().__init__(config)
        self._monitor = monitor

    @property
    def name(self) -> str:
        return "clipboard"

    async def wait(self, config: WatchConfig, episode: WatchEpisode) -> CompletionResult:
        episode.baseline = ""
        content = await self._monitor.wait_for_new_content(
            config, episode.cancel, episode.started_at
        )
        return CompletionResult.text(content, self.name, self.elapsed(episode))

    async def check_available(self) -> DependencyStatus:
        return await self._monitor.backend.check_available()


class ScreenStrategy(CompletionStrategy):
    """Completes when consecutive screen captures stop changing."""

    def __init__(
        self,
        monitor: ScreenStabilityMonitor,
        config: WatchConfig,
        purge_max_age: float = 600.0,
    ) -> None:
        super().__init__(config)
        self._monitor = monitor
        self._purge_max_age = purge_max_age

    @property
    def name(self) -> str:
        return "screen"

    async def open(self) -> None:
        await self._monitor.capture.open()

    async def close(self) -> None:
        await self._monitor.capture.close()

    async def wait(self, config: WatchConfig, episode: WatchEpisode) -> CompletionResult:
        path = await self._monitor.wait_for_stable_screen(
            config, episode.cancel, episode.started_at
        )
        return CompletionResult.image(path, self.name, self.elapsed(episode))

    async def check_available(self) -> DependencyStatus:
        return await self._monitor.capture.check_available()

    def housekeeping(self) -> int:
        return self._monitor.purge_old_captures(self._purge_max_age)


class DelayStrategy(CompletionStrategy):
    """Waits a fixed time, then captures the screen once.

    The wait is the config's ``stabilization_delay``.
    """

    def __init__(self, capture: CaptureSource, wait: float) -> None:
        super().__init__(
            WatchConfig(
                poll_interval=wait,
                timeout=wait * 2,
                stabilization_count=1,
                stabilization_delay=wait,
            )
        )
        self._capture = capture

    @property
    def name(self) -> str:
        return "delay"

    async def open(self) -> None:
        await self._capture.open()

    async def close(self) -> None:
        await self._capture.close()

    async def wait(self, config: WatchConfig, episode: WatchEpisode) -> CompletionResult:
        clock = PollClock(config, episode.cancel, episode.started_at, label="delayed capture")
        logger.info("Waiting %.0fs before capturing", config.stabilization_delay)
        await clock.settle()
        clock.raise_if_cancelled()
        frame = await self._capture.capture_frame()
        return CompletionResult.image(frame.path, self.name, self.elapsed(episode))

    async def check_available(self) -> DependencyStatus:
        return await self._capture.check_available()


# ---------------------------------------------------------------------------
# Registered factories
# ---------------------------------------------------------------------------


def _response_watcher(settings: Settings) -> FileSystemWatcher:
    return FileSystemWatcher(
        settings.storage.responses_path,
        extensions=settings.file_watch.extensions,
        recursive=settings.file_watch.recursive,
    )


@register_strategy("file")
def _build_file(settings: Settings) -> CompletionStrategy:
    return FileStrategy(
        _response_watcher(settings),
        settings.file_watch,
        purge_max_age=settings.file_watch.purge_max_age,
    )


@register_strategy("latest_file")
def _build_latest_file(settings: Settings) -> CompletionStrategy:
    return LatestFileStrategy(
        _response_watcher(settings),
        settings.file_watch,
        purge_max_age=settings.file_watch.purge_max_age,
    )


@register_strategy("clipboard")
def _build_clipboard(settings: Settings) -> CompletionStrategy:
    backend = create_clipboard_backend(settings.clipboard.backend)
    return ClipboardStrategy(ClipboardMonitor(backend), settings.clipboard)


@register_strategy("screen")
def _build_screen(settings: Settings) -> CompletionStrategy:
    capture = create_capture_source(settings.screen, settings.storage.screenshots_path)
    monitor = ScreenStabilityMonitor(capture, ContentHasher(settings.screen.hash_algorithm))
    return ScreenStrategy(monitor, settings.screen, purge_max_age=settings.screen.purge_max_age)


@register_strategy("delay")
def _build_delay(settings: Settings) -> CompletionStrategy:
    capture = create_capture_source(settings.screen, settings.storage.screenshots_path)
    return DelayStrategy(capture, settings.delay.wait)
