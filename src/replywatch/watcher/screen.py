"""Screen-state stabilization.

Decides that the target application has finished rendering its answer
once consecutive screen captures stop changing. Captures are compared
by content digest, never pixel by pixel.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from replywatch.capture.base import CaptureSource
from replywatch.domain.models import Snapshot, WatchConfig
from replywatch.errors import AutomationFailure
from replywatch.watcher.hashing import ContentHasher
from replywatch.watcher.polling import PollClock

logger = logging.getLogger(__name__)


class ScreenStabilityMonitor:
    """Polls screen captures until the display holds still.

    Example usage::

        async with MssScreenCapture(output_dir=shots) as capture:
            monitor = ScreenStabilityMonitor(capture, ContentHasher())
            path = await monitor.wait_for_stable_screen(config)
    """

    def __init__(self, capture: CaptureSource, hasher: ContentHasher | None = None) -> None:
        self._capture = capture
        self._hasher = hasher or ContentHasher()
        self._in_flight: set[Path] = set()

    @property
    def capture(self) -> CaptureSource:
        return self._capture

    async def wait_for_stable_screen(
        self,
        config: WatchConfig,
        cancel: asyncio.Event | None = None,
        started: float | None = None,
    ) -> Path:
        """Wait until ``stabilization_count`` consecutive captures match.

        The first capture becomes the baseline. Each later capture whose
        digest equals the baseline's extends the run; a differing capture
        becomes the new baseline and restarts the count.

        Args:
            config: Poll interval, stable-frame count, deadline, and the
                    delay before the first capture.
            cancel: Optional event that aborts the wait.
            started: Monotonic start of the deadline (default: now).

        Returns:
            Path of the capture that started the stable run. On timeout,
            the most recent capture instead (logged as a warning).

        Raises:
            WatchTimeoutError: If the deadline passed without any capture.
            WatchCancelledError: If ``cancel`` was set.
        """
        clock = PollClock(config, cancel, started, label="screen watch")
        baseline: Snapshot | None = None
        latest: Path | None = None
        stable = 0

        logger.info(
            "Monitoring screen for a stable state (%d frames, timeout %.0fs)",
            config.stabilization_count, config.timeout,
        )
        await clock.settle()

        try:
            while True:
                clock.raise_if_cancelled(partial=_as_str(latest))
                if clock.expired:
                    if latest is not None:
                        logger.warning(
                            "Screen never stabilized within %.0fs, returning last capture %s",
                            config.timeout, latest.name,
                        )
                        return latest
                    raise clock.timeout_error()

                snapshot = await self._take_snapshot()
                if snapshot is not None:
                    latest = snapshot.source_path
                    self._in_flight.add(latest)

                    if baseline is not None and snapshot.digest == baseline.digest:
                        stable += 1
                        logger.debug(
                            "Screen unchanged (%d/%d)", stable, config.stabilization_count
                        )
                        if stable >= config.stabilization_count:
                            logger.info("Screen stable after %.1fs", clock.elapsed)
                            return baseline.source_path
                    else:
                        if stable:
                            logger.debug("Screen changed, resetting stability counter")
                        stable = 0
                        if baseline is not None:
                            self._in_flight.discard(baseline.source_path)
                        baseline = snapshot

                    if latest != baseline.source_path:
                        self._in_flight.discard(latest)

                await clock.tick()
        finally:
            self._in_flight.clear()

    async def _take_snapshot(self) -> Snapshot | None:
        """Capture and digest one frame; failures are logged and skipped."""
        try:
            frame = await self._capture.capture_frame()
        except AutomationFailure as e:
            logger.warning("Screen capture failed, retrying: %s", e)
            return None
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._hasher.snapshot, frame)
        except OSError as e:
            logger.warning("Could not hash %s, retrying: %s", frame.path, e)
            return None

    def purge_old_captures(self, max_age: float, now: float | None = None) -> int:
        """Delete capture artifacts older than ``max_age`` seconds.

        Only files carrying the capture source's prefix are considered,
        and files referenced by a comparison in progress are kept.
        """
        directory = self._capture.output_dir
        cutoff = (time.time() if now is None else now) - max_age
        removed = 0
        try:
            entries = list(directory.glob(f"{self._capture.prefix}*"))
        except OSError as e:
            logger.warning("Cannot list %s: %s", directory, e)
            return 0
        for path in entries:
            if path in self._in_flight or not path.is_file():
                continue
            try:
                if path.stat().st_mtime >= cutoff:
                    continue
                path.unlink()
                removed += 1
            except OSError as e:
                logger.warning("Could not remove %s: %s", path, e)
        if removed:
            logger.info("Purged %d old captures from %s", removed, directory)
        return removed


def _as_str(path: Path | None) -> str | None:
    return str(path) if path is not None else None
