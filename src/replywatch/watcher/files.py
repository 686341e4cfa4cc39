"""Response-file watching.

The target application (or the user, following instructions) writes its
answer into a dedicated scratch directory. This module polls that
directory for new or modified text files. There is no atomic-write
guarantee from the producer, so every detection waits a settle delay
before the content is read.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Iterable

from replywatch.domain.models import DependencyStatus, FileChange, WatchConfig
from replywatch.errors import AutomationFailure
from replywatch.watcher.polling import PollClock, sleep_unless_cancelled

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".txt", ".md", ".json")


class FileSystemWatcher:
    """Polls a directory for new or modified response files."""

    def __init__(
        self,
        watch_dir: Path | str,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        recursive: bool = True,
    ) -> None:
        self._watch_dir = Path(watch_dir).expanduser()
        self._extensions = {ext.lower() for ext in extensions}
        self._recursive = recursive

    @property
    def watch_dir(self) -> Path:
        return self._watch_dir

    def ensure_directory(self) -> None:
        """Create the watch directory.

        Raises:
            AutomationFailure: If the directory cannot be created.
        """
        try:
            self._watch_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise AutomationFailure(
                f"Cannot create watch directory {self._watch_dir}: {e}", backend="files"
            ) from e

    def snapshot(self) -> dict[Path, float]:
        """Return path -> modification time for every watched file."""
        states: dict[Path, float] = {}
        for path in self._iter_files():
            try:
                states[path] = path.stat().st_mtime
            except OSError:
                # Vanished between listing and stat
                continue
        return states

    def changed_since(self, baseline: dict[Path, float]) -> list[Path]:
        """Paths that are new or strictly newer than in ``baseline``."""
        current = self.snapshot()
        return [
            path
            for path in sorted(current)
            if path not in baseline or current[path] > baseline[path]
        ]

    async def wait_for_new_file(
        self,
        baseline: dict[Path, float] | None,
        config: WatchConfig,
        cancel: asyncio.Event | None = None,
        started: float | None = None,
    ) -> FileChange:
        """Wait for the first file that differs from ``baseline``.

        Args:
            baseline: Path -> mtime map to compare against. None takes a
                      fresh snapshot now.
            config: Poll interval, settle delay and deadline.
            cancel: Optional event that aborts the wait.
            started: Monotonic start of the deadline (default: now).

        Returns:
            The first changed file in poll order, with its content.

        Raises:
            WatchTimeoutError: If nothing changed before the deadline.
            WatchCancelledError: If ``cancel`` was set.
        """
        if baseline is None:
            baseline = self.snapshot()
        clock = PollClock(config, cancel, started, label="file watch")
        logger.info(
            "Watching %s for new files (%d known, timeout %.0fs)",
            self._watch_dir, len(baseline), config.timeout,
        )

        while True:
            clock.raise_if_cancelled()
            if clock.expired:
                raise clock.timeout_error()

            for path in self.changed_since(baseline):
                logger.info("Detected file change: %s", path.name)
                await clock.settle()
                clock.raise_if_cancelled()
                change = self._read_change(path)
                if change is not None:
                    return change

            await clock.tick()

    async def wait_for_latest_after(
        self,
        reference: float | datetime,
        config: WatchConfig,
        cancel: asyncio.Event | None = None,
        started: float | None = None,
    ) -> FileChange:
        """Wait for files modified after ``reference`` and return the newest.

        Args:
            reference: Reference instant, epoch seconds or a datetime.
            config: Poll interval, settle delay and deadline.
            cancel: Optional event that aborts the wait.
            started: Monotonic start of the deadline (default: now).

        Raises:
            WatchTimeoutError: If no file was modified before the deadline.
            WatchCancelledError: If ``cancel`` was set.
        """
        if isinstance(reference, datetime):
            reference = reference.timestamp()
        clock = PollClock(config, cancel, started, label="response file watch")
        logger.info("Waiting for a response file modified after %s", _fmt_epoch(reference))

        while True:
            clock.raise_if_cancelled()
            if clock.expired:
                raise clock.timeout_error()

            recent = {
                path: mtime for path, mtime in self.snapshot().items() if mtime > reference
            }
            if recent:
                newest = max(recent, key=lambda p: (recent[p], str(p)))
                logger.info(
                    "Found recent response: %s (modified %s)",
                    newest.name, _fmt_epoch(recent[newest]),
                )
                await clock.settle()
                clock.raise_if_cancelled()
                change = self._read_change(newest)
                if change is not None:
                    return change

            await clock.tick()

    async def follow(
        self,
        poll_interval: float,
        settle_delay: float,
        cancel: asyncio.Event,
    ) -> AsyncIterator[FileChange]:
        """Yield every file change until ``cancel`` is set.

        The baseline is the directory state when iteration starts and is
        advanced after each poll, so one write is reported once.
        """
        known = self.snapshot()
        while not cancel.is_set():
            if await sleep_unless_cancelled(poll_interval, cancel):
                break

            current = self.snapshot()
            for path in sorted(current):
                if path in known and current[path] <= known[path]:
                    continue
                logger.info("Detected file change: %s", path.name)
                if await sleep_unless_cancelled(settle_delay, cancel):
                    return
                change = self._read_change(path)
                if change is None:
                    # Leave it out of `known` so the next poll retries
                    current.pop(path, None)
                    continue
                current[path] = change.modified_at
                yield change
            known = current

    def purge_older_than(self, max_age: float, now: float | None = None) -> int:
        """Delete watched files last modified more than ``max_age`` seconds ago.

        Returns:
            The number of files deleted. Failures are logged and skipped.
        """
        cutoff = (time.time() if now is None else now) - max_age
        removed = 0
        for path, mtime in self.snapshot().items():
            if mtime >= cutoff:
                continue
            try:
                path.unlink()
                removed += 1
                logger.debug("Cleaned up old file: %s", path)
            except OSError as e:
                logger.warning("Could not remove %s: %s", path, e)
        if removed:
            logger.info("Purged %d stale files from %s", removed, self._watch_dir)
        return removed

    async def check_available(self) -> DependencyStatus:
        writable = self._watch_dir.is_dir() and os.access(self._watch_dir, os.W_OK)
        return DependencyStatus(
            name="response directory",
            available=writable,
            detail=str(self._watch_dir) if writable else f"{self._watch_dir} missing or read-only",
        )

    def _read_change(self, path: Path) -> FileChange | None:
        """Read a changed file; None means not ready yet."""
        try:
            modified_at = path.stat().st_mtime
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Error reading %s, will retry: %s", path, e)
            return None
        return FileChange(path=path, content=content, modified_at=modified_at)

    def _iter_files(self) -> Iterable[Path]:
        if not self._watch_dir.is_dir():
            return []
        if self._recursive:
            found = []
            for root, _dirs, files in os.walk(self._watch_dir):
                for name in files:
                    path = Path(root) / name
                    if path.suffix.lower() in self._extensions:
                        found.append(path)
            return found
        try:
            return [
                entry
                for entry in self._watch_dir.iterdir()
                if entry.is_file() and entry.suffix.lower() in self._extensions
            ]
        except OSError as e:
            logger.warning("Cannot list %s: %s", self._watch_dir, e)
            return []


def _fmt_epoch(value: float) -> str:
    return datetime.fromtimestamp(value).strftime("%H:%M:%S")
