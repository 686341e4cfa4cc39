"""Screen capture through the operating system's screenshot shortcut.

Presses the shortcut, waits for the OS to drop a new screenshot file on
the desktop, and moves it into the scratch directory. The OS names the
file after the user's locale, so new files are recognized by a set of
known save-name prefixes. Falls back to ``screencapture`` when no file
shows up.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Awaitable, Callable, Iterable

from replywatch.capture.base import CaptureError, CaptureSource
from replywatch.capture.screencapture import ScreenCaptureCommand
from replywatch.domain.models import CapturedFrame, DependencyStatus
from replywatch.utils.process import run_command, which

logger = logging.getLogger(__name__)

SCREENSHOT_SHORTCUT_SCRIPT = """
tell application "System Events"
    key code 20 using {command down, shift down}
end tell
"""


def is_os_screenshot(name: str, prefixes: Iterable[str]) -> bool:
    """Whether a filename looks like an OS shortcut screenshot."""
    return any(name.startswith(prefix) for prefix in prefixes)


def list_os_screenshots(directory: Path, prefixes: Iterable[str]) -> set[Path]:
    """Screenshot files currently in ``directory``; empty if unreadable."""
    prefixes = tuple(prefixes)
    try:
        return {
            entry
            for entry in directory.iterdir()
            if entry.is_file() and is_os_screenshot(entry.name, prefixes)
        }
    except OSError as e:
        logger.debug("Cannot list %s: %s", directory, e)
        return set()


async def press_screenshot_shortcut() -> None:
    """Press Cmd+Shift+3 through System Events."""
    try:
        result = await run_command(["osascript", "-e", SCREENSHOT_SHORTCUT_SCRIPT], timeout=10.0)
    except (OSError, asyncio.TimeoutError) as e:
        raise CaptureError(f"Screenshot shortcut failed: {e}", backend="shortcut") from e
    if not result.ok:
        raise CaptureError(
            f"Screenshot shortcut failed: {result.stderr.strip()}", backend="shortcut"
        )


class ShortcutScreenCapture(CaptureSource):
    """Captures via the OS shortcut, falling back to ``screencapture``."""

    name = "shortcut"

    def __init__(
        self,
        output_dir: Path | str,
        desktop_dir: Path | str,
        prefixes: Iterable[str],
        prefix: str = "screen_",
        trigger: Callable[[], Awaitable[None]] | None = None,
        appear_timeout: float = 5.0,
        appear_poll: float = 0.25,
        fallback: CaptureSource | None = None,
    ) -> None:
        super().__init__(output_dir, prefix=prefix)
        self._desktop_dir = Path(desktop_dir).expanduser()
        self._prefixes = tuple(prefixes)
        self._trigger = trigger or press_screenshot_shortcut
        self._appear_timeout = appear_timeout
        self._appear_poll = appear_poll
        self._fallback = fallback or ScreenCaptureCommand(output_dir, prefix=prefix)

    async def open(self) -> None:
        await super().open()
        await self._fallback.open()

    async def close(self) -> None:
        await self._fallback.close()
        await super().close()

    async def capture_frame(self) -> CapturedFrame:
        if not self._is_open:
            raise CaptureError("Screen capture is not open", backend=self.name)

        existing = list_os_screenshots(self._desktop_dir, self._prefixes)
        logger.debug("Found %d existing screenshots in %s", len(existing), self._desktop_dir)

        try:
            await self._trigger()
        except CaptureError as e:
            logger.warning("Shortcut capture unavailable (%s), using fallback", e)
            return await self._fallback.capture_frame()

        new_file = await self._wait_for_new_screenshot(existing)
        if new_file is None:
            logger.info("No new screenshot appeared in %s, using fallback", self._desktop_dir)
            return await self._fallback.capture_frame()

        dest = self._next_path(new_file.suffix or ".png")
        try:
            shutil.move(str(new_file), dest)
        except OSError as e:
            logger.warning("Could not move %s into scratch dir: %s", new_file, e)
            return self._make_frame(new_file)
        logger.info("Captured OS screenshot %s", dest.name)
        return self._make_frame(dest)

    async def _wait_for_new_screenshot(self, existing: set[Path]) -> Path | None:
        waited = 0.0
        while waited < self._appear_timeout:
            await asyncio.sleep(self._appear_poll)
            waited += self._appear_poll
            new_files = list_os_screenshots(self._desktop_dir, self._prefixes) - existing
            if new_files:
                # OS save-names embed the timestamp, so the newest sorts last
                return sorted(new_files)[-1]
        return None

    async def check_available(self) -> DependencyStatus:
        osascript = which("osascript")
        if osascript is None:
            fallback = await self._fallback.check_available()
            return DependencyStatus(
                name="screen capture (shortcut)",
                available=fallback.available,
                detail=f"osascript missing; fallback: {fallback.detail}",
            )
        return DependencyStatus(
            name="screen capture (shortcut)",
            available=self._desktop_dir.is_dir(),
            detail=f"watching {self._desktop_dir}",
        )
