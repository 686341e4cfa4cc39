"""Clipboard-content diffing.

Detects completion when the target application (or the user) copies the
answer. The pasteboard is cleared first so that a stale copy cannot be
mistaken for the response.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from replywatch.domain.models import DependencyStatus, WatchConfig
from replywatch.errors import AutomationFailure
from replywatch.utils.process import run_command, which
from replywatch.watcher.polling import PollClock

logger = logging.getLogger(__name__)


class ClipboardBackend(ABC):
    """Reads and writes the system pasteboard."""

    name: str = "clipboard"

    @abstractmethod
    async def read(self) -> str:
        """Return the current clipboard text.

        Raises:
            AutomationFailure: If the pasteboard cannot be read.
        """
        ...

    @abstractmethod
    async def write(self, text: str) -> None:
        """Replace the clipboard text.

        Raises:
            AutomationFailure: If the pasteboard cannot be written.
        """
        ...

    @abstractmethod
    async def check_available(self) -> DependencyStatus:
        ...


class PyperclipBackend(ClipboardBackend):
    """Cross-platform pasteboard access through pyperclip."""

    name = "pyperclip"

    async def read(self) -> str:
        import pyperclip

        loop = asyncio.get_running_loop()
        try:
            text = await loop.run_in_executor(None, pyperclip.paste)
        except pyperclip.PyperclipException as e:
            raise AutomationFailure(f"Clipboard read failed: {e}", backend=self.name) from e
        return text or ""

    async def write(self, text: str) -> None:
        import pyperclip

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, pyperclip.copy, text)
        except pyperclip.PyperclipException as e:
            raise AutomationFailure(f"Clipboard write failed: {e}", backend=self.name) from e

    async def check_available(self) -> DependencyStatus:
        try:
            await self.read()
        except (ImportError, AutomationFailure) as e:
            return DependencyStatus(name="clipboard (pyperclip)", available=False, detail=str(e))
        return DependencyStatus(name="clipboard (pyperclip)", available=True, detail="ok")


class PasteboardBackend(ClipboardBackend):
    """macOS pasteboard through ``pbpaste`` and ``pbcopy``."""

    name = "pasteboard"

    def __init__(self, timeout: float = 5.0) -> None:
        self._timeout = timeout

    async def read(self) -> str:
        try:
            result = await run_command(["pbpaste"], timeout=self._timeout)
        except (OSError, asyncio.TimeoutError) as e:
            raise AutomationFailure(f"pbpaste failed: {e}", backend=self.name) from e
        if not result.ok:
            raise AutomationFailure(f"pbpaste failed: {result.stderr.strip()}", backend=self.name)
        return result.stdout

    async def write(self, text: str) -> None:
        try:
            result = await run_command(["pbcopy"], input_text=text, timeout=self._timeout)
        except (OSError, asyncio.TimeoutError) as e:
            raise AutomationFailure(f"pbcopy failed: {e}", backend=self.name) from e
        if not result.ok:
            raise AutomationFailure(f"pbcopy failed: {result.stderr.strip()}", backend=self.name)

    async def check_available(self) -> DependencyStatus:
        missing = [tool for tool in ("pbpaste", "pbcopy") if which(tool) is None]
        if missing:
            return DependencyStatus(
                name="clipboard (pasteboard)",
                available=False,
                detail=f"missing: {', '.join(missing)}",
            )
        return DependencyStatus(name="clipboard (pasteboard)", available=True, detail="ok")


def create_clipboard_backend(name: str) -> ClipboardBackend:
    if name == "pasteboard":
        return PasteboardBackend()
    return PyperclipBackend()


class ClipboardMonitor:
    """Waits for new content to appear on the clipboard."""

    def __init__(self, backend: ClipboardBackend | None = None) -> None:
        self._backend = backend or PyperclipBackend()

    @property
    def backend(self) -> ClipboardBackend:
        return self._backend

    async def read(self) -> str:
        return await self._backend.read()

    async def write(self, text: str) -> None:
        await self._backend.write(text)

    async def clear(self) -> None:
        """Empty the clipboard; failures are logged, not raised."""
        try:
            await self._backend.write("")
        except AutomationFailure as e:
            logger.warning("Could not clear clipboard: %s", e)

    async def wait_for_change(
        self,
        initial: str,
        config: WatchConfig,
        cancel: asyncio.Event | None = None,
        started: float | None = None,
    ) -> str:
        """Poll until the clipboard is non-empty and differs from ``initial``.

        Raises:
            WatchTimeoutError: If nothing new was copied before the deadline.
            WatchCancelledError: If ``cancel`` was set.
        """
        clock = PollClock(config, cancel, started, label="clipboard watch")
        last_seen = initial

        while True:
            clock.raise_if_cancelled()
            if clock.expired:
                raise clock.timeout_error()

            try:
                current = await self._backend.read()
            except AutomationFailure as e:
                logger.warning("Clipboard read failed, retrying: %s", e)
            else:
                if current and current != last_seen:
                    logger.info("Clipboard content changed (%d chars)", len(current))
                    return current

            await clock.tick()

    async def wait_for_new_content(
        self,
        config: WatchConfig,
        cancel: asyncio.Event | None = None,
        started: float | None = None,
    ) -> str:
        """Clear the clipboard, then wait for anything new to be copied."""
        await self.clear()
        logger.info("Waiting for clipboard content (timeout %.0fs)", config.timeout)
        return await self.wait_for_change("", config, cancel, started)
