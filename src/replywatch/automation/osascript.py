"""AppleScript automation backend.

Drives a macOS application through ``osascript`` and System Events.
Prompts are pasted through the clipboard rather than typed, which keeps
spaces and non-ASCII text intact.
"""

from __future__ import annotations

import asyncio
import logging

from replywatch.automation.base import ApplicationDriver
from replywatch.domain.models import DependencyStatus
from replywatch.errors import AutomationFailure
from replywatch.utils.process import run_command, which
from replywatch.watcher.clipboard import ClipboardBackend, PyperclipBackend

logger = logging.getLogger(__name__)

KEY_CODES = {
    "return": 36,
    "enter": 36,
    "tab": 48,
    "escape": 53,
    "space": 49,
    "delete": 51,
    "backspace": 51,
    "up": 126,
    "down": 125,
    "left": 123,
    "right": 124,
}


def escape_applescript(text: str) -> str:
    """Escape text for use inside an AppleScript string literal."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def key_code_script(key: str, modifiers: list[str] | None = None) -> str:
    code = KEY_CODES.get(key.lower())
    if code is None:
        raise ValueError(f"Unknown key: {key}")
    using = ""
    if modifiers:
        using = " using {" + ", ".join(f"{m} down" for m in modifiers) + "}"
    return f'tell application "System Events" to key code {code}{using}'


class AppleScriptDriver(ApplicationDriver):
    """Drives a local macOS application through osascript."""

    name = "osascript"

    def __init__(
        self,
        clipboard: ClipboardBackend | None = None,
        input_delay: float = 0.1,
        activate_delay: float = 0.5,
        script_timeout: float = 15.0,
    ) -> None:
        super().__init__(input_delay=input_delay, activate_delay=activate_delay)
        self._clipboard = clipboard or PyperclipBackend()
        self._script_timeout = script_timeout

    async def run_script(self, script: str) -> str:
        """Run an AppleScript and return its trimmed stdout.

        Raises:
            AutomationFailure: If osascript is missing, times out or fails.
        """
        try:
            result = await run_command(["osascript", "-e", script], timeout=self._script_timeout)
        except FileNotFoundError as e:
            raise AutomationFailure("osascript not found", backend=self.name) from e
        except asyncio.TimeoutError as e:
            raise AutomationFailure(
                f"osascript timed out after {self._script_timeout:.0f}s", backend=self.name
            ) from e
        if not result.ok:
            raise AutomationFailure(
                f"osascript error: {result.stderr.strip()}", backend=self.name
            )
        return result.stdout.strip()

    async def activate(self, app: str) -> None:
        logger.info("Activating %s", app)
        await self.run_script(f'tell application "{escape_applescript(app)}" to activate')

    async def is_app_running(self, app: str) -> bool:
        script = (
            'tell application "System Events" to return '
            f'(name of every process) contains "{escape_applescript(app)}"'
        )
        return await self.run_script(script) == "true"

    async def input_text(self, text: str) -> None:
        await self._clipboard.write(text)
        await asyncio.sleep(self._input_delay)
        await self.run_script(
            'tell application "System Events" to keystroke "v" using command down'
        )
        logger.debug("Pasted %d chars", len(text))

    async def press_key(self, key: str, modifiers: list[str] | None = None) -> None:
        await self.run_script(key_code_script(key, modifiers))

    async def submit(self) -> None:
        logger.info("Submitting prompt")
        try:
            await self.press_key("return", ["command"])
        except AutomationFailure as e:
            logger.warning("Cmd+Enter failed (%s), falling back to Enter", e)
            await self.press_key("return")

    async def check_available(self) -> DependencyStatus:
        path = which("osascript")
        return DependencyStatus(
            name="automation (osascript)",
            available=path is not None,
            detail=path or "osascript not found (macOS only)",
        )
