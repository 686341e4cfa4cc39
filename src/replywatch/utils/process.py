"""Async subprocess helper shared by the OS-facing backends."""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(
    args: list[str],
    input_text: str | None = None,
    timeout: float | None = 30.0,
) -> CommandResult:
    """Run a command to completion and capture its output.

    Raises:
        FileNotFoundError: If the executable does not exist.
        asyncio.TimeoutError: If the command outlives ``timeout``; the
            process is killed first.
    """
    logger.debug("Running command: %s", args[0])
    process = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.PIPE if input_text is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    data = input_text.encode("utf-8") if input_text is not None else None
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(data), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise
    return CommandResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


def which(executable: str) -> str | None:
    """Locate an executable on PATH."""
    return shutil.which(executable)
