"""Screen capture through the macOS ``screencapture`` tool."""

from __future__ import annotations

import asyncio
import logging

from replywatch.capture.base import CaptureError, CaptureSource
from replywatch.domain.models import CapturedFrame, DependencyStatus
from replywatch.utils.process import run_command, which

logger = logging.getLogger(__name__)


class ScreenCaptureCommand(CaptureSource):
    """Captures the full screen with ``screencapture -x -C``.

    ``-x`` silences the shutter sound, ``-C`` includes the cursor.
    """

    name = "screencapture"

    async def capture_frame(self) -> CapturedFrame:
        if not self._is_open:
            raise CaptureError("Screen capture is not open", backend=self.name)
        path = self._next_path()
        args = ["screencapture", "-x", "-C"]
        if self._crop_region is not None:
            r = self._crop_region
            args.append(f"-R{r.x},{r.y},{r.width},{r.height}")
        args.append(str(path))
        try:
            result = await run_command(args, timeout=15.0)
        except (OSError, asyncio.TimeoutError) as e:
            raise CaptureError(f"screencapture failed: {e}", backend=self.name) from e
        if not result.ok:
            raise CaptureError(
                f"screencapture exited with {result.returncode}: {result.stderr.strip()}",
                backend=self.name,
            )
        if not path.exists():
            raise CaptureError(f"Screenshot file not created: {path}", backend=self.name)
        logger.debug("Captured %s", path.name)
        return self._make_frame(path)

    async def check_available(self) -> DependencyStatus:
        found = which("screencapture")
        return DependencyStatus(
            name="screen capture (screencapture)",
            available=found is not None,
            detail=found or "screencapture not on PATH (macOS only)",
        )
