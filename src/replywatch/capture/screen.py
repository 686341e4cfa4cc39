"""Direct screen capture using mss.

Grabs a monitor (or a cropped region of it) straight from the display
server and writes it as PNG through OpenCV.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import mss
from mss.exception import ScreenShotError
import numpy as np

from replywatch.capture.base import CaptureError, CaptureSource
from replywatch.domain.models import CapturedFrame, CropRegion, DependencyStatus
from replywatch.utils.imaging import save_png

logger = logging.getLogger(__name__)


class MssScreenCapture(CaptureSource):
    """Captures a display with mss.

    Runs the blocking grab in a thread pool executor to avoid blocking
    the event loop. Monitor index 0 is the union of all displays, 1 the
    primary display.
    """

    name = "mss"

    def __init__(
        self,
        output_dir: Path | str,
        prefix: str = "monitor_",
        crop_region: CropRegion | None = None,
        monitor_index: int = 1,
    ) -> None:
        super().__init__(output_dir, prefix=prefix, crop_region=crop_region)
        self._monitor_index = monitor_index

    async def capture_frame(self) -> CapturedFrame:
        """Grab the configured monitor and write it to disk."""
        if not self._is_open:
            raise CaptureError("Screen capture is not open", backend=self.name)
        path = self._next_path()
        loop = asyncio.get_running_loop()
        try:
            image = await loop.run_in_executor(None, self._grab_sync)
            await loop.run_in_executor(None, save_png, image, path)
        except (ScreenShotError, ValueError, IndexError) as e:
            raise CaptureError(f"Screen grab failed: {e}", backend=self.name) from e
        return self._make_frame(path)

    def _grab_sync(self) -> np.ndarray:
        """Synchronous grab (runs in thread pool)."""
        with mss.mss() as sct:
            monitor = dict(sct.monitors[self._monitor_index])
            if self._crop_region is not None:
                r = self._crop_region
                monitor = {
                    "left": monitor["left"] + r.x,
                    "top": monitor["top"] + r.y,
                    "width": r.width,
                    "height": r.height,
                }
            shot = sct.grab(monitor)
        # mss yields BGRA; drop alpha for a BGR frame
        return np.array(shot)[:, :, :3].copy()

    async def check_available(self) -> DependencyStatus:
        loop = asyncio.get_running_loop()
        try:
            count = await loop.run_in_executor(None, self._monitor_count)
        except ScreenShotError as e:
            return DependencyStatus(name="screen capture (mss)", available=False, detail=str(e))
        if self._monitor_index >= count:
            return DependencyStatus(
                name="screen capture (mss)",
                available=False,
                detail=f"monitor {self._monitor_index} not present ({count - 1} displays)",
            )
        return DependencyStatus(
            name="screen capture (mss)", available=True, detail=f"{count - 1} displays"
        )

    @staticmethod
    def _monitor_count() -> int:
        with mss.mss() as sct:
            return len(sct.monitors)
