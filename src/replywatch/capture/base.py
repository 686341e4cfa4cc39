"""Abstract base class for screen capture sources.

All capture implementations must conform to this interface, enabling
the system to swap between direct framebuffer grabs, the macOS
screencapture tool, or the OS screenshot shortcut without changing the
rest of the pipeline. Every capture is written to a file in the
screenshot scratch directory and returned as a CapturedFrame.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path

from replywatch.domain.models import CapturedFrame, CropRegion, DependencyStatus
from replywatch.errors import AutomationFailure

logger = logging.getLogger(__name__)


class CaptureSource(ABC):
    """Abstract interface for taking screen snapshots.

    Implementations handle backend initialization, the capture itself,
    optional cropping, and cleanup.

    Example usage::

        async with MssScreenCapture(output_dir=shots) as capture:
            frame = await capture.capture_frame()
            print(frame.path)
    """

    name: str = "capture"

    def __init__(
        self,
        output_dir: Path | str,
        prefix: str = "monitor_",
        crop_region: CropRegion | None = None,
    ) -> None:
        """Initialize the capture source.

        Args:
            output_dir: Directory the capture artifacts are written to.
            prefix: Filename prefix for artifacts, used by housekeeping.
            crop_region: Optional region to capture instead of the full
                         display.
        """
        self._output_dir = Path(output_dir)
        self._prefix = prefix
        self._crop_region = crop_region
        self._frame_counter: int = 0
        self._is_open: bool = False

    @property
    def is_open(self) -> bool:
        """Whether the capture backend is open and ready."""
        return self._is_open

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    @property
    def prefix(self) -> str:
        return self._prefix

    async def open(self) -> None:
        """Prepare the backend and the output directory.

        Raises:
            CaptureError: If the output directory cannot be created.
        """
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CaptureError(
                f"Cannot create capture directory {self._output_dir}: {e}",
                backend=self.name,
            ) from e
        self._is_open = True

    async def close(self) -> None:
        """Release the backend. Safe to call multiple times."""
        self._is_open = False

    @abstractmethod
    async def capture_frame(self) -> CapturedFrame:
        """Capture the screen once and write it to disk.

        Returns:
            A CapturedFrame pointing at the new artifact.

        Raises:
            CaptureError: If the capture fails.
        """
        ...

    @abstractmethod
    async def check_available(self) -> DependencyStatus:
        """Report whether the capture backend can run on this machine."""
        ...

    def _next_path(self, suffix: str = ".png") -> Path:
        """Allocate a unique artifact path in the output directory."""
        return self._output_dir / f"{self._prefix}{time.time_ns()}{suffix}"

    def _make_frame(self, path: Path) -> CapturedFrame:
        self._frame_counter += 1
        return CapturedFrame(
            path=path,
            frame_number=self._frame_counter,
            source_device=self.name,
            crop_applied=self._crop_region,
        )

    async def __aenter__(self) -> CaptureSource:
        """Async context manager entry -- opens the capture backend."""
        await self.open()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Async context manager exit -- closes the capture backend."""
        await self.close()


class CaptureError(AutomationFailure):
    """Raised when a screen capture fails."""
