"""Screen capture module for replywatch.

Provides screen snapshots written to the scratch directory. The
abstract base class allows alternative capture implementations (direct
framebuffer grab, the macOS screencapture tool, or the OS shortcut).

Public API:
    CaptureSource -- Abstract base class
    MssScreenCapture -- mss framebuffer capture
    ScreenCaptureCommand -- macOS screencapture tool
    ShortcutScreenCapture -- OS screenshot shortcut with desktop watch
"""

from replywatch.capture.base import CaptureError, CaptureSource

__all__ = [
    "CaptureSource",
    "CaptureError",
    "MssScreenCapture",
    "ScreenCaptureCommand",
    "ShortcutScreenCapture",
    "create_capture_source",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "MssScreenCapture":
        from replywatch.capture.screen import MssScreenCapture
        return MssScreenCapture
    if name == "ScreenCaptureCommand":
        from replywatch.capture.screencapture import ScreenCaptureCommand
        return ScreenCaptureCommand
    if name == "ShortcutScreenCapture":
        from replywatch.capture.shortcut import ShortcutScreenCapture
        return ShortcutScreenCapture
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def create_capture_source(config, output_dir) -> CaptureSource:
    """Build the capture backend named by a ScreenConfig."""
    from replywatch.domain.models import CropRegion

    crop = None
    if config.crop_enabled:
        crop = CropRegion(
            x=config.crop_x, y=config.crop_y,
            width=config.crop_width, height=config.crop_height,
        )
    if config.capture_backend == "screencapture":
        from replywatch.capture.screencapture import ScreenCaptureCommand
        return ScreenCaptureCommand(output_dir, crop_region=crop)
    if config.capture_backend == "shortcut":
        from replywatch.capture.shortcut import ShortcutScreenCapture
        return ShortcutScreenCapture(
            output_dir,
            desktop_dir=config.desktop_dir,
            prefixes=config.screenshot_prefixes,
        )
    from replywatch.capture.screen import MssScreenCapture
    return MssScreenCapture(output_dir, crop_region=crop, monitor_index=config.monitor_index)
