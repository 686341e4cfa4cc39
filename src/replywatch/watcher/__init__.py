"""Completion signal watchers.

Each watcher polls one observable side effect of the target application
(response files, the clipboard, or the screen) until it indicates that
the answer is ready, bounded by a deadline.
"""

from replywatch.watcher.clipboard import (
    ClipboardBackend,
    ClipboardMonitor,
    PasteboardBackend,
    PyperclipBackend,
    create_clipboard_backend,
)
from replywatch.watcher.files import FileSystemWatcher
from replywatch.watcher.hashing import ContentHasher
from replywatch.watcher.polling import PollClock, sleep_unless_cancelled
from replywatch.watcher.screen import ScreenStabilityMonitor

__all__ = [
    "ClipboardBackend",
    "ClipboardMonitor",
    "ContentHasher",
    "FileSystemWatcher",
    "PasteboardBackend",
    "PollClock",
    "PyperclipBackend",
    "ScreenStabilityMonitor",
    "sleep_unless_cancelled",
    "create_clipboard_backend",
]
