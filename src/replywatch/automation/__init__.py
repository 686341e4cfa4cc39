"""Application automation module for replywatch.

Delivers prompts into the target application via pluggable backends.

Public API:
    ApplicationDriver -- Abstract base class
    AppleScriptDriver -- osascript backend for a local macOS application
    HttpApplicationDriver -- HTTP backend for a remote keyboard endpoint
    ManualDriver -- Logs the prompt for the user to paste
"""

from __future__ import annotations

from replywatch.automation.base import ApplicationDriver
from replywatch.automation.manual import ManualDriver

__all__ = [
    "ApplicationDriver",
    "AppleScriptDriver",
    "HttpApplicationDriver",
    "ManualDriver",
    "create_driver",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "AppleScriptDriver":
        from replywatch.automation.osascript import AppleScriptDriver
        return AppleScriptDriver
    if name == "HttpApplicationDriver":
        from replywatch.automation.http_backend import HttpApplicationDriver
        return HttpApplicationDriver
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def create_driver(config, clipboard=None) -> ApplicationDriver:
    """Build the driver named by an AutomationConfig."""
    if config.backend == "http":
        from replywatch.automation.http_backend import HttpApplicationDriver

        return HttpApplicationDriver(
            base_url=config.http_base_url,
            timeout=config.http_timeout,
            input_delay=config.input_delay,
            activate_delay=config.activate_delay,
        )
    if config.backend == "manual":
        return ManualDriver()
    from replywatch.automation.osascript import AppleScriptDriver

    return AppleScriptDriver(
        clipboard=clipboard,
        input_delay=config.input_delay,
        activate_delay=config.activate_delay,
    )
