"""Error taxonomy shared by every replywatch component.

Per-poll failures never surface as these errors on their own; they are
logged and retried by the polling loops. Only deadline exhaustion,
cancellation, setup failures and invalid configuration reach callers.
"""

from __future__ import annotations


class ReplyWatchError(Exception):
    """Base class for all replywatch errors."""


class WatchTimeoutError(ReplyWatchError):
    """Raised when a watch exceeds its deadline without a completion signal.

    Attributes:
        elapsed: Seconds waited before giving up.
        partial: Best-effort artifact captured before the deadline, if any.
    """

    def __init__(
        self,
        message: str,
        elapsed: float = 0.0,
        partial: str | None = None,
    ) -> None:
        super().__init__(message)
        self.elapsed = elapsed
        self.partial = partial


class WatchCancelledError(WatchTimeoutError):
    """Raised when a caller-supplied cancellation signal aborts a watch."""


class AutomationFailure(ReplyWatchError):
    """Raised when a call into the target application or the OS fails."""

    def __init__(self, message: str, backend: str = "") -> None:
        super().__init__(message)
        self.backend = backend


class ExtractionError(ReplyWatchError):
    """Raised when text recognition fails or yields nothing usable."""

    def __init__(self, message: str, engine: str = "", output: str = "") -> None:
        super().__init__(message)
        self.engine = engine
        self.output = output


class ConfigurationError(ReplyWatchError, ValueError):
    """Raised for invalid watch or application configuration."""


class EpisodeBusyError(ReplyWatchError):
    """Raised when a target already has a live completion episode."""

    def __init__(self, message: str, target: str = "") -> None:
        super().__init__(message)
        self.target = target


MANUAL_FALLBACK_HINT = "use the screenshot command to look at the application directly"


def describe_failure(error: Exception, elapsed: float | None = None) -> str:
    """Render a user-facing failure message.

    Always names the elapsed wait and points at the manual fallback so a
    failed episode is never silent.
    """
    if elapsed is None:
        elapsed = getattr(error, "elapsed", 0.0)
    if isinstance(error, WatchCancelledError):
        headline = "Watch cancelled"
    elif isinstance(error, WatchTimeoutError):
        headline = "No response detected"
    elif isinstance(error, AutomationFailure):
        headline = "Automation failed"
    elif isinstance(error, ExtractionError):
        headline = "Text extraction failed"
    else:
        headline = "Episode failed"
    return (
        f"{headline} after {elapsed:.0f}s: {error}\n"
        f"Tip: {MANUAL_FALLBACK_HINT}."
    )
