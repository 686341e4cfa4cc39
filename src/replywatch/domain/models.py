"""Core domain models for the replywatch system.

These models represent the data flowing through a completion episode:
watch timing configuration, screen snapshots and their digests, the
noise-filter rules applied to recognized text, the episode itself, and
the result handed back to the caller.
"""

from __future__ import annotations

import enum
import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, Literal, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, model_validator

from replywatch.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class EpisodeState(str, enum.Enum):
    """Lifecycle of a single completion episode."""

    IDLE = "idle"
    SUBMITTED = "submitted"  # Input delivered, reference instant recorded
    WATCHING = "watching"  # Strategy wait in progress
    EXTRACTING = "extracting"  # Recognizing text from an image artifact
    RESOLVED = "resolved"


class EpisodeStatus(str, enum.Enum):
    """Terminal status of a resolved episode."""

    SUCCESS = "success"
    TIMEOUT = "timeout"
    FAILED = "failed"


class RuleAction(str, enum.Enum):
    """Decision taken when a noise-filter rule matches a line."""

    SKIP = "skip"
    KEEP = "keep"


# ---------------------------------------------------------------------------
# Watch Configuration
# ---------------------------------------------------------------------------


class WatchConfig(BaseModel):
    """Timing parameters for one polling strategy.

    All durations are in seconds. The timeout must leave room for the
    stabilization window, otherwise the strategy can never succeed.
    """

    model_config = ConfigDict(validate_assignment=True)

    poll_interval: float = Field(default=2.0, gt=0, description="Seconds between polls")
    timeout: float = Field(default=180.0, gt=0, description="Overall deadline in seconds")
    stabilization_count: int = Field(
        default=1, ge=1, description="Consecutive identical polls required"
    )
    stabilization_delay: float = Field(
        default=3.0, ge=0, description="Settle delay after a change before reading"
    )

    @model_validator(mode="after")
    def _check_window(self) -> WatchConfig:
        if self.timeout <= self.poll_interval * self.stabilization_count:
            raise ValueError(
                f"timeout ({self.timeout}s) must exceed poll_interval * "
                f"stabilization_count ({self.poll_interval * self.stabilization_count}s)"
            )
        return self

    def watch_config(self) -> WatchConfig:
        """Return the plain timing part of this (possibly extended) config."""
        return WatchConfig(
            poll_interval=self.poll_interval,
            timeout=self.timeout,
            stabilization_count=self.stabilization_count,
            stabilization_delay=self.stabilization_delay,
        )


def make_watch_config(**kwargs: Any) -> WatchConfig:
    """Build a WatchConfig, reporting invalid values as ConfigurationError."""
    try:
        return WatchConfig(**kwargs)
    except pydantic.ValidationError as e:
        raise ConfigurationError(f"Invalid watch configuration: {e}") from e


# ---------------------------------------------------------------------------
# Capture Models
# ---------------------------------------------------------------------------


class CropRegion(BaseModel):
    """Defines a rectangular screen region to capture.

    Coordinates are in pixels, origin at top-left of the captured display.
    """

    model_config = ConfigDict(frozen=True)

    x: int = Field(ge=0, description="Left edge x-coordinate in pixels")
    y: int = Field(ge=0, description="Top edge y-coordinate in pixels")
    width: int = Field(gt=0, description="Width of the region in pixels")
    height: int = Field(gt=0, description="Height of the region in pixels")


class CapturedFrame(BaseModel):
    """A single screen capture written to disk."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(description="Capture artifact on disk")
    timestamp: datetime = Field(default_factory=datetime.now)
    frame_number: int = Field(ge=0, description="Sequential frame counter")
    source_device: str = Field(default="screen", description="Identifier for the capture backend")
    crop_applied: CropRegion | None = Field(default=None)


# ---------------------------------------------------------------------------
# Observation Models
# ---------------------------------------------------------------------------


class Snapshot(BaseModel):
    """Digest of one captured screen frame.

    Superseded on the next poll tick; a monitor keeps at most the one
    snapshot its next comparison needs.
    """

    model_config = ConfigDict(frozen=True)

    digest: bytes = Field(description="Fixed-length content digest")
    captured_at: datetime = Field(default_factory=datetime.now)
    source_path: Path | None = Field(default=None, description="Capture artifact on disk")


class FileChange(BaseModel):
    """A response file detected by the file-system watcher."""

    model_config = ConfigDict(frozen=True)

    path: Path
    content: str
    modified_at: float = Field(description="Modification time (epoch seconds)")


class NoiseFilterRule(BaseModel):
    """A pattern and the decision taken for lines it matches."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    pattern: re.Pattern = Field(description="Compiled pattern searched in each line")
    action: RuleAction = Field(default=RuleAction.SKIP)
    description: str = Field(default="")

    @classmethod
    def skip(cls, pattern: str, description: str = "") -> NoiseFilterRule:
        return cls(pattern=re.compile(pattern), action=RuleAction.SKIP, description=description)

    @classmethod
    def keep(cls, pattern: str, description: str = "") -> NoiseFilterRule:
        return cls(pattern=re.compile(pattern), action=RuleAction.KEEP, description=description)

    def matches(self, line: str) -> bool:
        return self.pattern.search(line) is not None


# ---------------------------------------------------------------------------
# Completion Results (discriminated union)
# ---------------------------------------------------------------------------


class TextPayload(BaseModel):
    """Plain text produced by the target application."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    content: str


class ImagePayload(BaseModel):
    """A captured image artifact standing in for the response."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["image"] = "image"
    path: Path


ResultPayload = Annotated[
    Union[TextPayload, ImagePayload],
    Field(discriminator="kind"),
]


class CompletionResult(BaseModel):
    """The outcome of one successful completion episode."""

    model_config = ConfigDict(frozen=True)

    payload: ResultPayload
    strategy: str = Field(description="Name of the strategy that produced the result")
    elapsed: float = Field(ge=0.0, description="Seconds waited for completion")

    @classmethod
    def text(cls, content: str, strategy: str, elapsed: float) -> CompletionResult:
        return cls(payload=TextPayload(content=content), strategy=strategy, elapsed=elapsed)

    @classmethod
    def image(cls, path: Path | str, strategy: str, elapsed: float) -> CompletionResult:
        return cls(payload=ImagePayload(path=Path(path)), strategy=strategy, elapsed=elapsed)

    @property
    def is_text(self) -> bool:
        return isinstance(self.payload, TextPayload)

    @property
    def is_image(self) -> bool:
        return isinstance(self.payload, ImagePayload)


# ---------------------------------------------------------------------------
# Episode Models
# ---------------------------------------------------------------------------


class WatchEpisode(BaseModel):
    """One end-to-end attempt to detect completion of a submitted request.

    Owned by the orchestrator. The baseline is whatever the active
    strategy compares against (a file-set snapshot, a clipboard value,
    or a screen snapshot).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    episode_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    target: str = Field(description="Automation target (application name)")
    started_at: float = Field(description="Monotonic clock reading at episode start")
    submitted_at: float | None = Field(
        default=None, description="Reference instant (epoch seconds) of input delivery"
    )
    baseline: Any = Field(default=None)
    state: EpisodeState = Field(default=EpisodeState.IDLE)
    cancel: Any = Field(default=None, description="asyncio.Event used to abort the wait")


class EpisodeOutcome(BaseModel):
    """Summary of a resolved episode, safe to hand to the delivery layer."""

    model_config = ConfigDict(frozen=True)

    episode_id: str
    status: EpisodeStatus
    result: CompletionResult | None = None
    elapsed: float = Field(default=0.0, ge=0.0)
    message: str = Field(default="", description="User-facing text for the outcome")


class DependencyStatus(BaseModel):
    """Availability of one external dependency."""

    model_config = ConfigDict(frozen=True)

    name: str
    available: bool
    detail: str = ""
