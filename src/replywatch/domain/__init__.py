"""Domain models for replywatch.

This package contains the core data structures, enumerations, and value
objects used throughout the system. All models use Pydantic v2 for
validation and serialization.
"""

from replywatch.domain.models import (
    CapturedFrame,
    CompletionResult,
    CropRegion,
    DependencyStatus,
    EpisodeOutcome,
    EpisodeState,
    EpisodeStatus,
    FileChange,
    ImagePayload,
    NoiseFilterRule,
    RuleAction,
    Snapshot,
    TextPayload,
    WatchConfig,
    WatchEpisode,
    make_watch_config,
)

__all__ = [
    "CapturedFrame",
    "CompletionResult",
    "CropRegion",
    "DependencyStatus",
    "EpisodeOutcome",
    "EpisodeState",
    "EpisodeStatus",
    "FileChange",
    "ImagePayload",
    "NoiseFilterRule",
    "RuleAction",
    "Snapshot",
    "TextPayload",
    "WatchConfig",
    "WatchEpisode",
    "make_watch_config",
]
