"""Abstract base class for completion strategies.

A strategy encapsulates one way of telling that the target application
has finished answering: a new response file, new clipboard content, a
screen that stopped changing, or simply a fixed wait. The orchestrator
runs exactly one strategy per episode.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

from replywatch.domain.models import (
    CompletionResult,
    DependencyStatus,
    WatchConfig,
    WatchEpisode,
)

logger = logging.getLogger(__name__)


class CompletionStrategy(ABC):
    """Abstract interface for completion detection.

    Lifecycle per episode: ``prepare()`` before input is delivered (to
    record a baseline that the delivery itself cannot disturb), then
    ``wait()`` after it.

    Example usage::

        strategy = create_strategy("latest_file", settings)
        await strategy.prepare(episode)
        ...deliver input...
        result = await strategy.wait(strategy.config, episode)
    """

    def __init__(self, config: WatchConfig) -> None:
        self._config = config.watch_config()

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name of this strategy."""
        ...

    @property
    def config(self) -> WatchConfig:
        """Timing parameters this strategy was configured with."""
        return self._config

    async def open(self) -> None:
        """Acquire backend resources. The default has none."""

    async def close(self) -> None:
        """Release backend resources. Safe to call multiple times."""

    async def prepare(self, episode: WatchEpisode) -> None:
        """Record the episode baseline before input delivery."""

    @abstractmethod
    async def wait(self, config: WatchConfig, episode: WatchEpisode) -> CompletionResult:
        """Block until completion is detected.

        Args:
            config: Poll interval, stabilization window and deadline.
            episode: The live episode; its ``started_at`` anchors the
                     deadline and its ``cancel`` event aborts the wait.

        Raises:
            WatchTimeoutError: If the deadline passes first.
            WatchCancelledError: If the episode was cancelled.
            AutomationFailure: If a required backend cannot be used.
        """
        ...

    @abstractmethod
    async def check_available(self) -> DependencyStatus:
        """Report whether this strategy's backend can run."""
        ...

    def housekeeping(self) -> int:
        """Remove stale artifacts; returns the number removed."""
        return 0

    @staticmethod
    def elapsed(episode: WatchEpisode) -> float:
        return max(0.0, time.monotonic() - episode.started_at)
