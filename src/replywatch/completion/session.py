"""Per-target session state.

Holds the delivery destination for responses (for example the chat
that asked the question) and the single live episode slot. The
destination is read by the background forwarder and written by request
handlers on other threads, so every access goes through one lock.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Callable, Generic, TypeVar

from replywatch.domain.models import EpisodeState, WatchEpisode
from replywatch.errors import EpisodeBusyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TargetSession(Generic[T]):
    """Delivery target and episode slot for one automation target."""

    def __init__(self, target: str, delivery_target: T | None = None) -> None:
        self._target = target
        self._lock = threading.Lock()
        self._delivery_target = delivery_target
        self._episode: WatchEpisode | None = None

    @property
    def target(self) -> str:
        return self._target

    # -- delivery target ----------------------------------------------------

    def get_delivery_target(self) -> T | None:
        with self._lock:
            return self._delivery_target

    def set_delivery_target(self, value: T | None) -> None:
        with self._lock:
            self._delivery_target = value
        logger.debug("Delivery target for %s set to %r", self._target, value)

    def swap_delivery_target(self, value: T | None) -> T | None:
        """Replace the delivery target and return the previous one."""
        with self._lock:
            previous, self._delivery_target = self._delivery_target, value
        return previous

    def update_delivery_target(self, fn: Callable[[T | None], T | None]) -> T | None:
        """Apply ``fn`` to the current target atomically; returns the new one."""
        with self._lock:
            self._delivery_target = fn(self._delivery_target)
            return self._delivery_target

    # -- episode slot -------------------------------------------------------

    @property
    def current_episode(self) -> WatchEpisode | None:
        with self._lock:
            return self._episode

    @property
    def is_busy(self) -> bool:
        return self.current_episode is not None

    def begin_episode(self, cancel: asyncio.Event | None = None) -> WatchEpisode:
        """Claim the episode slot.

        Raises:
            EpisodeBusyError: If an episode for this target is still live.
        """
        with self._lock:
            if self._episode is not None:
                raise EpisodeBusyError(
                    f"An episode for {self._target} is already running "
                    f"({self._episode.episode_id}, {self._episode.state.value})",
                    target=self._target,
                )
            episode = WatchEpisode(
                target=self._target,
                started_at=time.monotonic(),
                cancel=cancel or asyncio.Event(),
            )
            self._episode = episode
        logger.debug("Episode %s started for %s", episode.episode_id, self._target)
        return episode

    def end_episode(self, episode: WatchEpisode) -> None:
        """Release the slot and discard the episode's transient state."""
        episode.state = EpisodeState.RESOLVED
        episode.baseline = None
        with self._lock:
            if self._episode is episode:
                self._episode = None

    def cancel_episode(self) -> bool:
        """Signal the live episode to stop; False if none is running."""
        with self._lock:
            episode = self._episode
        if episode is None or episode.cancel is None:
            return False
        episode.cancel.set()
        logger.info("Cancellation requested for episode %s", episode.episode_id)
        return True
