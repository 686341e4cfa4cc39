"""Background forwarding of response files to the current delivery target.

Independent of any episode: every response file written to the watched
directory is formatted and handed to a sender together with whatever
delivery target the session holds at that moment.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from replywatch.completion.formatting import DEFAULT_MESSAGE_LIMIT, format_response
from replywatch.completion.session import TargetSession
from replywatch.watcher.files import FileSystemWatcher

logger = logging.getLogger(__name__)

Sender = Callable[[Any, str], Awaitable[None]]


class ResponseForwarder:
    """Forwards each changed response file until stopped."""

    def __init__(
        self,
        watcher: FileSystemWatcher,
        session: TargetSession,
        sender: Sender,
        poll_interval: float = 2.0,
        settle_delay: float = 2.0,
        max_message_length: int = DEFAULT_MESSAGE_LIMIT,
    ) -> None:
        self._watcher = watcher
        self._session = session
        self._sender = sender
        self._poll_interval = poll_interval
        self._settle_delay = settle_delay
        self._max_message_length = max_message_length
        self._stop = asyncio.Event()
        self.forwarded = 0

    async def run(self) -> None:
        """Forward changes until ``stop()`` is called."""
        self._stop.clear()
        logger.info("Forwarder started, monitoring %s", self._watcher.watch_dir)
        async for change in self._watcher.follow(
            self._poll_interval, self._settle_delay, self._stop
        ):
            target = self._session.get_delivery_target()
            if target is None:
                logger.info("No delivery target for %s, dropping it", change.path.name)
                continue
            text = format_response(change.content, self._max_message_length)
            try:
                await self._sender(target, text)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Failed to forward %s to %r: %s", change.path.name, target, e)
                continue
            self.forwarded += 1
            logger.info("Forwarded %s to %r (%d chars)", change.path.name, target, len(text))
        logger.info("Forwarder stopped")

    def stop(self) -> None:
        self._stop.set()
