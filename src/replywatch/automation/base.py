"""Abstract base class for driving the target application.

All automation backends must conform to this interface, enabling the
system to swap between AppleScript (the target runs on this Mac), the
HTTP keyboard endpoint (the target runs behind a remote keyboard), or
manual delivery without changing the completion pipeline.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from replywatch.domain.models import DependencyStatus

logger = logging.getLogger(__name__)


class ApplicationDriver(ABC):
    """Abstract interface for delivering a prompt to the target application.

    Example usage::

        async with AppleScriptDriver() as driver:
            await driver.deliver_prompt("Summarize the open file", app="Antigravity")
    """

    name: str = "driver"

    def __init__(self, input_delay: float = 0.1, activate_delay: float = 0.5) -> None:
        self._input_delay = input_delay
        self._activate_delay = activate_delay

    async def connect(self) -> None:
        """Prepare the backend. The default has nothing to set up."""

    async def disconnect(self) -> None:
        """Release the backend. Safe to call multiple times."""

    @abstractmethod
    async def activate(self, app: str) -> None:
        """Open the application and bring it to the foreground.

        Raises:
            AutomationFailure: If the application cannot be activated.
        """
        ...

    @abstractmethod
    async def input_text(self, text: str) -> None:
        """Place ``text`` in the application's focused input field.

        Does NOT submit it.

        Raises:
            AutomationFailure: If text input fails.
        """
        ...

    @abstractmethod
    async def submit(self) -> None:
        """Submit the current input.

        Raises:
            AutomationFailure: If the submit keystroke cannot be sent.
        """
        ...

    @abstractmethod
    async def check_available(self) -> DependencyStatus:
        ...

    async def select_model(self, model: str) -> None:
        """Choose the model the application should answer with.

        Model pickers are application specific; the default only logs.
        """
        logger.info("Model selection requested (%s); not supported by %s", model, self.name)

    async def deliver_prompt(self, prompt: str, app: str, model: str | None = None) -> None:
        """Activate ``app``, enter ``prompt`` and submit it."""
        logger.info("Delivering prompt to %s (%d chars)", app, len(prompt))
        await self.activate(app)
        await asyncio.sleep(self._activate_delay)
        if model:
            await self.select_model(model)
        await self.input_text(prompt)
        await asyncio.sleep(self._input_delay)
        await self.submit()

    async def __aenter__(self) -> ApplicationDriver:
        """Async context manager entry -- connects the backend."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Async context manager exit -- disconnects the backend."""
        await self.disconnect()
