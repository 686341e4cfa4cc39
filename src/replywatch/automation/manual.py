"""Manual delivery: the user enters the prompt themselves."""

from __future__ import annotations

import logging

from replywatch.automation.base import ApplicationDriver
from replywatch.domain.models import DependencyStatus

logger = logging.getLogger(__name__)


class ManualDriver(ApplicationDriver):
    """Logs the prompt instead of typing it.

    Used when no automation is possible on this machine; the completion
    watch still runs, so the user only has to paste and submit.
    """

    name = "manual"

    def __init__(self) -> None:
        super().__init__(input_delay=0.0, activate_delay=0.0)
        self.delivered: list[str] = []

    async def activate(self, app: str) -> None:
        logger.info("Switch to %s and paste the prompt below", app)

    async def input_text(self, text: str) -> None:
        self.delivered.append(text)
        logger.info("Prompt:\n%s", text)

    async def submit(self) -> None:
        logger.info("Submit the prompt; watching for the response now")

    async def check_available(self) -> DependencyStatus:
        return DependencyStatus(name="automation (manual)", available=True, detail="user delivers input")
