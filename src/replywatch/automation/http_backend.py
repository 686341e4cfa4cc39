"""HTTP automation backend.

Sends keyboard actions as HTTP requests to a keyboard endpoint (for
example a Bluetooth HID bridge attached to the machine running the
target application).
"""

from __future__ import annotations

import logging

import httpx

from replywatch.automation.base import ApplicationDriver
from replywatch.domain.models import DependencyStatus
from replywatch.errors import AutomationFailure

logger = logging.getLogger(__name__)


class HttpApplicationDriver(ApplicationDriver):
    """Drives the target through a remote keyboard endpoint."""

    name = "http"

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        timeout: float = 10.0,
        input_delay: float = 0.1,
        activate_delay: float = 0.5,
    ) -> None:
        super().__init__(input_delay=input_delay, activate_delay=activate_delay)
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the HTTP client and verify endpoint connectivity."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
        )
        try:
            resp = await self._client.get("/health")
            resp.raise_for_status()
            logger.info("Connected to keyboard endpoint at %s", self._base_url)
        except httpx.HTTPError as e:
            await self._client.aclose()
            self._client = None
            raise AutomationFailure(
                f"Failed to connect to keyboard endpoint: {e}", backend=self.name
            ) from e

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Disconnected from keyboard endpoint")

    async def activate(self, app: str) -> None:
        # A keyboard cannot switch applications; the target must be focused
        logger.info("Assuming %s is focused on the remote machine", app)

    async def input_text(self, text: str) -> None:
        await self._post("/text", {"text": text})
        logger.debug("Sent text: %s", text[:50])

    async def submit(self) -> None:
        try:
            await self._post("/key-combo", {"modifiers": ["meta"], "key": "Enter"})
        except AutomationFailure as e:
            logger.warning("Meta+Enter failed (%s), falling back to Enter", e)
            await self._post("/keystroke", {"key": "Enter"})

    async def check_available(self) -> DependencyStatus:
        try:
            async with httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout) as client:
                resp = await client.get("/health")
                resp.raise_for_status()
        except httpx.HTTPError as e:
            return DependencyStatus(name="automation (http)", available=False, detail=str(e))
        return DependencyStatus(name="automation (http)", available=True, detail=self._base_url)

    async def _post(self, path: str, payload: dict) -> httpx.Response:
        """Send a POST request to the endpoint."""
        if self._client is None:
            raise AutomationFailure("Not connected to keyboard endpoint", backend=self.name)
        try:
            resp = await self._client.post(path, json=payload)
            resp.raise_for_status()
            return resp
        except httpx.HTTPError as e:
            raise AutomationFailure(
                f"HTTP request to {path} failed: {e}", backend=self.name
            ) from e
