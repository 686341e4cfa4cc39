"""FastAPI HTTP server for status queries and episode submission.

Lets a chat bot or another local process start a completion episode,
poll for its outcome, cancel it, and check which external dependencies
are available.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from replywatch import __version__
from replywatch.completion.forwarder import ResponseForwarder
from replywatch.completion.orchestrator import CompletionOrchestrator
from replywatch.domain.models import DependencyStatus, EpisodeOutcome

logger = logging.getLogger(__name__)


class RunRequest(BaseModel):
    prompt: str | None = Field(default=None, description="Prompt to deliver; omit to only watch")
    model: str | None = Field(default=None, description="Model to select in the application")
    target_app: str | None = Field(default=None, description="Application to activate")
    delivery_target: str | None = Field(default=None, description="Where responses should go")


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = __version__


class StatusResponse(BaseModel):
    strategy: str
    target: str
    busy: bool
    episode_id: str | None = None
    episode_state: str | None = None
    delivery_target: Any = None
    dependencies: list[DependencyStatus] = Field(default_factory=list)


def create_app(
    orchestrator: CompletionOrchestrator,
    forwarder: ResponseForwarder | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Startup
        if forwarder is not None:
            app.state.forwarder_task = asyncio.create_task(forwarder.run())
        logger.info("API started (strategy=%s)", orchestrator.strategy.name)
        yield
        # Shutdown
        orchestrator.cancel()
        task = app.state.episode_task
        if task is not None and not task.done():
            try:
                await task
            except asyncio.CancelledError:
                pass
        if forwarder is not None:
            forwarder.stop()
            await app.state.forwarder_task
        logger.info("API stopped")

    app = FastAPI(
        title="replywatch",
        description="Response-completion detection for GUI assistants",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.orchestrator = orchestrator
    app.state.episode_task = None
    app.state.forwarder_task = None

    def _busy() -> bool:
        task = app.state.episode_task
        return orchestrator.is_busy or (task is not None and not task.done())

    @app.get("/health")
    async def health_check() -> HealthResponse:
        return HealthResponse()

    @app.get("/status")
    async def get_status() -> StatusResponse:
        episode = orchestrator.session.current_episode
        return StatusResponse(
            strategy=orchestrator.strategy.name,
            target=orchestrator.session.target,
            busy=_busy(),
            episode_id=episode.episode_id if episode else None,
            episode_state=episode.state.value if episode else None,
            delivery_target=orchestrator.session.get_delivery_target(),
            dependencies=await orchestrator.status(),
        )

    @app.post("/run", status_code=202)
    async def start_run(request: RunRequest) -> dict[str, str]:
        if _busy():
            raise HTTPException(status_code=409, detail="An episode is already running")
        if request.delivery_target is not None:
            orchestrator.session.set_delivery_target(request.delivery_target)
        app.state.episode_task = asyncio.create_task(
            orchestrator.run(
                prompt=request.prompt,
                model=request.model,
                target_app=request.target_app,
            )
        )
        return {"status": "started"}

    @app.get("/episode")
    async def get_episode() -> EpisodeOutcome:
        outcome = orchestrator.last_outcome
        if outcome is None:
            raise HTTPException(status_code=404, detail="No episode has finished yet")
        return outcome

    @app.post("/cancel")
    async def cancel_episode() -> dict[str, bool]:
        return {"cancelled": orchestrator.cancel()}

    return app


def serve(app: FastAPI, host: str = "127.0.0.1", port: int = 8090) -> None:
    """Run the API with uvicorn until interrupted."""
    uvicorn.run(app, host=host, port=port)
