"""The completion orchestrator.

Ties together input delivery, the configured completion strategy and
optional text extraction into one episode:

    IDLE -> SUBMITTED -> WATCHING -> (EXTRACTING) -> RESOLVED
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from replywatch.automation import ApplicationDriver, create_driver
from replywatch.completion.base import CompletionStrategy
from replywatch.completion.formatting import DEFAULT_MESSAGE_LIMIT, format_response
from replywatch.completion.registry import available_strategies, create_strategy
from replywatch.completion.session import TargetSession
from replywatch.config.settings import Settings
from replywatch.domain.models import (
    CompletionResult,
    DependencyStatus,
    EpisodeOutcome,
    EpisodeState,
    EpisodeStatus,
    ImagePayload,
    WatchEpisode,
)
from replywatch.errors import (
    AutomationFailure,
    ConfigurationError,
    EpisodeBusyError,
    ExtractionError,
    WatchTimeoutError,
    describe_failure,
)
from replywatch.extract.extractor import TextExtractor, create_extractor
from replywatch.watcher.clipboard import create_clipboard_backend

logger = logging.getLogger(__name__)


class CompletionOrchestrator:
    """Runs one completion episode at a time for a single target.

    Example usage::

        orchestrator = CompletionOrchestrator.from_settings(load_settings())
        outcome = await orchestrator.run("Explain this stack trace")
        print(outcome.message)
    """

    def __init__(
        self,
        strategy: CompletionStrategy,
        driver: ApplicationDriver,
        session: TargetSession,
        extractor: TextExtractor | None = None,
        max_message_length: int = DEFAULT_MESSAGE_LIMIT,
        housekeeping: bool = True,
        extra_checks: list[CompletionStrategy] | None = None,
    ) -> None:
        self._strategy = strategy
        self._driver = driver
        self._session = session
        self._extractor = extractor
        self._max_message_length = max_message_length
        self._housekeeping = housekeeping
        self._extra_checks = extra_checks or []
        self._last_outcome: EpisodeOutcome | None = None
        self._last_episode_id = ""

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        strategy: str | None = None,
        driver: ApplicationDriver | None = None,
    ) -> CompletionOrchestrator:
        """Build an orchestrator from configuration.

        Raises:
            ConfigurationError: If the strategy or engine is unknown.
        """
        name = strategy or settings.orchestrator.strategy
        active = create_strategy(name, settings)
        others = [
            create_strategy(other, settings)
            for other in available_strategies()
            if other != name
        ]
        extractor = None
        if settings.extraction.enabled:
            extractor = create_extractor(settings.extraction, settings.vision_api_key())
        return cls(
            strategy=active,
            driver=driver
            or create_driver(
                settings.automation,
                clipboard=create_clipboard_backend(settings.clipboard.backend),
            ),
            session=TargetSession(settings.orchestrator.target_app),
            extractor=extractor,
            max_message_length=settings.orchestrator.max_message_length,
            housekeeping=settings.orchestrator.housekeeping,
            extra_checks=others,
        )

    @property
    def strategy(self) -> CompletionStrategy:
        return self._strategy

    @property
    def session(self) -> TargetSession:
        return self._session

    @property
    def last_outcome(self) -> EpisodeOutcome | None:
        return self._last_outcome

    @property
    def is_busy(self) -> bool:
        return self._session.is_busy

    async def submit(
        self,
        prompt: str,
        model: str | None = None,
        target_app: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> CompletionResult:
        """Deliver ``prompt`` to the target and wait for its answer.

        Raises:
            EpisodeBusyError: If an episode for this target is running.
            AutomationFailure: If input delivery fails.
            WatchTimeoutError: If no completion is detected in time
                (``WatchCancelledError`` when cancelled).
        """
        return await self._run_episode(prompt, model, target_app, cancel, None)

    async def watch(
        self,
        submitted_at: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> CompletionResult:
        """Run an episode for input the caller delivered themselves.

        Args:
            submitted_at: Reference instant (epoch seconds) of delivery;
                          defaults to now.
        """
        return await self._run_episode(None, None, None, cancel, submitted_at)

    async def run(
        self,
        prompt: str | None = None,
        model: str | None = None,
        target_app: str | None = None,
        cancel: asyncio.Event | None = None,
        submitted_at: float | None = None,
    ) -> EpisodeOutcome:
        """Run an episode and summarize it without raising.

        Errors from the replywatch taxonomy become TIMEOUT or FAILED
        outcomes whose message names the elapsed wait and the manual
        fallback. Without a prompt, only the watch runs.
        """
        started = time.monotonic()
        try:
            result = await self._run_episode(prompt, model, target_app, cancel, submitted_at)
        except EpisodeBusyError as e:
            # The live episode keeps its own outcome
            return EpisodeOutcome(
                episode_id="",
                status=EpisodeStatus.FAILED,
                message=describe_failure(e, 0.0),
            )
        except WatchTimeoutError as e:
            outcome = self._failed(EpisodeStatus.TIMEOUT, e, started)
        except (AutomationFailure, ConfigurationError) as e:
            outcome = self._failed(EpisodeStatus.FAILED, e, started)
        else:
            outcome = EpisodeOutcome(
                episode_id=self._last_episode_id,
                status=EpisodeStatus.SUCCESS,
                result=result,
                elapsed=result.elapsed,
                message=self._success_message(result),
            )
        self._last_outcome = outcome
        logger.info(
            "Episode %s resolved: %s after %.1fs",
            outcome.episode_id, outcome.status.value, outcome.elapsed,
        )
        return outcome

    def cancel(self) -> bool:
        """Abort the live episode, if any."""
        return self._session.cancel_episode()

    def delivery_payload(self, result: CompletionResult) -> str | Path:
        """Formatted text for text results, the artifact path for images."""
        if isinstance(result.payload, ImagePayload):
            return result.payload.path
        return format_response(result.payload.content, self._max_message_length)

    async def status(self) -> list[DependencyStatus]:
        """Dependency availability for every strategy, the extractor and the driver."""
        checks: list[DependencyStatus] = []
        for strategy in [self._strategy, *self._extra_checks]:
            checks.append(await self._check(f"strategy {strategy.name}", strategy.check_available))
        if self._extractor is not None:
            checks.append(await self._check("extraction", self._extractor.check_available))
        checks.append(await self._check("automation", self._driver.check_available))
        return checks

    # ------------------------------------------------------------------

    async def _run_episode(
        self,
        prompt: str | None,
        model: str | None,
        target_app: str | None,
        cancel: asyncio.Event | None,
        submitted_at: float | None,
    ) -> CompletionResult:
        episode = self._session.begin_episode(cancel)
        self._last_episode_id = episode.episode_id
        try:
            await self._strategy.open()
            try:
                if self._housekeeping:
                    self._run_housekeeping()
                await self._strategy.prepare(episode)

                if prompt is not None:
                    episode.submitted_at = time.time()
                    await self._deliver(prompt, model, target_app or self._session.target)
                else:
                    episode.submitted_at = submitted_at if submitted_at is not None else time.time()
                episode.state = EpisodeState.SUBMITTED

                episode.state = EpisodeState.WATCHING
                logger.info(
                    "Episode %s watching with strategy %s", episode.episode_id, self._strategy.name
                )
                result = await self._strategy.wait(self._strategy.config, episode)

                if result.is_image and self._extractor is not None:
                    episode.state = EpisodeState.EXTRACTING
                    result = await self._extract(result, episode)
                return result
            finally:
                await self._strategy.close()
        finally:
            self._session.end_episode(episode)

    async def _deliver(self, prompt: str, model: str | None, app: str) -> None:
        async with self._driver:
            await self._driver.deliver_prompt(prompt, app, model)

    async def _extract(self, result: CompletionResult, episode: WatchEpisode) -> CompletionResult:
        path = result.payload.path
        try:
            text = await self._extractor.extract(path)
        except ExtractionError as e:
            logger.warning("Text extraction failed, returning the image: %s", e)
            return result
        return CompletionResult.text(text, result.strategy, CompletionStrategy.elapsed(episode))

    def _run_housekeeping(self) -> None:
        try:
            removed = self._strategy.housekeeping()
        except OSError as e:
            logger.warning("Housekeeping failed: %s", e)
            return
        if removed:
            logger.debug("Housekeeping removed %d stale artifacts", removed)

    def _success_message(self, result: CompletionResult) -> str:
        payload = self.delivery_payload(result)
        if isinstance(payload, Path):
            return f"Response captured as image: {payload}"
        return payload

    def _failed(self, status: EpisodeStatus, error: Exception, started: float) -> EpisodeOutcome:
        elapsed = getattr(error, "elapsed", 0.0) or (time.monotonic() - started)
        logger.warning("Episode failed: %s", error)
        return EpisodeOutcome(
            episode_id=self._last_episode_id,
            status=status,
            elapsed=elapsed,
            message=describe_failure(error, elapsed),
        )

    @staticmethod
    async def _check(name: str, probe) -> DependencyStatus:
        try:
            return await probe()
        except Exception as e:
            logger.warning("Status check for %s failed: %s", name, e)
            return DependencyStatus(name=name, available=False, detail=str(e))
