"""Best-effort text extraction from captured images."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from replywatch.config.settings import ExtractionConfig
from replywatch.domain.models import DependencyStatus
from replywatch.errors import ConfigurationError, ExtractionError
from replywatch.extract.engines import (
    CommandEngine,
    RecognitionEngine,
    TesseractEngine,
    VisionModelEngine,
)
from replywatch.extract.filter import NoiseFilter

logger = logging.getLogger(__name__)


class TextExtractor:
    """Runs a recognition engine and filters its output.

    Example usage::

        extractor = TextExtractor(TesseractEngine(languages="eng"))
        text = await extractor.extract(Path("screen.png"))
    """

    def __init__(
        self,
        engine: RecognitionEngine,
        noise_filter: NoiseFilter | None = None,
    ) -> None:
        self._engine = engine
        self._filter = noise_filter or NoiseFilter()

    @property
    def engine(self) -> RecognitionEngine:
        return self._engine

    async def extract(self, image_path: Path | str) -> str:
        """Extract response text from an image.

        Raises:
            ExtractionError: If the image is missing, the engine fails, or
                nothing usable was recognized.
        """
        path = Path(image_path)
        if not path.is_file():
            raise ExtractionError(f"Image not found: {path}", engine=self._engine.name)

        logger.info("Running %s text extraction on %s", self._engine.name, path.name)
        raw = (await self._engine.recognize(path)).strip()
        if not raw:
            raise ExtractionError("Recognition produced no text", engine=self._engine.name)
        logger.info("Extracted %d characters before cleanup", len(raw))

        text = self._filter.apply(raw) if self._engine.filters_output else raw
        if not text:
            raise ExtractionError(
                "No response text left after filtering", engine=self._engine.name, output=raw
            )
        logger.info("Cleaned to %d characters", len(text))
        return text

    async def check_available(self) -> DependencyStatus:
        return await self._engine.check_available()


def create_engine(config: ExtractionConfig, api_key: str = "") -> RecognitionEngine:
    """Build the recognition engine named by ``config.engine``."""
    if config.engine == "tesseract":
        return TesseractEngine(languages=config.languages, enhance=config.enhance)
    if config.engine == "command":
        try:
            return CommandEngine(config.command, timeout=config.command_timeout)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
    if config.engine == "vision":
        return VisionModelEngine(
            api_key=api_key,
            model=config.vision_model,
            base_url=config.vision_base_url,
            max_tokens=config.max_tokens,
        )
    raise ConfigurationError(f"Unknown extraction engine: {config.engine}")


def create_extractor(config: ExtractionConfig, api_key: str = "") -> TextExtractor:
    """Build a TextExtractor from configuration."""
    try:
        noise_filter = NoiseFilter.with_extra_skips(
            config.extra_skip_patterns,
            min_line_length=config.min_line_length,
            prose_length=config.prose_length,
            min_result_length=config.min_result_length,
            substantial_input_length=config.substantial_input_length,
        )
    except re.error as e:
        raise ConfigurationError(f"Invalid extra skip pattern: {e}") from e
    return TextExtractor(create_engine(config, api_key), noise_filter)
