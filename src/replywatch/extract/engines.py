"""Text recognition engines.

Each engine turns an image file into raw text. Engines do not filter
their output; the noise filter is applied by the extractor.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from replywatch.domain.models import DependencyStatus
from replywatch.errors import ExtractionError
from replywatch.utils.imaging import (
    enhance_for_ocr,
    load_image,
    numpy_to_base64_png,
    numpy_to_pil,
    resize_for_mllm,
)
from replywatch.utils.process import run_command, which

logger = logging.getLogger(__name__)

VISION_SYSTEM_PROMPT = """You are looking at a screenshot of an IDE with an AI assistant panel.
Extract the assistant's response.

Rules:
1. Extract only the assistant's reply, not the user's question
2. Keep the formatting of code blocks
3. Leave out descriptions of user interface elements
4. If there is no clear response on screen, answer "No response detected"
5. Answer in the language the response is written in

Output the extracted response text directly."""


class RecognitionEngine(ABC):
    """Abstract interface for image-to-text recognition."""

    name: str = "engine"
    # Whether the extractor runs the noise filter over recognize() output
    filters_output: bool = True

    @abstractmethod
    async def recognize(self, image_path: Path) -> str:
        """Return the raw text recognized in ``image_path``.

        Raises:
            ExtractionError: If the engine cannot be invoked or fails.
        """
        ...

    @abstractmethod
    async def check_available(self) -> DependencyStatus:
        ...


class TesseractEngine(RecognitionEngine):
    """Local OCR through Tesseract, with OpenCV preprocessing."""

    name = "tesseract"

    def __init__(self, languages: str = "eng", enhance: bool = True) -> None:
        self._languages = languages
        self._enhance = enhance

    async def recognize(self, image_path: Path) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._recognize_sync, image_path)

    def _recognize_sync(self, image_path: Path) -> str:
        import pytesseract

        try:
            image = load_image(image_path)
        except ValueError as e:
            raise ExtractionError(str(e), engine=self.name) from e
        if self._enhance:
            image = enhance_for_ocr(image)
        try:
            return pytesseract.image_to_string(numpy_to_pil(image), lang=self._languages)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as e:
            raise ExtractionError(f"Tesseract failed: {e}", engine=self.name) from e

    async def check_available(self) -> DependencyStatus:
        loop = asyncio.get_running_loop()
        try:
            import pytesseract

            version = await loop.run_in_executor(None, pytesseract.get_tesseract_version)
        except (ImportError, OSError) as e:
            return DependencyStatus(name="ocr (tesseract)", available=False, detail=str(e))
        return DependencyStatus(name="ocr (tesseract)", available=True, detail=f"v{version}")


class CommandEngine(RecognitionEngine):
    """Runs an external OCR command and reads its stdout.

    The argument template is a list in which ``{image}`` is replaced by
    the absolute image path, e.g. ``["swift", "ocr.swift", "{image}"]``.
    """

    name = "command"

    def __init__(self, command: list[str], timeout: float = 60.0) -> None:
        if not command:
            raise ValueError("OCR command template must not be empty")
        self._command = list(command)
        self._timeout = timeout

    def build_args(self, image_path: Path) -> list[str]:
        absolute = str(Path(image_path).resolve())
        args = [part.replace("{image}", absolute) for part in self._command]
        if not any("{image}" in part for part in self._command):
            args.append(absolute)
        return args

    async def recognize(self, image_path: Path) -> str:
        args = self.build_args(image_path)
        try:
            result = await run_command(args, timeout=self._timeout)
        except FileNotFoundError as e:
            raise ExtractionError(f"OCR command not found: {args[0]}", engine=self.name) from e
        except asyncio.TimeoutError as e:
            raise ExtractionError(
                f"OCR command timed out after {self._timeout:.0f}s", engine=self.name
            ) from e
        if not result.ok:
            raise ExtractionError(
                f"OCR command exited with {result.returncode}",
                engine=self.name,
                output=result.stderr or result.stdout,
            )
        return result.stdout

    async def check_available(self) -> DependencyStatus:
        path = which(self._command[0])
        return DependencyStatus(
            name=f"ocr ({self._command[0]})",
            available=path is not None,
            detail=path or "not found on PATH",
        )


class VisionModelEngine(RecognitionEngine):
    """Asks an OpenAI-compatible vision model to read the response.

    Works with OpenAI, OpenRouter, and any OpenAI-compatible API by
    setting a custom base_url.
    """

    name = "vision"
    filters_output = False

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        max_tokens: int = 1024,
        system_prompt: str = VISION_SYSTEM_PROMPT,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url
        self._max_tokens = max_tokens
        self._system_prompt = system_prompt
        self._client = None

    async def _ensure_client(self) -> None:
        """Lazily initialize the OpenAI async client."""
        if self._client is not None:
            return
        from openai import AsyncOpenAI

        kwargs = {"api_key": self._api_key}
        if self._base_url:
            kwargs["base_url"] = self._base_url
        self._client = AsyncOpenAI(**kwargs)
        logger.info("Initialized vision client (model=%s, base_url=%s)", self._model, self._base_url)

    async def recognize(self, image_path: Path) -> str:
        if not self._api_key:
            raise ExtractionError("No API key configured for the vision engine", engine=self.name)
        await self._ensure_client()

        try:
            image = load_image(image_path)
        except ValueError as e:
            raise ExtractionError(str(e), engine=self.name) from e
        b64_image = numpy_to_base64_png(resize_for_mllm(image))

        messages = [
            {"role": "system", "content": self._system_prompt},
            {
                "role": "user",
                "content": [
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": f"data:image/png;base64,{b64_image}",
                            "detail": "high",
                        },
                    },
                    {
                        "type": "text",
                        "text": "Extract the assistant's response from this screenshot.",
                    },
                ],
            },
        ]

        from openai import OpenAIError

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=messages,
            )
        except OpenAIError as e:
            raise ExtractionError(f"Vision API call failed: {e}", engine=self.name) from e

        raw_text = response.choices[0].message.content or ""
        logger.debug("Vision raw response: %s", raw_text[:200])
        return raw_text

    async def check_available(self) -> DependencyStatus:
        if not self._api_key:
            return DependencyStatus(name="ocr (vision)", available=False, detail="no API key")
        return DependencyStatus(name="ocr (vision)", available=True, detail=self._model)
