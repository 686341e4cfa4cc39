"""Tests for the text extractor and recognition engines."""

from __future__ import annotations

import asyncio
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest

from replywatch.config.settings import ExtractionConfig
from replywatch.domain.models import DependencyStatus
from replywatch.errors import ConfigurationError, ExtractionError
from replywatch.extract.engines import (
    CommandEngine,
    RecognitionEngine,
    TesseractEngine,
    VisionModelEngine,
)
from replywatch.extract.extractor import TextExtractor, create_engine, create_extractor
from replywatch.utils.imaging import save_png
from replywatch.utils.process import CommandResult

PROSE = "The migration failed because the users table already has that column."


class StaticEngine(RecognitionEngine):
    name = "static"

    def __init__(self, text: str, filters_output: bool = True) -> None:
        self._text = text
        self.filters_output = filters_output

    async def recognize(self, image_path: Path) -> str:
        return self._text

    async def check_available(self) -> DependencyStatus:
        return DependencyStatus(name="static", available=True)


@pytest.fixture
def image_file(tmp_path: Path) -> Path:
    path = tmp_path / "monitor_1.png"
    path.write_bytes(b"not really a png")
    return path


@pytest.fixture
def png_file(tmp_path: Path, sample_image: np.ndarray) -> Path:
    return save_png(sample_image, tmp_path / "monitor_2.png")


class TestTextExtractor:
    @pytest.mark.asyncio
    async def test_filters_engine_output(self, image_file: Path) -> None:
        extractor = TextExtractor(StaticEngine(f"Open Editors\n42\n{PROSE}\n"))
        assert await extractor.extract(image_file) == PROSE

    @pytest.mark.asyncio
    async def test_unfiltered_engine(self, image_file: Path) -> None:
        extractor = TextExtractor(StaticEngine("42\nok", filters_output=False))
        assert await extractor.extract(image_file) == "42\nok"

    @pytest.mark.asyncio
    async def test_missing_image(self, tmp_path: Path) -> None:
        extractor = TextExtractor(StaticEngine(PROSE))
        with pytest.raises(ExtractionError, match="not found"):
            await extractor.extract(tmp_path / "missing.png")

    @pytest.mark.asyncio
    async def test_empty_recognition(self, image_file: Path) -> None:
        extractor = TextExtractor(StaticEngine("   \n"))
        with pytest.raises(ExtractionError, match="no text"):
            await extractor.extract(image_file)

    @pytest.mark.asyncio
    async def test_everything_filtered(self, image_file: Path) -> None:
        extractor = TextExtractor(StaticEngine("12\n13"))
        with pytest.raises(ExtractionError) as excinfo:
            await extractor.extract(image_file)
        assert excinfo.value.output == "12\n13"


class TestCommandEngine:
    def test_placeholder_replaced(self, image_file: Path) -> None:
        engine = CommandEngine(["swift", "ocr.swift", "{image}"])
        assert engine.build_args(image_file) == ["swift", "ocr.swift", str(image_file.resolve())]

    def test_path_appended_without_placeholder(self, image_file: Path) -> None:
        engine = CommandEngine(["ocr-tool", "--fast"])
        assert engine.build_args(image_file)[-1] == str(image_file.resolve())

    def test_empty_template(self) -> None:
        with pytest.raises(ValueError):
            CommandEngine([])

    @pytest.mark.asyncio
    async def test_recognize_returns_stdout(self, image_file: Path) -> None:
        with patch(
            "replywatch.extract.engines.run_command",
            AsyncMock(return_value=CommandResult(0, "recognized", "")),
        ):
            assert await CommandEngine(["ocr", "{image}"]).recognize(image_file) == "recognized"

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, image_file: Path) -> None:
        with patch(
            "replywatch.extract.engines.run_command",
            AsyncMock(return_value=CommandResult(2, "", "bad image")),
        ):
            with pytest.raises(ExtractionError, match="exited with 2") as excinfo:
                await CommandEngine(["ocr"]).recognize(image_file)
        assert excinfo.value.output == "bad image"

    @pytest.mark.asyncio
    async def test_not_found(self, image_file: Path) -> None:
        with patch(
            "replywatch.extract.engines.run_command",
            AsyncMock(side_effect=FileNotFoundError("ocr")),
        ):
            with pytest.raises(ExtractionError, match="not found"):
                await CommandEngine(["ocr"]).recognize(image_file)

    @pytest.mark.asyncio
    async def test_timeout(self, image_file: Path) -> None:
        with patch(
            "replywatch.extract.engines.run_command",
            AsyncMock(side_effect=asyncio.TimeoutError()),
        ):
            with pytest.raises(ExtractionError, match="timed out"):
                await CommandEngine(["ocr"], timeout=1).recognize(image_file)


class TestVisionModelEngine:
    def test_output_is_not_filtered(self) -> None:
        assert VisionModelEngine(api_key="sk").filters_output is False

    @pytest.mark.asyncio
    async def test_requires_api_key(self, image_file: Path) -> None:
        with pytest.raises(ExtractionError, match="No API key"):
            await VisionModelEngine(api_key="").recognize(image_file)

    @pytest.mark.asyncio
    async def test_check_available_without_key(self) -> None:
        status = await VisionModelEngine(api_key="").check_available()
        assert not status.available

    @pytest.mark.asyncio
    async def test_recognize_returns_model_reply(self, png_file: Path) -> None:
        reply = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=PROSE))]
        )
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=reply)

        with patch("openai.AsyncOpenAI", return_value=client) as client_cls:
            engine = VisionModelEngine(
                api_key="sk-or",
                model="qwen/qwen2.5-vl",
                base_url="https://openrouter.ai/api/v1",
            )
            assert await engine.recognize(png_file) == PROSE

        client_cls.assert_called_once_with(
            api_key="sk-or", base_url="https://openrouter.ai/api/v1"
        )
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "qwen/qwen2.5-vl"
        image_part = kwargs["messages"][1]["content"][0]
        assert image_part["image_url"]["url"].startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_api_error(self, png_file: Path) -> None:
        from openai import OpenAIError

        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=OpenAIError("rate limited"))
        with patch("openai.AsyncOpenAI", return_value=client):
            with pytest.raises(ExtractionError, match="Vision API call failed"):
                await VisionModelEngine(api_key="sk").recognize(png_file)


class TestTesseractEngine:
    @pytest.mark.asyncio
    async def test_undecodable_image(self, image_file: Path) -> None:
        with pytest.raises(ExtractionError, match="Cannot decode"):
            await TesseractEngine().recognize(image_file)

    @pytest.mark.asyncio
    async def test_recognize_passes_languages(self, png_file: Path) -> None:
        with patch("pytesseract.image_to_string", return_value=PROSE) as ocr:
            text = await TesseractEngine(languages="chi_tra+eng").recognize(png_file)

        assert text == PROSE
        assert ocr.call_args.kwargs["lang"] == "chi_tra+eng"

    @pytest.mark.asyncio
    async def test_tesseract_missing(self, png_file: Path) -> None:
        import pytesseract

        with patch(
            "pytesseract.image_to_string",
            side_effect=pytesseract.TesseractNotFoundError(),
        ):
            with pytest.raises(ExtractionError, match="Tesseract failed"):
                await TesseractEngine(enhance=False).recognize(png_file)


class TestFactories:
    def test_create_engine_by_name(self) -> None:
        assert isinstance(create_engine(ExtractionConfig(engine="tesseract")), TesseractEngine)
        assert isinstance(create_engine(ExtractionConfig(engine="command")), CommandEngine)
        assert isinstance(create_engine(ExtractionConfig(engine="vision"), "sk"), VisionModelEngine)

    def test_empty_command_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            create_engine(ExtractionConfig(engine="command", command=[]))

    def test_invalid_skip_pattern(self) -> None:
        with pytest.raises(ConfigurationError, match="skip pattern"):
            create_extractor(ExtractionConfig(extra_skip_patterns=["(unclosed"]))

    def test_extra_skip_patterns_applied(self) -> None:
        extractor = create_extractor(ExtractionConfig(extra_skip_patterns=["^Cursor"]))
        assert extractor.engine.name == "tesseract"
