"""Text extraction from captured screen images.

Public API:
    TextExtractor -- Runs an engine and the noise filter
    NoiseFilter -- Ordered rule list separating response text from UI text
    RecognitionEngine -- Abstract base class for engines
    TesseractEngine -- Local OCR via pytesseract
    CommandEngine -- Any external OCR command
    VisionModelEngine -- OpenAI-compatible vision model
"""

from replywatch.extract.engines import (
    CommandEngine,
    RecognitionEngine,
    TesseractEngine,
    VisionModelEngine,
)
from replywatch.extract.extractor import TextExtractor, create_engine, create_extractor
from replywatch.extract.filter import DEFAULT_RULES, NoiseFilter

__all__ = [
    "CommandEngine",
    "DEFAULT_RULES",
    "NoiseFilter",
    "RecognitionEngine",
    "TesseractEngine",
    "TextExtractor",
    "VisionModelEngine",
    "create_engine",
    "create_extractor",
]
