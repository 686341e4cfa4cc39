"""Image processing utilities for replywatch.

Shared image loading, encoding, and preprocessing functions used by the
capture backends and the recognition engines.
"""

from __future__ import annotations

import base64
import logging
from pathlib import Path

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


def load_image(path: Path | str) -> np.ndarray:
    """Read an image file into a BGR numpy array.

    Raises:
        ValueError: If the file is missing or not a decodable image.
    """
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError(f"Cannot decode image at {path}")
    return image


def save_png(image: np.ndarray, path: Path | str) -> Path:
    """Write a BGR numpy array to a PNG file and return its path."""
    if not cv2.imwrite(str(path), image):
        raise ValueError(f"Failed to write PNG to {path}")
    return Path(path)


def numpy_to_base64_png(image: np.ndarray) -> str:
    """Convert a numpy image array (BGR, OpenCV format) to base64 PNG."""
    success, buffer = cv2.imencode(".png", image)
    if not success:
        raise ValueError("Failed to encode image to PNG")
    return base64.b64encode(buffer.tobytes()).decode("utf-8")


def numpy_to_pil(image: np.ndarray) -> Image.Image:
    """Convert a numpy image array (BGR) to a PIL Image (RGB)."""
    rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    return Image.fromarray(rgb)


def enhance_for_ocr(image: np.ndarray) -> np.ndarray:
    """Enhance a screen capture for text recognition.

    Produces high-contrast black text on white background regardless of
    input polarity (works for both dark and light editor themes).
    """
    gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

    # Apply CLAHE for local contrast enhancement
    clahe = cv2.createCLAHE(clipLimit=3.0, tileGridSize=(8, 8))
    enhanced = clahe.apply(gray)

    # Otsu threshold to get binary text
    _, binary = cv2.threshold(enhanced, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)

    # Ensure black-on-white: if majority of pixels are dark, invert
    white_ratio = np.mean(binary) / 255.0
    if white_ratio < 0.5:
        binary = cv2.bitwise_not(binary)

    return cv2.cvtColor(binary, cv2.COLOR_GRAY2BGR)


def resize_for_mllm(
    image: np.ndarray,
    max_dimension: int = 1568,
    min_dimension: int = 1024,
) -> np.ndarray:
    """Resize an image before sending it to a vision model.

    Preserves aspect ratio. Downscales large images and upscales
    small images so text stays readable.
    """
    h, w = image.shape[:2]
    largest = max(h, w)

    if largest > max_dimension:
        scale = max_dimension / largest
        new_w = int(w * scale)
        new_h = int(h * scale)
        return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)
    elif largest < min_dimension:
        scale = min_dimension / largest
        new_w = int(w * scale)
        new_h = int(h * scale)
        return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_CUBIC)

    return image
