"""Outbound message formatting."""

from __future__ import annotations

DEFAULT_MESSAGE_LIMIT = 4000


def truncation_marker(original_length: int) -> str:
    return f"\n\n...(truncated, {original_length} characters total)"


def format_response(content: str, limit: int = DEFAULT_MESSAGE_LIMIT) -> str:
    """Tidy response text for delivery.

    Trailing whitespace is stripped from every line and from the text as
    a whole. Text longer than ``limit`` characters is cut at ``limit``
    and followed by a marker naming the original length.
    """
    text = "\n".join(line.rstrip(" \t") for line in content.split("\n")).strip()
    if len(text) <= limit:
        return text
    return text[:limit] + truncation_marker(len(text))
