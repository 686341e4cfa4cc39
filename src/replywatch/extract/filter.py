"""Noise filter for text recognized from screen captures.

A screen capture of an editor-hosted assistant contains far more than
the answer: dates, tab titles, status-bar banners, line numbers and
code. The filter keeps lines that read like response prose and drops
the interface chrome, using an ordered list of rules followed by a
prose heuristic.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Sequence

from replywatch.domain.models import NoiseFilterRule, RuleAction

logger = logging.getLogger(__name__)

# CJK Unified Ideographs, Extension A, and Compatibility Ideographs
HAN_RUN = re.compile(r"[㐀-䶿一-鿿豈-﫿]{3,}")

DEFAULT_SKIP_RULES: tuple[NoiseFilterRule, ...] = (
    NoiseFilterRule.skip(r"^\d+月\d+日", "date"),
    NoiseFilterRule.skip(r"^[上下]午\d+:\d+", "time of day"),
    NoiseFilterRule.skip(r"^Open\s", "Open ... menu entries"),
    NoiseFilterRule.skip(r"^S\s?Code", "truncated VS Code title"),
    NoiseFilterRule.skip(r"^f\d+\s", "walkthrough entries"),
    NoiseFilterRule.skip(r"^@id:", "extension ids"),
    NoiseFilterRule.skip(r"^import[（(]", "import statements"),
    NoiseFilterRule.skip(r'^"', "quoted code"),
    NoiseFilterRule.skip(r"^\d+$", "line numbers"),
    NoiseFilterRule.skip(r"^Step\s+Id:", "step ids"),
    NoiseFilterRule.skip(r"uses\s+Open\s+VSX", "Open VSX banner"),
    NoiseFilterRule.skip(r"marketplace", "marketplace banner"),
    NoiseFilterRule.skip(r"Checked\s+command", "debug banner"),
    NoiseFilterRule.skip(r"^回\s", "icon glyph rows"),
    NoiseFilterRule.skip(r"^[〉›>\[\]{}()]+$", "bracket-only rows"),
)

RESPONSE_INDICATORS = (
    "✅", "❌", "🚀", "📝", "📸", "🔍", "⏱️", "⚠️",
    "回應", "已送出", "執行", "完成", "失敗", "成功",
)

DEFAULT_KEEP_RULES: tuple[NoiseFilterRule, ...] = tuple(
    NoiseFilterRule.keep(re.escape(token), "response indicator")
    for token in RESPONSE_INDICATORS
)

DEFAULT_RULES: tuple[NoiseFilterRule, ...] = DEFAULT_SKIP_RULES + DEFAULT_KEEP_RULES


class NoiseFilter:
    """Separates response prose from UI text, line by line.

    Each stripped line is evaluated in order:

    1. Blank lines and lines shorter than ``min_line_length`` are dropped.
    2. The first matching rule decides: SKIP drops the line, KEEP keeps it.
    3. Unmatched lines are kept only if they look like prose: a run of
       at least three Han ideographs, or longer than ``prose_length``.

    If that leaves less than ``min_result_length`` characters from an
    input longer than ``substantial_input_length``, the filter was too
    aggressive and the unfiltered text is returned instead.

    All lengths count Unicode characters, not encoded bytes, so a CJK
    line meets the thresholds at the same length as a Latin one.
    """

    def __init__(
        self,
        rules: Sequence[NoiseFilterRule] = DEFAULT_RULES,
        min_line_length: int = 3,
        prose_length: int = 20,
        min_result_length: int = 50,
        substantial_input_length: int = 100,
    ) -> None:
        self._rules = tuple(rules)
        self._min_line_length = min_line_length
        self._prose_length = prose_length
        self._min_result_length = min_result_length
        self._substantial_input_length = substantial_input_length

    @classmethod
    def with_extra_skips(cls, patterns: Iterable[str], **kwargs) -> NoiseFilter:
        """Build a filter whose extra skip patterns run ahead of the defaults."""
        extra = tuple(NoiseFilterRule.skip(p, "configured") for p in patterns)
        return cls(rules=extra + DEFAULT_RULES, **kwargs)

    @property
    def rules(self) -> tuple[NoiseFilterRule, ...]:
        return self._rules

    def keep_line(self, line: str) -> bool:
        """Decide a single, already stripped line."""
        if len(line) < self._min_line_length:
            return False
        for rule in self._rules:
            if rule.matches(line):
                return rule.action is RuleAction.KEEP
        return HAN_RUN.search(line) is not None or len(line) > self._prose_length

    def apply(self, text: str) -> str:
        text = text.strip()
        kept = [
            line
            for line in (raw.strip() for raw in text.splitlines())
            if line and self.keep_line(line)
        ]
        result = "\n".join(kept)

        if (
            len(result) < self._min_result_length
            and len(text) > self._substantial_input_length
        ):
            logger.info("Noise filter too aggressive (%d of %d chars), keeping raw text",
                        len(result), len(text))
            return text

        logger.debug("Noise filter kept %d of %d lines", len(kept), len(text.splitlines()))
        return result
