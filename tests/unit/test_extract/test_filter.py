"""Tests for the recognized-text noise filter."""

from __future__ import annotations

import pytest

from replywatch.domain.models import NoiseFilterRule
from replywatch.extract.filter import DEFAULT_RULES, NoiseFilter


@pytest.fixture
def noise_filter() -> NoiseFilter:
    return NoiseFilter()


class TestKeepLine:
    @pytest.mark.parametrize(
        "line",
        [
            "10月18日 星期六",
            "上午10:42",
            "Open Editors",
            "S Code - main.py",
            "f1 Get started",
            "@id:ms-python.python",
            "import(os)",
            '"key": "value"',
            "128",
            "Step Id: 4",
            "This editor uses Open VSX for extensions",
            "Browse the marketplace",
            "Checked command status",
            "回 Terminal",
            "[]{}",
        ],
    )
    def test_interface_chrome_is_dropped(self, noise_filter: NoiseFilter, line: str) -> None:
        assert not noise_filter.keep_line(line)

    def test_short_lines_dropped(self, noise_filter: NoiseFilter) -> None:
        assert not noise_filter.keep_line("ok")

    def test_han_run_kept(self, noise_filter: NoiseFilter) -> None:
        assert noise_filter.keep_line("這是回答")

    def test_long_prose_kept(self, noise_filter: NoiseFilter) -> None:
        assert noise_filter.keep_line("The function returns early when the cache is warm.")

    def test_short_latin_dropped(self, noise_filter: NoiseFilter) -> None:
        assert not noise_filter.keep_line("File Edit View")

    def test_lengths_count_characters(self, noise_filter: NoiseFilter) -> None:
        # 17 characters but 45 UTF-8 bytes and no Han run
        line = "네 알겠습니다 바로 고치겠습니다"
        assert len(line) <= 20 < len(line.encode("utf-8"))
        assert not noise_filter.keep_line(line)
        assert not noise_filter.keep_line("好的")

    def test_response_indicator_kept(self, noise_filter: NoiseFilter) -> None:
        assert noise_filter.keep_line("✅ Done")

    def test_first_matching_rule_wins(self) -> None:
        """A skip rule placed first overrides a later keep rule."""
        custom = NoiseFilter.with_extra_skips([r"^✅ Ignored"])
        assert not custom.keep_line("✅ Ignored entry")
        assert custom.keep_line("✅ Done")
        assert len(custom.rules) == len(DEFAULT_RULES) + 1

    def test_custom_rules_only(self) -> None:
        custom = NoiseFilter(rules=[NoiseFilterRule.keep(r"^ok$")], min_line_length=1)
        assert custom.keep_line("ok")
        assert not custom.keep_line("short")


class TestApply:
    def test_keeps_prose_between_chrome(self, noise_filter: NoiseFilter) -> None:
        text = (
            "Open Editors\n"
            "12\n"
            "\n"
            "The failing test imports the wrong settings module.\n"
            "13\n"
            "Switch the import to the local package and rerun pytest.\n"
        )
        assert noise_filter.apply(text) == (
            "The failing test imports the wrong settings module.\n"
            "Switch the import to the local package and rerun pytest."
        )

    def test_safety_valve_returns_raw_text(self, noise_filter: NoiseFilter) -> None:
        """If filtering leaves almost nothing from a large input, keep the input."""
        lines = [f"{n}" for n in range(1, 60)]
        text = "\n".join(lines) + "\n"
        assert len(text) > 100
        assert noise_filter.apply(text) == text.strip()

    def test_small_input_may_filter_to_empty(self, noise_filter: NoiseFilter) -> None:
        assert noise_filter.apply("12\n13\n") == ""

    def test_strips_whitespace(self, noise_filter: NoiseFilter) -> None:
        text = "   The answer is forty-two, as computed above.   \n\n"
        assert noise_filter.apply(text) == "The answer is forty-two, as computed above."
