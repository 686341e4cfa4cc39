"""Tests for the target session, registry and response formatting."""

from __future__ import annotations

import asyncio
import threading

import pytest

from replywatch.completion.formatting import format_response, truncation_marker
from replywatch.completion.registry import (
    available_strategies,
    create_strategy,
    register_strategy,
)
from replywatch.completion.session import TargetSession
from replywatch.domain.models import EpisodeState
from replywatch.errors import ConfigurationError, EpisodeBusyError


class TestFormatResponse:
    def test_short_text_unchanged(self) -> None:
        assert format_response("answer") == "answer"

    def test_trailing_whitespace_stripped(self) -> None:
        assert format_response("line one   \nline two\t\n\n") == "line one\nline two"

    def test_exactly_at_limit(self) -> None:
        text = "x" * 4000
        assert format_response(text) == text

    def test_truncated_with_marker(self) -> None:
        text = "y" * 4500
        formatted = format_response(text)
        assert formatted.startswith("y" * 4000)
        assert formatted == "y" * 4000 + truncation_marker(4500)
        assert "4500" in formatted

    def test_length_counts_characters(self) -> None:
        text = "回" * 4001
        assert format_response(text).startswith("回" * 4000 + "\n\n")

    def test_custom_limit(self) -> None:
        assert format_response("abcdef", limit=3) == "abc" + truncation_marker(6)


class TestTargetSession:
    def test_delivery_target(self) -> None:
        session: TargetSession[int] = TargetSession("Antigravity")
        assert session.get_delivery_target() is None
        session.set_delivery_target(42)
        assert session.get_delivery_target() == 42

    def test_swap_returns_previous(self) -> None:
        session: TargetSession[str] = TargetSession("App", delivery_target="chat-1")
        assert session.swap_delivery_target("chat-2") == "chat-1"
        assert session.get_delivery_target() == "chat-2"

    def test_update_is_atomic(self) -> None:
        session: TargetSession[int] = TargetSession("App", delivery_target=0)

        def bump() -> None:
            for _ in range(1000):
                session.update_delivery_target(lambda v: (v or 0) + 1)

        threads = [threading.Thread(target=bump) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert session.get_delivery_target() == 8000

    def test_one_live_episode(self) -> None:
        session = TargetSession("App")
        episode = session.begin_episode()
        assert session.is_busy
        assert session.current_episode is episode
        with pytest.raises(EpisodeBusyError) as excinfo:
            session.begin_episode()
        assert excinfo.value.target == "App"

    def test_end_episode_releases_slot(self) -> None:
        session = TargetSession("App")
        episode = session.begin_episode()
        episode.baseline = {"a": 1}
        session.end_episode(episode)
        assert not session.is_busy
        assert episode.state is EpisodeState.RESOLVED
        assert episode.baseline is None
        session.begin_episode()

    def test_cancel_episode(self) -> None:
        session = TargetSession("App")
        assert session.cancel_episode() is False
        cancel = asyncio.Event()
        session.begin_episode(cancel)
        assert session.cancel_episode() is True
        assert cancel.is_set()


class TestRegistry:
    def test_builtin_strategies(self) -> None:
        assert available_strategies() == ["clipboard", "delay", "file", "latest_file", "screen"]

    def test_unknown_strategy(self, settings) -> None:
        with pytest.raises(ConfigurationError, match="Unknown completion strategy"):
            create_strategy("telepathy", settings)

    def test_duplicate_registration(self) -> None:
        assert "file" in available_strategies()
        with pytest.raises(ValueError):
            register_strategy("file")(lambda settings: None)

    def test_create_by_name(self, settings) -> None:
        strategy = create_strategy("clipboard", settings)
        assert strategy.name == "clipboard"
        assert strategy.config.timeout == 1.0
