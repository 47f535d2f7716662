"""Tests for the message chunker."""

from oprelay.config import DiscordConfig
from oprelay.core.chunker import chunk_message


class TestChunkMessage:
    def test_short_message_single_chunk(self):
        assert chunk_message("Hello world", limit=100) == ["Hello world"]

    def test_empty_message(self):
        assert chunk_message("", limit=100) == []

    def test_exactly_at_limit(self):
        text = "a" * 100
        assert chunk_message(text, limit=100) == [text]

    def test_discord_sized_message_splits_on_newlines(self):
        # 5000 chars, a newline every 100 characters
        text = ("x" * 99 + "\n") * 50
        result = chunk_message(text, limit=1900)
        assert len(result) > 1
        assert all(len(c) <= 1900 for c in result)
        for chunk in result[1:]:
            assert chunk.startswith("\n")
        assert "".join(result) == text

    def test_hard_split_without_newlines(self):
        text = "y" * 5000
        result = chunk_message(text, limit=1900)
        assert [len(c) for c in result] == [1900, 1900, 1200]
        assert "".join(result) == text

    def test_newline_too_early_forces_hard_split(self):
        # Only newline is far outside the trailing window
        text = "a" * 10 + "\n" + "b" * 300
        result = chunk_message(text, limit=200, window=50)
        assert len(result[0]) == 200
        assert "".join(result) == text

    def test_newline_inside_window_is_used(self):
        text = "a" * 180 + "\n" + "b" * 100
        result = chunk_message(text, limit=200, window=50)
        assert result[0] == "a" * 180
        assert result[1] == "\n" + "b" * 100

    def test_leading_newline_does_not_loop(self):
        text = "\n" + "c" * 250
        result = chunk_message(text, limit=100, window=90)
        assert all(len(c) <= 100 for c in result)
        assert "".join(result) == text

    def test_config_overrides_limits(self):
        config = DiscordConfig(message_limit=50, split_window=10)
        result = chunk_message("z" * 120, config=config)
        assert [len(c) for c in result] == [50, 50, 20]
