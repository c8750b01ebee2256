"""Tests for utility functions."""

from video_digest.utils import (
    parse_destinations, truncate_text, collapse_whitespace, format_elapsed
)


class TestParseDestinations:
    """Tests for destination list parsing."""

    def test_mixed_separators_and_whitespace(self):
        """Comma and semicolon both split; whitespace is trimmed; order kept."""
        raw = "5511999998888, 120363123456789@g.us ;5516991080895"
        assert parse_destinations(raw) == [
            "5511999998888",
            "120363123456789@g.us",
            "5516991080895",
        ]

    def test_single_destination(self):
        assert parse_destinations("5511999998888") == ["5511999998888"]

    def test_empty_tokens_dropped(self):
        """Doubled and trailing separators produce no empty destinations."""
        assert parse_destinations(",a,,;b; ,") == ["a", "b"]

    def test_duplicates_preserved(self):
        """Uniqueness is not enforced."""
        assert parse_destinations("a,b,a") == ["a", "b", "a"]

    def test_empty_and_none(self):
        assert parse_destinations("") == []
        assert parse_destinations(None) == []
        assert parse_destinations(" ; , ") == []


def test_truncate_text_short():
    assert truncate_text("hello", 10) == "hello"


def test_truncate_text_long():
    assert truncate_text("hello world", 8) == "hello..."


def test_truncate_text_suffix_longer_than_max():
    assert truncate_text("hello world", 2) == ".."


def test_collapse_whitespace():
    assert collapse_whitespace("  a \n\n b\tc  ") == "a b c"
    assert collapse_whitespace("") == ""


def test_format_elapsed():
    assert format_elapsed(4.23) == "4.2s"
    assert format_elapsed(125) == "2m05s"
