"""Tests for sanitizer.py - Numeric input sanitizing."""

import pytest

from vetlab.sanitizer import filter_numeric, safe_parse, parse_field


class TestFilterNumeric:
    """Tests for filter_numeric function."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1.2.3abc", "1.23"),
            (".5", "0.5"),
            ("--", ""),
            ("", ""),
            (".", "0."),
            ("12a3", "123"),
            ("1..2", "1.2"),
            ("-5", "5"),
            (" 58.44 g/mol", "58.44"),
            ("1.2.3.4", "1.234"),
        ],
    )
    def test_examples(self, text, expected):
        """Test sanitizing representative inputs."""
        assert filter_numeric(text) == expected

    def test_keeps_plain_number(self):
        """Test a clean number passes through unchanged."""
        assert filter_numeric("100") == "100"

    def test_none_is_empty(self):
        """Test None input gives an empty string."""
        assert filter_numeric(None) == ""

    def test_at_most_one_point(self):
        """Test output never contains more than one decimal point."""
        assert filter_numeric("..1..2..3..").count(".") == 1


class TestSafeParse:
    """Tests for safe_parse function."""

    def test_number(self):
        """Test parsing a decimal string."""
        assert safe_parse("1.5") == 1.5

    def test_trailing_point(self):
        """Test "0." parses as zero."""
        assert safe_parse("0.") == 0.0

    @pytest.mark.parametrize("text", ["", "   ", "abc", "inf", "nan", "-inf", None])
    def test_rejects(self, text):
        """Test empty, unparseable and non-finite input returns None."""
        assert safe_parse(text) is None


class TestParseField:
    """Tests for parse_field function."""

    def test_sanitizes_before_parsing(self):
        """Test noise is stripped before parsing."""
        assert parse_field("1.2.3abc") == pytest.approx(1.23)

    def test_empty_is_missing(self):
        """Test empty input is missing, not zero."""
        assert parse_field("") is None

    def test_letters_only_is_missing(self):
        """Test input with no digits is missing."""
        assert parse_field("abc") is None

    def test_none(self):
        """Test None passes through."""
        assert parse_field(None) is None
