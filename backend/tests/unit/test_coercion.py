"""
Unit tests for value coercion.
"""

import pytest

from core.coercion import parse_bool, parse_float, parse_int, parse_uint


class TestParseInt:
    """Tests for parse_int."""

    def test_plain_integer(self):
        assert parse_int("42") == 42
        assert parse_int("-7") == -7

    def test_float_rounds_half_away_from_zero(self):
        """Some firmware sends integer fields as floats."""
        assert parse_int("25.0") == 25
        assert parse_int("2.5") == 3
        assert parse_int("-2.5") == -3
        assert parse_int("1.49") == 1

    @pytest.mark.parametrize("text", ["", "abc", "nan", "inf", "-inf", "1,5"])
    def test_invalid_returns_none(self, text):
        assert parse_int(text) is None


class TestParseUint:
    """Tests for parse_uint."""

    def test_accepts_non_negative(self):
        assert parse_uint("0") == 0
        assert parse_uint("65535") == 65535

    @pytest.mark.parametrize("text", ["", "-1", "3.0", "x"])
    def test_rejects_negative_and_non_integer(self, text):
        assert parse_uint(text) is None


class TestParseFloat:
    """Tests for parse_float."""

    def test_parses(self):
        assert parse_float("205.3") == pytest.approx(205.3)
        assert parse_float("-1") == -1.0

    @pytest.mark.parametrize("text", ["", "nan", "hot"])
    def test_invalid_returns_none(self, text):
        assert parse_float(text) is None


class TestParseBool:
    """Tests for parse_bool."""

    def test_true_is_case_insensitive(self):
        assert parse_bool("true") is True
        assert parse_bool("TRUE") is True

    def test_anything_else_is_false(self):
        assert parse_bool("false") is False
        assert parse_bool("1") is False

    def test_empty_fails(self):
        assert parse_bool("") is None
