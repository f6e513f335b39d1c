"""
Tests for utils/helpers.py
"""

import pytest
from datetime import datetime, timezone
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils.helpers import (
    ensure_dir_exists,
    epoch_to_datetime,
    parse_callback_params,
    safe_get,
    split_indexed_option,
    split_thread_text,
    truncate_text,
)


class TestParseCallbackParams:
    """Tests for parse_callback_params."""

    def test_extracts_query(self):
        """Test code and state are extracted and decoded."""
        params = parse_callback_params("http://127.0.0.1/callback?code=a%2Bb&state=xyz")
        assert params == {"code": "a+b", "state": "xyz"}

    def test_first_value_wins(self):
        """Test a repeated parameter keeps its first value."""
        assert parse_callback_params("http://cb?state=1&state=2")["state"] == "1"

    def test_no_query(self):
        """Test a URL without query gives an empty dict."""
        assert parse_callback_params("http://cb") == {}


class TestEpochToDatetime:
    """Tests for epoch_to_datetime."""

    def test_parses_seconds(self):
        """Test an epoch string converts to aware UTC."""
        assert epoch_to_datetime("0") == datetime(1970, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "soon"])
    def test_invalid_values(self, value):
        """Test missing or non-numeric values give None."""
        assert epoch_to_datetime(value) is None


class TestSplitIndexedOption:
    """Tests for split_indexed_option."""

    def test_valid(self):
        """Test N=VALUE is split."""
        assert split_indexed_option("2=photo.jpg") == (2, "photo.jpg")

    @pytest.mark.parametrize("value", ["photo.jpg", "x=photo.jpg", "0=photo.jpg"])
    def test_invalid(self, value):
        """Test malformed values raise ValueError."""
        with pytest.raises(ValueError):
            split_indexed_option(value)


class TestSplitThreadText:
    """Tests for split_thread_text."""

    def test_splits_on_separator_lines(self):
        """Test only whole separator lines split items."""
        content = "first\nline --- inline\n---\nsecond\n  ---  \nthird"
        assert split_thread_text(content) == ["first\nline --- inline", "second", "third"]

    def test_no_separator(self):
        """Test a file without separators is one item."""
        assert split_thread_text("  just one  \n") == ["just one"]


class TestMisc:
    """Tests for the small helpers."""

    def test_truncate(self):
        """Test long text is cut with an ellipsis."""
        assert truncate_text("abcdef", 3) == "abc..."
        assert truncate_text("abc", 3) == "abc"

    def test_safe_get(self):
        """Test nested lookups fall back to the default."""
        data = {"data": {"id": "1"}}
        assert safe_get(data, "data", "id") == "1"
        assert safe_get(data, "data", "missing", default="x") == "x"
        assert safe_get(None, "a") is None

    def test_ensure_dir_exists(self, tmp_path):
        """Test nested directories are created and re-creating is fine."""
        target = tmp_path / "a" / "b"
        ensure_dir_exists(str(target))
        ensure_dir_exists(str(target))
        assert target.is_dir()
