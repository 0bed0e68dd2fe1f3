"""Tests for upgrader.versions ordering."""

import pytest

from upgrader.versions import DEFAULT_VERSION, compare_versions, max_version, version_key


class TestCompareVersions:
    """Tests for compare_versions."""

    def test_numeric_components(self):
        """Components compare numerically, not lexically."""
        assert compare_versions("1.10", "1.9") == 1
        assert compare_versions("1.2", "1.10") == -1

    def test_trailing_zeros_ignored(self):
        """1 and 1.0 and 1.0.0 are the same version."""
        assert compare_versions("1", "1.0") == 0
        assert compare_versions("1.0.0", "1.0") == 0

    def test_equal(self):
        assert compare_versions("2.3", "2.3") == 0

    def test_mixed_text(self):
        """Versions with text segments still order deterministically."""
        assert compare_versions("2.0", "2.0a") == -1

    def test_empty_raises(self):
        """Empty versions are rejected."""
        with pytest.raises(ValueError):
            version_key("")


class TestMaxVersion:
    """Tests for max_version."""

    def test_highest(self):
        assert max_version(["1.1", "1.10", "1.9"]) == "1.10"

    def test_default_when_empty(self):
        assert max_version([]) == DEFAULT_VERSION
