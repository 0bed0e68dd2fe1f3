"""Tests for upgrader.utils display helpers."""

from upgrader.utils import versions_table


class TestVersionsTable:
    """Tests for versions_table."""

    def test_equivalent_versions_are_up_to_date(self):
        """'1' and '1.0' are the same version."""
        table = versions_table({"config": "1"}, {"config": "1.0"}, {"config"})
        assert table.rows[0].style == "green"

    def test_behind_latest_is_highlighted(self):
        table = versions_table({"config": "1.0"}, {"config": "1.1"}, set())
        assert table.rows[0].style == "yellow"

    def test_unstored_model_is_highlighted(self):
        table = versions_table({}, {"index": "1.0"}, set())
        assert table.rows[0].style == "yellow"
