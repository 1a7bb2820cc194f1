"""Unit tests for DataFrame export utilities - uses JSON fixtures, no internet."""

import pytest
from pathlib import Path

from xharvest.core.exporter import (
    to_posts_df,
    outcomes_to_posts_df,
    save_csv,
)
from xharvest.models.outcome import ScrapeOutcome

# Skip all tests if pandas not installed
pd = pytest.importorskip("pandas")

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str = "nasa_outcome"):
    """Load ScrapeOutcome from JSON fixture."""
    return ScrapeOutcome.model_validate_json((FIXTURES_DIR / f"{name}.json").read_text(encoding="utf-8"))


class TestToPostsDf:
    """Test single outcome DataFrame conversion."""

    def test_returns_dataframe(self):
        assert isinstance(to_posts_df(load_fixture()), pd.DataFrame)

    def test_has_correct_row_count(self):
        outcome = load_fixture()
        assert len(to_posts_df(outcome)) == len(outcome.posts)

    def test_metrics_are_flattened(self):
        df = to_posts_df(load_fixture())
        for column in ("likes", "retweets", "replies", "quotes", "views", "bookmarks"):
            assert column in df.columns
        assert "metrics" not in df.columns
        assert df.iloc[0]["likes"] == 1500

    def test_includes_handle_and_channel(self):
        df = to_posts_df(load_fixture())
        assert all(df["handle"] == "nasa")
        assert all(df["channel"] == "mirror:mirror-a.test")

    def test_preserves_post_ids(self):
        outcome = load_fixture()
        df = to_posts_df(outcome)
        assert list(df["id"]) == [p.id for p in outcome.posts]


class TestOutcomesToPostsDf:
    """Test multiple outcome DataFrame conversion."""

    def test_combines_multiple_outcomes(self):
        outcomes = [load_fixture(), load_fixture()]
        df = outcomes_to_posts_df(outcomes)
        assert len(df) == len(outcomes[0].posts) * 2

    def test_empty_outcomes(self):
        df = outcomes_to_posts_df([])
        assert isinstance(df, pd.DataFrame)
        assert len(df) == 0


class TestSaveCsv:
    """Test CSV export functionality."""

    def test_save_posts_csv(self, tmp_path):
        outcome = load_fixture()
        filepath = tmp_path / "posts.csv"

        returned_path = save_csv(outcome, filepath)

        assert returned_path == filepath
        df = pd.read_csv(filepath)
        assert len(df) == len(outcome.posts)
        assert df.iloc[1]["author_handle"] == "nasawebb"

    def test_creates_parent_dirs(self, tmp_path):
        filepath = tmp_path / "nested" / "dir" / "posts.csv"

        save_csv(load_fixture(), filepath)

        assert filepath.exists()
