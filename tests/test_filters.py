"""Unit tests for the filter pipeline."""

from datetime import datetime, timezone

import pytest

from xharvest.core.filters import filter_posts, is_reply, matches_keywords
from xharvest.models.request import ScrapeRequest


@pytest.fixture
def timeline(make_post):
    """Six posts, newest first: plain, retweet, reply, two keyword hits, old post."""
    return [
        make_post("1", "Launch window opens tomorrow"),
        make_post("2", "RT @NASAWebb: deep field", is_retweet=True),
        make_post("3", "@astro_jane thanks for asking"),
        make_post("4", "Countdown to LAUNCH begins"),
        make_post("5", "Mars sample return update"),
        make_post("6", "Archive: launch of Apollo 11", posted_at=datetime(2020, 7, 16, tzinfo=timezone.utc)),
    ]


class TestPredicates:
    """Test single-post predicates."""

    def test_is_reply(self, make_post):
        assert is_reply(make_post(content="@someone hi"))
        assert is_reply(make_post(content="  @someone hi"))
        assert not is_reply(make_post(content="hi @someone"))

    def test_matches_keywords_case_insensitive(self, make_post):
        post = make_post(content="Artemis LAUNCH")
        assert matches_keywords(post, ["launch"])
        assert matches_keywords(post, ["mars", "artemis"])
        assert not matches_keywords(post, ["mars"])


class TestFilterPosts:
    """Test the ordered filter pipeline."""

    def test_defaults_drop_replies_keep_retweets(self, timeline):
        result = filter_posts(timeline, ScrapeRequest(handle="nasa"))
        assert [p.id for p in result] == ["1", "2", "4", "5", "6"]

    def test_include_replies(self, timeline):
        result = filter_posts(timeline, ScrapeRequest(handle="nasa", include_replies=True))
        assert "3" in [p.id for p in result]

    def test_exclude_retweets(self, timeline):
        result = filter_posts(timeline, ScrapeRequest(handle="nasa", include_retweets=False))
        assert all(not p.is_retweet for p in result)
        assert "2" not in [p.id for p in result]

    def test_keywords_are_or_matched(self, timeline):
        result = filter_posts(timeline, ScrapeRequest(handle="nasa", keywords=["launch", "mars"]))
        assert [p.id for p in result] == ["1", "4", "5", "6"]

    def test_since_date_is_inclusive(self, timeline):
        since = timeline[3].posted_at
        result = filter_posts(timeline, ScrapeRequest(handle="nasa", since_date=since))
        assert [p.id for p in result] == ["1", "2", "4"]

    def test_naive_since_date_treated_as_utc(self, timeline):
        result = filter_posts(timeline, ScrapeRequest(handle="nasa", since_date=datetime(2021, 1, 1)))
        assert "6" not in [p.id for p in result]

    def test_truncates_after_filtering(self, timeline):
        request = ScrapeRequest(handle="nasa", keywords=["launch"], max_items=2)
        assert [p.id for p in filter_posts(timeline, request)] == ["1", "4"]

    def test_order_is_preserved(self, timeline):
        result = filter_posts(timeline, ScrapeRequest(handle="nasa", include_replies=True))
        assert [p.id for p in result] == [p.id for p in timeline]

    def test_idempotent(self, timeline):
        request = ScrapeRequest(
            handle="nasa",
            keywords=["launch"],
            include_retweets=False,
            since_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
            max_items=3,
        )
        once = filter_posts(timeline, request)
        assert filter_posts(once, request) == once

    def test_input_not_modified(self, timeline):
        snapshot = list(timeline)
        filter_posts(timeline, ScrapeRequest(handle="nasa", max_items=1))
        assert timeline == snapshot

    def test_empty_input(self):
        assert filter_posts([], ScrapeRequest(handle="nasa")) == []


class TestScrapeRequest:
    """Test request validation."""

    def test_handle_is_normalized(self):
        assert ScrapeRequest(handle="@NASA").handle == "nasa"

    def test_invalid_handle_rejected(self):
        with pytest.raises(ValueError):
            ScrapeRequest(handle="@")

    def test_blank_keywords_dropped(self):
        assert ScrapeRequest(handle="nasa", keywords=["", "  ", "launch "]).keywords == ["launch"]

    def test_max_items_must_be_positive(self):
        with pytest.raises(ValueError):
            ScrapeRequest(handle="nasa", max_items=0)
