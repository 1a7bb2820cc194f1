"""Unit tests for upstream payload normalizers - uses JSON fixtures, no internet."""

import json
from pathlib import Path

import pytest

from xharvest.core.normalizers import (
    enriched_to_post,
    normalize,
    parse_apify,
    parse_graphql_timeline,
    parse_socialdata,
    parse_syndication,
    parse_twitterapi_io,
    unwrap_tweet_result,
)
from xharvest.core.tree import dig, dig_list, dig_str

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str):
    return json.loads((FIXTURES_DIR / name).read_text(encoding="utf-8"))


class TestTree:
    """Test safe lookups."""

    def test_dig_missing_step_returns_none(self):
        assert dig({"a": {"b": 1}}, "a", "x", "y") is None

    def test_dig_through_lists(self):
        assert dig({"a": [{"b": 1}, {"b": 2}]}, "a", 1, "b") == 2
        assert dig({"a": [1]}, "a", 5) is None

    def test_dig_wrong_type(self):
        assert dig({"a": "string"}, "a", "b") is None

    def test_dig_list_default(self):
        assert dig_list({"a": {"b": 1}}, "a") == []

    def test_dig_str_stringifies_numbers(self):
        assert dig_str({"id": 123}, "id") == "123"
        assert dig_str({"id": "  "}, "id") is None


class TestSocialData:
    """Test the socialdata search normalizer."""

    def test_parses_valid_items_and_skips_bad_ones(self):
        posts = parse_socialdata(load_fixture("socialdata_search.json"), "nasa")
        assert [p.id for p in posts] == [
            "1790000000000000011",
            "1790000000000000013",
            "1790000000000000012",
        ]

    def test_maps_fields(self):
        post = parse_socialdata(load_fixture("socialdata_search.json"), "nasa")[0]
        assert post.content == "Artemis II crew training continues ahead of launch"
        assert post.author_handle == "nasa"
        assert post.url == "https://x.com/nasa/status/1790000000000000011"
        assert post.metrics.likes == 1200
        assert post.metrics.views == 98765
        assert post.media_urls == ["https://pbs.twimg.com/media/GNabc123.jpg"]
        assert post.posted_at_estimated is False

    def test_retweet_and_quote_flags(self):
        posts = {p.id: p for p in parse_socialdata(load_fixture("socialdata_search.json"), "nasa")}
        assert posts["1790000000000000013"].is_retweet
        quote = posts["1790000000000000012"]
        assert quote.is_quote
        assert quote.quoted_url == "https://twitter.com/SpaceX/status/1789999999999999999"

    def test_non_dict_payload(self):
        assert parse_socialdata("oops", "nasa") == []

    def test_non_finite_counts_become_zero(self):
        # json.loads accepts the bare Infinity / NaN literals
        payload = json.loads(
            '{"tweets": ['
            '{"id_str": "1", "full_text": "a", "favorite_count": Infinity, "retweet_count": NaN},'
            '{"id_str": "2", "full_text": "b", "favorite_count": 7}'
            "]}"
        )
        posts = parse_socialdata(payload, "nasa")
        assert [p.id for p in posts] == ["1", "2"]
        assert posts[0].metrics.likes == 0
        assert posts[0].metrics.retweets == 0
        assert posts[1].metrics.likes == 7


class TestCamelCaseProviders:
    """Test twitterapi.io and Apify normalizers."""

    ITEM = {
        "type": "tweet",
        "id": "1790000000000000021",
        "url": "https://x.com/NASA/status/1790000000000000021",
        "text": "Liftoff! https://t.co/xyz987",
        "createdAt": "Tue May 14 08:00:00 +0000 2024",
        "likeCount": 5000,
        "retweetCount": "1.5K",
        "replyCount": 100,
        "quoteCount": 20,
        "viewCount": 250000,
        "author": {"userName": "NASA", "name": "NASA"},
        "isRetweet": False,
        "isQuote": False,
    }

    def test_twitterapi_io_nested_under_data(self):
        posts = parse_twitterapi_io({"status": "success", "data": {"tweets": [self.ITEM]}}, "nasa")
        assert len(posts) == 1
        assert posts[0].metrics.retweets == 1500
        assert posts[0].content == "Liftoff!"
        assert posts[0].author_handle == "nasa"

    def test_twitterapi_io_top_level_tweets(self):
        assert len(parse_twitterapi_io({"tweets": [self.ITEM]}, "nasa")) == 1

    def test_apify_array(self):
        posts = parse_apify([self.ITEM], "nasa")
        assert [p.id for p in posts] == ["1790000000000000021"]
        assert posts[0].metrics.views == 250000

    def test_apify_skips_mock_rows(self):
        mock = {"type": "mock_tweet", "id": "-1", "text": "From KaitoEasyAPI, a reminder:"}
        placeholder = {"id": "1", "text": "From KaitoEasyAPI, a reminder: this is mock data"}
        assert parse_apify([mock, placeholder, self.ITEM], "nasa") == parse_apify([self.ITEM], "nasa")

    def test_apify_non_list(self):
        assert parse_apify({"unexpected": True}, "nasa") == []


class TestGraphqlTimeline:
    """Test the session GraphQL timeline walk."""

    def test_walks_pinned_entries_and_modules(self):
        posts = parse_graphql_timeline(load_fixture("graphql_user_tweets.json"), "nasa")
        assert [p.id for p in posts] == [
            "1790000000000000010",
            "1790000000000000011",
            "1790000000000000012",
            "1790000000000000013",
            "1790000000000000014",
            "1790000000000000015",
        ]

    def test_maps_views_and_strips_share_links(self):
        posts = {p.id: p for p in parse_graphql_timeline(load_fixture("graphql_user_tweets.json"), "nasa")}
        pinned = posts["1790000000000000010"]
        assert pinned.metrics.views == 250000
        assert pinned.metrics.bookmarks == 90
        assert "t.co" not in pinned.content

    def test_user_from_core_block(self):
        posts = {p.id: p for p in parse_graphql_timeline(load_fixture("graphql_user_tweets.json"), "nasa")}
        assert posts["1790000000000000011"].author_handle == "nasa"
        assert posts["1790000000000000011"].media_urls == ["https://pbs.twimg.com/media/GNabc123.jpg"]

    def test_visibility_wrapper_and_quote(self):
        posts = {p.id: p for p in parse_graphql_timeline(load_fixture("graphql_user_tweets.json"), "nasa")}
        assert posts["1790000000000000012"].is_quote
        assert posts["1790000000000000013"].is_retweet

    def test_unwrap_rejects_tombstones(self):
        assert unwrap_tweet_result({"__typename": "TweetTombstone"}) is None
        assert unwrap_tweet_result({"__typename": "TweetWithVisibilityResults", "tweet": {"rest_id": "1"}}) == {
            "rest_id": "1"
        }

    @pytest.mark.parametrize("payload", [{}, {"data": None}, {"data": {"user": {"result": {}}}}, []])
    def test_malformed_payload_yields_nothing(self, payload):
        assert parse_graphql_timeline(payload, "nasa") == []


class TestSyndication:
    """Test the embed endpoint normalizer."""

    def test_partial_record(self):
        enriched = parse_syndication(load_fixture("embed_tweet.json"), "1790000000000000001")
        assert enriched.id == "1790000000000000001"
        assert enriched.likes == 1500
        assert enriched.retweets == 410
        assert enriched.replies == 88
        assert enriched.quotes is None
        assert enriched.views is None
        assert enriched.author_handle == "nasa"

    def test_no_text_means_no_record(self):
        assert parse_syndication({"__typename": "TweetTombstone"}, "1") is None
        assert parse_syndication([], "1") is None

    def test_promote_to_post(self):
        post = enriched_to_post(parse_syndication(load_fixture("embed_tweet.json"), "1790000000000000001"))
        assert post.url == "https://x.com/nasa/status/1790000000000000001"
        assert post.content == "Artemis II crew training continues ahead of launch"
        assert post.metrics.quotes == 0


class TestRegistry:
    """Test parser-id dispatch."""

    def test_dispatches_by_id(self):
        assert len(normalize("socialdata", load_fixture("socialdata_search.json"), "nasa")) == 3

    def test_unknown_parser(self):
        with pytest.raises(ValueError):
            normalize("nope", {}, "nasa")
