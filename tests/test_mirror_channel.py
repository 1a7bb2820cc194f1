"""Unit tests for mirror HTML extraction - uses cached fixtures, no internet required."""

from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

from xharvest.channels.mirror import MirrorChannel, extract_posts, soft_failure
from xharvest.credentials import Credentials
from xharvest.models.request import ScrapeRequest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def get_fixture_html() -> str:
    return (FIXTURES_DIR / "mirror_timeline.html").read_text(encoding="utf-8")


@pytest.fixture
def posts():
    found, strategy = extract_posts(get_fixture_html(), "nasa", "https://mirror-a.test")
    assert strategy == "timeline-item"
    return {post.id: post for post in found}


class TestExtractPosts:
    """Test fragment parsing against a captured timeline."""

    def test_finds_every_post_with_an_id(self, posts):
        assert list(posts) == [
            "1790000000000000001",
            "1790000000000000002",
            "1790000000000000003",
            "1790000000000000004",
        ]

    def test_content_strips_share_links(self, posts):
        assert posts["1790000000000000001"].content == "Artemis II crew training continues ahead of launch"

    def test_metrics_use_suffix_parser(self, posts):
        metrics = posts["1790000000000000001"].metrics
        assert metrics.replies == 1234
        assert metrics.retweets == 5600
        assert metrics.quotes == 78
        assert metrics.likes == 1_200_000
        assert metrics.views == 3_000_000

    def test_timestamp_from_title(self, posts):
        post = posts["1790000000000000001"]
        assert post.posted_at == datetime(2024, 5, 13, 15, 4, tzinfo=timezone.utc)
        assert not post.posted_at_estimated

    def test_media_resolved_against_host(self, posts):
        media = posts["1790000000000000001"].media_urls
        assert media
        assert all(url.startswith("https://mirror-a.test/pic/") for url in media)

    def test_retweet_detected_from_header(self, posts):
        retweet = posts["1790000000000000002"]
        assert retweet.is_retweet
        assert retweet.author_handle == "nasawebb"
        # the banner icon is not mistaken for the counter
        assert retweet.metrics.retweets == 2045
        assert retweet.metrics.views == 0

    def test_quote_detected(self, posts):
        quote = posts["1790000000000000003"]
        assert quote.is_quote
        assert quote.quoted_url == "https://x.com/spacex/status/1789999999999999999"
        assert not quote.is_retweet

    def test_plain_post_flags(self, posts):
        post = posts["1790000000000000001"]
        assert not post.is_retweet
        assert not post.is_quote
        assert post.url == "https://x.com/nasa/status/1790000000000000001"

    def test_fallback_strategy(self):
        html = """
        <html><body>
          <article data-tweet-id="1790000000000000099">
            <p>Fallback markup post</p>
            <time datetime="2024-05-13T15:04:00Z"></time>
            <span class="like-count">12</span>
          </article>
        </body></html>
        """
        found, strategy = extract_posts(html, "nasa", "https://mirror-a.test")
        assert strategy == "article"
        assert found[0].id == "1790000000000000099"
        assert found[0].content == "Fallback markup post"
        assert found[0].metrics.likes == 12

    def test_missing_timestamp_is_estimated(self):
        html = '<div class="timeline-item"><a class="tweet-link" href="/nasa/status/42#m"></a></div>'
        found, _ = extract_posts(html, "nasa", "https://mirror-a.test")
        assert found[0].posted_at_estimated
        assert found[0].content == ""
        assert found[0].metrics.likes == 0

    def test_overflowing_counter_does_not_drop_the_page(self):
        html = """
        <div class="timeline-item">
          <a class="tweet-link" href="/nasa/status/101#m"></a>
          <div class="tweet-content">Bad counter</div>
          <span class="tweet-stat"><div class="icon-container"><span class="icon-heart"></span> 1e999</div></span>
        </div>
        <div class="timeline-item">
          <a class="tweet-link" href="/nasa/status/102#m"></a>
          <div class="tweet-content">Good counter</div>
          <span class="tweet-stat"><div class="icon-container"><span class="icon-heart"></span> 12</div></span>
        </div>
        """
        found, _ = extract_posts(html, "nasa", "https://mirror-a.test")
        assert [p.id for p in found] == ["101", "102"]
        assert found[0].metrics.likes == 0
        assert found[1].metrics.likes == 12

    def test_no_posts(self):
        assert extract_posts("<html><body><p>nothing</p></body></html>", "nasa", "https://m.test") == ([], None)


class TestSoftFailure:
    """Test 2xx pages that are really failures."""

    def test_rate_limited_page(self):
        assert soft_failure("<html><body>Instance has been rate limited.</body></html>") == "rate limited"

    def test_blocked_page(self):
        assert soft_failure("<html><body>Your IP is blocked</body></html>") == "blocked"

    def test_short_error_page(self):
        assert soft_failure("<html><title>Error | nitter</title><body>User not found</body></html>") == "error page"

    def test_real_timeline_is_not_a_failure(self):
        assert soft_failure(get_fixture_html()) is None

    def test_timeline_mentioning_blocked_is_not_a_failure(self):
        html = get_fixture_html().replace("Watch the launch", "Blocked by clouds, watch the launch")
        assert soft_failure(html) is None


class TestMirrorChannel:
    """Test host iteration."""

    @pytest.mark.asyncio
    async def test_first_host_fails_second_succeeds(self, upstream, config, sleeper):
        upstream.get("mirror-a.test", "/", httpx.Response(200, text="<html><body>rate limited</body></html>"))
        upstream.get("mirror-b.test", "/nasa", httpx.Response(200, text=get_fixture_html()))
        channel = MirrorChannel(httpx.AsyncClient(transport=upstream.transport), config, sleep=sleeper)

        result = await channel.fetch(ScrapeRequest(handle="nasa"), Credentials())

        assert result.success
        assert result.channel == "mirror:mirror-b.test"
        # the reply is filtered out by default
        assert [p.id for p in result.posts] == [
            "1790000000000000001",
            "1790000000000000002",
            "1790000000000000003",
        ]

    @pytest.mark.asyncio
    async def test_all_hosts_fail(self, upstream, config):
        upstream.get("mirror-a.test", "/", httpx.Response(503, text="unavailable"))
        upstream.get("mirror-b.test", "/", httpx.ConnectError("refused"))
        channel = MirrorChannel(httpx.AsyncClient(transport=upstream.transport), config)

        result = await channel.fetch(ScrapeRequest(handle="nasa"), Credentials())

        assert not result.success
        assert "mirror-a.test: HTTP 503" in result.error
        assert "mirror-b.test: connection failed" in result.error

    @pytest.mark.asyncio
    async def test_stops_at_first_host_with_posts(self, upstream, config):
        upstream.get("mirror-a.test", "/nasa", httpx.Response(200, text=get_fixture_html()))
        channel = MirrorChannel(httpx.AsyncClient(transport=upstream.transport), config)

        result = await channel.fetch(ScrapeRequest(handle="nasa", include_retweets=False), Credentials())

        assert result.channel == "mirror:mirror-a.test"
        assert all(not p.is_retweet for p in result.posts)
        assert upstream.calls_to("mirror-b.test") == []
