"""Unit tests for metric enrichment - mocked embed endpoint, no internet."""

import json
from pathlib import Path

import httpx
import pytest

from xharvest.models.post import EnrichedPost, PostMetrics
from xharvest.services.enrichment import EnrichmentService, merge_enrichment

FIXTURES_DIR = Path(__file__).parent / "fixtures"

EMBED_HOST = "cdn.syndication.twimg.com"


def embed_body() -> dict:
    return json.loads((FIXTURES_DIR / "embed_tweet.json").read_text(encoding="utf-8"))


class TestMergeEnrichment:
    """Test overlaying partial metrics."""

    def test_only_present_metrics_overwrite(self, make_post):
        post = make_post("1", metrics=PostMetrics(likes=1, retweets=2, replies=3, quotes=4, views=5))
        merged, count = merge_enrichment([post], {"1": EnrichedPost(id="1", likes=100, views=None)})

        assert count == 1
        assert merged[0].metrics.likes == 100
        assert merged[0].metrics.views == 5
        assert merged[0].metrics.quotes == 4
        # original untouched
        assert post.metrics.likes == 1

    def test_unmatched_posts_pass_through(self, make_post):
        posts = [make_post("1"), make_post("2")]
        merged, count = merge_enrichment(posts, {"3": EnrichedPost(id="3", likes=9)})
        assert merged == posts
        assert count == 0

    def test_record_without_metrics_does_not_count(self, make_post):
        merged, count = merge_enrichment([make_post("1")], {"1": EnrichedPost(id="1", content="text")})
        assert count == 0


class TestEnrichmentService:
    """Test the embed lookups."""

    @pytest.mark.asyncio
    async def test_fetch_one(self, upstream, config):
        upstream.get(EMBED_HOST, "/tweet-result", httpx.Response(200, json=embed_body()))
        service = EnrichmentService(httpx.AsyncClient(transport=upstream.transport), config)

        enriched = await service.fetch_one("1790000000000000001")

        assert enriched.likes == 1500
        request = upstream.calls[0]
        assert request.url.params["id"] == "1790000000000000001"
        assert request.url.params["token"] == "0"

    @pytest.mark.asyncio
    async def test_failures_are_skipped(self, upstream, config):
        def respond(request: httpx.Request) -> httpx.Response:
            post_id = request.url.params["id"]
            if post_id == "1":
                return httpx.Response(200, json=embed_body())
            if post_id == "2":
                return httpx.Response(404, text="")
            if post_id == "3":
                return httpx.Response(200, text="not json")
            raise httpx.ReadTimeout("timed out")

        upstream.get(EMBED_HOST, "/tweet-result", respond)
        service = EnrichmentService(httpx.AsyncClient(transport=upstream.transport), config)

        enriched = await service.enrich(["1", "2", "3", "4"])

        assert list(enriched) == ["1"]

    @pytest.mark.asyncio
    async def test_limit_applies(self, upstream, config):
        upstream.get(EMBED_HOST, "/tweet-result", httpx.Response(200, json=embed_body()))
        service = EnrichmentService(httpx.AsyncClient(transport=upstream.transport), config)

        await service.enrich([str(i) for i in range(1, 25)])

        assert len(upstream.calls) == 10

    @pytest.mark.asyncio
    async def test_empty_input(self, upstream, config):
        service = EnrichmentService(httpx.AsyncClient(transport=upstream.transport), config)
        assert await service.enrich([]) == {}
        assert upstream.calls == []
