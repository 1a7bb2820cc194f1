"""Best-effort metric backfill from the public embed endpoint."""

import asyncio

import httpx

from xharvest.config import HarvestConfig
from xharvest.core.normalizers import parse_syndication
from xharvest.logging import get_logger
from xharvest.models.post import CanonicalPost, EnrichedPost

EMBED_URL = "https://cdn.syndication.twimg.com/tweet-result"

ENRICHABLE_METRICS = ("likes", "retweets", "replies", "quotes", "views")


class EnrichmentService:
    """Looks up single posts by id; every failure is skipped, never raised."""

    def __init__(self, client: httpx.AsyncClient, config: HarvestConfig):
        self.client = client
        self.config = config
        self._log = get_logger("enrichment")

    async def fetch_one(self, post_id: str) -> EnrichedPost | None:
        try:
            response = await self.client.get(
                EMBED_URL,
                params={"id": post_id, "token": "0"},
                headers={"User-Agent": self.config.user_agent, "Accept": "application/json"},
                timeout=self.config.enrichment_timeout_s,
            )
            if not response.is_success:
                self._log.debug("enrich_http_error", post_id=post_id, status=response.status_code)
                return None
            return parse_syndication(response.json(), post_id)
        except (httpx.HTTPError, ValueError) as e:
            self._log.debug("enrich_failed", post_id=post_id, error=str(e))
            return None

    async def enrich(self, post_ids: list[str]) -> dict[str, EnrichedPost]:
        """Enriched records keyed by id for up to ``enrich_limit`` ids."""
        ids = post_ids[: self.config.enrich_limit]
        if not ids:
            return {}
        records = await asyncio.gather(*(self.fetch_one(post_id) for post_id in ids))
        return {post_id: record for post_id, record in zip(ids, records) if record is not None}


def merge_enrichment(
    posts: list[CanonicalPost],
    enriched: dict[str, EnrichedPost],
) -> tuple[list[CanonicalPost], int]:
    """
    Overlay enriched metrics onto matching posts.

    Only metrics present in the enriched record replace the original value.
    Returns new post objects and how many posts received at least one value.
    """
    merged: list[CanonicalPost] = []
    touched = 0
    for post in posts:
        record = enriched.get(post.id)
        updates = {}
        if record is not None:
            updates = {
                metric: getattr(record, metric)
                for metric in ENRICHABLE_METRICS
                if getattr(record, metric) is not None
            }
        if updates:
            touched += 1
            post = post.model_copy(update={"metrics": post.metrics.model_copy(update=updates)})
        merged.append(post)
    return merged, touched
