"""Scrape outcome wrapper model."""

from datetime import datetime

from pydantic import BaseModel

from xharvest.models.post import CanonicalPost


class ScrapeOutcome(BaseModel):
    """Result of one scrape across every channel that was attempted."""

    success: bool
    handle: str
    posts: list[CanonicalPost] = []
    error: str | None = None
    channel_used: str = "none"
    enriched_count: int = 0
    scraped_at: datetime
    duration_ms: float = 0.0
