"""Canonical post model."""

from datetime import datetime

from pydantic import BaseModel, Field, NonNegativeInt


class PostMetrics(BaseModel):
    """Engagement counters, never negative."""

    likes: NonNegativeInt = 0
    retweets: NonNegativeInt = 0
    replies: NonNegativeInt = 0
    quotes: NonNegativeInt = 0
    views: NonNegativeInt = 0
    bookmarks: NonNegativeInt = 0


class CanonicalPost(BaseModel):
    """One upstream post, whichever channel produced it."""

    id: str = Field(min_length=1)
    url: str
    content: str = ""
    author_handle: str = ""
    author_name: str = ""
    posted_at: datetime
    # True when the upstream gave no timestamp and "now" was substituted
    posted_at_estimated: bool = False
    metrics: PostMetrics = Field(default_factory=PostMetrics)
    media_urls: list[str] = []

    # Post type indicators
    is_retweet: bool = False
    is_quote: bool = False
    quoted_url: str | None = None


class EnrichedPost(BaseModel):
    """Partial record returned by the embed endpoint; absent fields are None."""

    id: str
    content: str | None = None
    author_handle: str | None = None
    author_name: str | None = None
    posted_at: datetime | None = None
    likes: NonNegativeInt | None = None
    retweets: NonNegativeInt | None = None
    replies: NonNegativeInt | None = None
    quotes: NonNegativeInt | None = None
    views: NonNegativeInt | None = None
