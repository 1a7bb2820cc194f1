"""Scrape request model."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from xharvest.core.transformer import normalize_handle


class ScrapeRequest(BaseModel):
    """What to fetch for one handle and how to filter it."""

    handle: str
    keywords: list[str] = []
    max_items: int = Field(default=50, ge=1)
    include_replies: bool = False
    include_retweets: bool = True
    since_date: datetime | None = None

    @field_validator("handle")
    @classmethod
    def _clean_handle(cls, value: str) -> str:
        handle = normalize_handle(value)
        if not handle:
            raise ValueError(f"not a valid handle: {value!r}")
        return handle

    @field_validator("keywords")
    @classmethod
    def _drop_blank_keywords(cls, value: list[str]) -> list[str]:
        return [kw.strip() for kw in value if kw and kw.strip()]
