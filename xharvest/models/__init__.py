"""Pydantic models for xharvest."""

from xharvest.models.post import CanonicalPost, EnrichedPost, PostMetrics
from xharvest.models.profile import ProfileData, ProfileMedia
from xharvest.models.request import ScrapeRequest
from xharvest.models.outcome import ScrapeOutcome

__all__ = [
    "CanonicalPost",
    "EnrichedPost",
    "PostMetrics",
    "ProfileData",
    "ProfileMedia",
    "ScrapeRequest",
    "ScrapeOutcome",
]
