"""Auxiliary lookups: metric enrichment, avatars, single posts and profiles."""

from xharvest.services.avatar import AvatarResolver
from xharvest.services.enrichment import EnrichmentService, merge_enrichment
from xharvest.services.lookup import LookupService

__all__ = ["AvatarResolver", "EnrichmentService", "LookupService", "merge_enrichment"]
