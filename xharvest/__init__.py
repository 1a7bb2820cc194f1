"""xharvest - multi-channel X/Twitter post acquisition."""

from xharvest.models.post import CanonicalPost, EnrichedPost, PostMetrics
from xharvest.models.profile import ProfileData, ProfileMedia
from xharvest.models.request import ScrapeRequest
from xharvest.models.outcome import ScrapeOutcome
from xharvest.config import HarvestConfig
from xharvest.credentials import Credentials, CredentialKind
from xharvest.core.orchestrator import Harvester
from xharvest.core.filters import filter_posts
from xharvest.core.transformer import normalize_count
from xharvest.core.exporter import save_json, save_many_json, load_outcomes

__version__ = "0.1.0"

__all__ = [
    # Main interface
    "Harvester",
    "HarvestConfig",
    "Credentials",
    "CredentialKind",
    # Models
    "CanonicalPost",
    "EnrichedPost",
    "PostMetrics",
    "ProfileData",
    "ProfileMedia",
    "ScrapeRequest",
    "ScrapeOutcome",
    # Helpers
    "filter_posts",
    "normalize_count",
    # Export utilities
    "save_json",
    "save_many_json",
    "load_outcomes",
    "__version__",
]
