"""Configuration management using Pydantic Settings."""

from enum import Enum

from pydantic_settings import BaseSettings


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


# Read-only alternate front-ends, tried in order
DEFAULT_MIRROR_HOSTS = [
    "nitter.net",
    "xcancel.com",
    "nitter.privacydev.net",
    "nitter.poast.org",
    "nitter.lucabased.xyz",
    "nitter.space",
    "nitter.moomoo.me",
    "nitter.soopy.moe",
    "nitter.uni-sonia.com",
    "lightbrd.com",
]

# Public bearer used by the x.com web client
WEB_CLIENT_BEARER = (
    "AAAAAAAAAAAAAAAAAAAAANRILgAAAAAAnNwIzUejRCOuH5E6I8xnZz4puTs%3D"
    "1Zv7ttfk8LF81IUq16cHjhLTvJu4FA33AGWWjCpTnA"
)


class HarvestConfig(BaseSettings):
    """Configuration for the xharvest engine."""

    # Credentials
    api_key: str | None = None
    session_cookie: str | None = None
    csrf_token: str | None = None

    # Per-call timeouts
    api_timeout_s: float = 20.0
    session_timeout_s: float = 20.0
    mirror_timeout_s: float = 15.0
    feed_timeout_s: float = 15.0
    enrichment_timeout_s: float = 10.0
    avatar_head_timeout_s: float = 5.0
    avatar_lookup_timeout_s: float = 10.0

    # Rate-limit backoff
    rate_limit_default_wait_s: float = 6.0
    rate_limit_buffer_s: float = 1.0
    rate_limit_max_retries: int = 2

    # Mirror hosts
    mirror_hosts: list[str] = DEFAULT_MIRROR_HOSTS
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # Session GraphQL operations
    web_bearer_token: str = WEB_CLIENT_BEARER
    user_by_screen_name_query_id: str = "G3KGOASz96M-Qu0nwmGXNg"
    user_tweets_query_id: str = "E3opETHurmVJflFsUBVuUQ"

    # Batch pacing
    batch_size: int = 2
    batch_delay_ms: int = 2000

    # Enrichment
    enrichment_enabled: bool = True
    enrich_limit: int = 10

    # Logging
    log_level: str = "INFO"
    log_format: LogFormat = LogFormat.CONSOLE

    model_config = {
        "env_prefix": "XHARVEST_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }
