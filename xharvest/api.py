"""FastAPI web server for the xharvest engine."""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from xharvest import Harvester, HarvestConfig, ScrapeRequest, __version__
from xharvest.core.exporter import batch_summary
from xharvest.core.transformer import normalize_handle
from xharvest.models.profile import ProfileMedia


class BatchScrapeRequest(BaseModel):
    """Request body for batch scrape."""

    handles: list[str] = Field(..., min_length=1, max_length=20)
    keywords: list[str] = Field(default_factory=list)
    max_items_per_handle: int = Field(default=20, ge=1, le=200)
    include_replies: bool = False
    include_retweets: bool = True
    since_date: Optional[datetime] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


class AvatarResponse(BaseModel):
    handle: str
    avatar_url: Optional[str]


class ConfigResponse(BaseModel):
    """Effective engine configuration, with credentials reduced to presence flags."""

    has_api_key: bool = Field(
        ...,
        description="Whether a third-party API key is configured (XHARVEST_API_KEY). "
        "Keys starting with 'apify_api_' are routed to the Apify provider, others to the generic providers.",
    )
    has_session: bool = Field(
        ...,
        description="Whether a logged-in session cookie is configured (XHARVEST_SESSION_COOKIE).",
    )
    mirror_hosts: list[str] = Field(
        ...,
        description="Read-only mirror hosts tried in order by the mirror and feed channels.",
    )
    api_timeout_s: float = Field(..., description="Per-request timeout for API providers, in seconds.")
    mirror_timeout_s: float = Field(..., description="Per-host timeout for mirror pages, in seconds.")
    rate_limit_max_retries: int = Field(
        ...,
        description="Extra attempts on the same provider after an HTTP 429 before moving on.",
    )
    batch_size: int = Field(..., description="Handles scraped concurrently per batch group.")
    batch_delay_ms: int = Field(..., description="Pause between batch groups, in milliseconds.")
    enrichment_enabled: bool = Field(
        ...,
        description="Backfill engagement metrics for mirror and feed results via the public embed endpoint.",
    )
    log_level: str = Field(
        ...,
        description="Logging verbosity level.",
        json_schema_extra={"enum": ["DEBUG", "INFO", "WARNING", "ERROR"]},
    )


# Shared harvester, owned by the app lifespan
_harvester: Optional[Harvester] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage harvester lifecycle."""
    global _harvester
    _harvester = Harvester(HarvestConfig())
    await _harvester.__aenter__()
    yield
    await _harvester.__aexit__(None, None, None)


def _get_harvester() -> Harvester:
    if _harvester is None:
        raise HTTPException(status_code=503, detail="Harvester is not running")
    return _harvester


app = FastAPI(
    title="xharvest API",
    description="Multi-channel X/Twitter post harvester",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Check API health status."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now().isoformat(),
    )


@app.get("/api/scrape/{handle}", tags=["Scraping"])
async def scrape_get(
    handle: str,
    max_items: int = Query(20, ge=1, le=200, description="Maximum posts to return"),
    keyword: list[str] = Query([], description="Keep posts containing any keyword"),
    include_replies: bool = Query(False),
    include_retweets: bool = Query(True),
):
    """
    Scrape recent posts for one handle with query-string options.

    Failures are returned as 404 with the aggregated channel diagnostics.
    """
    try:
        request = ScrapeRequest(
            handle=handle,
            keywords=keyword,
            max_items=max_items,
            include_replies=include_replies,
            include_retweets=include_retweets,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return await scrape_post(request)


@app.post("/api/scrape", tags=["Scraping"])
async def scrape_post(request: ScrapeRequest):
    """Scrape one handle with the full request model, including ``since_date``."""
    outcome = await _get_harvester().scrape(request)
    if not outcome.success:
        raise HTTPException(
            status_code=404,
            detail=f"Failed to scrape @{outcome.handle}: {outcome.error}",
        )
    return outcome.model_dump(mode="json")


@app.post("/api/scrape/batch", tags=["Scraping"])
async def scrape_batch(request: BatchScrapeRequest):
    """
    Scrape several handles in paced groups.

    Returns outcomes for every handle, including failures.
    """
    outcomes = await _get_harvester().scrape_many(
        request.handles,
        request.keywords,
        request.max_items_per_handle,
        include_replies=request.include_replies,
        include_retweets=request.include_retweets,
        since_date=request.since_date,
    )
    return batch_summary(outcomes)


@app.get("/api/avatar/{handle}", response_model=AvatarResponse, tags=["Lookup"])
async def avatar_get(handle: str):
    url = await _get_harvester().resolve_avatar(handle)
    if url is None:
        raise HTTPException(status_code=404, detail=f"No avatar found for @{handle}")
    return AvatarResponse(handle=normalize_handle(handle), avatar_url=url)


@app.get("/api/media/{handle}", response_model=ProfileMedia, tags=["Lookup"])
async def media_get(handle: str):
    """Avatar and banner URLs; either may be null when no source has it."""
    media = await _get_harvester().fetch_media(handle)
    if media is None:
        raise HTTPException(status_code=422, detail=f"Invalid handle: {handle}")
    return media


@app.get(
    "/api/config",
    response_model=ConfigResponse,
    tags=["System"],
    summary="Get effective configuration",
)
async def get_config():
    """
    Effective configuration of the running harvester.

    **Configuration is set via environment variables** with the `XHARVEST_` prefix:
    - `XHARVEST_API_KEY=...`
    - `XHARVEST_SESSION_COOKIE="auth_token=...; ct0=..."`
    - `XHARVEST_MIRROR_HOSTS='["nitter.net"]'`
    """
    harvester = _get_harvester()
    config = harvester.config
    return ConfigResponse(
        has_api_key=harvester.has_credential(),
        has_session=harvester.has_session(),
        mirror_hosts=config.mirror_hosts,
        api_timeout_s=config.api_timeout_s,
        mirror_timeout_s=config.mirror_timeout_s,
        rate_limit_max_retries=config.rate_limit_max_retries,
        batch_size=config.batch_size,
        batch_delay_ms=config.batch_delay_ms,
        enrichment_enabled=config.enrichment_enabled,
        log_level=config.log_level,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
