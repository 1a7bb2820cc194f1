"""Harvest orchestrator - sequences channels, aggregates diagnostics, paces batches."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import httpx

from xharvest.channels import ApiChannel, Channel, ChannelResult, FeedChannel, MirrorChannel, SessionChannel
from xharvest.channels.base import Sleeper
from xharvest.config import HarvestConfig
from xharvest.core.transformer import normalize_handle
from xharvest.credentials import Credentials
from xharvest.logging import configure_logging, get_logger
from xharvest.models.outcome import ScrapeOutcome
from xharvest.models.post import CanonicalPost
from xharvest.models.profile import ProfileData, ProfileMedia
from xharvest.models.request import ScrapeRequest
from xharvest.services.avatar import AvatarResolver, BannerResolver
from xharvest.services.enrichment import EnrichmentService, merge_enrichment
from xharvest.services.lookup import LookupService

NO_CREDENTIALS_HINT = (
    "No API key or session cookie is configured; public mirrors are unreliable, "
    "configure an API key or a session cookie for dependable results."
)
API_FAILED_HINT = (
    "An API key is configured but every provider failed; verify the key is valid "
    "and funded, and space out requests to avoid rate limits."
)


class Harvester:
    """
    High-level interface over every acquisition channel.

    Example:
        async with Harvester() as harvester:
            outcome = await harvester.scrape("nasa")
            print(outcome.channel_used, len(outcome.posts))
    """

    def __init__(
        self,
        config: HarvestConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleeper | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the harvester.

        Args:
            config: HarvestConfig instance, uses defaults if None
            transport: httpx transport for the owned client (tests inject a MockTransport)
            sleep: coroutine used for backoff and batch pacing, ``asyncio.sleep`` by default
            client: externally owned client; it is not closed on exit
        """
        self.config = config or HarvestConfig()
        self._credentials = Credentials.from_config(self.config)
        self._transport = transport
        self._sleep: Sleeper = sleep or asyncio.sleep
        self._client = client
        self._owns_client = client is None
        self._channels: list[Channel] | None = None
        self._log = get_logger("harvester")

    async def __aenter__(self) -> "Harvester":
        configure_logging(self.config)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            self._channels = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport, follow_redirects=True)
        return self._client

    @property
    def channels(self) -> list[Channel]:
        """Channels in priority order."""
        if self._channels is None:
            self._channels = [
                channel_cls(self.client, self.config, sleep=self._sleep)
                for channel_cls in (ApiChannel, SessionChannel, MirrorChannel, FeedChannel)
            ]
        return self._channels

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    def set_credential(self, api_key: str) -> None:
        api_key = (api_key or "").strip()
        self._credentials = self._credentials.model_copy(update={"api_key": api_key or None})
        self._log.info("credential_set", has_credential=bool(api_key), kind=self._credentials.api_key_kind)

    def clear_credential(self) -> None:
        self._credentials = self._credentials.model_copy(update={"api_key": None})
        self._log.info("credential_cleared")

    def has_credential(self) -> bool:
        return self._credentials.has_api_key

    def set_session(self, cookie: str, csrf_token: str | None = None) -> None:
        self._credentials = self._credentials.model_copy(
            update={"session_cookie": (cookie or "").strip() or None, "csrf_token": csrf_token or None}
        )
        self._log.info("session_set", has_session=self._credentials.has_session, has_csrf_token=bool(csrf_token))

    def clear_session(self) -> None:
        self._credentials = self._credentials.model_copy(update={"session_cookie": None, "csrf_token": None})
        self._log.info("session_cleared")

    def has_session(self) -> bool:
        return self._credentials.has_session

    # ------------------------------------------------------------------
    # Scraping
    # ------------------------------------------------------------------

    async def scrape(self, request: ScrapeRequest | str) -> ScrapeOutcome:
        """
        Fetch recent posts for one handle, trying channels in priority order.

        Never raises; every failure ends up in the outcome's ``error``.

        Args:
            request: ScrapeRequest, or a bare handle with default filters

        Returns:
            ScrapeOutcome with the first channel's non-empty result
        """
        start = datetime.now()
        if isinstance(request, str):
            try:
                request = ScrapeRequest(handle=request)
            except ValueError as e:
                return self._failure(normalize_handle(request) or request, f"Invalid handle: {e}", start)

        credentials = self._credentials
        diagnostics: list[str] = []
        api_endpoint_errors = False
        self._log.info(
            "scrape_start",
            handle=request.handle,
            has_credential=credentials.has_api_key,
            has_session=credentials.has_session,
        )

        for channel in self.channels:
            if not channel.available(credentials):
                continue
            result = await self._run_channel(channel, request, credentials)
            if result.success:
                return await self._success(request, channel, result, diagnostics, start)

            diagnostics.append(result.error or f"{channel.label}: no posts")
            if channel.name == ApiChannel.name and result.endpoint_errors:
                api_endpoint_errors = True
            self._log.info("channel_failed", handle=request.handle, channel=channel.name, error=result.error)

        hint = None
        if not credentials.has_api_key and not credentials.has_session:
            hint = NO_CREDENTIALS_HINT
        elif credentials.has_api_key and api_endpoint_errors:
            hint = API_FAILED_HINT
        error = "; ".join(diagnostics + ([hint] if hint else []))
        self._log.warning("scrape_failed", handle=request.handle, error=error)
        return self._failure(request.handle, error, start)

    async def _run_channel(
        self,
        channel: Channel,
        request: ScrapeRequest,
        credentials: Credentials,
    ) -> ChannelResult:
        try:
            return await channel.fetch(request, credentials)
        except Exception as e:
            self._log.exception("channel_crashed", handle=request.handle, channel=channel.name)
            return ChannelResult(channel=channel.name, error=f"{channel.label}: unexpected error: {e}")

    async def _success(
        self,
        request: ScrapeRequest,
        channel: Channel,
        result: ChannelResult,
        diagnostics: list[str],
        start: datetime,
    ) -> ScrapeOutcome:
        posts = result.posts
        enriched_count = 0
        if channel.enrichable and self.config.enrichment_enabled:
            posts, enriched_count = await self._enrich(posts)

        duration_ms = (datetime.now() - start).total_seconds() * 1000
        self._log.info(
            "scrape_complete",
            handle=request.handle,
            channel=result.channel,
            posts_count=len(posts),
            enriched=enriched_count,
            duration_ms=duration_ms,
        )
        return ScrapeOutcome(
            success=True,
            handle=request.handle,
            posts=posts,
            error="; ".join(diagnostics) or None,
            channel_used=result.channel,
            enriched_count=enriched_count,
            scraped_at=datetime.now(),
            duration_ms=duration_ms,
        )

    async def _enrich(self, posts: list[CanonicalPost]) -> tuple[list[CanonicalPost], int]:
        service = EnrichmentService(self.client, self.config)
        try:
            enriched = await service.enrich([post.id for post in posts])
        except Exception as e:
            self._log.warning("enrichment_failed", error=str(e))
            return posts, 0
        return merge_enrichment(posts, enriched)

    def _failure(self, handle: str, error: str, start: datetime) -> ScrapeOutcome:
        return ScrapeOutcome(
            success=False,
            handle=handle,
            error=error,
            scraped_at=datetime.now(),
            duration_ms=(datetime.now() - start).total_seconds() * 1000,
        )

    async def scrape_many(
        self,
        handles: list[str],
        keywords: list[str] | None = None,
        max_items_per_handle: int = 20,
        *,
        include_replies: bool = False,
        include_retweets: bool = True,
        since_date: datetime | None = None,
    ) -> dict[str, ScrapeOutcome]:
        """
        Scrape several handles in small concurrent groups.

        Groups of ``batch_size`` run together; ``batch_delay_ms`` is waited
        between groups but not after the last one.

        Args:
            handles: X handles, with or without "@"
            keywords: Keyword filter applied to every handle
            max_items_per_handle: Cap on posts per handle
            include_replies: Keep replies for every handle
            include_retweets: Keep retweets for every handle
            since_date: Inclusive lower bound on post time for every handle

        Returns:
            Outcomes keyed by normalized handle
        """
        outcomes: dict[str, ScrapeOutcome] = {}
        requests: list[ScrapeRequest] = []
        for raw in handles:
            try:
                requests.append(
                    ScrapeRequest(
                        handle=raw,
                        keywords=keywords or [],
                        max_items=max_items_per_handle,
                        include_replies=include_replies,
                        include_retweets=include_retweets,
                        since_date=since_date,
                    )
                )
            except ValueError as e:
                key = normalize_handle(raw) or raw
                outcomes[key] = self._failure(key, f"Invalid handle: {e}", datetime.now())

        results = await self._paced(requests, self.scrape)
        for request, outcome in zip(requests, results):
            outcomes[request.handle] = outcome

        self._log.info(
            "batch_complete",
            handles=len(outcomes),
            succeeded=sum(1 for outcome in outcomes.values() if outcome.success),
        )
        return outcomes

    async def _paced(self, items: list, worker: Callable[[Any], Awaitable[Any]]) -> list:
        """Results of ``worker`` per item, in order, run ``batch_size`` at a time."""
        size = max(self.config.batch_size, 1)
        groups = [items[i:i + size] for i in range(0, len(items), size)]
        results: list = []
        for index, group in enumerate(groups):
            results.extend(await asyncio.gather(*(worker(item) for item in group)))
            if self.config.batch_delay_ms > 0 and index < len(groups) - 1:
                await self._sleep(self.config.batch_delay_ms / 1000)
        return results

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def resolve_avatar(self, handle: str) -> str | None:
        handle = normalize_handle(handle)
        if not handle:
            return None
        return await AvatarResolver(self.client, self.config).resolve(handle, self._credentials)

    async def fetch_banner(self, handle: str) -> str | None:
        """Header image URL for a handle, or None when no source has one."""
        handle = normalize_handle(handle)
        if not handle:
            return None
        return await BannerResolver(self.client, self.config).resolve(handle, self._credentials)

    async def fetch_media(self, handle: str) -> ProfileMedia | None:
        """
        Avatar and banner together; each side falls back on its own.

        Returns None only for an invalid handle.
        """
        handle = normalize_handle(handle)
        if not handle:
            return None
        credentials = self._credentials
        avatar_url, banner_url = await asyncio.gather(
            AvatarResolver(self.client, self.config).resolve(handle, credentials),
            BannerResolver(self.client, self.config).resolve(handle, credentials),
        )
        return ProfileMedia(handle=handle, avatar_url=avatar_url, banner_url=banner_url)

    async def scrape_post(self, url_or_id: str) -> CanonicalPost | None:
        """One post by status URL or numeric id."""
        return await LookupService(self.client, self.config).post(url_or_id, self._credentials)

    async def scrape_posts(self, ids: list[str]) -> dict[str, CanonicalPost | None]:
        """
        Look up several posts, paced like :meth:`scrape_many`.

        Never raises. Keys are the given ids or URLs in input order, duplicates
        collapsed; a value is None when the post could not be found.
        """
        keys = list(dict.fromkeys(value.strip() for value in ids if value and value.strip()))
        if not keys:
            return {}

        lookup = LookupService(self.client, self.config)
        credentials = self._credentials

        async def one(key: str) -> CanonicalPost | None:
            try:
                return await lookup.post(key, credentials)
            except Exception:
                self._log.exception("post_lookup_crashed", value=key)
                return None

        found = await self._paced(keys, one)
        posts = dict(zip(keys, found))
        self._log.info(
            "posts_batch_complete",
            requested=len(posts),
            found=sum(1 for post in posts.values() if post is not None),
        )
        return posts

    async def fetch_profile(self, handle: str) -> ProfileData | None:
        return await LookupService(self.client, self.config).profile(handle, self._credentials)
