"""API channel - ordered third-party providers with 429 backoff."""

import re
from typing import Any

import httpx

from xharvest.channels.base import (
    Channel,
    ChannelResult,
    body_snippet,
    describe_transport_error,
    fetch_count,
)
from xharvest.channels.providers import PROVIDERS, ProviderDescriptor, providers_for
from xharvest.core.filters import filter_posts
from xharvest.core.normalizers import normalize
from xharvest.credentials import Credentials
from xharvest.exceptions import FetchError, ParseError, RateLimitedError, UpstreamError
from xharvest.logging import get_logger
from xharvest.models.post import CanonicalPost
from xharvest.models.request import ScrapeRequest

WAIT_HINT_RE = re.compile(r"wait\s+(\d+(?:\.\d+)?)\s*s(?:ec(?:ond)?s?)?\b", re.IGNORECASE)


def parse_wait_seconds(body: str | None, default: float) -> float:
    """Suggested wait from a 429 body ("please wait 12 seconds"), else ``default``."""
    if body:
        match = WAIT_HINT_RE.search(body)
        if match:
            return float(match.group(1))
    return default


def explicit_error(payload: Any) -> str | None:
    """Error message carried in a 2xx body, if any."""
    if not isinstance(payload, dict):
        return None
    error = payload.get("error") or payload.get("errors")
    if payload.get("status") == "error" or error:
        detail = payload.get("message") or payload.get("msg") or error
        if isinstance(detail, list) and detail:
            detail = detail[0].get("message", detail[0]) if isinstance(detail[0], dict) else detail[0]
        if isinstance(detail, dict):
            detail = detail.get("message") or str(detail)
        return str(detail or "unknown error")
    return None


class ApiChannel(Channel):
    """
    Tries every provider compatible with the configured key, in order.

    A 429 is retried on the same provider after the suggested wait (plus a
    buffer) up to ``rate_limit_max_retries`` more times. Any other failure
    moves straight on to the next provider.
    """

    name = "api"
    label = "API"

    def __init__(self, *args, providers: tuple[ProviderDescriptor, ...] = PROVIDERS, **kwargs):
        super().__init__(*args, **kwargs)
        self.providers = providers
        self._log = get_logger("channel.api")

    def available(self, credentials: Credentials) -> bool:
        return credentials.has_api_key

    async def fetch(self, request: ScrapeRequest, credentials: Credentials) -> ChannelResult:
        kind = credentials.api_key_kind
        providers = providers_for(kind, self.providers)
        if not providers:
            return ChannelResult(
                channel=self.name,
                error=f"API: no provider accepts this key format ({kind.value if kind else 'none'})",
            )

        reasons: list[str] = []
        endpoint_errors = False

        for provider in providers:
            try:
                posts = await self._attempt(provider, request, credentials.api_key)
            except FetchError as e:
                endpoint_errors = True
                reasons.append(f"{provider.name}: {e}")
                self._log.warning("provider_failed", provider=provider.name, handle=request.handle, error=str(e))
                continue
            except ParseError as e:
                reasons.append(f"{provider.name}: {e}")
                self._log.info("provider_empty", provider=provider.name, handle=request.handle)
                continue

            filtered = filter_posts(posts, request)
            self._log.info(
                "provider_success",
                provider=provider.name,
                handle=request.handle,
                fetched=len(posts),
                kept=len(filtered),
            )
            error = None
            if not filtered:
                error = f"API: {provider.name} returned {len(posts)} posts but none matched the filters"
            return ChannelResult(channel=f"{self.name}:{provider.name}", posts=filtered, error=error)

        return ChannelResult(
            channel=self.name,
            error="API: " + "; ".join(reasons),
            endpoint_errors=endpoint_errors,
        )

    async def _attempt(
        self,
        provider: ProviderDescriptor,
        request: ScrapeRequest,
        api_key: str,
    ) -> list[CanonicalPost]:
        """One provider, retrying only on rate limiting."""
        retries = 0
        while True:
            try:
                return await self._request_once(provider, request, api_key)
            except RateLimitedError as e:
                if retries >= self.config.rate_limit_max_retries:
                    raise
                retries += 1
                delay = e.wait_seconds + self.config.rate_limit_buffer_s
                self._log.warning(
                    "provider_rate_limited",
                    provider=provider.name,
                    wait_seconds=delay,
                    retry=retries,
                )
                await self._sleep(delay)

    async def _request_once(
        self,
        provider: ProviderDescriptor,
        request: ScrapeRequest,
        api_key: str,
    ) -> list[CanonicalPost]:
        count = fetch_count(request)
        kwargs: dict[str, Any] = {
            "headers": provider.headers(api_key),
            "timeout": self.config.api_timeout_s,
        }
        if provider.body is not None:
            kwargs["json"] = provider.body(request.handle, count)

        try:
            response = await self.client.request(provider.method, provider.url(request.handle, count), **kwargs)
        except httpx.HTTPError as e:
            raise FetchError(describe_transport_error(e)) from e

        status = response.status_code
        if status == 429:
            wait = parse_wait_seconds(response.text, self.config.rate_limit_default_wait_s)
            raise RateLimitedError(f"HTTP 429 rate limited (suggested wait {wait:g}s)", wait)
        if status == 402:
            raise UpstreamError("HTTP 402 not enough credits, top up the account", status)
        if not response.is_success:
            snippet = body_snippet(response)
            raise UpstreamError(f"HTTP {status}" + (f" - {snippet}" if snippet else ""), status)

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError("response was not valid JSON", status) from e

        error = explicit_error(payload)
        if error:
            raise UpstreamError(f"error in response: {error}", status)

        posts = normalize(provider.parser, payload, request.handle)
        if not posts:
            raise ParseError("no posts in response")
        return posts
