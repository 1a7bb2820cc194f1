"""Single-post and profile lookups outside the timeline path."""

import httpx

from xharvest.channels.providers import socialdata_headers, socialdata_post_url
from xharvest.config import HarvestConfig
from xharvest.core.normalizers import ITEM_ERRORS, enriched_to_post, legacy_to_post
from xharvest.core.transformer import extract_post_id, first_count, normalize_handle
from xharvest.core.tree import dig_str
from xharvest.credentials import CredentialKind, Credentials
from xharvest.logging import get_logger
from xharvest.models.post import CanonicalPost
from xharvest.models.profile import ProfileData
from xharvest.services.avatar import (
    AvatarResolver,
    fetch_follow_button,
    fetch_provider_user,
    find_avatar,
)
from xharvest.services.enrichment import EnrichmentService


def profile_from_user(user: dict, handle: str) -> ProfileData:
    """Provider or follow-button user record to ProfileData."""
    screen_name = normalize_handle(dig_str(user, "screen_name") or dig_str(user, "userName")) or handle
    return ProfileData(
        handle=screen_name,
        name=dig_str(user, "name") or screen_name,
        followers_count=first_count(user.get("followers_count"), user.get("followers")),
        following_count=first_count(user.get("friends_count"), user.get("following_count"), user.get("following")),
        avatar_url=find_avatar(user),
    )


class LookupService:
    """Cascading lookups for one post or one account; failures return None."""

    def __init__(self, client: httpx.AsyncClient, config: HarvestConfig):
        self.client = client
        self.config = config
        self.enrichment = EnrichmentService(client, config)
        self.avatars = AvatarResolver(client, config)
        self._log = get_logger("lookup")

    async def _post_from_provider(self, post_id: str, api_key: str) -> CanonicalPost | None:
        try:
            response = await self.client.get(
                socialdata_post_url(post_id),
                headers=socialdata_headers(api_key),
                timeout=self.config.api_timeout_s,
            )
            if not response.is_success:
                self._log.debug("post_provider_http_error", post_id=post_id, status=response.status_code)
                return None
            payload = response.json()
            if not isinstance(payload, dict):
                return None
            return legacy_to_post(payload, "")
        except (httpx.HTTPError, *ITEM_ERRORS) as e:
            self._log.debug("post_provider_failed", post_id=post_id, error=str(e))
            return None

    async def post(self, url_or_id: str, credentials: Credentials) -> CanonicalPost | None:
        post_id = extract_post_id(url_or_id)
        if not post_id:
            self._log.info("post_lookup_invalid", value=url_or_id)
            return None

        if credentials.api_key_kind == CredentialKind.GENERIC:
            post = await self._post_from_provider(post_id, credentials.api_key)
            if post is not None:
                self._log.info("post_found", post_id=post_id, source="provider")
                return post

        enriched = await self.enrichment.fetch_one(post_id)
        if enriched is None:
            self._log.info("post_not_found", post_id=post_id)
            return None
        try:
            post = enriched_to_post(enriched)
        except ITEM_ERRORS as e:
            self._log.debug("post_embed_unusable", post_id=post_id, error=str(e))
            return None
        self._log.info("post_found", post_id=post_id, source="embed")
        return post

    async def profile(self, handle: str, credentials: Credentials) -> ProfileData | None:
        handle = normalize_handle(handle)
        if not handle:
            return None

        if credentials.api_key_kind == CredentialKind.GENERIC:
            user = await fetch_provider_user(
                self.client, handle, credentials.api_key, self.config.avatar_lookup_timeout_s
            )
            if user:
                try:
                    return profile_from_user(user, handle)
                except ITEM_ERRORS as e:
                    self._log.debug("profile_provider_unusable", handle=handle, error=str(e))

        info = await fetch_follow_button(
            self.client, handle, self.config.avatar_lookup_timeout_s, self.config.user_agent
        )
        if info:
            try:
                profile = profile_from_user(info, handle)
            except ITEM_ERRORS as e:
                self._log.debug("profile_follow_button_unusable", handle=handle, error=str(e))
            else:
                if profile.avatar_url is None:
                    profile.avatar_url = await self.avatars.resolve(handle, Credentials())
                return profile

        avatar_url = await self.avatars.resolve(handle, Credentials())
        if avatar_url is None:
            self._log.info("profile_not_found", handle=handle)
            return None
        return ProfileData(handle=handle, name=handle, avatar_url=avatar_url)
