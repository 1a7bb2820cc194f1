"""Profile image lookups (avatar and banner), cascading through independent sources."""

import re

import httpx

from xharvest.channels.providers import socialdata_headers, socialdata_user_url
from xharvest.config import HarvestConfig
from xharvest.core.tree import dig_dict, first_present
from xharvest.credentials import CredentialKind, Credentials
from xharvest.logging import get_logger

UNAVATAR_URL = "https://unavatar.io/twitter/{handle}"
FOLLOW_BUTTON_URL = "https://cdn.syndication.twimg.com/widgets/followbutton/info.json"
TIMELINE_EMBED_URL = "https://syndication.twitter.com/srv/timeline-profile/screen-name/{handle}"
BANNER_BY_ID_URL = "https://pbs.twimg.com/profile_banners/{user_id}/1500x500"
BANNER_SIZE = "1500x500"

AVATAR_FIELDS = (
    "profile_image_url_https",
    "profile_image_url",
    "profilePicture",
    "avatar_url",
    "avatar",
)

BANNER_FIELDS = (
    "profile_banner_url",
    "profileBannerUrl",
    "banner_url",
    "bannerUrl",
    "coverImageUrl",
    "cover_image_url",
    "headerImageUrl",
    "header_image_url",
    "profileBanner",
)

EMBED_BANNER_RE = re.compile(r"""profile_banner_url['"]\s*:\s*['"]([^'"]+)['"]""")


def upgrade_avatar_url(url: str) -> str:
    """Swap the 48px ``_normal`` thumbnail for the 400px variant."""
    return url.replace("_normal.", "_400x400.") if "_normal." in url else url.replace("_normal", "_400x400")


def find_avatar(payload) -> str | None:
    """Avatar URL under any of the known field names, top-level or nested."""
    for node in (payload, dig_dict(payload, "data"), dig_dict(payload, "user"), dig_dict(payload, "data", "user")):
        value = first_present(node, *AVATAR_FIELDS)
        if isinstance(value, dict):
            value = first_present(value, "image_url", "url")
        if isinstance(value, str) and value.startswith("http"):
            return upgrade_avatar_url(value)
    return None


def sized_banner_url(url: str) -> str:
    """Unescape ``\\/`` and append the 1500x500 size segment unless present."""
    url = url.replace("\\/", "/").rstrip("/")
    return url if url.endswith(f"/{BANNER_SIZE}") else f"{url}/{BANNER_SIZE}"


def find_banner(payload) -> str | None:
    """Banner URL under any of the known field names, top-level or nested."""
    for node in (payload, dig_dict(payload, "data"), dig_dict(payload, "user"), dig_dict(payload, "data", "user")):
        value = first_present(node, *BANNER_FIELDS)
        if isinstance(value, str) and value.startswith("http"):
            return sized_banner_url(value)
    return None


async def fetch_follow_button(client: httpx.AsyncClient, handle: str, timeout: float, user_agent: str) -> dict | None:
    """Public follow-button metadata for one handle, or None."""
    try:
        response = await client.get(
            FOLLOW_BUTTON_URL,
            params={"screen_names": handle},
            headers={"User-Agent": user_agent, "Accept": "application/json", "Referer": "https://x.com/"},
            timeout=timeout,
        )
        if not response.is_success:
            return None
        data = response.json()
    except (httpx.HTTPError, ValueError):
        return None
    if isinstance(data, list) and data and isinstance(data[0], dict):
        return data[0]
    return None


async def fetch_provider_user(client: httpx.AsyncClient, handle: str, api_key: str, timeout: float) -> dict | None:
    """User record from the primary provider, or None."""
    try:
        response = await client.get(
            socialdata_user_url(handle),
            headers=socialdata_headers(api_key),
            timeout=timeout,
        )
        if not response.is_success:
            return None
        data = response.json()
    except (httpx.HTTPError, ValueError):
        return None
    return data if isinstance(data, dict) else None


class AvatarResolver:
    """
    Steps, first hit wins:

    1. avatar proxy, verified with a HEAD request
    2. provider user lookup (generic API key only)
    3. public follow-button metadata
    """

    def __init__(self, client: httpx.AsyncClient, config: HarvestConfig):
        self.client = client
        self.config = config
        self._log = get_logger("avatar")

    async def _from_proxy(self, handle: str) -> str | None:
        url = UNAVATAR_URL.format(handle=handle)
        try:
            response = await self.client.head(
                url,
                params={"fallback": "false"},
                timeout=self.config.avatar_head_timeout_s,
            )
        except httpx.HTTPError:
            return None
        return url if response.is_success else None

    async def _from_provider(self, handle: str, credentials: Credentials) -> str | None:
        if credentials.api_key_kind != CredentialKind.GENERIC:
            return None
        user = await fetch_provider_user(self.client, handle, credentials.api_key, self.config.avatar_lookup_timeout_s)
        return find_avatar(user) if user else None

    async def _from_follow_button(self, handle: str) -> str | None:
        info = await fetch_follow_button(
            self.client, handle, self.config.avatar_lookup_timeout_s, self.config.user_agent
        )
        return find_avatar(info) if info else None

    async def resolve(self, handle: str, credentials: Credentials) -> str | None:
        url = await self._from_proxy(handle)
        source = "proxy"
        if not url:
            url = await self._from_provider(handle, credentials)
            source = "provider"
        if not url:
            url = await self._from_follow_button(handle)
            source = "follow_button"

        if url:
            self._log.info("avatar_found", handle=handle, source=source)
        else:
            self._log.info("avatar_not_found", handle=handle)
        return url


class BannerResolver:
    """
    Steps, first hit wins:

    1. provider user lookup (generic API key only)
    2. public profile timeline embed
    3. public follow-button metadata, or a banner built from its user id
       when a HEAD request confirms it exists
    """

    def __init__(self, client: httpx.AsyncClient, config: HarvestConfig):
        self.client = client
        self.config = config
        self._log = get_logger("banner")

    async def _from_provider(self, handle: str, credentials: Credentials) -> str | None:
        if credentials.api_key_kind != CredentialKind.GENERIC:
            return None
        user = await fetch_provider_user(self.client, handle, credentials.api_key, self.config.avatar_lookup_timeout_s)
        return find_banner(user) if user else None

    async def _from_timeline_embed(self, handle: str) -> str | None:
        try:
            response = await self.client.get(
                TIMELINE_EMBED_URL.format(handle=handle),
                headers={"User-Agent": self.config.user_agent, "Accept": "text/html"},
                timeout=self.config.avatar_lookup_timeout_s,
            )
        except httpx.HTTPError:
            return None
        if not response.is_success:
            return None
        match = EMBED_BANNER_RE.search(response.text)
        return sized_banner_url(match.group(1)) if match else None

    async def _from_follow_button(self, handle: str) -> str | None:
        info = await fetch_follow_button(
            self.client, handle, self.config.avatar_lookup_timeout_s, self.config.user_agent
        )
        if not info:
            return None
        banner = find_banner(info)
        if banner:
            return banner

        user_id = info.get("id_str") or info.get("id")
        if not user_id:
            return None
        url = BANNER_BY_ID_URL.format(user_id=user_id)
        try:
            response = await self.client.head(url, timeout=self.config.avatar_head_timeout_s)
        except httpx.HTTPError:
            return None
        return url if response.is_success else None

    async def resolve(self, handle: str, credentials: Credentials) -> str | None:
        url = await self._from_provider(handle, credentials)
        source = "provider"
        if not url:
            url = await self._from_timeline_embed(handle)
            source = "timeline_embed"
        if not url:
            url = await self._from_follow_button(handle)
            source = "follow_button"

        if url:
            self._log.info("banner_found", handle=handle, source=source)
        else:
            self._log.info("banner_not_found", handle=handle)
        return url
