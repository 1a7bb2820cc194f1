"""Feed channel - the mirror hosts' RSS endpoints as a low-fidelity fallback."""

import re
from datetime import datetime, timezone

import httpx

from xharvest.channels.base import Channel, ChannelResult, describe_transport_error
from xharvest.core.filters import filter_posts
from xharvest.core.normalizers import ITEM_ERRORS
from xharvest.core.transformer import (
    STATUS_ID_RE,
    html_to_text,
    normalize_handle,
    parse_post_date,
    post_url,
    strip_share_links,
)
from xharvest.credentials import Credentials
from xharvest.logging import get_logger
from xharvest.models.post import CanonicalPost
from xharvest.models.request import ScrapeRequest

ITEM_RE = re.compile(r"<item\b[^>]*>(.*?)</item>", re.IGNORECASE | re.DOTALL)
IMG_SRC_RE = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE)
RETWEET_TITLE_RE = re.compile(r"^RT (?:by )?@", re.IGNORECASE)


def tag_text(block: str, tag: str) -> str | None:
    """Inner text of the first ``<tag>`` in ``block``, CDATA or plain."""
    pattern = re.compile(
        rf"<{re.escape(tag)}\b[^>]*>\s*(?:<!\[CDATA\[(.*?)\]\]>|(.*?))\s*</{re.escape(tag)}>",
        re.IGNORECASE | re.DOTALL,
    )
    match = pattern.search(block)
    if not match:
        return None
    value = match.group(1) if match.group(1) is not None else match.group(2)
    return value.strip() if value else None


def parse_feed_item(block: str, handle: str) -> CanonicalPost | None:
    """One ``<item>`` block; None when the link carries no post id."""
    link = tag_text(block, "link") or tag_text(block, "guid") or ""
    match = STATUS_ID_RE.search(link)
    if not match:
        return None
    post_id = match.group(1)

    title = html_to_text(tag_text(block, "title"))
    description = tag_text(block, "description") or ""
    content = strip_share_links(title or html_to_text(description))
    is_retweet = bool(RETWEET_TITLE_RE.match(title))

    creator = normalize_handle(tag_text(block, "dc:creator")) or handle
    posted_at = parse_post_date(tag_text(block, "pubDate"))

    return CanonicalPost(
        id=post_id,
        url=post_url(creator, post_id),
        content=content,
        author_handle=creator,
        author_name=creator,
        posted_at=posted_at or datetime.now(timezone.utc),
        posted_at_estimated=posted_at is None,
        media_urls=IMG_SRC_RE.findall(description),
        is_retweet=is_retweet,
    )


def parse_feed(xml: str, handle: str) -> list[CanonicalPost]:
    posts: list[CanonicalPost] = []
    for block in ITEM_RE.findall(xml):
        try:
            post = parse_feed_item(block, handle)
        except ITEM_ERRORS:
            continue
        if post is not None:
            posts.append(post)
    return posts


class FeedChannel(Channel):
    """RSS over the mirror host list; first host with a post wins. Metrics stay zero."""

    name = "feed"
    label = "Feed"
    enrichable = True

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._log = get_logger("channel.feed")

    async def fetch(self, request: ScrapeRequest, credentials: Credentials) -> ChannelResult:
        reasons: list[str] = []
        for host in self.config.mirror_hosts:
            posts, reason = await self._fetch_host(host, request.handle)
            if reason is not None:
                reasons.append(f"{host}: {reason}")
                self._log.debug("feed_host_failed", host=host, handle=request.handle, reason=reason)
                continue

            filtered = filter_posts(posts, request)
            self._log.info("feed_success", host=host, handle=request.handle, fetched=len(posts), kept=len(filtered))
            error = None if filtered else f"Feed: {host} returned {len(posts)} posts but none matched the filters"
            return ChannelResult(channel=f"{self.name}:{host}", posts=filtered, error=error)

        return ChannelResult(
            channel=self.name,
            error="Feed: " + ("; ".join(reasons) if reasons else "no mirror hosts configured"),
        )

    async def _fetch_host(self, host: str, handle: str) -> tuple[list[CanonicalPost], str | None]:
        try:
            response = await self.client.get(
                f"https://{host}/{handle}/rss",
                headers={"User-Agent": self.config.user_agent, "Accept": "application/rss+xml, application/xml"},
                timeout=self.config.feed_timeout_s,
            )
        except httpx.HTTPError as e:
            return [], describe_transport_error(e)

        if not response.is_success:
            return [], f"HTTP {response.status_code}"

        xml = response.text
        if "<item" not in xml.lower():
            return [], "no items in feed" if "<rss" in xml.lower() else "not an RSS feed"

        posts = parse_feed(xml, handle)
        if not posts:
            return [], "no parseable items in feed"
        return posts, None
