"""Mirror channel - scrape profile timelines from read-only alternate front-ends."""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup, Tag

from xharvest.channels.base import Channel, ChannelResult, body_snippet, describe_transport_error
from xharvest.core.filters import filter_posts
from xharvest.core.normalizers import ITEM_ERRORS
from xharvest.core.transformer import (
    STATUS_ID_RE,
    normalize_count,
    normalize_handle,
    parse_post_date,
    post_url,
    strip_share_links,
)
from xharvest.credentials import Credentials
from xharvest.logging import get_logger
from xharvest.models.post import CanonicalPost, PostMetrics
from xharvest.models.request import ScrapeRequest

# Candidate sub-patterns, tried in order for each field
ID_SELECTORS = ["a.tweet-link", ".tweet-date a", "a[href*='/status/']"]
ID_ATTRIBUTES = ["data-tweet-id", "data-id"]
CONTENT_SELECTORS = [".tweet-content", ".tweet-text", ".status-content", "p"]
AUTHOR_SELECTORS = ["a.username", ".username", "a[href^='/'][title^='@']"]
NAME_SELECTORS = ["a.fullname", ".fullname", ".display-name"]
MEDIA_SELECTORS = [".attachments img[src]", ".attachment img[src]", "a.still-image[href]", "video[poster]"]

# metric -> (icon classes used by tweet-stat blocks, fallback class stem, aria word)
METRIC_PATTERNS = {
    "replies": (("icon-comment", "icon-reply"), "reply", "repl"),
    "retweets": (("icon-retweet",), "retweet", "retweet"),
    "quotes": (("icon-quote",), "quote", "quote"),
    "likes": (("icon-heart", "icon-like"), "like", "like"),
    "views": (("icon-views", "icon-play"), "view", "view"),
}

SOFT_FAILURE_MARKERS = ("rate limited", "rate-limited", "blocked")
SHORT_PAGE_CHARS = 1500


def _text(element: Tag | None) -> str:
    return element.get_text(" ", strip=True) if element is not None else ""


def _first(fragment: Tag, selectors: list[str]) -> Tag | None:
    for selector in selectors:
        element = fragment.select_one(selector)
        if element is not None:
            return element
    return None


def extract_id(fragment: Tag) -> str | None:
    for attribute in ID_ATTRIBUTES:
        value = fragment.get(attribute)
        if value and str(value).isdigit():
            return str(value)
    for selector in ID_SELECTORS:
        for link in fragment.select(selector):
            match = STATUS_ID_RE.search(link.get("href", ""))
            if match:
                return match.group(1)
    return None


def extract_content(fragment: Tag) -> str:
    element = _first(fragment, CONTENT_SELECTORS)
    return strip_share_links(_text(element))


def extract_timestamp(fragment: Tag) -> datetime | None:
    candidates = []
    date_link = fragment.select_one(".tweet-date a")
    if date_link is not None:
        candidates.append(date_link.get("title"))
    time_el = fragment.select_one("time[datetime]")
    if time_el is not None:
        candidates.append(time_el.get("datetime"))
    candidates.append(_text(date_link))
    for candidate in candidates:
        parsed = parse_post_date(candidate)
        if parsed is not None:
            return parsed
    return None


def extract_metric(fragment: Tag, metric: str) -> int:
    icons, stem, aria_word = METRIC_PATTERNS[metric]
    for icon in icons:
        for element in fragment.select(f".{icon}"):
            # the "X retweeted" banner reuses the retweet icon
            if element.find_parent(class_="retweet-header") is not None or element.parent is None:
                continue
            return normalize_count(_text(element.parent))
    element = fragment.select_one(f"[class*='{stem}-count'], [class*='{stem}s-count']")
    if element is not None:
        return normalize_count(_text(element))
    for element in fragment.select("[aria-label]"):
        parts = element.get("aria-label", "").split()
        if len(parts) >= 2 and parts[1].lower().startswith(aria_word):
            return normalize_count(parts[0])
    return 0


def extract_media(fragment: Tag, base_url: str) -> list[str]:
    urls: list[str] = []
    for selector in MEDIA_SELECTORS:
        for element in fragment.select(selector):
            raw = element.get("src") or element.get("href") or element.get("poster")
            if not raw:
                continue
            url = urljoin(base_url, raw)
            if url not in urls:
                urls.append(url)
    return urls


def detect_retweet(fragment: Tag, content: str) -> bool:
    """Best effort: markup hints or a leading "RT @"."""
    if fragment.select_one(".retweet-header, .retweeted") is not None:
        return True
    classes = " ".join(fragment.get("class", []))
    return "retweet" in classes or content.startswith("RT @")


def detect_quote(fragment: Tag) -> tuple[bool, str | None]:
    """Best effort quote detection returning the quoted post's x.com URL when visible."""
    quote = fragment.select_one(".quote, .quoted-tweet, .quote-big")
    if quote is None:
        return False, None
    link = quote.select_one("a.quote-link, a[href*='/status/']")
    if link is None:
        return True, None
    href = link.get("href", "")
    match = STATUS_ID_RE.search(href)
    if not match:
        return True, None
    return True, post_url(normalize_handle(urljoin("https://x.com/", href)) or None, match.group(1))


def parse_fragment(fragment: Tag, handle: str, base_url: str) -> CanonicalPost | None:
    """One post fragment; None when no id can be found."""
    post_id = extract_id(fragment)
    if not post_id:
        return None

    content = extract_content(fragment)
    author = normalize_handle(_text(_first(fragment, AUTHOR_SELECTORS))) or handle
    posted_at = extract_timestamp(fragment)
    is_quote, quoted_url = detect_quote(fragment)

    return CanonicalPost(
        id=post_id,
        url=post_url(author, post_id),
        content=content,
        author_handle=author,
        author_name=_text(_first(fragment, NAME_SELECTORS)) or author,
        posted_at=posted_at or datetime.now(timezone.utc),
        posted_at_estimated=posted_at is None,
        metrics=PostMetrics(**{metric: extract_metric(fragment, metric) for metric in METRIC_PATTERNS}),
        media_urls=extract_media(fragment, base_url),
        is_retweet=detect_retweet(fragment, content),
        is_quote=is_quote,
        quoted_url=quoted_url,
    )


@dataclass(frozen=True)
class ExtractionStrategy:
    """Named CSS pattern locating post fragments in one family of mirror markup."""

    name: str
    selector: str

    def extract(self, soup: BeautifulSoup, handle: str, base_url: str) -> tuple[list[CanonicalPost], bool]:
        posts: list[CanonicalPost] = []
        seen: set[str] = set()
        for fragment in soup.select(self.selector):
            try:
                post = parse_fragment(fragment, handle, base_url)
            except ITEM_ERRORS:
                continue
            if post is None or post.id in seen:
                continue
            seen.add(post.id)
            posts.append(post)
        return posts, bool(posts)


STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("timeline-item", "div.timeline-item"),
    ExtractionStrategy("tweet-body", ".tweet-body"),
    ExtractionStrategy("article", "article"),
)


def extract_posts(html: str, handle: str, base_url: str) -> tuple[list[CanonicalPost], str | None]:
    """Run strategies in order; the first with a match wins."""
    soup = BeautifulSoup(html, "lxml")
    for strategy in STRATEGIES:
        posts, matched = strategy.extract(soup, handle, base_url)
        if matched:
            return posts, strategy.name
    return [], None


def soft_failure(html: str) -> str | None:
    """Reason when a 2xx page is really an error, rate-limit or block page."""
    lowered = html.lower()
    has_timeline = "timeline-item" in lowered or "tweet-body" in lowered
    if not has_timeline:
        for marker in SOFT_FAILURE_MARKERS:
            if marker in lowered:
                return marker.replace("-", " ")
    if len(html) < SHORT_PAGE_CHARS and re.search(r"\berror\b", lowered):
        return "error page"
    return None


class MirrorChannel(Channel):
    """Iterates mirror hosts; the first host yielding a post wins."""

    name = "mirror"
    label = "Mirror"
    enrichable = True

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._log = get_logger("channel.mirror")

    async def fetch(self, request: ScrapeRequest, credentials: Credentials) -> ChannelResult:
        reasons: list[str] = []
        for host in self.config.mirror_hosts:
            base_url = f"https://{host}"
            posts, reason = await self._fetch_host(base_url, request.handle)
            if reason is not None:
                reasons.append(f"{host}: {reason}")
                self._log.debug("mirror_host_failed", host=host, handle=request.handle, reason=reason)
                continue

            filtered = filter_posts(posts, request)
            self._log.info("mirror_success", host=host, handle=request.handle, fetched=len(posts), kept=len(filtered))
            error = None if filtered else f"Mirror: {host} returned {len(posts)} posts but none matched the filters"
            return ChannelResult(channel=f"{self.name}:{host}", posts=filtered, error=error)

        return ChannelResult(
            channel=self.name,
            error="Mirror: " + ("; ".join(reasons) if reasons else "no mirror hosts configured"),
        )

    async def _fetch_host(self, base_url: str, handle: str) -> tuple[list[CanonicalPost], str | None]:
        try:
            response = await self.client.get(
                f"{base_url}/{handle}",
                headers={"User-Agent": self.config.user_agent, "Accept": "text/html"},
                timeout=self.config.mirror_timeout_s,
            )
        except httpx.HTTPError as e:
            return [], describe_transport_error(e)

        if not response.is_success:
            return [], f"HTTP {response.status_code}"

        html = response.text
        reason = soft_failure(html)
        if reason:
            return [], f"{reason} ({body_snippet(response, 60)})" if reason == "error page" else reason

        posts, strategy = extract_posts(html, handle, base_url)
        if not posts:
            return [], "no posts found in page"
        self._log.debug("mirror_extracted", base_url=base_url, strategy=strategy, count=len(posts))
        return posts, None
