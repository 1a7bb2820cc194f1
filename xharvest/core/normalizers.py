"""Per-format normalizers turning decoded upstream payloads into CanonicalPosts.

Every normalizer takes the decoded JSON body and the requested handle and
returns zero or more posts. Items that do not fit the expected shape are
skipped one at a time; a bad item never aborts the batch.
"""

from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from xharvest.core.transformer import (
    first_count,
    normalize_handle,
    parse_post_date,
    post_url,
    strip_share_links,
)
from xharvest.core.tree import dig, dig_dict, dig_list, dig_str, first_present
from xharvest.logging import get_logger
from xharvest.models.post import CanonicalPost, EnrichedPost, PostMetrics

log = get_logger("normalizers")

Normalizer = Callable[[Any, str], list[CanonicalPost]]

# Exceptions that mean "this one item is malformed"
ITEM_ERRORS = (ValidationError, ValueError, TypeError, KeyError, AttributeError, OverflowError)

# Placeholder rows some scraping actors emit when nothing matched
_MOCK_MARKERS = ("KaitoEasyAPI", "mock data")


def _timestamp(*candidates) -> tuple[datetime, bool]:
    """First parseable timestamp, or (now, estimated=True)."""
    for candidate in candidates:
        parsed = parse_post_date(candidate)
        if parsed is not None:
            return parsed, False
    return datetime.now(timezone.utc), True


def _media_urls(*media_lists) -> list[str]:
    urls: list[str] = []
    for media in media_lists:
        if not isinstance(media, list):
            continue
        for entry in media:
            if isinstance(entry, str):
                url = entry
            elif isinstance(entry, dict):
                url = first_present(entry, "media_url_https", "media_url", "url") or ""
            else:
                continue
            if isinstance(url, str) and url.startswith("http") and url not in urls:
                urls.append(url)
    return urls


def _collect(items: Iterable, build: Callable[[dict, str], CanonicalPost | None], handle: str, source: str) -> list[CanonicalPost]:
    posts: list[CanonicalPost] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            post = build(item, handle)
        except ITEM_ERRORS as e:
            log.debug("item_skipped", source=source, item_id=item.get("id") or item.get("id_str"), error=str(e))
            continue
        if post is not None:
            posts.append(post)
    return posts


# ---------------------------------------------------------------------------
# v1.1-style objects (socialdata search results, GraphQL "legacy" blocks)
# ---------------------------------------------------------------------------

def legacy_to_post(
    legacy: dict,
    handle: str,
    *,
    post_id: str | None = None,
    user: dict | None = None,
    views=None,
) -> CanonicalPost | None:
    """Map a v1.1-shaped tweet object to a CanonicalPost."""
    post_id = post_id or dig_str(legacy, "id_str") or dig_str(legacy, "id")
    if not post_id:
        return None

    user = user if user is not None else (dig_dict(legacy, "user") or {})
    author = normalize_handle(dig_str(user, "screen_name")) or handle
    content = strip_share_links(first_present(legacy, "full_text", "text") or "")
    posted_at, estimated = _timestamp(legacy.get("created_at"), legacy.get("tweet_created_at"))

    quoted_url = dig_str(legacy, "quoted_status_permalink", "expanded")
    is_retweet = bool(
        legacy.get("retweeted_status")
        or legacy.get("retweeted_status_result")
        or content.startswith("RT @")
    )

    return CanonicalPost(
        id=post_id,
        url=post_url(author, post_id),
        content=content,
        author_handle=author,
        author_name=dig_str(user, "name") or author,
        posted_at=posted_at,
        posted_at_estimated=estimated,
        metrics=PostMetrics(
            likes=first_count(legacy.get("favorite_count")),
            retweets=first_count(legacy.get("retweet_count")),
            replies=first_count(legacy.get("reply_count")),
            quotes=first_count(legacy.get("quote_count")),
            views=first_count(views, legacy.get("views_count"), dig(legacy, "views", "count")),
            bookmarks=first_count(legacy.get("bookmark_count")),
        ),
        media_urls=_media_urls(
            dig(legacy, "extended_entities", "media"),
            dig(legacy, "entities", "media"),
            legacy.get("media"),
        ),
        is_retweet=is_retweet,
        is_quote=bool(legacy.get("is_quote_status")) or quoted_url is not None,
        quoted_url=quoted_url,
    )


def parse_socialdata(payload: Any, handle: str) -> list[CanonicalPost]:
    """socialdata.tools search: ``{"tweets": [...], "next_cursor": ...}``."""
    items = dig_list(payload, "tweets") if isinstance(payload, dict) else payload
    return _collect(items or [], legacy_to_post, handle, "socialdata")


# ---------------------------------------------------------------------------
# camelCase APIs (twitterapi.io, Apify actors)
# ---------------------------------------------------------------------------

def _camel_to_post(item: dict, handle: str) -> CanonicalPost | None:
    post_id = dig_str(item, "id") or dig_str(item, "id_str")
    if not post_id or post_id in ("-1", "undefined"):
        return None

    content = first_present(item, "text", "full_text", "fullText", "content") or ""
    if all(marker in content for marker in _MOCK_MARKERS):
        return None

    author = dig_dict(item, "author") or dig_dict(item, "user") or {}
    author_handle = (
        normalize_handle(dig_str(author, "userName") or dig_str(author, "screen_name"))
        or _handle_from_url(first_present(item, "url", "twitterUrl"))
        or handle
    )
    posted_at, estimated = _timestamp(item.get("createdAt"), item.get("created_at"))
    quoted = dig_dict(item, "quoted_tweet") or dig_dict(item, "quote")
    quoted_url = dig_str(quoted, "url") or dig_str(quoted, "twitterUrl") if quoted else None
    content = strip_share_links(content)

    return CanonicalPost(
        id=post_id,
        url=first_present(item, "url", "twitterUrl") or post_url(author_handle, post_id),
        content=content,
        author_handle=author_handle,
        author_name=dig_str(author, "name") or author_handle,
        posted_at=posted_at,
        posted_at_estimated=estimated,
        metrics=PostMetrics(
            likes=first_count(item.get("likeCount"), item.get("favorite_count")),
            retweets=first_count(item.get("retweetCount"), item.get("retweet_count")),
            replies=first_count(item.get("replyCount"), item.get("reply_count")),
            quotes=first_count(item.get("quoteCount"), item.get("quote_count")),
            views=first_count(item.get("viewCount"), item.get("view_count"), dig(item, "views", "count")),
            bookmarks=first_count(item.get("bookmarkCount"), item.get("bookmark_count")),
        ),
        media_urls=_media_urls(
            dig(item, "extendedEntities", "media"),
            dig(item, "extended_entities", "media"),
            item.get("media"),
        ),
        is_retweet=bool(item.get("isRetweet") or item.get("retweeted_tweet") or content.startswith("RT @")),
        is_quote=bool(item.get("isQuote") or item.get("is_quote_status") or quoted),
        quoted_url=quoted_url,
    )


def _handle_from_url(url) -> str | None:
    if not isinstance(url, str) or "/status" not in url:
        return None
    return normalize_handle(url) or None


def parse_twitterapi_io(payload: Any, handle: str) -> list[CanonicalPost]:
    """twitterapi.io last_tweets: tweets under ``data.tweets`` or ``tweets``."""
    items = dig_list(payload, "data", "tweets") or dig_list(payload, "tweets")
    return _collect(items, _camel_to_post, handle, "twitterapi_io")


def parse_apify(payload: Any, handle: str) -> list[CanonicalPost]:
    """Apify dataset items: a bare JSON array of tweet objects."""
    if isinstance(payload, dict):
        payload = dig_list(payload, "items") or dig_list(payload, "data")
    if not isinstance(payload, list):
        return []
    items = [item for item in payload if isinstance(item, dict) and item.get("type") != "mock_tweet"]
    return _collect(items, _camel_to_post, handle, "apify")


# ---------------------------------------------------------------------------
# GraphQL timeline (direct session)
# ---------------------------------------------------------------------------

def unwrap_tweet_result(result: Any) -> dict | None:
    """Strip ``TweetWithVisibilityResults`` wrappers; reject non-tweet nodes."""
    if not isinstance(result, dict):
        return None
    typename = result.get("__typename")
    if typename == "TweetWithVisibilityResults":
        return dig_dict(result, "tweet")
    if typename and typename != "Tweet":
        return None
    return result


def timeline_instructions(payload: Any) -> list:
    """Instruction list of a UserTweets response, across known layouts."""
    for path in (
        ("data", "user", "result", "timeline_v2", "timeline", "instructions"),
        ("data", "user", "result", "timeline", "timeline", "instructions"),
    ):
        instructions = dig_list(payload, *path)
        if instructions:
            return instructions
    return []


def timeline_entries(instructions: list) -> list[dict]:
    """Flatten AddEntries/PinEntry instructions into entry dicts."""
    entries: list[dict] = []
    for instruction in instructions:
        if not isinstance(instruction, dict):
            continue
        pinned = dig_dict(instruction, "entry")
        if pinned is not None:
            entries.append(pinned)
        entries.extend(entry for entry in dig_list(instruction, "entries") if isinstance(entry, dict))
    return entries


def _entry_tweet_results(entry: dict) -> list[dict]:
    """Tweet result nodes carried by one entry (single item or module)."""
    results = []
    single = dig(entry, "content", "itemContent", "tweet_results", "result")
    if single is not None:
        results.append(single)
    for module_item in dig_list(entry, "content", "items"):
        nested = dig(module_item, "item", "itemContent", "tweet_results", "result")
        if nested is not None:
            results.append(nested)
    return [tweet for tweet in map(unwrap_tweet_result, results) if tweet is not None]


def graphql_tweet_to_post(tweet: dict, handle: str) -> CanonicalPost | None:
    """Map one GraphQL ``Tweet`` node; returns None when the node lacks a legacy block."""
    legacy = dig_dict(tweet, "legacy")
    if legacy is None:
        return None
    user_result = dig_dict(tweet, "core", "user_results", "result") or {}
    user = dict(dig_dict(user_result, "legacy") or {})
    # Newer payloads move screen_name/name under "core"
    for key in ("screen_name", "name"):
        if key not in user and dig_str(user_result, "core", key):
            user[key] = dig_str(user_result, "core", key)

    post = legacy_to_post(
        legacy,
        handle,
        post_id=dig_str(tweet, "rest_id") or dig_str(legacy, "id_str"),
        user=user,
        views=dig(tweet, "views", "count"),
    )
    if post is not None and dig(tweet, "quoted_status_result", "result") is not None:
        post.is_quote = True
    return post


def parse_graphql_timeline(payload: Any, handle: str) -> list[CanonicalPost]:
    """UserTweets response: instructions → entries → tweet results."""
    tweets: list[dict] = []
    for entry in timeline_entries(timeline_instructions(payload)):
        entry_id = str(entry.get("entryId") or "")
        if entry_id.startswith(("cursor-", "who-to-follow")):
            continue
        tweets.extend(_entry_tweet_results(entry))
    return _collect(tweets, graphql_tweet_to_post, handle, "graphql")


# ---------------------------------------------------------------------------
# Public embed endpoint (single item)
# ---------------------------------------------------------------------------

def parse_syndication(payload: Any, post_id: str) -> EnrichedPost | None:
    """Embed ``tweet-result`` body to a partial record; None when it has no text."""
    if not isinstance(payload, dict) or not (payload.get("text") or payload.get("full_text")):
        return None

    def optional_count(*candidates):
        if all(candidate in (None, "") for candidate in candidates):
            return None
        return first_count(*candidates)

    return EnrichedPost(
        id=dig_str(payload, "id_str") or post_id,
        content=strip_share_links(payload.get("text") or payload.get("full_text")),
        author_handle=normalize_handle(dig_str(payload, "user", "screen_name")) or None,
        author_name=dig_str(payload, "user", "name"),
        posted_at=parse_post_date(payload.get("created_at")),
        likes=optional_count(payload.get("favorite_count")),
        retweets=optional_count(payload.get("retweet_count")),
        replies=optional_count(payload.get("reply_count"), payload.get("conversation_count")),
        quotes=optional_count(payload.get("quote_count")),
        views=optional_count(dig(payload, "views", "count"), payload.get("views_count")),
    )


def enriched_to_post(enriched: EnrichedPost) -> CanonicalPost:
    """Promote a partial embed record to a full post (missing values default)."""
    author = enriched.author_handle or ""
    return CanonicalPost(
        id=enriched.id,
        url=post_url(author, enriched.id),
        content=enriched.content or "",
        author_handle=author,
        author_name=enriched.author_name or author,
        posted_at=enriched.posted_at or datetime.now(timezone.utc),
        posted_at_estimated=enriched.posted_at is None,
        metrics=PostMetrics(
            likes=enriched.likes or 0,
            retweets=enriched.retweets or 0,
            replies=enriched.replies or 0,
            quotes=enriched.quotes or 0,
            views=enriched.views or 0,
        ),
    )


NORMALIZERS: dict[str, Normalizer] = {
    "socialdata": parse_socialdata,
    "twitterapi_io": parse_twitterapi_io,
    "apify": parse_apify,
    "graphql_timeline": parse_graphql_timeline,
}


def normalize(parser_id: str, payload: Any, handle: str) -> list[CanonicalPost]:
    """Dispatch to the normalizer registered under ``parser_id``."""
    try:
        normalizer = NORMALIZERS[parser_id]
    except KeyError:
        raise ValueError(f"Unknown parser: {parser_id}") from None
    return normalizer(payload, handle)
