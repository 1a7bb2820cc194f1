"""Order-preserving post-processing applied to every channel's result."""

from xharvest.core.transformer import ensure_utc
from xharvest.models.post import CanonicalPost
from xharvest.models.request import ScrapeRequest


def is_reply(post: CanonicalPost) -> bool:
    """A post is treated as a reply when its text opens with an @-mention."""
    return post.content.lstrip().startswith("@")


def matches_keywords(post: CanonicalPost, keywords: list[str]) -> bool:
    """Case-insensitive substring match against any keyword."""
    content = post.content.lower()
    return any(keyword.lower() in content for keyword in keywords)


def filter_posts(posts: list[CanonicalPost], request: ScrapeRequest) -> list[CanonicalPost]:
    """
    Apply the request's filters in a fixed order.

    1. drop replies unless ``include_replies``
    2. drop retweets unless ``include_retweets``
    3. keep keyword matches (OR) when keywords are given
    4. drop posts older than ``since_date`` (inclusive bound)
    5. truncate to ``max_items``

    The input list is not modified.
    """
    result = list(posts)

    if not request.include_replies:
        result = [post for post in result if not is_reply(post)]

    if not request.include_retweets:
        result = [post for post in result if not post.is_retweet]

    if request.keywords:
        result = [post for post in result if matches_keywords(post, request.keywords)]

    if request.since_date is not None:
        since = ensure_utc(request.since_date)
        result = [post for post in result if ensure_utc(post.posted_at) >= since]

    return result[: request.max_items]
