"""Value normalization shared by every channel: counts, dates, text, handles."""

import math
import re
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from html import unescape
from urllib.parse import urlparse

SHARE_LINK_RE = re.compile(r"\s*https?://t\.co/[A-Za-z0-9]+")
STATUS_ID_RE = re.compile(r"/status(?:es)?/(\d+)")
HANDLE_RE = re.compile(r"[A-Za-z0-9_]{1,15}")
TAG_RE = re.compile(r"<[^>]+>")
NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")

_MULTIPLIERS = {
    "K": 1_000,
    "M": 1_000_000,
    "B": 1_000_000_000,
}

_TEXT_DATE_FORMATS = [
    "%a %b %d %H:%M:%S %z %Y",      # v1.1 payloads: "Wed Oct 10 20:19:24 +0000 2018"
    "%b %d, %Y · %I:%M %p %Z",      # mirror title attribute: "Jan 5, 2024 · 3:04 PM UTC"
    "%b %d, %Y · %H:%M %Z",
    "%b %d, %Y",
    "%d %b %Y",
]


def _whole(number: float) -> int:
    """Round to a non-negative int; NaN and infinities count as invalid."""
    if not math.isfinite(number):
        return 0
    return max(0, int(round(number)))


def normalize_count(count_str) -> int:
    """
    Convert count strings to non-negative integers.

    Examples:
        "1.2K" -> 1200
        "3M" -> 3000000
        "2B" -> 2000000000
        "1,234" -> 1234
        "abc" -> 0
        "inf" -> 0
    """
    if count_str is None or isinstance(count_str, bool):
        return 0

    if isinstance(count_str, int):
        return max(0, count_str)

    if isinstance(count_str, float):
        return _whole(count_str)

    count_str = str(count_str).strip().upper().replace(",", "")

    if not count_str:
        return 0

    multiplier = 1
    for suffix, value in _MULTIPLIERS.items():
        if count_str.endswith(suffix):
            count_str, multiplier = count_str[:-1], value
            break

    try:
        number = float(count_str)
    except ValueError:
        return 0
    return _whole(number * multiplier)


def first_count(*candidates) -> int:
    """Return the first candidate that normalizes to a value, else 0."""
    for candidate in candidates:
        if candidate is None or candidate == "":
            continue
        return normalize_count(candidate)
    return 0


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_post_date(date_str) -> datetime | None:
    """
    Parse the timestamp formats upstreams use for posts.

    Handles ISO 8601 ("2026-01-18T18:17:20.000Z"), the v1.1 "created_at"
    text form, RFC 822 feed dates, the mirror "Jan 5, 2024 · 3:04 PM UTC"
    form, relative ages ("2h") and epoch seconds/milliseconds. Returns a
    UTC-aware datetime or None.
    """
    if date_str is None or isinstance(date_str, bool):
        return None

    if isinstance(date_str, datetime):
        return ensure_utc(date_str)

    if isinstance(date_str, (int, float)):
        seconds = date_str / 1000 if date_str > 10_000_000_000 else date_str
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    date_str = str(date_str).strip()
    if not date_str:
        return None

    now = datetime.now(timezone.utc)

    if "T" in date_str and date_str[:4].isdigit():
        try:
            return ensure_utc(datetime.fromisoformat(date_str.replace("Z", "+00:00")))
        except ValueError:
            pass

    if date_str.isdigit():
        return parse_post_date(int(date_str))

    relative = re.fullmatch(r"(\d+)\s*([smhd])", date_str, re.IGNORECASE)
    if relative:
        value = int(relative.group(1))
        unit = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}[relative.group(2).lower()]
        return now - timedelta(**{unit: value})

    for fmt in _TEXT_DATE_FORMATS:
        try:
            return ensure_utc(datetime.strptime(date_str, fmt))
        except ValueError:
            continue

    try:
        return ensure_utc(parsedate_to_datetime(date_str))
    except (TypeError, ValueError, IndexError):
        pass

    # "Mar 15" (current year)
    try:
        parsed = datetime.strptime(date_str, "%b %d")
        return parsed.replace(year=now.year, tzinfo=timezone.utc)
    except ValueError:
        return None


def strip_share_links(text: str | None) -> str:
    """Remove t.co share links and collapse the whitespace they leave."""
    if not text:
        return ""
    cleaned = SHARE_LINK_RE.sub("", text)
    return cleaned.strip()


def html_to_text(fragment: str | None) -> str:
    """Decode entities and drop tags from an HTML snippet."""
    if not fragment:
        return ""
    text = re.sub(r"<br\s*/?>", "\n", fragment, flags=re.IGNORECASE)
    text = TAG_RE.sub("", text)
    return unescape(text).strip()


def extract_post_id(url_or_id: str | None) -> str | None:
    """Pull the numeric post id out of a status URL, or accept a bare id."""
    if not url_or_id:
        return None
    value = url_or_id.strip()
    match = STATUS_ID_RE.search(value)
    if match:
        return match.group(1)
    return value if value.isdigit() else None


def normalize_handle(value: str | None) -> str:
    """
    Normalize user input to a bare lowercase handle.

    Accepts "@name", "name", and profile URLs such as
    "https://x.com/name" or "twitter.com/name/status/1". Anything that is not
    exactly one valid handle, such as "foo-bar" or "nasa spacex", gives "".
    """
    candidate = (value or "").strip()
    if not candidate:
        return ""
    lowered = candidate.lower()
    if "://" in candidate or "x.com/" in lowered or "twitter.com/" in lowered:
        parsed = urlparse(candidate if "://" in candidate else f"https://{candidate}")
        parts = [part for part in parsed.path.split("/") if part]
        candidate = parts[0] if parts else ""
    candidate = candidate.lstrip("@")
    match = HANDLE_RE.fullmatch(candidate)
    return match.group(0).lower() if match else ""


def post_url(handle: str | None, post_id: str) -> str:
    """Canonical x.com permalink for a post."""
    return f"https://x.com/{handle or 'i'}/status/{post_id}"
