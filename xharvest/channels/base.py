"""Shared channel interface and HTTP helpers."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import httpx

from xharvest.config import HarvestConfig
from xharvest.credentials import Credentials
from xharvest.models.post import CanonicalPost
from xharvest.models.request import ScrapeRequest

Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class ChannelResult:
    """What one channel produced for one request."""

    channel: str
    posts: list[CanonicalPost] = field(default_factory=list)
    error: str | None = None
    # True when an upstream endpoint actively failed (status, error body, transport)
    endpoint_errors: bool = False

    @property
    def success(self) -> bool:
        return bool(self.posts)


class Channel(ABC):
    """One acquisition strategy. Implementations never raise for upstream failures."""

    name: str = "channel"
    label: str = "Channel"
    # Whether results are metric-poor and worth enriching
    enrichable: bool = False

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: HarvestConfig,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.client = client
        self.config = config
        self._sleep = sleep

    def available(self, credentials: Credentials) -> bool:
        """Whether the channel can be attempted with these credentials."""
        return True

    @abstractmethod
    async def fetch(self, request: ScrapeRequest, credentials: Credentials) -> ChannelResult:
        """Retrieve, normalize and filter posts for ``request``."""
        ...


def fetch_count(request: ScrapeRequest) -> int:
    """How many raw items to ask an upstream for, leaving room for filtering."""
    return min(max(request.max_items * 2, 20), 200)


def describe_transport_error(error: httpx.HTTPError) -> str:
    """Short operator-facing description of a transport failure."""
    if isinstance(error, httpx.TimeoutException):
        return "timed out"
    if isinstance(error, httpx.ConnectError):
        return "connection failed"
    return f"{type(error).__name__}: {error}" if str(error) else type(error).__name__


def body_snippet(response: httpx.Response, limit: int = 120) -> str:
    """First characters of a response body, single-lined."""
    try:
        text = response.text
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        return ""
    return " ".join(text.split())[:limit]
