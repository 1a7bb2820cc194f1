"""Shared fixtures: a scripted fake upstream, a recording sleeper and post factories."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from xharvest.config import HarvestConfig
from xharvest.models.post import CanonicalPost, PostMetrics

FIXTURES_DIR = Path(__file__).parent / "fixtures"

MIRROR_HOSTS = ["mirror-a.test", "mirror-b.test"]


class FakeUpstream:
    """
    Routes requests by method, host and path prefix to scripted responses.

    Each route replays its responses in order and then keeps repeating the
    last one. Unrouted requests get a 404. Every request is recorded.
    """

    def __init__(self):
        self.routes: list[dict] = []
        self.calls: list[httpx.Request] = []

    def route(self, method: str, host: str, path: str = "/", *responses):
        self.routes.append({"method": method.upper(), "host": host, "path": path, "responses": list(responses)})
        return self

    def get(self, host: str, path: str = "/", *responses):
        return self.route("GET", host, path, *responses)

    def post(self, host: str, path: str = "/", *responses):
        return self.route("POST", host, path, *responses)

    def head(self, host: str, path: str = "/", *responses):
        return self.route("HEAD", host, path, *responses)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        for route in self.routes:
            if (
                route["method"] == request.method
                and route["host"] == request.url.host
                and request.url.path.startswith(route["path"])
            ):
                responses = route["responses"]
                response = responses.pop(0) if len(responses) > 1 else responses[0]
                if callable(response):
                    response = response(request)
                if isinstance(response, Exception):
                    raise response
                return response
        return httpx.Response(404, text="not routed")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def calls_to(self, host: str, path: str = "/") -> list[httpx.Request]:
        return [call for call in self.calls if call.url.host == host and call.url.path.startswith(path)]


class RecordingSleeper:
    """Async stand-in for asyncio.sleep that records durations instead of waiting."""

    def __init__(self):
        self.durations: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.durations.append(seconds)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def config() -> HarvestConfig:
    """Credential-free config with two fake mirror hosts."""
    return HarvestConfig(
        api_key=None,
        session_cookie=None,
        csrf_token=None,
        mirror_hosts=list(MIRROR_HOSTS),
        log_level="WARNING",
    )


@pytest.fixture
def make_post():
    """Factory for CanonicalPost objects; each new post is one hour older than the last."""
    base = datetime(2024, 5, 13, 12, 0, tzinfo=timezone.utc)
    created: list[CanonicalPost] = []

    def factory(post_id: str = "1", content: str = "hello world", **overrides) -> CanonicalPost:
        fields = {
            "id": post_id,
            "url": f"https://x.com/nasa/status/{post_id}",
            "content": content,
            "author_handle": "nasa",
            "author_name": "NASA",
            "posted_at": base - timedelta(hours=len(created)),
            "metrics": PostMetrics(),
        }
        fields.update(overrides)
        post = CanonicalPost(**fields)
        created.append(post)
        return post

    return factory
