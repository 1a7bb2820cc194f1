"""Custom exception hierarchy for xharvest."""


class XharvestError(Exception):
    """Base exception for all xharvest errors."""


class FetchError(XharvestError):
    """An upstream request failed."""


class RateLimitedError(FetchError):
    """Upstream answered HTTP 429."""

    def __init__(self, message: str, wait_seconds: float):
        super().__init__(message)
        self.wait_seconds = wait_seconds


class UpstreamError(FetchError):
    """Upstream rejected the request or reported an error in its body."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class SessionError(FetchError):
    """Authenticated session call failed."""


class ParseError(XharvestError):
    """Failed to extract any post from a response."""
