"""Operator-supplied access credentials."""

import re
from enum import Enum

from pydantic import BaseModel

from xharvest.config import HarvestConfig

_CT0_RE = re.compile(r"(?:^|;\s*)ct0=([^;]+)")


class CredentialKind(str, Enum):
    """Key families, told apart by prefix."""
    APIFY = "apify"
    GENERIC = "generic"


APIFY_KEY_PREFIX = "apify_api_"


class Credentials(BaseModel):
    """
    Immutable snapshot of the API key and session cookie.

    A Harvester reads one snapshot at the start of every scrape, so
    replacing credentials never changes a request that is already running.
    """

    api_key: str | None = None
    session_cookie: str | None = None
    csrf_token: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def from_config(cls, config: HarvestConfig) -> "Credentials":
        return cls(
            api_key=config.api_key or None,
            session_cookie=config.session_cookie or None,
            csrf_token=config.csrf_token or None,
        )

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @property
    def has_session(self) -> bool:
        return bool(self.session_cookie)

    @property
    def api_key_kind(self) -> CredentialKind | None:
        if not self.api_key:
            return None
        if self.api_key.startswith(APIFY_KEY_PREFIX):
            return CredentialKind.APIFY
        return CredentialKind.GENERIC

    @property
    def effective_csrf_token(self) -> str | None:
        """Explicit CSRF token, else the ``ct0`` value embedded in the cookie."""
        if self.csrf_token:
            return self.csrf_token
        if self.session_cookie:
            match = _CT0_RE.search(self.session_cookie)
            if match:
                return match.group(1).strip()
        return None
