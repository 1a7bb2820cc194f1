"""Static registry of third-party social-data API providers."""

from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import quote

from xharvest.credentials import CredentialKind

UrlBuilder = Callable[[str, int], str]
HeaderBuilder = Callable[[str], dict[str, str]]
BodyBuilder = Callable[[str, int], dict]


@dataclass(frozen=True)
class ProviderDescriptor:
    """How to ask one provider for a handle's recent posts."""

    name: str
    method: str
    url: UrlBuilder
    headers: HeaderBuilder
    parser: str
    accepts: frozenset[CredentialKind]
    body: BodyBuilder | None = None


def _bearer(api_key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {api_key}", "Accept": "application/json"}


def _x_api_key(api_key: str) -> dict[str, str]:
    return {"X-API-Key": api_key, "Accept": "application/json"}


APIFY_ACTOR_ID = "CJdippxWmn9uRfooo"

SOCIALDATA = ProviderDescriptor(
    name="socialdata",
    method="GET",
    url=lambda handle, count: (
        "https://api.socialdata.tools/twitter/search"
        f"?query={quote(f'from:{handle}')}&type=Latest"
    ),
    headers=_bearer,
    parser="socialdata",
    accepts=frozenset({CredentialKind.GENERIC}),
)

TWITTERAPI_IO = ProviderDescriptor(
    name="twitterapi_io",
    method="GET",
    url=lambda handle, count: (
        f"https://api.twitterapi.io/twitter/user/last_tweets?userName={quote(handle)}&includeReplies=true"
    ),
    headers=_x_api_key,
    parser="twitterapi_io",
    accepts=frozenset({CredentialKind.GENERIC}),
)

APIFY = ProviderDescriptor(
    name="apify",
    method="POST",
    url=lambda handle, count: (
        f"https://api.apify.com/v2/acts/{APIFY_ACTOR_ID}/run-sync-get-dataset-items?limit={count}"
    ),
    headers=lambda api_key: {**_bearer(api_key), "Content-Type": "application/json"},
    body=lambda handle, count: {"searchTerms": [f"from:{handle}"], "maxItems": count},
    parser="apify",
    accepts=frozenset({CredentialKind.APIFY}),
)

# Order is the tie-break when several providers accept a key
PROVIDERS: tuple[ProviderDescriptor, ...] = (SOCIALDATA, TWITTERAPI_IO, APIFY)


def providers_for(kind: CredentialKind | None, registry=PROVIDERS) -> list[ProviderDescriptor]:
    """Providers compatible with a key kind, in registry order."""
    if kind is None:
        return []
    return [provider for provider in registry if kind in provider.accepts]


# Single-item and profile endpoints on the primary provider

def socialdata_user_url(handle: str) -> str:
    return f"https://api.socialdata.tools/twitter/user/{quote(handle)}"


def socialdata_post_url(post_id: str) -> str:
    return f"https://api.socialdata.tools/twitter/tweets/{quote(post_id)}"


socialdata_headers = _bearer
