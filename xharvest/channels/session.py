"""Direct-session channel - the web client's private GraphQL timeline API."""

import json
from typing import Any

import httpx

from xharvest.channels.base import Channel, ChannelResult, describe_transport_error, fetch_count
from xharvest.core.filters import filter_posts
from xharvest.core.normalizers import parse_graphql_timeline
from xharvest.core.tree import dig_str
from xharvest.credentials import Credentials
from xharvest.exceptions import FetchError, SessionError
from xharvest.logging import get_logger
from xharvest.models.request import ScrapeRequest

GRAPHQL_BASE = "https://x.com/i/api/graphql"

# Feature switches the timeline operations expect
GRAPHQL_FEATURES = {
    "hidden_profile_subscriptions_enabled": True,
    "responsive_web_graphql_exclude_directive_enabled": True,
    "verified_phone_label_enabled": False,
    "subscriptions_verification_info_is_identity_verified_enabled": True,
    "subscriptions_verification_info_verified_since_enabled": True,
    "highlights_tweets_tab_ui_enabled": True,
    "responsive_web_twitter_article_notes_tab_enabled": True,
    "creator_subscriptions_tweet_preview_api_enabled": True,
    "responsive_web_graphql_skip_user_profile_image_extensions_enabled": False,
    "responsive_web_graphql_timeline_navigation_enabled": True,
    "view_counts_everywhere_api_enabled": True,
    "longform_notetweets_consumption_enabled": True,
    "responsive_web_edit_tweet_api_enabled": True,
    "tweet_awards_web_tipping_enabled": False,
    "freedom_of_speech_not_reach_fetch_enabled": True,
    "standardized_nudges_misinfo": True,
    "longform_notetweets_rich_text_read_enabled": True,
    "responsive_web_enhance_cards_enabled": False,
}


class SessionChannel(Channel):
    """
    Two authenticated calls: resolve the account id, then read its timeline.

    Session failures are not retried; a stale cookie does not recover by
    waiting.
    """

    name = "session"
    label = "Session"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._log = get_logger("channel.session")

    def available(self, credentials: Credentials) -> bool:
        return credentials.has_session

    def _headers(self, handle: str, credentials: Credentials) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.config.web_bearer_token}",
            "Cookie": credentials.session_cookie or "",
            "x-twitter-auth-type": "OAuth2Session",
            "x-twitter-active-user": "yes",
            "x-twitter-client-language": "en",
            "Referer": f"https://x.com/{handle}",
            "User-Agent": self.config.user_agent,
            "Accept": "*/*",
        }
        csrf = credentials.effective_csrf_token
        if csrf:
            headers["x-csrf-token"] = csrf
        return headers

    async def _graphql(
        self,
        query_id: str,
        operation: str,
        variables: dict[str, Any],
        headers: dict[str, str],
    ) -> dict:
        params = {
            "variables": json.dumps(variables, separators=(",", ":")),
            "features": json.dumps(GRAPHQL_FEATURES, separators=(",", ":")),
        }
        try:
            response = await self.client.get(
                f"{GRAPHQL_BASE}/{query_id}/{operation}",
                params=params,
                headers=headers,
                timeout=self.config.session_timeout_s,
            )
        except httpx.HTTPError as e:
            raise FetchError(f"{operation} {describe_transport_error(e)}") from e

        if not response.is_success:
            raise SessionError(f"{operation} HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise SessionError(f"{operation} response was not valid JSON") from e
        if not isinstance(payload, dict):
            raise SessionError(f"{operation} response had an unexpected shape")
        return payload

    async def resolve_user_id(self, handle: str, headers: dict[str, str]) -> str:
        payload = await self._graphql(
            self.config.user_by_screen_name_query_id,
            "UserByScreenName",
            {"screen_name": handle, "withSafetyModeUserFields": True},
            headers,
        )
        user_id = dig_str(payload, "data", "user", "result", "rest_id")
        if not user_id:
            raise SessionError(f"could not resolve account id for @{handle} (session may be expired)")
        return user_id

    async def fetch(self, request: ScrapeRequest, credentials: Credentials) -> ChannelResult:
        headers = self._headers(request.handle, credentials)
        try:
            user_id = await self.resolve_user_id(request.handle, headers)
            payload = await self._graphql(
                self.config.user_tweets_query_id,
                "UserTweets",
                {
                    "userId": user_id,
                    "count": fetch_count(request),
                    "includePromotedContent": False,
                    "withQuickPromoteEligibilityTweetFields": False,
                    "withVoice": False,
                    "withV2Timeline": True,
                },
                headers,
            )
        except FetchError as e:
            self._log.warning("session_failed", handle=request.handle, error=str(e))
            return ChannelResult(channel=self.name, error=f"Session: {e}", endpoint_errors=True)

        posts = parse_graphql_timeline(payload, request.handle)
        if not posts:
            return ChannelResult(channel=self.name, error="Session: timeline contained no posts")

        filtered = filter_posts(posts, request)
        self._log.info("session_success", handle=request.handle, fetched=len(posts), kept=len(filtered))
        error = None if filtered else f"Session: {len(posts)} posts but none matched the filters"
        return ChannelResult(channel=self.name, posts=filtered, error=error)
