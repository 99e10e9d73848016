"""
TwitterConnector — OAuth 1.0a (3-legged) for Twitter/X.

Request token → user consent → verifier exchange, then a signed
``/2/users/me`` call for the account identity.  Signing is handled by
Authlib's httpx integration.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth1Client

from config.settings import config
from connectors.base import BaseConnector, ProviderError
from connectors.schemas import AccessCredentials, ProviderIdentity, RequestToken, ServiceName

logger = logging.getLogger(__name__)

# Twitter OAuth 1.0a endpoints
_TW_REQUEST_TOKEN_URL = "https://api.twitter.com/oauth/request_token"
_TW_AUTHORIZE_URL = "https://api.twitter.com/oauth/authorize"
_TW_ACCESS_TOKEN_URL = "https://api.twitter.com/oauth/access_token"
_TW_INVALIDATE_URL = "https://api.twitter.com/1.1/oauth/invalidate_token"
_TW_API = "https://api.twitter.com/2"

_PROVIDER_ERRORS = (OAuthError, httpx.HTTPError, ValueError, KeyError, TypeError)


class TwitterConnector(BaseConnector):
    """OAuth 1.0a connector for Twitter/X."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        *,
        redirect_base: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = config.twitter_api_key if api_key is None else api_key
        self._api_secret = config.twitter_api_secret_key if api_secret is None else api_secret
        self._redirect_base = (redirect_base or config.oauth_redirect_base).rstrip("/")
        self._timeout = config.http_timeout_seconds if timeout is None else timeout
        self._transport = transport

    @property
    def service(self) -> ServiceName:
        return ServiceName.TWITTER

    @property
    def display_name(self) -> str:
        return "Twitter/X"

    @property
    def description(self) -> str:
        return "Connect to post tweets and interact with your audience"

    @property
    def color(self) -> str:
        return "#1DA1F2"

    def is_configured(self) -> bool:
        return bool(self._api_key and self._api_secret)

    def callback_url(self) -> str:
        return f"{self._redirect_base}/api/v1/connections/twitter/callback"

    def _client(self, **kwargs: Any) -> AsyncOAuth1Client:
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return AsyncOAuth1Client(
            self._api_key,
            self._api_secret,
            timeout=self._timeout,
            **kwargs,
        )

    async def fetch_request_token(self, callback_url: str) -> RequestToken:
        try:
            async with self._client(redirect_uri=callback_url) as client:
                token = await client.fetch_request_token(_TW_REQUEST_TOKEN_URL)
        except _PROVIDER_ERRORS as exc:
            raise ProviderError(f"Twitter request token failed: {exc}") from exc

        if str(token.get("oauth_callback_confirmed", "true")).lower() != "true":
            raise ProviderError("Twitter did not confirm the OAuth callback URL")
        try:
            return RequestToken(token=token["oauth_token"], secret=token["oauth_token_secret"])
        except KeyError as exc:
            raise ProviderError(f"Twitter request token response missing {exc}") from exc

    def authorization_url(self, request_token: str) -> str:
        return f"{_TW_AUTHORIZE_URL}?{urlencode({'oauth_token': request_token})}"

    async def exchange_verifier(
        self,
        request_token: str,
        request_token_secret: str,
        verifier: str,
    ) -> AccessCredentials:
        try:
            async with self._client(token=request_token, token_secret=request_token_secret) as client:
                data = await client.fetch_access_token(_TW_ACCESS_TOKEN_URL, verifier)
            return AccessCredentials(
                access_token=data["oauth_token"],
                access_token_secret=data["oauth_token_secret"],
            )
        except _PROVIDER_ERRORS as exc:
            raise ProviderError(f"Twitter access token exchange failed: {exc}") from exc

    async def fetch_identity(self, credentials: AccessCredentials) -> ProviderIdentity:
        try:
            async with self._client(
                token=credentials.access_token,
                token_secret=credentials.access_token_secret,
            ) as client:
                resp = await client.get(f"{_TW_API}/users/me")
                resp.raise_for_status()
                user = resp.json()["data"]
            return ProviderIdentity(
                user_id=str(user["id"]),
                username=user.get("username"),
                name=user.get("name"),
            )
        except _PROVIDER_ERRORS as exc:
            raise ProviderError(f"Twitter profile lookup failed: {exc}") from exc

    async def revoke(self, credentials: AccessCredentials) -> bool:
        """Invalidate the access token via Twitter's OAuth 1.1 API."""
        try:
            async with self._client(
                token=credentials.access_token,
                token_secret=credentials.access_token_secret,
            ) as client:
                resp = await client.post(_TW_INVALIDATE_URL)
                return resp.status_code == 200
        except _PROVIDER_ERRORS as exc:
            raise ProviderError(f"Twitter token invalidation failed: {exc}") from exc
