"""
Tests for the Twitter OAuth 1.0a connector against a mocked HTTP transport.
"""

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from connectors.base import ProviderError
from connectors.schemas import AccessCredentials
from connectors.twitter import TwitterConnector


def _connector(handler) -> TwitterConnector:
    return TwitterConnector(
        "consumer-key",
        "consumer-secret",
        redirect_base="https://agents.example.com/",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


CREDS = AccessCredentials(access_token="at", access_token_secret="ats")


class TestTwitterConnector:
    def test_configuration(self):
        assert TwitterConnector("k", "s").is_configured()
        assert not TwitterConnector("", "").is_configured()

    def test_callback_url(self):
        connector = _connector(lambda request: httpx.Response(200))
        assert connector.callback_url() == "https://agents.example.com/api/v1/connections/twitter/callback"

    def test_authorization_url(self):
        connector = _connector(lambda request: httpx.Response(200))
        url = connector.authorization_url("rt")
        assert url.startswith("https://api.twitter.com/oauth/authorize?")
        assert parse_qs(urlsplit(url).query) == {"oauth_token": ["rt"]}

    @pytest.mark.asyncio
    async def test_fetch_request_token(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                text="oauth_token=rt&oauth_token_secret=rs&oauth_callback_confirmed=true",
            )

        token = await _connector(handler).fetch_request_token("https://agents.example.com/cb?state=abc")

        assert token.token == "rt"
        assert token.secret == "rs"
        assert seen[0].url.path == "/oauth/request_token"
        auth_header = seen[0].headers["authorization"]
        assert auth_header.startswith("OAuth ")
        assert "oauth_callback" in auth_header
        assert 'oauth_consumer_key="consumer-key"' in auth_header

    @pytest.mark.asyncio
    async def test_unconfirmed_callback_rejected(self):
        def handler(request):
            return httpx.Response(
                200,
                text="oauth_token=rt&oauth_token_secret=rs&oauth_callback_confirmed=false",
            )

        with pytest.raises(ProviderError):
            await _connector(handler).fetch_request_token("https://agents.example.com/cb")

    @pytest.mark.asyncio
    async def test_request_token_http_error(self):
        with pytest.raises(ProviderError):
            await _connector(lambda request: httpx.Response(401, text="Invalid consumer")).fetch_request_token(
                "https://agents.example.com/cb"
            )

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderError):
            await _connector(handler).fetch_request_token("https://agents.example.com/cb")

    @pytest.mark.asyncio
    async def test_exchange_verifier(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200,
                text="oauth_token=at&oauth_token_secret=ats&user_id=42&screen_name=agentbot",
            )

        creds = await _connector(handler).exchange_verifier("rt", "rs", "the-verifier")

        assert creds == CREDS
        assert seen[0].url.path == "/oauth/access_token"
        auth_header = seen[0].headers["authorization"]
        assert 'oauth_verifier="the-verifier"' in auth_header
        assert 'oauth_token="rt"' in auth_header

    @pytest.mark.asyncio
    async def test_exchange_rejected(self):
        with pytest.raises(ProviderError):
            await _connector(lambda request: httpx.Response(401, text="Invalid verifier")).exchange_verifier(
                "rt", "rs", "bad"
            )

    @pytest.mark.asyncio
    async def test_exchange_missing_fields(self):
        with pytest.raises(ProviderError):
            await _connector(lambda request: httpx.Response(200, text="oauth_token=at")).exchange_verifier(
                "rt", "rs", "v"
            )

    @pytest.mark.asyncio
    async def test_fetch_identity(self):
        def handler(request):
            assert request.url.path == "/2/users/me"
            return httpx.Response(200, json={"data": {"id": "42", "username": "agentbot", "name": "Agent Bot"}})

        identity = await _connector(handler).fetch_identity(CREDS)

        assert identity.user_id == "42"
        assert identity.username == "agentbot"
        assert identity.name == "Agent Bot"

    @pytest.mark.asyncio
    async def test_fetch_identity_rate_limited(self):
        with pytest.raises(ProviderError):
            await _connector(lambda request: httpx.Response(429, json={"title": "Too Many Requests"})).fetch_identity(
                CREDS
            )

    @pytest.mark.asyncio
    async def test_fetch_identity_malformed(self):
        with pytest.raises(ProviderError):
            await _connector(lambda request: httpx.Response(200, json={"errors": []})).fetch_identity(CREDS)

    @pytest.mark.asyncio
    async def test_revoke(self):
        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/1.1/oauth/invalidate_token"
            return httpx.Response(200, json={"access_token": "at"})

        assert await _connector(handler).revoke(CREDS) is True

    @pytest.mark.asyncio
    async def test_revoke_not_accepted(self):
        assert await _connector(lambda request: httpx.Response(401)).revoke(CREDS) is False
