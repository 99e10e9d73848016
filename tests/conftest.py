"""
Shared fixtures: in-memory SQLite store, controllable clock, fake provider.
"""

import asyncio
import uuid
from typing import Dict, List
from urllib.parse import parse_qs, urlsplit

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from connectors.base import BaseConnector, ProviderError
from connectors.coordinator import AuthCoordinator
from connectors.credential_store import CredentialStore
from connectors.encryption import CredentialCipher
from connectors.events import EventDispatcher
from connectors.host import InMemoryHost, SettingsInjector
from connectors.registry import ConnectorRegistry
from connectors.schemas import AccessCredentials, ProviderIdentity, RequestToken, ServiceName
from connectors.session_cache import SessionCache
from database.session import build_session_factory, init_db

TEST_SECRET = "test-secret-salt"
FAST_KDF = 1000


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTwitter(BaseConnector):
    """Scriptable stand-in for the Twitter provider client."""

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.fail_request_token = False
        self.fail_exchange = False
        self.fail_identity = False
        self.fail_revoke = False
        self.callback_urls: List[str] = []
        # request token -> CSRF state carried on its callback URL
        self.states: Dict[str, str] = {}
        self.exchanges: List[tuple] = []
        self.revoked: List[AccessCredentials] = []
        self._counter = 0

    @property
    def service(self) -> ServiceName:
        return ServiceName.TWITTER

    @property
    def display_name(self) -> str:
        return "Twitter/X"

    def is_configured(self) -> bool:
        return self.configured

    def callback_url(self) -> str:
        return "http://testserver/api/v1/connections/twitter/callback"

    async def fetch_request_token(self, callback_url: str) -> RequestToken:
        await asyncio.sleep(0)
        if self.fail_request_token:
            raise ProviderError("request token endpoint returned 503")
        self._counter += 1
        self.callback_urls.append(callback_url)
        token = f"req-{self._counter}"
        self.states[token] = parse_qs(urlsplit(callback_url).query).get("state", [""])[0]
        return RequestToken(token=token, secret=f"req-secret-{self._counter}")

    def authorization_url(self, request_token: str) -> str:
        return f"https://provider.test/oauth/authorize?oauth_token={request_token}"

    async def exchange_verifier(self, request_token, request_token_secret, verifier) -> AccessCredentials:
        await asyncio.sleep(0)
        self.exchanges.append((request_token, request_token_secret, verifier))
        if self.fail_exchange:
            raise ProviderError("verifier rejected")
        return AccessCredentials(
            access_token=f"access-{request_token}",
            access_token_secret=f"access-secret-{request_token}",
        )

    async def fetch_identity(self, credentials: AccessCredentials) -> ProviderIdentity:
        if self.fail_identity:
            raise ProviderError("users/me returned 429")
        return ProviderIdentity(user_id="42", username="agentbot", name="Agent Bot")

    async def revoke(self, credentials: AccessCredentials) -> bool:
        if self.fail_revoke:
            raise ProviderError("invalidate_token returned 500")
        self.revoked.append(credentials)
        return True


@pytest.fixture
def cipher():
    return CredentialCipher(TEST_SECRET, iterations=FAST_KDF)


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def store(session_factory, cipher):
    return CredentialStore(session_factory, cipher)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sessions(clock):
    return SessionCache(maxsize=100, ttl=900, timer=clock)


@pytest.fixture
def provider():
    return FakeTwitter()


@pytest.fixture
def host():
    return InMemoryHost()


@pytest.fixture
def events(host):
    dispatcher = EventDispatcher()
    dispatcher.subscribe(SettingsInjector(host, host))
    return dispatcher


@pytest.fixture
def coordinator(provider, store, sessions, host, events):
    return AuthCoordinator(
        registry=ConnectorRegistry([provider]),
        store=store,
        sessions=sessions,
        settings_oracle=host,
        integrations=host,
        events=events,
    )


@pytest.fixture
def principal_id():
    return str(uuid.uuid4())
