"""
AuthCoordinator — end-to-end connection lifecycle.

    initiate ──► provider request token ──► session cached (AWAITING_CALLBACK)
    callback ──► session claimed ──► verifier exchange ──► credentials stored
             ──► session gone ──► CredentialsPersisted published
    status   ──► store + host settings ──► resolve_status
    revoke   ──► store delete ──► (best effort) provider / host cleanup

Provider exceptions never leave this module; they are logged and translated
into the ``connectors.errors`` taxonomy.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from typing import List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from connectors.base import BaseConnector, ProviderError
from connectors.credential_store import CredentialStore
from connectors.errors import (
    ConfigurationError,
    CredentialCorruptError,
    InvalidOrExpiredSession,
    ProviderUnavailable,
    TokenExchangeFailed,
)
from connectors.events import CredentialsPersisted, EventDispatcher
from connectors.host import IntegrationController, SettingsOracle
from connectors.registry import ConnectorRegistry
from connectors.schemas import (
    AccessCredentials,
    CallbackResult,
    ConnectionCheck,
    ConnectionStatus,
    HandshakePhase,
    HandshakeSession,
    InitiateResult,
    ServiceName,
)
from connectors.session_cache import SessionCache
from connectors.status import resolve_status, settings_from_payload, settings_keys

logger = logging.getLogger(__name__)

# 32 random bytes → 256 bits of CSRF entropy
_STATE_BYTES = 32


def _short(token: str) -> str:
    return f"{token[:8]}…" if len(token) > 8 else token


def with_query(url: str, **params: str) -> str:
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True) + list(params.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


class AuthCoordinator:
    """Orchestrates handshakes, persistence, status and revocation."""

    def __init__(
        self,
        registry: ConnectorRegistry,
        store: CredentialStore,
        sessions: SessionCache,
        *,
        settings_oracle: Optional[SettingsOracle] = None,
        integrations: Optional[IntegrationController] = None,
        events: Optional[EventDispatcher] = None,
    ):
        self._registry = registry
        self._store = store
        self._sessions = sessions
        self._settings = settings_oracle
        self._integrations = integrations
        self._events = events or EventDispatcher()

    @property
    def events(self) -> EventDispatcher:
        return self._events

    @property
    def registry(self) -> ConnectorRegistry:
        return self._registry

    def supported_services(self) -> List[ServiceName]:
        return self._registry.services()

    def _configured_connector(self, service: ServiceName) -> BaseConnector:
        connector = self._registry.get(service)
        if not connector.is_configured():
            raise ConfigurationError(
                f"{connector.display_name} API credentials not configured"
            )
        return connector

    # ── Initiate ────────────────────────────────────────────────────────

    async def initiate(
        self,
        principal_id: str,
        service: "str | ServiceName",
        return_url: Optional[str] = None,
    ) -> InitiateResult:
        """
        Start a handshake and return the provider's authorization URL.

        Each call creates an independent session keyed by the provider's
        request token; nothing is cached if the provider call fails.
        """
        service = ServiceName.parse(service)
        connector = self._configured_connector(service)

        handshake = HandshakeSession(
            principal_id=str(principal_id),
            service=service,
            csrf_state=secrets.token_hex(_STATE_BYTES),
            return_url=return_url,
        )
        handshake.advance(HandshakePhase.AWAITING_PROVIDER_REDIRECT)

        callback_url = with_query(connector.callback_url(), state=handshake.csrf_state)
        try:
            request_token = await connector.fetch_request_token(callback_url)
        except ProviderError as exc:
            handshake.advance(HandshakePhase.FAILED)
            logger.error("%s request token failed for %s: %s", service.value, principal_id, exc)
            raise ProviderUnavailable(f"Failed to initiate {connector.display_name} authentication") from None

        ttl = self._sessions.default_ttl
        handshake.request_token = request_token.token
        handshake.token_secret = request_token.secret
        handshake.expires_at = self._sessions.clock() + ttl
        authorization_url = connector.authorization_url(request_token.token)
        handshake.advance(HandshakePhase.AWAITING_CALLBACK)
        self._sessions.put(request_token.token, handshake, ttl)

        logger.info(
            "Initiated %s OAuth for %s (request token %s)",
            service.value,
            principal_id,
            _short(request_token.token),
        )
        return InitiateResult(
            authorization_url=authorization_url,
            request_token=request_token.token,
            service=service,
        )

    # ── Callback ────────────────────────────────────────────────────────

    def _restore(self, handshake: HandshakeSession) -> None:
        """Put a claimed session back for whatever TTL it has left."""
        remaining = handshake.expires_at - self._sessions.clock()
        if remaining > 0:
            self._sessions.put(handshake.request_token, handshake, remaining)

    async def callback(
        self,
        request_token: str,
        verifier: str,
        state: Optional[str] = None,
        *,
        service: "str | ServiceName | None" = None,
    ) -> CallbackResult:
        """
        Complete a handshake.

        ``state`` must echo the value issued by ``initiate``; leaving it out
        is treated like a forged value.  When ``service`` is given it must be
        the service the session was started for.

        Raises ``InvalidOrExpiredSession`` for unknown, expired, replayed or
        forged callbacks without touching any state.  A failed verifier
        exchange leaves the session in place for a retry.
        """
        handshake = self._sessions.get(request_token)
        if handshake is None:
            logger.warning("OAuth callback for unknown session %s", _short(request_token))
            raise InvalidOrExpiredSession()
        if service is not None and ServiceName.parse(service) != handshake.service:
            logger.warning("OAuth callback for session %s on the wrong service %s", _short(request_token), service)
            raise InvalidOrExpiredSession()
        if state is None or not hmac.compare_digest(state, handshake.csrf_state):
            logger.warning("OAuth callback state missing or mismatched for session %s", _short(request_token))
            raise InvalidOrExpiredSession()

        # pop is the atomic claim; a concurrent callback may have won
        handshake = self._sessions.pop(request_token)
        if handshake is None:
            raise InvalidOrExpiredSession()

        service = handshake.service
        attempt = handshake.model_copy()
        attempt.advance(HandshakePhase.EXCHANGING_TOKEN)

        try:
            connector = self._configured_connector(service)
        except ConfigurationError:
            attempt.advance(HandshakePhase.FAILED)
            self._restore(handshake)
            raise

        try:
            credentials = await connector.exchange_verifier(
                handshake.request_token,
                handshake.token_secret,
                verifier,
            )
        except ProviderError as exc:
            attempt.advance(HandshakePhase.FAILED)
            self._restore(handshake)
            logger.error("%s token exchange failed for %s: %s", service.value, handshake.principal_id, exc)
            raise TokenExchangeFailed(f"Failed to complete {connector.display_name} authentication") from None

        user_id: Optional[str] = None
        username: Optional[str] = None
        try:
            identity = await connector.fetch_identity(credentials)
            user_id, username = identity.user_id, identity.username
        except ProviderError as exc:
            logger.warning(
                "%s identity lookup failed for %s, storing credentials without it: %s",
                service.value,
                handshake.principal_id,
                exc,
            )

        payload = {
            "access_token": credentials.access_token,
            "access_token_secret": credentials.access_token_secret,
            "user_id": user_id,
            "username": username,
        }
        try:
            await self._store.put(handshake.principal_id, service, payload)
        except Exception:
            # verifier is spent at the provider, a retry would fail anyway
            attempt.advance(HandshakePhase.FAILED)
            raise
        attempt.advance(HandshakePhase.PERSISTED)
        logger.info("OAuth connected: principal=%s service=%s account=%s", handshake.principal_id, service.value, username)

        event = CredentialsPersisted(
            principal_id=handshake.principal_id,
            service=service,
            settings=settings_from_payload(service, payload),
        )
        try:
            await self._events.publish(event)
        except Exception as exc:
            logger.error("Failed to publish %s for %s: %s", type(event).__name__, handshake.principal_id, exc)

        return CallbackResult(
            principal_id=handshake.principal_id,
            service=service,
            return_url=handshake.return_url,
            user_id=user_id,
            username=username,
        )

    def abandon(self, request_token: str, service: "str | ServiceName | None" = None) -> bool:
        """
        Drop a handshake the user declined at the provider.

        Returns False, leaving the cache alone, when no live session matches
        ``request_token`` (and ``service``, when given).
        """
        handshake = self._sessions.get(request_token)
        if handshake is None:
            return False
        if service is not None and ServiceName.parse(service) != handshake.service:
            logger.warning("Refusing to abandon session %s for service %s", _short(request_token), service)
            return False
        self._sessions.delete(request_token)
        logger.info("Abandoned OAuth session %s", _short(request_token))
        return True

    # ── Status ──────────────────────────────────────────────────────────

    async def status(self, principal_id: str, service: "str | ServiceName") -> ConnectionStatus:
        service = ServiceName.parse(service)
        self._registry.get(service)
        record = await self._store.get_record(principal_id, service)

        active_settings = None
        if self._settings is not None:
            active_settings = await self._settings.get_active_settings(principal_id, settings_keys(service))
        return resolve_status(service, record, active_settings)

    async def list_statuses(self, principal_id: str) -> List[ConnectionStatus]:
        return [await self.status(principal_id, service) for service in self.supported_services()]

    # ── Revoke ──────────────────────────────────────────────────────────

    async def revoke(self, principal_id: str, service: "str | ServiceName") -> bool:
        """
        Disconnect (principal, service).

        Store deletion is the only step whose failure is reported; provider
        invalidation, clearing host settings and stopping the integration
        are attempted afterwards and only logged on failure.
        """
        service = ServiceName.parse(service)
        connector = self._registry.get(service)

        stored = None
        try:
            stored = await self._store.get(principal_id, service)
        except CredentialCorruptError:
            logger.warning("Revoking undecryptable %s credentials for %s", service.value, principal_id)

        removed = await self._store.delete(principal_id, service)

        if stored and connector.is_configured() and stored.get("access_token") and stored.get("access_token_secret"):
            try:
                await connector.revoke(
                    AccessCredentials(
                        access_token=stored["access_token"],
                        access_token_secret=stored["access_token_secret"],
                    )
                )
            except ProviderError as exc:
                logger.warning("%s token invalidation failed for %s: %s", service.value, principal_id, exc)

        if self._settings is not None:
            try:
                await self._settings.update_settings(
                    principal_id, {key: None for key in settings_keys(service)}
                )
            except Exception as exc:
                logger.warning("Failed to clear %s settings for %s: %s", service.value, principal_id, exc)

        if self._integrations is not None:
            try:
                await self._integrations.stop(principal_id, service)
            except Exception as exc:
                logger.warning("Failed to stop %s integration for %s: %s", service.value, principal_id, exc)

        logger.info("Disconnected %s for principal %s (record removed: %s)", service.value, principal_id, removed)
        return removed

    # ── Verify ──────────────────────────────────────────────────────────

    async def verify(self, principal_id: str, service: "str | ServiceName") -> ConnectionCheck:
        """Check the stored credentials against the provider's identity API."""
        service = ServiceName.parse(service)
        connector = self._configured_connector(service)
        stored = await self._store.get(principal_id, service)
        if not stored:
            return ConnectionCheck(service_name=service, success=False, error="not connected")

        try:
            identity = await connector.fetch_identity(
                AccessCredentials(
                    access_token=stored.get("access_token", ""),
                    access_token_secret=stored.get("access_token_secret", ""),
                )
            )
        except ProviderError as exc:
            logger.warning("%s connection check failed for %s: %s", service.value, principal_id, exc)
            return ConnectionCheck(service_name=service, success=False, error=str(exc))
        return ConnectionCheck(service_name=service, success=True, identity=identity)
