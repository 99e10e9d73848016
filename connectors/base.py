"""
BaseConnector — abstract interface for OAuth 1.0a provider clients.

Every provider (Twitter/X today) subclasses this and implements the
request-token / verifier-exchange / identity calls.  Implementations raise
``ProviderError`` for any failure; the coordinator decides what that means.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from connectors.schemas import AccessCredentials, ProviderIdentity, RequestToken, ServiceName


class ProviderError(Exception):
    """Any failure talking to the OAuth provider."""


class BaseConnector(ABC):
    """Abstract base for all provider clients."""

    # ── Identity ────────────────────────────────────────────────────────
    @property
    @abstractmethod
    def service(self) -> ServiceName:
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable: 'Twitter/X'."""
        ...

    @property
    def description(self) -> str:
        return f"Connect to {self.display_name}"

    @property
    def color(self) -> str:
        """Brand colour for UI listings."""
        return "#6B7280"

    # ── OAuth flow ──────────────────────────────────────────────────────

    @abstractmethod
    def callback_url(self) -> str:
        """URL the provider redirects back to after consent."""
        ...

    @abstractmethod
    async def fetch_request_token(self, callback_url: str) -> RequestToken:
        """Obtain a temporary request token bound to ``callback_url``."""
        ...

    @abstractmethod
    def authorization_url(self, request_token: str) -> str:
        """Build the consent URL for ``request_token``."""
        ...

    @abstractmethod
    async def exchange_verifier(
        self,
        request_token: str,
        request_token_secret: str,
        verifier: str,
    ) -> AccessCredentials:
        """Exchange the verifier for durable access credentials."""
        ...

    @abstractmethod
    async def fetch_identity(self, credentials: AccessCredentials) -> ProviderIdentity:
        """Fetch the minimal account identity (id + handle)."""
        ...

    async def revoke(self, credentials: AccessCredentials) -> bool:
        """
        Invalidate the credentials at the provider (optional).
        Returns True on success, False if the provider doesn't support it.
        """
        return False

    # ── Helpers ─────────────────────────────────────────────────────────

    def is_configured(self) -> bool:
        """
        Return True if this connector has its application credentials
        (consumer key and secret).
        """
        return True
