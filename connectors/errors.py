"""
Error taxonomy for the connection lifecycle.

Every error carries a stable ``kind`` (used by API clients to branch) and a
human-readable ``detail``.  Raw provider / driver exceptions are never
re-raised across the coordinator boundary; they are logged and translated
into one of these.
"""

from __future__ import annotations


class ConnectionsError(Exception):
    """Base class for all connection lifecycle errors."""

    kind: str = "connections_error"
    http_status: int = 500

    def __init__(self, detail: str = ""):
        self.detail = detail or self.__class__.__doc__ or self.kind
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.detail}


class ConfigurationError(ConnectionsError):
    """Provider application credentials are not configured."""

    kind = "configuration_error"
    http_status = 500


class ProviderUnavailable(ConnectionsError):
    """The OAuth provider could not be reached or refused the request."""

    kind = "provider_unavailable"
    http_status = 502


class TokenExchangeFailed(ConnectionsError):
    """The provider rejected the verifier exchange."""

    kind = "token_exchange_failed"
    http_status = 502


class InvalidOrExpiredSession(ConnectionsError):
    """Invalid or expired OAuth session."""

    kind = "invalid_or_expired_session"
    http_status = 400


class StorageError(ConnectionsError):
    """The credential store backend failed."""

    kind = "storage_error"
    http_status = 503


class CredentialCorruptError(ConnectionsError):
    """Stored credentials could not be decrypted with the current secret."""

    kind = "credential_corrupt"
    http_status = 500


class UnsupportedService(ConnectionsError):
    """The requested service is not supported."""

    kind = "unsupported_service"
    http_status = 404


class InvalidTransition(RuntimeError):
    """A handshake was moved to a phase it cannot reach from its current one."""
