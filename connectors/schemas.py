"""
Pydantic schemas shared by the connection lifecycle components.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field

from connectors.errors import InvalidTransition, UnsupportedService

# Bump whenever a member is added to or removed from ServiceName.
SERVICE_CATALOG_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════════
# Service identity
# ═══════════════════════════════════════════════════════════════════════════════


class ServiceName(str, Enum):
    TWITTER = "twitter"

    @classmethod
    def parse(cls, value: "str | ServiceName") -> "ServiceName":
        """Return the enum member for ``value`` or raise ``UnsupportedService``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedService(f"Service '{value}' is not supported") from None


# ═══════════════════════════════════════════════════════════════════════════════
# Handshake
# ═══════════════════════════════════════════════════════════════════════════════


class HandshakePhase(str, Enum):
    IDLE = "idle"
    AWAITING_PROVIDER_REDIRECT = "awaiting_provider_redirect"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING_TOKEN = "exchanging_token"
    PERSISTED = "persisted"
    FAILED = "failed"


_TRANSITIONS: Dict[HandshakePhase, set] = {
    HandshakePhase.IDLE: {HandshakePhase.AWAITING_PROVIDER_REDIRECT},
    HandshakePhase.AWAITING_PROVIDER_REDIRECT: {HandshakePhase.AWAITING_CALLBACK, HandshakePhase.FAILED},
    HandshakePhase.AWAITING_CALLBACK: {HandshakePhase.EXCHANGING_TOKEN, HandshakePhase.FAILED},
    HandshakePhase.EXCHANGING_TOKEN: {HandshakePhase.PERSISTED, HandshakePhase.FAILED},
    HandshakePhase.PERSISTED: set(),
    HandshakePhase.FAILED: set(),
}


class HandshakeSession(BaseModel):
    """Transient state bridging ``initiate`` and ``callback``.

    Keyed in the session cache by the provider's request token.  Never
    persisted.
    """

    principal_id: str
    service: ServiceName
    csrf_state: str
    return_url: Optional[str] = None
    request_token: str = ""
    token_secret: str = ""
    phase: HandshakePhase = HandshakePhase.IDLE
    created_at: float = Field(default_factory=time.time)
    expires_at: float = 0.0  # on the session cache clock

    def advance(self, phase: HandshakePhase) -> "HandshakeSession":
        if phase not in _TRANSITIONS[self.phase]:
            raise InvalidTransition(f"{self.phase.value} -> {phase.value}")
        self.phase = phase
        return self


class InitiateResult(BaseModel):
    authorization_url: str
    request_token: str
    service: ServiceName


class CallbackResult(BaseModel):
    principal_id: str
    service: ServiceName
    return_url: Optional[str] = None
    user_id: Optional[str] = None
    username: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# Provider exchange results
# ═══════════════════════════════════════════════════════════════════════════════


class RequestToken(BaseModel):
    token: str
    secret: str


class AccessCredentials(BaseModel):
    access_token: str
    access_token_secret: str


class ProviderIdentity(BaseModel):
    user_id: str
    username: Optional[str] = None
    name: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# Stored credentials / status
# ═══════════════════════════════════════════════════════════════════════════════


class CredentialRecord(BaseModel):
    principal_id: str
    service: ServiceName
    payload: Dict[str, str] = Field(default_factory=dict)
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConnectionStatus(BaseModel):
    service_name: ServiceName
    is_connected: bool = False
    is_pending: bool = False
    user_id: Optional[str] = None
    username: Optional[str] = None
    expires_at: Optional[datetime] = None
    last_checked: datetime = Field(default_factory=_utcnow)


class ConnectionCheck(BaseModel):
    service_name: ServiceName
    success: bool
    identity: Optional[ProviderIdentity] = None
    error: Optional[str] = None
    checked_at: datetime = Field(default_factory=_utcnow)
