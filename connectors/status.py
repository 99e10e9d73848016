"""
Connection status resolver.

Combines a stored credential payload (or its absence) with the settings the
host reports as currently in effect, and classifies the connection as
disconnected, connected, or connected-but-pending.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Mapping, Optional

from connectors.schemas import ConnectionStatus, CredentialRecord, ServiceName

# Host setting key -> credential payload key, per service
SETTINGS_FIELD_MAP: Dict[ServiceName, Dict[str, str]] = {
    ServiceName.TWITTER: {
        "TWITTER_ACCESS_TOKEN": "access_token",
        "TWITTER_ACCESS_TOKEN_SECRET": "access_token_secret",
    },
}


def settings_keys(service: ServiceName) -> list[str]:
    """Host setting keys that mirror ``service`` credentials."""
    return list(SETTINGS_FIELD_MAP.get(service, {}))


def settings_from_payload(service: ServiceName, payload: Mapping[str, str]) -> Dict[str, Optional[str]]:
    """Project a credential payload onto the host settings it should populate."""
    return {
        setting_key: payload.get(credential_key)
        for setting_key, credential_key in SETTINGS_FIELD_MAP.get(service, {}).items()
    }


def _is_pending(
    service: ServiceName,
    payload: Mapping[str, str],
    active_settings: Mapping[str, Optional[str]],
) -> bool:
    key_map = SETTINGS_FIELD_MAP.get(service)
    if not key_map:
        return False
    for setting_key, value in active_settings.items():
        credential_key = key_map.get(setting_key)
        if credential_key is None:
            continue
        # Only settings actually in effect can disagree with the store.
        if value and value != payload.get(credential_key):
            return True
    return False


def resolve_status(
    service: ServiceName,
    stored: Optional[CredentialRecord],
    active_settings: Optional[Mapping[str, Optional[str]]],
    *,
    now: Optional[datetime] = None,
) -> ConnectionStatus:
    """
    Classify a connection.

    1. No stored credential → disconnected, never pending.
    2. Stored, host has no opinion (``active_settings is None``) → connected.
    3. Stored, and some in-effect host setting differs from the mapped
       stored field → connected and pending; otherwise connected.
    """
    now = now or datetime.now(timezone.utc)
    if stored is None:
        return ConnectionStatus(service_name=service, last_checked=now)

    pending = False
    if active_settings is not None:
        pending = _is_pending(service, stored.payload, active_settings)

    return ConnectionStatus(
        service_name=service,
        is_connected=True,
        is_pending=pending,
        user_id=stored.payload.get("user_id"),
        username=stored.payload.get("username"),
        expires_at=stored.expires_at,
        last_checked=now,
    )
