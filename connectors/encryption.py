"""
Credential encryption — encrypt / decrypt credential payloads at rest.

Uses Fernet (AES-128-CBC + HMAC-SHA256) from the ``cryptography`` library.
The Fernet key is derived from the process secret (env var: ``SECRET_SALT``)
with PBKDF2-HMAC-SHA256, so any string works as a secret and the same secret
yields the same key across restarts.

Values are encrypted one by one so a stored payload can still be inspected
by key.  A ciphertext that no longer verifies (secret rotated without
re-encrypting) raises ``CredentialCorruptError`` instead of returning the raw
input.
"""

from __future__ import annotations

import base64
import logging
from typing import Dict, Mapping, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from connectors.errors import ConfigurationError, CredentialCorruptError

logger = logging.getLogger(__name__)

_KDF_SALT = b"agent-connections/service-credentials/v1"
DEFAULT_KDF_ITERATIONS = 390000


def derive_key(secret: str, iterations: int = DEFAULT_KDF_ITERATIONS) -> bytes:
    """Derive a urlsafe-base64 Fernet key from an arbitrary secret string."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_KDF_SALT,
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(secret.encode()))


class CredentialCipher:
    """Symmetric cipher for credential values, keyed by the process secret."""

    def __init__(self, secret: str, *, iterations: int = DEFAULT_KDF_ITERATIONS):
        if not secret:
            raise ConfigurationError("SECRET_SALT is not set — cannot encrypt credentials")
        self._fernet = Fernet(derive_key(secret, iterations))

    def encrypt(self, plaintext: str) -> str:
        """Return the Fernet ciphertext (URL-safe base64) for ``plaintext``."""
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except (InvalidToken, ValueError):
            raise CredentialCorruptError(
                "Stored credentials cannot be decrypted with the current secret"
            ) from None

    def encrypt_values(self, payload: Mapping[str, Optional[str]]) -> Dict[str, str]:
        """
        Encrypt every value of ``payload``.

        ``None`` values are dropped; any other non-string value is rejected
        so nothing is silently coerced before storage.
        """
        encrypted: Dict[str, str] = {}
        for key, value in payload.items():
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"Credential value for '{key}' must be a string")
            encrypted[key] = self.encrypt(value)
        return encrypted

    def decrypt_values(self, payload: Mapping[str, str]) -> Dict[str, str]:
        return {key: self.decrypt(value) for key, value in payload.items()}
