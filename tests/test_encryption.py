"""
Tests for credential value encryption.
"""

import pytest

from connectors.encryption import CredentialCipher, derive_key
from connectors.errors import ConfigurationError, CredentialCorruptError


class TestCredentialCipher:
    def setup_method(self):
        self.cipher = CredentialCipher("secret-one", iterations=1000)

    def test_round_trip(self):
        token = self.cipher.encrypt("hello")
        assert token != "hello"
        assert self.cipher.decrypt(token) == "hello"

    def test_same_secret_decrypts_across_instances(self):
        token = self.cipher.encrypt("hello")
        again = CredentialCipher("secret-one", iterations=1000)
        assert again.decrypt(token) == "hello"

    def test_key_derivation_is_deterministic(self):
        assert derive_key("abc", 1000) == derive_key("abc", 1000)
        assert derive_key("abc", 1000) != derive_key("abd", 1000)

    def test_wrong_secret_raises_corrupt(self):
        token = self.cipher.encrypt("hello")
        other = CredentialCipher("secret-two", iterations=1000)
        with pytest.raises(CredentialCorruptError):
            other.decrypt(token)

    def test_garbage_raises_corrupt(self):
        with pytest.raises(CredentialCorruptError):
            self.cipher.decrypt("not-a-fernet-token")

    def test_values_encrypted_per_key(self):
        encrypted = self.cipher.encrypt_values({"a": "1", "b": "2", "c": None})
        assert set(encrypted) == {"a", "b"}
        assert self.cipher.decrypt(encrypted["a"]) == "1"
        assert self.cipher.decrypt_values(encrypted) == {"a": "1", "b": "2"}

    def test_non_string_value_rejected(self):
        with pytest.raises(ValueError):
            self.cipher.encrypt_values({"a": 5})

    def test_empty_secret_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            CredentialCipher("")
