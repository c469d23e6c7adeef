"""
Tests for ad-account token decryption.
"""

import pytest
from cryptography.fernet import Fernet

from adsync.crypto import TokenCipher


def test_decrypts_token_written_with_the_same_key():
    key = Fernet.generate_key()
    stored = Fernet(key).encrypt(b"reddit-access-token").decode()
    assert TokenCipher(key.decode()).decrypt(stored) == "reddit-access-token"


def test_passthrough_without_key_in_development():
    assert TokenCipher(None).decrypt("plain") == "plain"


def test_missing_key_in_production_fails():
    with pytest.raises(RuntimeError, match="ENCRYPTION_KEY must be set"):
        TokenCipher("", is_production=True)


def test_invalid_key_fails():
    with pytest.raises(RuntimeError, match="Invalid ENCRYPTION_KEY"):
        TokenCipher("not-a-fernet-key")


def test_plaintext_from_before_encryption_is_returned_as_is():
    cipher = TokenCipher(Fernet.generate_key())
    assert cipher.decrypt("legacy-plaintext-token") == "legacy-plaintext-token"


def test_none_stays_none():
    assert TokenCipher(Fernet.generate_key()).decrypt(None) is None
