"""
Decryption of the OAuth access tokens stored on ad accounts.

Tokens are written encrypted by the account-connection flow; the sync job
decrypts one right before calling the ad platform. Fernet from
`cryptography`, keyed by ENCRYPTION_KEY. With no key outside production the
cipher passes values through unchanged.
"""

import logging
from cryptography.fernet import Fernet, InvalidToken
from adsync.config import get_settings

logger = logging.getLogger(__name__)


class TokenCipher:
    """Decrypts stored platform tokens with one configured key."""

    def __init__(self, key: str | bytes | None, is_production: bool = False):
        if not key:
            if is_production:
                raise RuntimeError(
                    "ENCRYPTION_KEY must be set in production. "
                    "Generate one with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
                )
            logger.warning(
                "ENCRYPTION_KEY not set; ad-account tokens will be stored in plaintext. "
                "This is acceptable for local development only."
            )
            self._fernet = None
            return
        try:
            self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except Exception as exc:
            raise RuntimeError(f"Invalid ENCRYPTION_KEY: {exc}") from exc

    @classmethod
    def from_settings(cls) -> "TokenCipher":
        settings = get_settings()
        return cls(settings.encryption_key, is_production=settings.is_production)

    def decrypt(self, ciphertext: str | None) -> str | None:
        if ciphertext is None:
            return None
        if self._fernet is None:
            return ciphertext
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            # Tokens written before a key was configured are still plaintext
            logger.warning("Access token is not Fernet ciphertext; using the stored value as-is.")
            return ciphertext
