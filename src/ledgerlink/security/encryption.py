"""Encryption of provider access tokens at rest.

Tokens are encrypted with Fernet (AES-128-CBC + HMAC-SHA256). A fresh IV is
used on every call, so encrypting the same token twice yields different
ciphertexts. The key must never change once connections exist; a rotated
key makes every stored token unreadable.
"""

import logging

from cryptography.fernet import Fernet, InvalidToken

from ledgerlink.errors import CredentialError

logger = logging.getLogger(__name__)


class TokenCipher:
    """Encrypts and decrypts access tokens with a single Fernet key."""

    def __init__(self, key: str):
        """Initialize the cipher.

        Args:
            key: URL-safe base64-encoded 32-byte Fernet key

        Raises:
            ValueError: If the key is missing or malformed
        """
        if not key:
            raise ValueError(
                "Encryption key is not configured. Set ENCRYPTION_KEY or "
                "LEDGERLINK_SECURITY__ENCRYPTION_KEY"
            )
        try:
            self._fernet = Fernet(key.encode("utf-8"))
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid encryption key: {e}") from e

    @staticmethod
    def generate_key() -> str:
        """Generate a new random Fernet key."""
        return Fernet.generate_key().decode("utf-8")

    def encrypt(self, plaintext: str) -> str:
        """Encrypt ``plaintext`` into a token safe for single-column storage."""
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """Reverse :meth:`encrypt`.

        Raises:
            CredentialError: If the ciphertext was tampered with or the key differs
        """
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as e:
            logger.error("Failed to decrypt stored access token")
            raise CredentialError("Stored access token could not be decrypted") from e
