"""
Symmetric encryption for short-lived secrets stored at rest (Fernet).
"""

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


class CredentialEncryption:
    """Encrypt and decrypt secrets that must be recoverable, such as the
    temporary signup password held for the auto-login handoff."""

    def __init__(self, secret_key: str):
        # Fernet requires a 32-byte url-safe base64 key; derive it from the app secret
        key_bytes = hashlib.sha256(secret_key.encode()).digest()
        self.fernet = Fernet(base64.urlsafe_b64encode(key_bytes))

    def encrypt(self, value: str) -> str:
        """Encrypt a string value into a url-safe token."""
        return self.fernet.encrypt(value.encode()).decode()

    def decrypt(self, encrypted_value: str) -> str:
        """
        Decrypt a token produced by ``encrypt``.

        Raises:
            ValueError: If the token was tampered with or the key changed
        """
        try:
            return self.fernet.decrypt(encrypted_value.encode()).decode()
        except InvalidToken as e:
            raise ValueError("Failed to decrypt credential") from e


def digest_token(token: str) -> str:
    """SHA-256 hex digest used to store single-use tokens without the raw value."""
    return hashlib.sha256(token.encode()).hexdigest()
