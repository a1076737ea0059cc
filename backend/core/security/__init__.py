"""
Security utilities for authentication and authorization.
"""

from .encryption import CredentialEncryption, digest_token
from .password import PasswordHasher, password_hasher
from .tokens import TokenPayload, TokenService

__all__ = [
    "CredentialEncryption",
    "digest_token",
    "PasswordHasher",
    "password_hasher",
    "TokenService",
    "TokenPayload",
]
