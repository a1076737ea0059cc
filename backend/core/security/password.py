"""
Password hashing utilities using bcrypt.
"""

from passlib.context import CryptContext


class PasswordHasher:
    """Password hashing and verification using bcrypt."""

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )
        self._dummy_hash: str | None = None

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt."""
        return self._context.hash(password)

    def verify(self, plain_password: str, hashed_password: str | None) -> bool:
        """
        Verify a password against a hash.

        A missing hash (no such account) is still checked against a dummy
        hash so response timing does not reveal whether an email exists.

        Args:
            plain_password: Plain text password to verify
            hashed_password: Stored hash, or None when no account exists

        Returns:
            True if password matches, False otherwise
        """
        if hashed_password is None:
            if self._dummy_hash is None:
                self._dummy_hash = self._context.hash("not-a-real-password")
            self._context.verify(plain_password, self._dummy_hash)
            return False
        return self._context.verify(plain_password, hashed_password)


# Singleton instance
password_hasher = PasswordHasher()
