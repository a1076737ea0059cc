"""
JWT token service for session authentication.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt


@dataclass
class TokenPayload:
    """JWT token payload structure."""

    sub: str  # Subject (user ID)
    exp: datetime  # Expiration time
    iat: datetime  # Issued at
    type: str  # Token type: "access" or "refresh"
    role: str | None = None


class TokenService:
    """Service for creating and validating session JWTs."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 30,
        refresh_token_expire_days: int = 7,
    ):
        """
        Initialize the token service.

        Args:
            secret_key: Secret key for signing tokens
            algorithm: JWT algorithm (default: HS256)
            access_token_expire_minutes: Access token expiration in minutes
            refresh_token_expire_days: Refresh token expiration in days
        """
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._access_token_expire_minutes = access_token_expire_minutes
        self._refresh_token_expire_days = refresh_token_expire_days

    @property
    def access_token_ttl_seconds(self) -> int:
        return self._access_token_expire_minutes * 60

    def _encode(self, user_id: str, token_type: str, lifetime: timedelta, role: str | None) -> str:
        now = datetime.now(UTC)
        payload = {
            "sub": user_id,
            "exp": now + lifetime,
            "iat": now,
            "type": token_type,
        }
        if role:
            payload["role"] = role
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def create_access_token(self, user_id: str, role: str | None = None) -> str:
        """Create a short-lived access token carrying the user's role."""
        return self._encode(
            user_id, "access", timedelta(minutes=self._access_token_expire_minutes), role
        )

    def create_refresh_token(self, user_id: str) -> str:
        """Create a refresh token."""
        return self._encode(
            user_id, "refresh", timedelta(days=self._refresh_token_expire_days), None
        )

    def create_token_pair(self, user_id: str, role: str | None = None) -> tuple[str, str]:
        """
        Create both access and refresh tokens.

        Returns:
            Tuple of (access_token, refresh_token)
        """
        return self.create_access_token(user_id, role), self.create_refresh_token(user_id)

    def decode_token(self, token: str) -> TokenPayload | None:
        """
        Decode and validate a JWT token.

        Returns:
            TokenPayload if valid, None if invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )
        except JWTError:
            return None

        for required in ("sub", "exp", "type"):
            if required not in payload:
                return None

        return TokenPayload(
            sub=payload["sub"],
            exp=datetime.fromtimestamp(payload["exp"], tz=UTC),
            iat=datetime.fromtimestamp(payload.get("iat", 0), tz=UTC),
            type=payload["type"],
            role=payload.get("role"),
        )

    def verify_access_token(self, token: str) -> TokenPayload | None:
        """Return the payload only for a valid access token."""
        payload = self.decode_token(token)
        if payload and payload.type == "access":
            return payload
        return None

    def verify_refresh_token(self, token: str) -> TokenPayload | None:
        """Return the payload only for a valid refresh token."""
        payload = self.decode_token(token)
        if payload and payload.type == "refresh":
            return payload
        return None
