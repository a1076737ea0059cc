"""
Credential vault for the short-lived secrets of the signup flow.

Three kinds of credential live on the ``users`` row: the 6-digit OTP, the
encrypted temporary password and the digest of the single-use verification
token. Each consume operation is an atomic compare-and-delete: the column
is nulled with ``UPDATE ... WHERE column = <value read>`` and only the
caller whose statement matched a row wins.

The vault only flushes; committing is left to the calling service.
"""

import hmac
import logging
import secrets
from datetime import UTC, datetime, timedelta

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ExpiredError, InvalidOtp, NotFoundError, UnauthorizedError
from core.domain.subscription import ensure_aware
from core.security.encryption import CredentialEncryption, digest_token
from infrastructure.config.settings import settings
from infrastructure.database.models import User

logger = logging.getLogger(__name__)

OTP_LENGTH = 6


def generate_otp() -> str:
    """Uniformly random zero-padded 6-digit code."""
    return f"{secrets.randbelow(10**OTP_LENGTH):0{OTP_LENGTH}d}"


class CredentialVault:
    """Issues and consumes OTPs, temporary passwords and verification tokens."""

    def __init__(
        self,
        db: AsyncSession,
        encryption: CredentialEncryption | None = None,
    ):
        self.db = db
        self.encryption = encryption or CredentialEncryption(settings.secret_key)

    @staticmethod
    def _now(now: datetime | None) -> datetime:
        return ensure_aware(now) if now else datetime.now(UTC)

    async def _compare_and_clear(self, user_id: str, column, expected: str, **cleared) -> bool:
        """Null ``cleared`` columns only if ``column`` still holds ``expected``."""
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id, column == expected)
            .values(**cleared)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount == 1

    # OTP

    async def issue_otp(self, user: User, now: datetime | None = None) -> str:
        """Issue a fresh OTP, replacing any previous one."""
        code = generate_otp()
        user.otp_code = code
        user.otp_expires = self._now(now) + timedelta(minutes=settings.otp_expire_minutes)
        await self.db.flush()
        logger.info("Issued OTP for user %s", user.id)
        return code

    async def consume_otp(self, user: User, submitted: str, now: datetime | None = None) -> None:
        """
        Consume the pending OTP.

        Raises:
            NotFoundError: No OTP pending (never issued or already consumed)
            InvalidOtp: Code does not match; the pending OTP is kept
            ExpiredError: Code matches but has expired; the OTP is deleted
        """
        await self.db.refresh(user, attribute_names=["otp_code", "otp_expires"])
        stored = user.otp_code
        if stored is None:
            raise NotFoundError("No pending OTP. Please request a new one.")

        if not hmac.compare_digest(stored.encode(), (submitted or "").encode()):
            raise InvalidOtp()

        expired = user.otp_expires is None or ensure_aware(user.otp_expires) < self._now(now)
        won = await self._compare_and_clear(
            user.id, User.otp_code, stored, otp_code=None, otp_expires=None
        )
        if not won:
            raise NotFoundError("No pending OTP. Please request a new one.")
        if expired:
            raise ExpiredError("OTP has expired. Please request a new one.")

    # Temporary password

    async def issue_temp_password(
        self, user: User, plaintext: str, now: datetime | None = None
    ) -> None:
        """Hold the signup password (encrypted) for the one-shot auto-login handoff."""
        user.temp_password = self.encryption.encrypt(plaintext)
        user.temp_password_expires = self._now(now) + timedelta(
            minutes=settings.temp_password_expire_minutes
        )
        await self.db.flush()

    async def consume_temp_password(self, user: User, now: datetime | None = None) -> str:
        """
        Return the temporary password exactly once.

        Raises:
            NotFoundError: Absent, already consumed, or expired (expired values are deleted)
        """
        await self.db.refresh(user, attribute_names=["temp_password", "temp_password_expires"])
        ciphertext = user.temp_password
        if ciphertext is None:
            raise NotFoundError("Temporary password expired. Please sign in manually.")

        expired = (
            user.temp_password_expires is None
            or ensure_aware(user.temp_password_expires) < self._now(now)
        )
        won = await self._compare_and_clear(
            user.id,
            User.temp_password,
            ciphertext,
            temp_password=None,
            temp_password_expires=None,
        )
        if not won or expired:
            raise NotFoundError("Temporary password expired. Please sign in manually.")

        return self.encryption.decrypt(ciphertext)

    # Verification token

    async def issue_verification_token(
        self, user: User, now: datetime | None = None
    ) -> tuple[str, datetime]:
        """Issue a single-use token; only its digest is stored."""
        token = secrets.token_urlsafe(32)
        expires_at = self._now(now) + timedelta(
            minutes=settings.verification_token_expire_minutes
        )
        user.verification_token_hash = digest_token(token)
        user.verification_token_expires = expires_at
        await self.db.flush()
        return token, expires_at

    async def consume_verification_token(
        self, user: User, token: str, now: datetime | None = None
    ) -> None:
        """
        Consume the verification token.

        Raises:
            NotFoundError: No token pending
            UnauthorizedError: Token does not match; the pending token is kept
            ExpiredError: Token matches but has expired; the token is deleted
        """
        await self.db.refresh(
            user, attribute_names=["verification_token_hash", "verification_token_expires"]
        )
        stored = user.verification_token_hash
        if stored is None:
            raise NotFoundError("No pending verification token")

        if not hmac.compare_digest(stored, digest_token(token or "")):
            raise UnauthorizedError("Invalid verification token")

        expired = (
            user.verification_token_expires is None
            or ensure_aware(user.verification_token_expires) < self._now(now)
        )
        won = await self._compare_and_clear(
            user.id,
            User.verification_token_hash,
            stored,
            verification_token_hash=None,
            verification_token_expires=None,
        )
        if not won:
            raise NotFoundError("No pending verification token")
        if expired:
            raise ExpiredError("Verification token has expired")

    # Sweep

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Null every expired credential. Returns the number of values cleared."""
        current = self._now(now)
        purged = 0
        for value_column, expires_column in (
            (User.otp_code, User.otp_expires),
            (User.temp_password, User.temp_password_expires),
            (User.verification_token_hash, User.verification_token_expires),
        ):
            result = await self.db.execute(
                update(User)
                .where(value_column.is_not(None), expires_column < current)
                .values({value_column: None, expires_column: None})
                .execution_options(synchronize_session=False)
            )
            purged += result.rowcount or 0

        if purged:
            logger.info("Purged %d expired credentials", purged)
        return purged
