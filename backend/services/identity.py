"""
Identity verification service.

Drives an account from UNVERIFIED to VERIFIED through the OTP flow and
hands out sessions: either the legacy one-shot temporary password
(auto-login) or a JWT pair in exchange for the verification token.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.email.resend_adapter import email_service as default_email_service
from core.domain.user import UserRole
from core.errors import (
    AlreadyVerified,
    ConflictError,
    DomainError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from core.interfaces.services import EmailService
from core.security.password import password_hasher
from core.security.tokens import TokenService
from infrastructure.database.models import User
from services.credential_vault import CredentialVault

logger = logging.getLogger(__name__)


@dataclass
class SessionTokens:
    """JWT pair issued for an authenticated account."""

    access_token: str
    refresh_token: str
    expires_in: int
    user: User


def normalize_email(email: str) -> str:
    return email.strip().lower()


class IdentityVerifier:
    """Signup, verification and session bootstrap for accounts."""

    def __init__(
        self,
        db: AsyncSession,
        token_service: TokenService,
        email: EmailService | None = None,
        vault: CredentialVault | None = None,
    ):
        self.db = db
        self.token_service = token_service
        self.email = email or default_email_service
        self.vault = vault or CredentialVault(db)

    async def _get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def _require_account(self, email: str) -> User:
        user = await self._get_by_email(email)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def _consume(self, consume, *args, **kwargs):
        """Run a vault consume, persisting credential cleanup even when it fails."""
        try:
            return await consume(*args, **kwargs)
        except DomainError:
            await self.db.commit()
            raise

    async def _send_otp(self, user: User, code: str) -> None:
        try:
            sent = await self.email.send_otp_email(
                to_email=user.email,
                user_name=user.name,
                otp_code=code,
            )
            if not sent:
                logger.warning("OTP email to %s was not delivered", user.email)
        except Exception as email_err:
            logger.error("Failed to send OTP email to %s: %s", user.email, email_err)

    def _issue_session(self, user: User) -> SessionTokens:
        access_token, refresh_token = self.token_service.create_token_pair(
            user_id=user.id,
            role=user.role,
        )
        return SessionTokens(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.token_service.access_token_ttl_seconds,
            user=user,
        )

    def _record_login(self, user: User) -> None:
        user.last_login = datetime.now(UTC)
        user.login_count = (user.login_count or 0) + 1

    async def signup(self, email: str, password: str, name: str | None = None) -> User:
        """
        Create an unverified account and send its OTP.

        The email is stored lower-cased. Email delivery is best-effort and
        never fails the signup.

        Raises:
            ConflictError: If the email is already registered
        """
        if await self._get_by_email(email):
            raise ConflictError("An account with this email already exists")

        user = User(
            email=normalize_email(email),
            name=(name or normalize_email(email).split("@")[0]).strip(),
            password_hash=password_hasher.hash(password),
            role=UserRole.USER.value,
            email_verified=False,
            banned=False,
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("An account with this email already exists")

        code = await self.vault.issue_otp(user)
        await self.vault.issue_temp_password(user, password)
        await self.db.commit()

        logger.info("Created account %s", user.id)
        await self._send_otp(user, code)
        return user

    async def verify_otp(self, email: str, code: str) -> tuple[str, datetime]:
        """
        Verify the account's email with its OTP.

        Returns:
            Tuple of (verification_token, expires_at)

        Raises:
            NotFoundError: Unknown account or no OTP pending
            AlreadyVerified: Email already verified
            InvalidOtp: Wrong code
            ExpiredError: Correct code, but expired
        """
        user = await self._require_account(email)
        if user.email_verified:
            raise AlreadyVerified()

        await self._consume(self.vault.consume_otp, user, code)

        user.email_verified = True
        token, expires_at = await self.vault.issue_verification_token(user)
        await self.db.commit()

        logger.info("Verified email for account %s", user.id)
        return token, expires_at

    async def resend_otp(self, email: str) -> None:
        """Issue a fresh OTP (the previous one stops working) and send it."""
        user = await self._require_account(email)
        if user.email_verified:
            raise AlreadyVerified()

        code = await self.vault.issue_otp(user)
        await self.db.commit()
        await self._send_otp(user, code)

    async def auto_login(self, email: str) -> str:
        """
        Hand the signup password back exactly once after verification.

        Raises:
            NotFoundError: Unknown account, or temp password consumed/expired
            ForbiddenError: Email not verified yet
        """
        user = await self._require_account(email)
        if not user.email_verified:
            raise ForbiddenError("Email not verified")

        plaintext = await self._consume(self.vault.consume_temp_password, user)
        await self.db.commit()

        logger.info("Auto-login handoff completed for account %s", user.id)
        return plaintext

    async def exchange_verification_token(self, email: str, token: str) -> SessionTokens:
        """
        Exchange the single-use verification token for a session.

        Raises:
            NotFoundError: Unknown account or no token pending
            UnauthorizedError: Token does not match
            ExpiredError: Token expired
            ForbiddenError: Account banned
        """
        user = await self._require_account(email)
        await self._consume(self.vault.consume_verification_token, user, token)

        if user.banned:
            await self.db.commit()
            raise ForbiddenError("Account has been banned")

        # The auto-login handoff is no longer needed once a session exists
        user.temp_password = None
        user.temp_password_expires = None
        self._record_login(user)
        await self.db.commit()

        return self._issue_session(user)

    async def authenticate(self, email: str, password: str) -> SessionTokens:
        """
        Password login.

        Raises:
            UnauthorizedError: Unknown email or wrong password
            ForbiddenError: Account banned or email not verified
        """
        user = await self._get_by_email(email)

        password_ok = password_hasher.verify(password, user.password_hash if user else None)
        if not user or not password_ok:
            raise UnauthorizedError("Invalid email or password")

        if user.banned:
            raise ForbiddenError("Account has been banned")
        if not user.email_verified:
            raise ForbiddenError("Please verify your email address before logging in")

        self._record_login(user)
        await self.db.commit()

        return self._issue_session(user)

    async def refresh(self, refresh_token: str) -> SessionTokens:
        """Issue a new pair from a valid refresh token."""
        payload = self.token_service.verify_refresh_token(refresh_token)
        if not payload:
            raise UnauthorizedError("Invalid or expired refresh token")

        user = await self.db.get(User, payload.sub)
        if not user:
            raise UnauthorizedError("User not found")
        if user.banned:
            raise ForbiddenError("Account has been banned")

        return self._issue_session(user)
