"""
Authentication API routes.

Signup sends an OTP; verifying it yields a single-use verification token
that is exchanged for a session at ``/auth/session``. ``/auth/auto-login``
is the legacy handoff that returns the signup password exactly once.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user, get_email_service, get_token_service
from api.middleware.rate_limit import get_rate_limit, limiter
from api.schemas.auth import (
    AutoLoginRequest,
    AutoLoginResponse,
    EmailRequest,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
    SessionRequest,
    SignupRequest,
    TokenResponse,
    UserResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from core.interfaces.services import EmailService
from core.security.tokens import TokenService
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models import User
from services.identity import IdentityVerifier, SessionTokens

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _get_cookie_kwargs() -> dict:
    """Cookie attributes; cross-site (SameSite=None; Secure) outside localhost."""
    is_deployed = not any(
        host in settings.frontend_url for host in ("localhost", "127.0.0.1", "0.0.0.0")
    )
    use_cross_site = settings.is_production or is_deployed
    return dict(
        httponly=True,
        secure=use_cross_site,
        samesite="none" if use_cross_site else "lax",
        path="/",
    )


def _session_response(session: SessionTokens) -> JSONResponse:
    """Tokens in the JSON body plus HttpOnly cookies for browser clients."""
    response = JSONResponse(
        content=TokenResponse(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=session.expires_in,
        ).model_dump()
    )
    kwargs = _get_cookie_kwargs()
    response.set_cookie(
        "access_token", session.access_token, max_age=session.expires_in, **kwargs
    )
    response.set_cookie(
        "refresh_token",
        session.refresh_token,
        max_age=settings.jwt_refresh_token_expire_days * 86400,
        **kwargs,
    )
    return response


def get_identity_verifier(
    db: AsyncSession = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
    email_service: EmailService = Depends(get_email_service),
) -> IdentityVerifier:
    return IdentityVerifier(db, token_service, email=email_service)


Identity = Annotated[IdentityVerifier, Depends(get_identity_verifier)]


@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("signup"))
async def signup(request: Request, body: SignupRequest, identity: Identity):
    """
    Register a new account.

    The account starts unverified; a 6-digit OTP is emailed to it.
    """
    return await identity.signup(body.email, body.password, body.name)


@router.post("/verify-otp", response_model=VerifyOtpResponse)
@limiter.limit(get_rate_limit("verify_otp"))
async def verify_otp(request: Request, body: VerifyOtpRequest, identity: Identity):
    token, expires_at = await identity.verify_otp(body.email, body.otp)
    return VerifyOtpResponse(verification_token=token, expires_at=expires_at)


@router.post("/resend-otp", response_model=MessageResponse)
@limiter.limit(get_rate_limit("resend_otp"))
async def resend_otp(request: Request, body: EmailRequest, identity: Identity):
    await identity.resend_otp(body.email)
    return MessageResponse(message="A new OTP has been sent")


@router.post("/auto-login", response_model=AutoLoginResponse)
@limiter.limit(get_rate_limit("auto_login"))
async def auto_login(request: Request, body: AutoLoginRequest, identity: Identity):
    """
    Return the signup password once so the client can sign in.

    Prefer ``/auth/session``, which never sends a password back.
    """
    temp_password = await identity.auto_login(body.email)
    return AutoLoginResponse(temp_password=temp_password)


@router.post("/session", response_model=TokenResponse)
@limiter.limit(get_rate_limit("session"))
async def create_session(request: Request, body: SessionRequest, identity: Identity):
    """Exchange the verification token for a session."""
    session = await identity.exchange_verification_token(body.email, body.verification_token)
    return _session_response(session)


@router.post("/login", response_model=TokenResponse)
@limiter.limit(get_rate_limit("login"))
async def login(request: Request, body: LoginRequest, identity: Identity):
    session = await identity.authenticate(body.email, body.password)
    return _session_response(session)


@router.post("/refresh", response_model=TokenResponse)
@limiter.limit(get_rate_limit("login"))
async def refresh_token(request: Request, body: RefreshTokenRequest, identity: Identity):
    session = await identity.refresh(body.refresh_token)
    return _session_response(session)


@router.post("/logout", response_model=MessageResponse)
async def logout():
    response = JSONResponse(content={"message": "Logged out successfully"})
    kwargs = _get_cookie_kwargs()
    response.delete_cookie("access_token", **kwargs)
    response.delete_cookie("refresh_token", **kwargs)
    return response


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: Annotated[User, Depends(get_current_user)]):
    return current_user
