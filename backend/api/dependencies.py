"""
API dependencies for authentication and service wiring.
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.email.resend_adapter import email_service
from adapters.payments.razorpay_adapter import RazorpayAdapter, create_razorpay_adapter
from core.domain.user import Principal
from core.interfaces.services import EmailService, PaymentGateway
from core.security.tokens import TokenService
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models import User
from services.entitlement import EntitlementResolver
from services.subscription_ledger import SubscriptionLedger

# Initialize token service
token_service = TokenService(
    secret_key=settings.jwt_secret_key,
    algorithm=settings.jwt_algorithm,
    access_token_expire_minutes=settings.jwt_access_token_expire_minutes,
    refresh_token_expire_days=settings.jwt_refresh_token_expire_days,
)

_payment_gateway: RazorpayAdapter | None = None


def get_payment_gateway() -> PaymentGateway:
    """Shared Razorpay adapter (overridden in tests)."""
    global _payment_gateway
    if _payment_gateway is None:
        _payment_gateway = create_razorpay_adapter()
    return _payment_gateway


def get_email_service() -> EmailService:
    return email_service


def get_token_service() -> TokenService:
    return token_service


def _extract_token(request: Request, authorization: str | None) -> str | None:
    """Bearer token from the Authorization header, falling back to the cookie."""
    if authorization and authorization.startswith("Bearer "):
        parts = authorization.split(" ", 1)
        if len(parts) > 1 and parts[1]:
            return parts[1]
    return request.cookies.get("access_token")


async def get_current_user(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency to get the current authenticated user.

    Banned accounts are rejected with 403 even while their token is valid.
    """
    token = _extract_token(request, authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = token_service.verify_access_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await db.get(User, payload.sub)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.banned:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been banned",
        )

    return user


async def get_current_principal(
    current_user: Annotated[User, Depends(get_current_user)],
) -> Principal:
    """The authenticated principal passed explicitly into services."""
    return Principal(user_id=current_user.id, role=current_user.role)


async def get_optional_principal(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> Principal | None:
    """
    Principal for optionally-authenticated reads.

    A missing or invalid token reads as anonymous instead of failing; the
    entitlement resolver additionally treats banned accounts as anonymous.
    """
    token = _extract_token(request, authorization)
    if not token:
        return None
    payload = token_service.verify_access_token(token)
    if not payload:
        return None
    return Principal(user_id=payload.sub, role=payload.role or "user")


def get_subscription_ledger(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    email: EmailService = Depends(get_email_service),
) -> SubscriptionLedger:
    return SubscriptionLedger(db, gateway, email=email)


def get_entitlement_resolver(db: AsyncSession = Depends(get_db)) -> EntitlementResolver:
    return EntitlementResolver(db)
