"""
API request and response schemas.
"""

from .admin import BanResponse, UserListItemResponse, UserListResponse
from .auth import (
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
from .billing import (
    CheckoutOrderResponse,
    PaymentOrderRequest,
    PaymentResponse,
    PaymentVerifyRequest,
    PlanCreateRequest,
    PlanResponse,
    PlanUpdateRequest,
    SubscriptionCreateRequest,
    SubscriptionResponse,
)
from .content import ContentResponse

__all__ = [
    "BanResponse",
    "UserListItemResponse",
    "UserListResponse",
    "AutoLoginRequest",
    "AutoLoginResponse",
    "EmailRequest",
    "LoginRequest",
    "MessageResponse",
    "RefreshTokenRequest",
    "SessionRequest",
    "SignupRequest",
    "TokenResponse",
    "UserResponse",
    "VerifyOtpRequest",
    "VerifyOtpResponse",
    "CheckoutOrderResponse",
    "PaymentOrderRequest",
    "PaymentResponse",
    "PaymentVerifyRequest",
    "PlanCreateRequest",
    "PlanResponse",
    "PlanUpdateRequest",
    "SubscriptionCreateRequest",
    "SubscriptionResponse",
    "ContentResponse",
]
