"""
Authentication request and response schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SignupRequest(BaseModel):
    """Signup request schema."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class EmailRequest(BaseModel):
    """Request carrying only an email (resend OTP)."""

    email: EmailStr


class VerifyOtpRequest(BaseModel):
    """OTP verification request schema."""

    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")


class VerifyOtpResponse(BaseModel):
    """Single-use token to exchange for a session."""

    message: str = "Email verified successfully"
    verification_token: str
    expires_at: datetime


class AutoLoginRequest(BaseModel):
    email: EmailStr


class AutoLoginResponse(BaseModel):
    success: bool = True
    temp_password: str


class SessionRequest(BaseModel):
    """Verification token exchange request schema."""

    email: EmailStr
    verification_token: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    """Refresh token request schema."""

    refresh_token: str


class TokenResponse(BaseModel):
    """Token response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds until access token expires


class MessageResponse(BaseModel):
    message: str


class UserResponse(BaseModel):
    """User response schema."""

    id: str
    email: str
    name: str
    role: str
    email_verified: bool
    banned: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
