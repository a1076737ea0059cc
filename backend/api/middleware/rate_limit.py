"""
Rate limiting using slowapi.

Protects the credential endpoints (signup, OTP verification and resend,
auto-login, session exchange, login) against brute force. Limits are keyed
by client IP and stored in Redis when REDIS_URL is set, in memory otherwise.

Rate Limits:
- Signup: 3 per minute
- OTP verification: 5 per minute
- OTP resend: 3 per 10 minutes
- Auto-login / session exchange: 5 per minute
- Login: 5 per minute
- Default: 100 requests per minute
"""

import ipaddress
import logging
import re

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

# Simple pattern to quickly reject obviously invalid IPs before parsing
_IP_LIKE = re.compile(r"^[\d.:a-fA-F]+$")


def _is_valid_ip(value: str) -> bool:
    """Return True if *value* looks like a valid IPv4 or IPv6 address."""
    if not _IP_LIKE.match(value):
        return False
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def _is_private_ip(value: str) -> bool:
    """Return True if *value* is a private, loopback, or link-local address.

    Private addresses in X-Forwarded-For can be spoofed by the client and
    are never trusted as the rate-limit key.
    """
    try:
        addr = ipaddress.ip_address(value)
        return addr.is_private or addr.is_loopback or addr.is_link_local
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """Extract the client IP from proxy headers, falling back to the remote address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # Comma-separated list; first entry is the client
        candidate = forwarded.split(",")[0].strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        candidate = real_ip.strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    return get_remote_address(request)


# Format: "count/period" where period can be: second, minute, hour, day
RATE_LIMITS = {
    "signup": "3/minute",
    "verify_otp": "5/minute",
    "resend_otp": "3/10minute",
    "auto_login": "5/minute",
    "session": "5/minute",
    "login": "5/minute",
    "payment": "20/minute",
    "default": "100/minute",
}

_storage_uri = settings.redis_url if settings.redis_url else "memory://"

if settings.rate_limit_enabled and not settings.redis_url:
    logger.warning(
        "Rate limiter using in-memory storage; not suitable for multi-worker production"
    )

limiter = Limiter(
    key_func=get_client_ip,
    storage_uri=_storage_uri,
    default_limits=[RATE_LIMITS["default"]],
    enabled=settings.rate_limit_enabled,
)


def get_rate_limit(endpoint: str) -> str:
    """
    Get rate limit configuration for a specific endpoint.

    Example:
        >>> get_rate_limit("login")
        '5/minute'
        >>> get_rate_limit("unknown")
        '100/minute'
    """
    return RATE_LIMITS.get(endpoint, RATE_LIMITS["default"])
