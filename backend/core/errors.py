"""
Domain error taxonomy.

Services raise these; the API layer renders them as
``{"detail": message, "code": code}`` with the matching HTTP status.
"""


class DomainError(Exception):
    """Base exception for all expected domain failures."""

    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, code: str | None = None):
        self.message = message or self.default_message
        if code:
            self.code = code
        super().__init__(self.message)


class ValidationError(DomainError):
    """Malformed or unacceptable input."""

    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


class InvalidOtp(ValidationError):
    """Submitted OTP does not match the pending code."""

    code = "invalid_otp"
    default_message = "Invalid OTP"


class NotFoundError(DomainError):
    """Requested entity or pending credential does not exist."""

    status_code = 404
    code = "not_found"
    default_message = "Not found"


class PlanInactive(NotFoundError):
    """Subscription plan is missing or no longer offered."""

    code = "plan_inactive"
    default_message = "Plan not found or inactive"


class ConflictError(DomainError):
    """Operation conflicts with current state."""

    status_code = 409
    code = "conflict"
    default_message = "Conflict"


class AlreadyVerified(ConflictError):
    code = "already_verified"
    default_message = "Email is already verified"


class AlreadySubscribed(ConflictError):
    code = "already_subscribed"
    default_message = "Already have an active subscription"


class AlreadyPurchased(ConflictError):
    code = "already_purchased"
    default_message = "Already purchased"


class UnauthorizedError(DomainError):
    """Missing or invalid credentials."""

    status_code = 401
    code = "unauthorized"
    default_message = "Not authenticated"


class ForbiddenError(DomainError):
    """Authenticated but not allowed."""

    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class ExpiredError(DomainError):
    """Time-boxed credential has expired."""

    status_code = 410
    code = "expired"
    default_message = "Expired"


class GatewayError(DomainError):
    """External payment processor failure.

    ``description`` is safe to show to end users; raw processor errors are
    only logged.
    """

    status_code = 502
    code = "gateway_error"
    default_message = "Payment gateway error"

    @property
    def description(self) -> str:
        return self.message


class GatewayTimeout(GatewayError):
    status_code = 504
    code = "gateway_timeout"
    default_message = "Payment gateway timed out"


class InternalError(DomainError):
    """Unexpected failure."""
