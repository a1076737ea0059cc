"""Content domain entities and the access decision."""
from dataclasses import dataclass
from enum import StrEnum

from .user import Principal


class AccessType(StrEnum):
    """How a content item is gated."""
    FREE = "free"
    PAID = "paid"
    SUBSCRIPTION = "subscription"


class ContentKind(StrEnum):
    """Content item families sharing the same entitlement rules."""
    BLOG = "blog"
    RESOURCE = "resource"


class AccessReason(StrEnum):
    """Why an access decision came out the way it did."""
    FREE = "free"
    LOGIN_REQUIRED = "login_required"
    PURCHASED = "purchased"
    PURCHASE_REQUIRED = "purchase_required"
    SUBSCRIBED = "subscribed"
    SUBSCRIPTION_REQUIRED = "subscription_required"


@dataclass(frozen=True)
class AccessDecision:
    """Computed entitlement for one principal and one content item."""

    has_access: bool
    reason: AccessReason


def decide_access(
    access_type: AccessType,
    principal: Principal | None,
    has_purchase: bool = False,
    has_active_subscription: bool = False,
) -> AccessDecision:
    """Pure entitlement rule; callers supply the facts read from storage."""
    access_type = AccessType(access_type)
    if access_type == AccessType.FREE:
        return AccessDecision(True, AccessReason.FREE)
    if principal is None:
        return AccessDecision(False, AccessReason.LOGIN_REQUIRED)
    if access_type == AccessType.PAID:
        if has_purchase:
            return AccessDecision(True, AccessReason.PURCHASED)
        return AccessDecision(False, AccessReason.PURCHASE_REQUIRED)
    if has_active_subscription:
        return AccessDecision(True, AccessReason.SUBSCRIBED)
    return AccessDecision(False, AccessReason.SUBSCRIPTION_REQUIRED)


def truncate_preview(text: str | None, limit: int) -> str | None:
    """Fixed-length prefix followed by an ellipsis."""
    if text is None:
        return None
    return text[:limit] + "..."
