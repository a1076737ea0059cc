# Domain Entities
# Pure business objects with no external dependencies
from .content import AccessDecision, AccessReason, AccessType, ContentKind, decide_access
from .payment import (
    BlogPurchasePurpose,
    PaymentPurpose,
    PaymentStatus,
    ResourcePurchasePurpose,
    SubscriptionPurpose,
)
from .subscription import SubscriptionStatus, effective_status, grants_access
from .user import Principal, UserRole

__all__ = [
    "Principal",
    "UserRole",
    "AccessType",
    "AccessReason",
    "AccessDecision",
    "ContentKind",
    "decide_access",
    "SubscriptionStatus",
    "effective_status",
    "grants_access",
    "PaymentStatus",
    "PaymentPurpose",
    "SubscriptionPurpose",
    "BlogPurchasePurpose",
    "ResourcePurchasePurpose",
]
