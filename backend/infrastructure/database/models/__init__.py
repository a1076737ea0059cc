"""
SQLAlchemy database models.
"""

from .base import Base, TimestampMixin
from .billing import Payment, Subscription, SubscriptionPlan
from .content import Blog, Resource
from .purchase import BlogPurchase, ResourcePurchase
from .user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "Blog",
    "Resource",
    "SubscriptionPlan",
    "Subscription",
    "Payment",
    "BlogPurchase",
    "ResourcePurchase",
]
