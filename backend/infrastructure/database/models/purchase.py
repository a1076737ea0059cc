"""
One-time purchase records granting perpetual access to PAID content.
"""

from typing import Optional
from uuid import uuid4

from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class BlogPurchase(Base, TimestampMixin):
    __tablename__ = "blog_purchases"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    blog_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("blogs.id", ondelete="CASCADE"),
        nullable=False,
    )
    payment_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("payments.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "blog_id", name="uq_blog_purchases_user_blog"),
    )


class ResourcePurchase(Base, TimestampMixin):
    __tablename__ = "resource_purchases"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    resource_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
    )
    payment_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("payments.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "resource_id", name="uq_resource_purchases_user_resource"),
    )
