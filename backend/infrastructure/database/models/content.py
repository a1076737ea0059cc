"""
Gated content models: blogs and downloadable resources.
"""

from decimal import Decimal
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, ForeignKey, Index, JSON, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from core.domain.content import AccessType

from .base import Base, TimestampMixin


class Blog(Base, TimestampMixin):
    """Blog post gated by its access type."""

    __tablename__ = "blogs"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    author_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    excerpt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    featured_image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Access control
    access_type: Mapped[str] = mapped_column(
        String(20),
        default=AccessType.FREE.value,
        nullable=False,
    )
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_blogs_published_access", "published", "access_type"),
    )

    def __repr__(self) -> str:
        return f"<Blog(id={self.id}, slug={self.slug}, access={self.access_type})>"


class Resource(Base, TimestampMixin):
    """Downloadable resource (guide, cheatsheet, script) gated by its access type."""

    __tablename__ = "resources"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    author_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    code_blocks: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    """
    Structure:
    [
        {"language": "pine", "title": "RSI strategy", "code": "..."}
    ]
    """
    file_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Access control
    access_type: Mapped[str] = mapped_column(
        String(20),
        default=AccessType.FREE.value,
        nullable=False,
    )
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_resources_published_access", "published", "access_type"),
    )

    def __repr__(self) -> str:
        return f"<Resource(id={self.id}, slug={self.slug}, access={self.access_type})>"
