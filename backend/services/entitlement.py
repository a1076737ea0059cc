"""
Entitlement resolution for gated content.

Every read recomputes access from purchases and the subscription ledger;
nothing is cached, so a subscription that lapsed a second ago already
reads as lapsed.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.domain.content import (
    AccessDecision,
    AccessType,
    ContentKind,
    decide_access,
    truncate_preview,
)
from core.domain.subscription import ENTITLING_STATUSES, grants_access
from core.domain.user import Principal
from core.errors import NotFoundError
from infrastructure.config.settings import settings
from infrastructure.database.models import (
    Blog,
    BlogPurchase,
    Resource,
    ResourcePurchase,
    Subscription,
    User,
)

logger = logging.getLogger(__name__)

ContentItem = Blog | Resource


def content_kind(item: ContentItem) -> ContentKind:
    return ContentKind.BLOG if isinstance(item, Blog) else ContentKind.RESOURCE


def build_blog_view(blog: Blog, decision: AccessDecision) -> dict[str, Any]:
    """Blog payload; without access the body becomes the excerpt or a prefix."""
    content = blog.content
    if not decision.has_access:
        content = blog.excerpt or truncate_preview(blog.content or "", settings.blog_preview_chars)

    return {
        "id": blog.id,
        "kind": ContentKind.BLOG.value,
        "slug": blog.slug,
        "title": blog.title,
        "category": blog.category,
        "excerpt": blog.excerpt,
        "description": None,
        "content": content,
        "code_blocks": None,
        "file_url": None,
        "featured_image": blog.featured_image,
        "access_type": blog.access_type,
        "price": blog.price,
        "created_at": blog.created_at,
        "has_access": decision.has_access,
        "reason": decision.reason.value,
        "requires_purchase": not decision.has_access,
    }


def build_resource_view(resource: Resource, decision: AccessDecision) -> dict[str, Any]:
    """Resource payload; without access body and description are cut and code is withheld."""
    content = resource.content
    description = resource.description
    code_blocks = resource.code_blocks
    file_url = resource.file_url
    if not decision.has_access:
        content = truncate_preview(resource.description, settings.resource_preview_chars)
        description = truncate_preview(
            resource.description, settings.resource_description_preview_chars
        )
        code_blocks = None
        file_url = None

    return {
        "id": resource.id,
        "kind": ContentKind.RESOURCE.value,
        "slug": resource.slug,
        "title": resource.title,
        "category": resource.category,
        "excerpt": None,
        "description": description,
        "content": content,
        "code_blocks": code_blocks,
        "file_url": file_url,
        "featured_image": None,
        "access_type": resource.access_type,
        "price": resource.price,
        "created_at": resource.created_at,
        "has_access": decision.has_access,
        "reason": decision.reason.value,
        "requires_purchase": not decision.has_access,
    }


class EntitlementResolver:
    """Decides whether a principal may read a content item right now."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _effective_principal(self, principal: Principal | None) -> Principal | None:
        """Banned or deleted accounts read as anonymous."""
        if principal is None:
            return None
        result = await self.db.execute(select(User.banned).where(User.id == principal.user_id))
        banned = result.scalar_one_or_none()
        if banned is None or banned:
            return None
        return principal

    async def has_purchase(self, user_id: str, kind: ContentKind, item_id: str) -> bool:
        if kind == ContentKind.BLOG:
            query = select(BlogPurchase.id).where(
                BlogPurchase.user_id == user_id,
                BlogPurchase.blog_id == item_id,
            )
        else:
            query = select(ResourcePurchase.id).where(
                ResourcePurchase.user_id == user_id,
                ResourcePurchase.resource_id == item_id,
            )
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def has_active_subscription(self, user_id: str, now: datetime | None = None) -> bool:
        """Whether any subscription of the account entitles it at ``now``."""
        now = now or datetime.now(UTC)
        result = await self.db.execute(
            select(Subscription.status, Subscription.end_date).where(
                Subscription.user_id == user_id,
                Subscription.status.in_([s.value for s in ENTITLING_STATUSES]),
            )
        )
        return any(grants_access(status, end_date, now) for status, end_date in result.all())

    async def resolve(
        self,
        principal: Principal | None,
        item: ContentItem,
        now: datetime | None = None,
    ) -> AccessDecision:
        """
        Compute the access decision for one principal and one item.

        Args:
            principal: Authenticated account, or None for anonymous
            item: Published blog or resource
            now: Evaluation instant (defaults to the current time)
        """
        access_type = AccessType(item.access_type)
        principal = await self._effective_principal(principal)

        if access_type == AccessType.FREE or principal is None:
            return decide_access(access_type, principal)

        if access_type == AccessType.PAID:
            owned = await self.has_purchase(principal.user_id, content_kind(item), item.id)
            return decide_access(access_type, principal, has_purchase=owned)

        subscribed = await self.has_active_subscription(principal.user_id, now)
        return decide_access(access_type, principal, has_active_subscription=subscribed)

    async def _published(self, model, *criteria) -> ContentItem | None:
        result = await self.db.execute(select(model).where(model.published.is_(True), *criteria))
        return result.scalar_one_or_none()

    async def read_blog(
        self, principal: Principal | None, slug: str, now: datetime | None = None
    ) -> dict[str, Any]:
        blog = await self._published(Blog, Blog.slug == slug)
        if not blog:
            raise NotFoundError("Blog not found")
        return build_blog_view(blog, await self.resolve(principal, blog, now))

    async def read_resource(
        self, principal: Principal | None, slug: str, now: datetime | None = None
    ) -> dict[str, Any]:
        resource = await self._published(Resource, Resource.slug == slug)
        if not resource:
            raise NotFoundError("Resource not found")
        return build_resource_view(resource, await self.resolve(principal, resource, now))

    async def read_content(
        self, principal: Principal | None, item_id: str, now: datetime | None = None
    ) -> dict[str, Any]:
        """Read a blog or resource by id."""
        blog = await self._published(Blog, Blog.id == item_id)
        if blog:
            return build_blog_view(blog, await self.resolve(principal, blog, now))

        resource = await self._published(Resource, Resource.id == item_id)
        if resource:
            return build_resource_view(resource, await self.resolve(principal, resource, now))

        raise NotFoundError("Content not found")
