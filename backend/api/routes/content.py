"""
Content read API routes.

Every read is entitlement-checked. Anonymous callers are allowed; what
they get back is the preview for anything that is not FREE.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from api.dependencies import get_entitlement_resolver, get_optional_principal
from api.schemas.content import ContentResponse
from core.domain.user import Principal
from services.entitlement import EntitlementResolver

router = APIRouter(tags=["Content"])

OptionalPrincipal = Annotated[Principal | None, Depends(get_optional_principal)]
Resolver = Annotated[EntitlementResolver, Depends(get_entitlement_resolver)]


@router.get("/content/{item_id}", response_model=ContentResponse)
async def read_content(item_id: str, principal: OptionalPrincipal, resolver: Resolver):
    """Read a blog or resource by id."""
    return await resolver.read_content(principal, item_id)


@router.get("/blogs/{slug}", response_model=ContentResponse)
async def read_blog(slug: str, principal: OptionalPrincipal, resolver: Resolver):
    return await resolver.read_blog(principal, slug)


@router.get("/resources/{slug}", response_model=ContentResponse)
async def read_resource(slug: str, principal: OptionalPrincipal, resolver: Resolver):
    return await resolver.read_resource(principal, slug)
