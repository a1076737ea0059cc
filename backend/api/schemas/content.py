"""
Entitlement-checked content schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel


class ContentResponse(BaseModel):
    """Blog or resource as the caller is entitled to see it.

    Without access, ``content`` and ``description`` hold previews and
    ``code_blocks`` / ``file_url`` are withheld.
    """

    id: str
    kind: str
    slug: str
    title: str
    category: Optional[str] = None
    excerpt: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    code_blocks: Optional[list[dict[str, Any]]] = None
    file_url: Optional[str] = None
    featured_image: Optional[str] = None
    access_type: str
    price: Optional[Decimal] = None
    created_at: Optional[datetime] = None
    has_access: bool
    reason: str
    requires_purchase: bool
