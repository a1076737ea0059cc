"""
Admin request and response schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserListItemResponse(BaseModel):
    """User row in the admin list."""

    id: str
    email: str
    name: str
    role: str
    banned: bool
    email_verified: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserListResponse(BaseModel):
    """Paginated user list."""

    users: list[UserListItemResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class BanResponse(BaseModel):
    id: str
    email: str
    banned: bool

    model_config = ConfigDict(from_attributes=True)
