"""
Admin API routes: plan catalogue management and account bans.
"""

import logging
from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import and_, asc, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_admin import get_current_admin_user
from api.schemas.admin import BanResponse, UserListItemResponse, UserListResponse
from api.schemas.billing import PlanCreateRequest, PlanResponse, PlanUpdateRequest
from api.utils import escape_like
from infrastructure.database.connection import get_db
from infrastructure.database.models import SubscriptionPlan, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ============================================================================
# Plans
# ============================================================================


@router.post(
    "/subscription-plans",
    response_model=PlanResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_plan(
    body: PlanCreateRequest,
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
):
    """Create a subscription plan."""
    plan = SubscriptionPlan(**body.model_dump())
    db.add(plan)
    await db.commit()
    await db.refresh(plan)

    logger.info("Admin %s created plan %s (%s)", admin_user.id, plan.id, plan.name)
    return plan


@router.patch("/subscription-plans/{plan_id}", response_model=PlanResponse)
async def update_plan(
    plan_id: str,
    body: PlanUpdateRequest,
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
):
    """
    Update a plan. Existing subscriptions keep the price and duration they
    were sold with.
    """
    plan = await db.get(SubscriptionPlan, plan_id)
    if not plan:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Plan not found",
        )

    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(plan, field, value)

    await db.commit()
    await db.refresh(plan)

    logger.info("Admin %s updated plan %s", admin_user.id, plan.id)
    return plan


# ============================================================================
# Users
# ============================================================================


@router.get("/users", response_model=UserListResponse)
async def list_users(
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    role: Optional[str] = Query(None, pattern="^(user|admin)$"),
    banned: Optional[bool] = Query(None),
    email_verified: Optional[bool] = Query(None),
    sort_by: str = Query("created_at", pattern="^(created_at|email|last_login)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
) -> UserListResponse:
    """
    List accounts with pagination and filtering.

    Admin access required.
    """
    filters = []

    if search:
        search_pattern = f"%{escape_like(search)}%"
        filters.append(
            or_(
                User.email.ilike(search_pattern, escape="\\"),
                User.name.ilike(search_pattern, escape="\\"),
            )
        )
    if role:
        filters.append(User.role == role)
    if banned is not None:
        filters.append(User.banned == banned)
    if email_verified is not None:
        filters.append(User.email_verified == email_verified)

    query = select(User)
    count_query = select(func.count()).select_from(User)
    if filters:
        query = query.where(and_(*filters))
        count_query = count_query.where(and_(*filters))

    total = (await db.execute(count_query)).scalar() or 0

    sort_column = getattr(User, sort_by)
    query = query.order_by(desc(sort_column) if sort_order == "desc" else asc(sort_column))
    query = query.limit(page_size).offset((page - 1) * page_size)

    result = await db.execute(query)
    users = result.scalars().all()

    return UserListResponse(
        users=[UserListItemResponse.model_validate(user) for user in users],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


async def _set_banned(db: AsyncSession, admin_user: User, user_id: str, banned: bool) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    if user.id == admin_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot ban yourself",
        )

    user.banned = banned
    await db.commit()
    await db.refresh(user)

    logger.info(
        "Admin %s %s user %s", admin_user.id, "banned" if banned else "unbanned", user.id
    )
    return user


@router.post("/users/{user_id}/ban", response_model=BanResponse)
async def ban_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
):
    """
    Ban an account.

    The account loses access to every entitlement-checked read at once and
    its existing tokens stop working.
    """
    return await _set_banned(db, admin_user, user_id, True)


@router.post("/users/{user_id}/unban", response_model=BanResponse)
async def unban_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
):
    return await _set_banned(db, admin_user, user_id, False)
