"""
Subscription plan catalogue.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_optional_principal
from api.schemas.billing import PlanResponse
from core.domain.user import Principal
from infrastructure.database.connection import get_db
from infrastructure.database.models import SubscriptionPlan

router = APIRouter(prefix="/subscription-plans", tags=["Subscription Plans"])


@router.get("", response_model=list[PlanResponse])
async def list_plans(
    principal: Annotated[Principal | None, Depends(get_optional_principal)],
    db: AsyncSession = Depends(get_db),
):
    """
    List subscription plans, cheapest first.

    Public endpoint. Inactive plans are only listed for admins.
    """
    query = select(SubscriptionPlan).order_by(SubscriptionPlan.price.asc())
    if not (principal and principal.is_admin):
        query = query.where(SubscriptionPlan.active.is_(True))
    result = await db.execute(query)
    return result.scalars().all()
