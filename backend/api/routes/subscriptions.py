"""
Subscription API routes.
"""

import logging
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from api.dependencies import get_current_principal, get_subscription_ledger
from api.middleware.rate_limit import get_rate_limit, limiter
from api.schemas.billing import (
    CheckoutOrderResponse,
    SubscriptionCreateRequest,
    SubscriptionResponse,
)
from core.domain.subscription import effective_status, ensure_aware
from core.domain.user import Principal
from services.subscription_ledger import SubscriptionLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])

CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
Ledger = Annotated[SubscriptionLedger, Depends(get_subscription_ledger)]


@router.post("", response_model=CheckoutOrderResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("payment"))
async def create_subscription(
    request: Request,
    body: SubscriptionCreateRequest,
    principal: CurrentPrincipal,
    ledger: Ledger,
):
    """
    Start a subscription to a plan.

    Returns the processor order the client pays through; the subscription
    stays PENDING until the payment is confirmed.
    """
    return await ledger.create_subscription(principal, body.plan_id)


@router.get("", response_model=list[SubscriptionResponse])
async def list_subscriptions(principal: CurrentPrincipal, ledger: Ledger):
    """Current account's subscriptions, newest first."""
    return await ledger.list_subscriptions(principal)


@router.delete("/{subscription_id}", response_model=SubscriptionResponse)
async def cancel_subscription(subscription_id: str, principal: CurrentPrincipal, ledger: Ledger):
    """Cancel a subscription. Access continues until its end date."""
    now = datetime.now(UTC)
    subscription = await ledger.cancel_subscription(principal, subscription_id, now)
    return SubscriptionResponse(
        id=subscription.id,
        plan_id=subscription.plan_id,
        price=subscription.price,
        duration_months=subscription.duration_months,
        status=effective_status(subscription.status, subscription.end_date, now).value,
        start_date=ensure_aware(subscription.start_date),
        end_date=ensure_aware(subscription.end_date),
        cancelled_at=subscription.cancelled_at,
        created_at=subscription.created_at,
    )
