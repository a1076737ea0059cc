"""
Payment API routes.

One-time purchase orders, client-side confirmation of a checkout and the
Razorpay webhook. Confirmation is idempotent, so the client callback and
the webhook may both report the same payment.
"""

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_current_principal,
    get_payment_gateway,
    get_subscription_ledger,
)
from api.middleware.rate_limit import get_rate_limit, limiter
from api.schemas.billing import (
    CheckoutOrderResponse,
    PaymentOrderRequest,
    PaymentResponse,
    PaymentVerifyRequest,
)
from core.domain.content import ContentKind
from core.domain.user import Principal
from core.errors import DomainError, GatewayError, NotFoundError
from core.interfaces.services import PaymentGateway
from infrastructure.database.connection import get_db
from services.checkout import PurchaseCheckout
from services.subscription_ledger import SubscriptionLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])

CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
Ledger = Annotated[SubscriptionLedger, Depends(get_subscription_ledger)]

SUCCESS_EVENTS = ("payment.captured", "order.paid")
FAILURE_EVENTS = ("payment.failed",)


@router.post("/order", response_model=CheckoutOrderResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("payment"))
async def create_order(
    request: Request,
    body: PaymentOrderRequest,
    principal: CurrentPrincipal,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    """Create a processor order for a PAID blog or resource."""
    checkout = PurchaseCheckout(db, gateway)
    return await checkout.create_order(principal, ContentKind(body.type.value), body.item_id)


@router.post("/verify", response_model=PaymentResponse)
@limiter.limit(get_rate_limit("payment"))
async def verify_payment(
    request: Request,
    body: PaymentVerifyRequest,
    principal: CurrentPrincipal,
    ledger: Ledger,
):
    """
    Confirm a payment with the signature returned by the checkout widget.

    On success the subscription is activated or the purchase recorded.
    """
    return await ledger.confirm_payment(
        payment_id=body.payment_id,
        razorpay_order_id=body.razorpay_order_id,
        razorpay_payment_id=body.razorpay_payment_id,
        razorpay_signature=body.razorpay_signature,
        principal=principal,
    )


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: str, principal: CurrentPrincipal, ledger: Ledger):
    return await ledger.get_payment(payment_id, principal)


def _payment_entity(payload: dict) -> dict:
    return ((payload.get("payload") or {}).get("payment") or {}).get("entity") or {}


def _order_id(event: str, payload: dict) -> str | None:
    if event == "order.paid":
        order = ((payload.get("payload") or {}).get("order") or {}).get("entity") or {}
        if order.get("id"):
            return order["id"]
    return _payment_entity(payload).get("order_id")


@router.post("/webhook")
@limiter.limit("100/minute")
async def handle_webhook(
    request: Request,
    ledger: Ledger,
    x_razorpay_signature: Annotated[str | None, Header(alias="X-Razorpay-Signature")] = None,
):
    """
    Handle Razorpay webhook events.

    - payment.captured / order.paid: confirm the payment
    - payment.failed: mark the payment as failed

    Other events are acknowledged and ignored.
    """
    body = await request.body()

    if not x_razorpay_signature:
        logger.warning("Webhook received without signature")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing webhook signature",
        )

    try:
        valid = ledger.gateway.verify_webhook_signature(body, x_razorpay_signature)
    except GatewayError:
        # Return 403 when the secret is unconfigured so the processor stops retrying
        logger.error("Webhook rejected: RAZORPAY_WEBHOOK_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Webhook verification not configured",
        )
    if not valid:
        logger.error("Invalid webhook signature")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature",
        )

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, ValueError) as e:
        logger.error("Invalid JSON in webhook payload: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")

    event = payload.get("event")
    if event not in SUCCESS_EVENTS + FAILURE_EVENTS:
        logger.info("Ignoring webhook event %s", event)
        return {"status": "ignored", "event": event}

    order_id = _order_id(event, payload)
    if not order_id:
        logger.warning("Webhook %s has no order id", event)
        return {"status": "ignored", "event": event}

    try:
        payment = await ledger.get_payment_by_order(order_id)
    except NotFoundError:
        logger.warning("Webhook %s for unknown order %s", event, order_id)
        return {"status": "ignored", "event": event}

    # A rejected confirmation rolls back and expires the loaded row
    payment_id = payment.id
    try:
        if event in SUCCESS_EVENTS:
            await ledger.apply_success(payment, _payment_entity(payload).get("id"))
        else:
            await ledger.fail_payment(payment_id)
    except DomainError as e:
        # Acknowledge so the processor does not retry a business-rule rejection
        logger.warning("Webhook %s for payment %s not applied: %s", event, payment_id, e.message)
        return {"status": "rejected", "event": event, "code": e.code}

    logger.info("Processed webhook %s for payment %s", event, payment_id)
    return {"status": "ok", "event": event}
