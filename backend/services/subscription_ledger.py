"""
Subscription ledger.

Owns the PENDING -> ACTIVE -> CANCELLED / EXPIRED lifecycle of
subscriptions and the PENDING -> SUCCESS | FAILED transition of payments
(a FAILED attempt may still be captured later and move to SUCCESS).
Confirming a payment applies its purpose: activating a subscription or
recording a one-time purchase.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.email.resend_adapter import email_service as default_email_service
from core.domain.payment import (
    BlogPurchasePurpose,
    PaymentPurpose,
    PaymentStatus,
    ResourcePurchasePurpose,
    SubscriptionPurpose,
    purpose_from_dict,
    purpose_to_dict,
    to_minor_units,
)
from core.domain.subscription import (
    SubscriptionStatus,
    add_months,
    effective_status,
    ensure_aware,
)
from core.domain.user import Principal
from core.errors import (
    AlreadyPurchased,
    AlreadySubscribed,
    ConflictError,
    GatewayError,
    InternalError,
    NotFoundError,
    PlanInactive,
    ValidationError,
)
from core.interfaces.services import EmailService, PaymentGateway
from infrastructure.config.settings import settings
from infrastructure.database.models import (
    Blog,
    BlogPurchase,
    Payment,
    Resource,
    ResourcePurchase,
    Subscription,
    SubscriptionPlan,
    User,
)

logger = logging.getLogger(__name__)


@dataclass
class CheckoutOrder:
    """What the client needs to open the processor's checkout."""

    order_id: str
    amount: int  # minor units
    currency: str
    payment_id: str
    key_id: str | None
    subscription_id: str | None = None


def _now(now: datetime | None) -> datetime:
    return ensure_aware(now) if now else datetime.now(UTC)


class SubscriptionLedger:
    """Subscription and payment state machine."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: PaymentGateway,
        email: EmailService | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self.email = email or default_email_service

    async def _has_live_active(
        self, user_id: str, now: datetime, exclude_id: str | None = None
    ) -> bool:
        """ACTIVE with end_date still ahead; the only state that blocks a new subscription."""
        query = select(Subscription.end_date).where(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        )
        if exclude_id:
            query = query.where(Subscription.id != exclude_id)
        result = await self.db.execute(query)
        return any(ensure_aware(end_date) >= now for end_date in result.scalars().all())

    async def create_subscription(
        self,
        principal: Principal,
        plan_id: str,
        now: datetime | None = None,
    ) -> CheckoutOrder:
        """
        Start a subscription purchase.

        The processor order is created first; the PENDING subscription and
        payment rows are only written once it exists, so a gateway failure
        leaves nothing behind.

        Raises:
            PlanInactive: Plan missing or inactive
            AlreadySubscribed: Account already has a live ACTIVE subscription
            GatewayError: Order creation failed
        """
        now = _now(now)
        plan = await self.db.get(SubscriptionPlan, plan_id)
        if not plan or not plan.active:
            raise PlanInactive()

        if await self._has_live_active(principal.user_id, now):
            raise AlreadySubscribed()

        subscription_id = str(uuid4())
        currency = settings.payment_currency
        order = await self.gateway.create_order(
            amount_minor_units=to_minor_units(plan.price),
            currency=currency,
            receipt=subscription_id,
            notes={"kind": "subscription", "subscription_id": subscription_id},
        )

        subscription = Subscription(
            id=subscription_id,
            user_id=principal.user_id,
            plan_id=plan.id,
            price=plan.price,
            duration_months=plan.duration_months,
            status=SubscriptionStatus.PENDING.value,
            start_date=now,
            end_date=add_months(now, plan.duration_months),
        )
        payment = Payment(
            user_id=principal.user_id,
            subscription_id=subscription_id,
            amount=plan.price,
            currency=currency,
            status=PaymentStatus.PENDING.value,
            purpose=purpose_to_dict(SubscriptionPurpose(plan_id=plan.id)),
            razorpay_order_id=order.id,
        )
        self.db.add(subscription)
        await self.db.flush()
        self.db.add(payment)
        await self.db.commit()

        logger.info(
            "Created pending subscription %s for user %s (order %s)",
            subscription_id,
            principal.user_id,
            order.id,
        )
        return CheckoutOrder(
            order_id=order.id,
            amount=order.amount,
            currency=order.currency or currency,
            payment_id=payment.id,
            key_id=getattr(self.gateway, "key_id", None),
            subscription_id=subscription_id,
        )

    async def get_payment(self, payment_id: str, principal: Principal | None = None) -> Payment:
        payment = await self.db.get(Payment, payment_id, populate_existing=True)
        if not payment or (principal and payment.user_id != principal.user_id):
            raise NotFoundError("Payment not found")
        return payment

    async def get_payment_by_order(self, order_id: str) -> Payment:
        result = await self.db.execute(
            select(Payment)
            .where(Payment.razorpay_order_id == order_id)
            .execution_options(populate_existing=True)
        )
        payment = result.scalar_one_or_none()
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    async def confirm_payment(
        self,
        payment_id: str,
        razorpay_order_id: str,
        razorpay_payment_id: str,
        razorpay_signature: str,
        principal: Principal | None = None,
        now: datetime | None = None,
    ) -> Payment:
        """
        Confirm a payment from the client-side checkout result.

        Raises:
            NotFoundError: Unknown payment, or not owned by the principal
            ValidationError: Order mismatch or bad signature
            ConflictError: Payment could not be moved to SUCCESS
        """
        payment = await self.get_payment(payment_id, principal)
        if payment.razorpay_order_id != razorpay_order_id:
            raise ValidationError("Order does not match payment")
        if not self.gateway.verify_payment_signature(
            razorpay_order_id, razorpay_payment_id, razorpay_signature
        ):
            raise ValidationError("Invalid payment signature")

        return await self.apply_success(payment, razorpay_payment_id, razorpay_signature, now)

    async def apply_success(
        self,
        payment: Payment,
        razorpay_payment_id: str | None,
        razorpay_signature: str | None = None,
        now: datetime | None = None,
    ) -> Payment:
        """
        Move a verified payment to SUCCESS and apply its purpose.

        Confirming an already successful payment is a no-op. A FAILED payment
        can still succeed: failures are reported per attempt, and a later
        attempt on the same order may be captured.
        """
        now = _now(now)
        if payment.status == PaymentStatus.SUCCESS.value:
            logger.info("Payment %s already confirmed", payment.id)
            return payment
        if payment.status == PaymentStatus.FAILED.value:
            logger.info("Payment %s captured after a failed attempt", payment.id)

        result = await self.db.execute(
            update(Payment)
            .where(
                Payment.id == payment.id,
                Payment.status.in_(
                    (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value)
                ),
            )
            .values(
                status=PaymentStatus.SUCCESS.value,
                razorpay_payment_id=razorpay_payment_id,
                razorpay_signature=razorpay_signature,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Another confirmation got there first
            await self.db.refresh(payment)
            if payment.status == PaymentStatus.SUCCESS.value:
                return payment
            raise ConflictError("Payment could not be confirmed")

        try:
            purpose = purpose_from_dict(payment.purpose)
        except ValueError as e:
            logger.error("Payment %s has an unreadable purpose: %s", payment.id, e)
            await self.db.rollback()
            raise InternalError()

        notify = await self._apply_purpose(payment, purpose, now)
        await self.db.commit()
        await self.db.refresh(payment)

        logger.info("Payment %s confirmed (%s)", payment.id, purpose.kind)
        if notify:
            await notify()
        return payment

    async def _apply_purpose(self, payment: Payment, purpose: PaymentPurpose, now: datetime):
        """Apply the effect of a confirmed payment; returns the email callback."""
        if isinstance(purpose, SubscriptionPurpose):
            return await self._activate_subscription(payment, now)
        if isinstance(purpose, BlogPurchasePurpose):
            return await self._record_purchase(
                payment, Blog, purpose.blog_id, BlogPurchase, "blog_id", "/blogs"
            )
        if isinstance(purpose, ResourcePurchasePurpose):
            return await self._record_purchase(
                payment, Resource, purpose.resource_id, ResourcePurchase, "resource_id", "/resources"
            )
        raise InternalError(f"Unhandled payment purpose: {purpose!r}")

    async def _activate_subscription(self, payment: Payment, now: datetime):
        if not payment.subscription_id:
            logger.error("Subscription payment %s has no subscription", payment.id)
            return None

        subscription = await self.db.get(
            Subscription, payment.subscription_id, populate_existing=True
        )
        if not subscription or subscription.status != SubscriptionStatus.PENDING.value:
            logger.warning(
                "Subscription %s is not pending; payment %s needs manual review",
                payment.subscription_id,
                payment.id,
            )
            return None

        # rollback() expires loaded rows, so read ids first
        payment_id, user_id = payment.id, subscription.user_id

        await self.expire_sweep(now, user_id=user_id)
        if await self._has_live_active(user_id, now, exclude_id=subscription.id):
            logger.warning(
                "Payment %s would create a second active subscription for user %s",
                payment_id,
                user_id,
            )
            await self.db.rollback()
            raise AlreadySubscribed()

        # Paid period runs from the confirmation instant
        subscription.status = SubscriptionStatus.ACTIVE.value
        subscription.start_date = now
        subscription.end_date = add_months(now, subscription.duration_months)
        try:
            await self.db.flush()
        except IntegrityError:
            logger.warning("Payment %s lost the activation race for user %s", payment_id, user_id)
            await self.db.rollback()
            raise AlreadySubscribed()

        user = await self.db.get(User, subscription.user_id)
        plan = await self.db.get(SubscriptionPlan, subscription.plan_id)
        start_date, end_date = subscription.start_date, subscription.end_date

        async def notify():
            await self._send_email(
                "subscription activated",
                self.email.send_subscription_activated_email(
                    to_email=user.email,
                    user_name=user.name,
                    plan_name=plan.name if plan else "Subscription",
                    start_date=start_date,
                    end_date=end_date,
                ),
            )

        return notify

    async def _record_purchase(
        self,
        payment: Payment,
        item_model,
        item_id: str,
        purchase_model,
        item_column: str,
        url_prefix: str,
    ):
        existing = await self.db.execute(
            select(purchase_model.id).where(
                purchase_model.user_id == payment.user_id,
                getattr(purchase_model, item_column) == item_id,
            )
        )
        if existing.scalar_one_or_none():
            logger.warning(
                "User %s already owns %s %s; payment %s needs manual review",
                payment.user_id,
                item_column,
                item_id,
                payment.id,
            )
            return None

        self.db.add(
            purchase_model(
                user_id=payment.user_id,
                payment_id=payment.id,
                **{item_column: item_id},
            )
        )
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise AlreadyPurchased()

        user = await self.db.get(User, payment.user_id)
        item = await self.db.get(item_model, item_id)
        amount, currency = payment.amount, payment.currency

        async def notify():
            if not item:
                return
            await self._send_email(
                "purchase",
                self.email.send_purchase_email(
                    to_email=user.email,
                    user_name=user.name,
                    item_title=item.title,
                    item_url=f"{url_prefix}/{item.slug}",
                    amount=amount,
                    currency=currency,
                ),
            )

        return notify

    async def _send_email(self, kind: str, send) -> None:
        try:
            await send
        except Exception as email_err:
            logger.error("Failed to send %s email: %s", kind, email_err)

    async def fail_payment(self, payment_id: str) -> Payment:
        """PENDING -> FAILED. Payments that already settled are left alone."""
        payment = await self.get_payment(payment_id)
        result = await self.db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING.value)
            .values(status=PaymentStatus.FAILED.value)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(payment)

        if result.rowcount == 1:
            logger.info("Payment %s marked as failed", payment.id)
        else:
            logger.info("Payment %s already %s; failure ignored", payment.id, payment.status)
        return payment

    async def cancel_subscription(
        self,
        principal: Principal,
        subscription_id: str,
        now: datetime | None = None,
    ) -> Subscription:
        """
        Cancel a subscription. Access continues until the untouched end_date.

        Raises:
            NotFoundError: Missing or owned by another account
            ConflictError: Not paid yet, already cancelled or expired
        """
        now = _now(now)
        subscription = await self.db.get(Subscription, subscription_id, populate_existing=True)
        if not subscription or subscription.user_id != principal.user_id:
            raise NotFoundError("Subscription not found")

        current = effective_status(subscription.status, subscription.end_date, now)
        if current == SubscriptionStatus.PENDING:
            # Unpaid checkout; its payment may still activate it
            raise ConflictError("Subscription is not active yet")
        if current == SubscriptionStatus.CANCELLED:
            raise ConflictError("Subscription is already cancelled")
        if current == SubscriptionStatus.EXPIRED:
            raise ConflictError("Subscription has already expired")

        if subscription.external_id:
            try:
                await self.gateway.cancel_recurring(subscription.external_id)
            except GatewayError as e:
                # Local cancellation proceeds regardless
                logger.warning(
                    "Gateway cancellation failed for subscription %s: %s",
                    subscription.id,
                    e.message,
                )

        subscription.status = SubscriptionStatus.CANCELLED.value
        subscription.cancelled_at = now
        await self.db.commit()
        logger.info("Subscription %s cancelled by user %s", subscription.id, principal.user_id)

        user = await self.db.get(User, subscription.user_id)
        await self._send_email(
            "subscription cancelled",
            self.email.send_subscription_cancelled_email(
                to_email=user.email,
                user_name=user.name,
                cancelled_at=now,
                end_date=ensure_aware(subscription.end_date),
            ),
        )
        return subscription

    async def expire_sweep(self, now: datetime | None = None, user_id: str | None = None) -> int:
        """Mark ACTIVE subscriptions past their end_date as EXPIRED. Idempotent."""
        query = (
            update(Subscription)
            .where(
                Subscription.status == SubscriptionStatus.ACTIVE.value,
                Subscription.end_date < _now(now),
            )
            .values(status=SubscriptionStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        if user_id:
            query = query.where(Subscription.user_id == user_id)

        result = await self.db.execute(query)
        expired = result.rowcount or 0
        if expired:
            logger.info("Expired %d subscriptions", expired)
        return expired

    async def list_subscriptions(
        self, principal: Principal, now: datetime | None = None
    ) -> list[dict[str, Any]]:
        """Account's subscriptions, newest first, with effective status."""
        now = _now(now)
        result = await self.db.execute(
            select(Subscription, SubscriptionPlan.name)
            .join(SubscriptionPlan, SubscriptionPlan.id == Subscription.plan_id)
            .where(Subscription.user_id == principal.user_id)
            .order_by(Subscription.created_at.desc())
        )
        return [
            {
                "id": subscription.id,
                "plan_id": subscription.plan_id,
                "plan_name": plan_name,
                "price": subscription.price,
                "duration_months": subscription.duration_months,
                "status": effective_status(
                    subscription.status, subscription.end_date, now
                ).value,
                "start_date": ensure_aware(subscription.start_date),
                "end_date": ensure_aware(subscription.end_date),
                "cancelled_at": subscription.cancelled_at,
                "created_at": subscription.created_at,
            }
            for subscription, plan_name in result.all()
        ]
