"""
Unit tests for the SubscriptionLedger state machine and one-time checkout.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import add_subscription, sign_payment
from core.domain.content import ContentKind
from core.domain.payment import PaymentStatus
from core.domain.subscription import SubscriptionStatus, add_months
from core.domain.user import Principal
from core.errors import (
    AlreadyPurchased,
    AlreadySubscribed,
    ConflictError,
    GatewayError,
    NotFoundError,
    PlanInactive,
    ValidationError,
)
from infrastructure.database.models import (
    Blog,
    BlogPurchase,
    Payment,
    Resource,
    Subscription,
    SubscriptionPlan,
    User,
)
from services.checkout import PurchaseCheckout
from services.entitlement import EntitlementResolver
from services.subscription_ledger import SubscriptionLedger

pytestmark = pytest.mark.asyncio


@pytest.fixture
def ledger(db_session: AsyncSession, payment_gateway, email_service) -> SubscriptionLedger:
    return SubscriptionLedger(db_session, payment_gateway, email=email_service)


def principal_of(user: User) -> Principal:
    return Principal(user_id=user.id, role=user.role)


async def _count(db_session: AsyncSession, model) -> int:
    return (await db_session.execute(select(func.count()).select_from(model))).scalar()


async def _confirm(ledger: SubscriptionLedger, order, user: User, payment_ref="pay_test0001", now=None):
    return await ledger.confirm_payment(
        payment_id=order.payment_id,
        razorpay_order_id=order.order_id,
        razorpay_payment_id=payment_ref,
        razorpay_signature=sign_payment(order.order_id, payment_ref),
        principal=principal_of(user),
        now=now,
    )


class TestCreateSubscription:
    async def test_creates_pending_rows_after_order(
        self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User, razorpay_stub
    ):
        order = await ledger.create_subscription(principal_of(test_user), plan.id)

        assert order.amount == 49900
        assert order.currency == "INR"
        assert order.key_id == "rzp_test_key"
        subscription = await db_session.get(Subscription, order.subscription_id)
        assert subscription.status == SubscriptionStatus.PENDING.value
        assert subscription.price == plan.price
        payment = await db_session.get(Payment, order.payment_id)
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.razorpay_order_id == order.order_id
        assert payment.purpose == {"kind": "subscription", "plan_id": plan.id}
        assert len(razorpay_stub.order_requests) == 1

    async def test_gateway_failure_persists_nothing(
        self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User, razorpay_stub
    ):
        razorpay_stub.fail_with = 500

        with pytest.raises(GatewayError):
            await ledger.create_subscription(principal_of(test_user), plan.id)

        assert await _count(db_session, Subscription) == 0
        assert await _count(db_session, Payment) == 0

    async def test_inactive_plan(self, ledger, inactive_plan: SubscriptionPlan, test_user: User):
        with pytest.raises(PlanInactive):
            await ledger.create_subscription(principal_of(test_user), inactive_plan.id)

    async def test_unknown_plan(self, ledger, test_user: User):
        with pytest.raises(PlanInactive):
            await ledger.create_subscription(principal_of(test_user), "missing")

    async def test_already_subscribed(
        self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User, razorpay_stub
    ):
        await add_subscription(db_session, test_user, plan, SubscriptionStatus.ACTIVE)

        with pytest.raises(AlreadySubscribed):
            await ledger.create_subscription(principal_of(test_user), plan.id)
        assert razorpay_stub.order_requests == []

    async def test_lapsed_active_does_not_block(
        self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User
    ):
        start = datetime.now(UTC) - timedelta(days=90)
        await add_subscription(db_session, test_user, plan, SubscriptionStatus.ACTIVE, start=start)

        order = await ledger.create_subscription(principal_of(test_user), plan.id)
        assert order.subscription_id


class TestConfirmPayment:
    async def test_activates_subscription(
        self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User, email_service
    ):
        order = await ledger.create_subscription(principal_of(test_user), plan.id)
        confirmed_at = datetime.now(UTC) + timedelta(hours=2)

        payment = await _confirm(ledger, order, test_user, now=confirmed_at)

        assert payment.status == PaymentStatus.SUCCESS.value
        assert payment.razorpay_payment_id == "pay_test0001"
        subscription = await db_session.get(Subscription, order.subscription_id, populate_existing=True)
        assert subscription.status == SubscriptionStatus.ACTIVE.value
        # Paid period runs from the confirmation instant
        assert subscription.end_date.replace(tzinfo=UTC) == add_months(confirmed_at, 1)
        activated = email_service.of_kind("subscription_activated")
        assert len(activated) == 1
        assert activated[0]["plan_name"] == "Monthly"

    async def test_double_confirmation_is_noop(
        self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User, email_service
    ):
        order = await ledger.create_subscription(principal_of(test_user), plan.id)
        await _confirm(ledger, order, test_user)

        payment = await _confirm(ledger, order, test_user)

        assert payment.status == PaymentStatus.SUCCESS.value
        assert await _count(db_session, Subscription) == 1
        assert len(email_service.of_kind("subscription_activated")) == 1

    async def test_bad_signature(self, ledger, plan: SubscriptionPlan, test_user: User):
        order = await ledger.create_subscription(principal_of(test_user), plan.id)

        with pytest.raises(ValidationError):
            await ledger.confirm_payment(
                payment_id=order.payment_id,
                razorpay_order_id=order.order_id,
                razorpay_payment_id="pay_test0001",
                razorpay_signature="forged",
                principal=principal_of(test_user),
            )

    async def test_order_mismatch(self, ledger, plan: SubscriptionPlan, test_user: User):
        order = await ledger.create_subscription(principal_of(test_user), plan.id)

        with pytest.raises(ValidationError):
            await ledger.confirm_payment(
                payment_id=order.payment_id,
                razorpay_order_id="order_other",
                razorpay_payment_id="pay_test0001",
                razorpay_signature=sign_payment("order_other", "pay_test0001"),
                principal=principal_of(test_user),
            )

    async def test_other_account_cannot_confirm(
        self, ledger, plan: SubscriptionPlan, test_user: User, other_user: User
    ):
        order = await ledger.create_subscription(principal_of(test_user), plan.id)

        with pytest.raises(NotFoundError):
            await _confirm(ledger, order, other_user)

    async def test_capture_after_failed_attempt_activates(
        self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User
    ):
        order = await ledger.create_subscription(principal_of(test_user), plan.id)
        await ledger.fail_payment(order.payment_id)

        payment = await _confirm(ledger, order, test_user, payment_ref="pay_test0002")

        assert payment.status == PaymentStatus.SUCCESS.value
        assert payment.razorpay_payment_id == "pay_test0002"
        subscription = await db_session.get(Subscription, order.subscription_id, populate_existing=True)
        assert subscription.status == SubscriptionStatus.ACTIVE.value

    async def test_second_activation_rejected(
        self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User
    ):
        first = await ledger.create_subscription(principal_of(test_user), plan.id)
        second = await ledger.create_subscription(principal_of(test_user), plan.id)
        await _confirm(ledger, first, test_user)

        with pytest.raises(AlreadySubscribed):
            await _confirm(ledger, second, test_user, payment_ref="pay_test0002")

        payment = await db_session.get(Payment, second.payment_id, populate_existing=True)
        assert payment.status == PaymentStatus.PENDING.value
        subscription = await db_session.get(Subscription, second.subscription_id, populate_existing=True)
        assert subscription.status == SubscriptionStatus.PENDING.value

    async def test_email_failure_does_not_fail_confirmation(
        self, ledger, plan: SubscriptionPlan, test_user: User, email_service
    ):
        email_service.send_subscription_activated_email = AsyncMock(side_effect=RuntimeError("down"))
        order = await ledger.create_subscription(principal_of(test_user), plan.id)

        payment = await _confirm(ledger, order, test_user)
        assert payment.status == PaymentStatus.SUCCESS.value


class TestFailPayment:
    async def test_pending_becomes_failed(self, ledger, plan: SubscriptionPlan, test_user: User):
        order = await ledger.create_subscription(principal_of(test_user), plan.id)

        payment = await ledger.fail_payment(order.payment_id)
        assert payment.status == PaymentStatus.FAILED.value

    async def test_success_is_left_alone(self, ledger, plan: SubscriptionPlan, test_user: User):
        order = await ledger.create_subscription(principal_of(test_user), plan.id)
        await _confirm(ledger, order, test_user)

        payment = await ledger.fail_payment(order.payment_id)
        assert payment.status == PaymentStatus.SUCCESS.value


class TestCancelSubscription:
    async def test_cancel_keeps_end_date(
        self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User, email_service
    ):
        subscription = await add_subscription(db_session, test_user, plan, SubscriptionStatus.ACTIVE)
        end_date = subscription.end_date

        cancelled = await ledger.cancel_subscription(principal_of(test_user), subscription.id)

        assert cancelled.status == SubscriptionStatus.CANCELLED.value
        assert cancelled.cancelled_at is not None
        assert cancelled.end_date.replace(tzinfo=UTC) == end_date
        assert len(email_service.of_kind("subscription_cancelled")) == 1

    async def test_cancel_twice(self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User):
        subscription = await add_subscription(db_session, test_user, plan, SubscriptionStatus.ACTIVE)
        await ledger.cancel_subscription(principal_of(test_user), subscription.id)

        with pytest.raises(ConflictError):
            await ledger.cancel_subscription(principal_of(test_user), subscription.id)

    async def test_cancel_lapsed(self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User):
        start = datetime.now(UTC) - timedelta(days=90)
        subscription = await add_subscription(
            db_session, test_user, plan, SubscriptionStatus.ACTIVE, start=start
        )

        with pytest.raises(ConflictError):
            await ledger.cancel_subscription(principal_of(test_user), subscription.id)

    async def test_cancel_unpaid_is_refused(
        self,
        ledger,
        db_session: AsyncSession,
        plan: SubscriptionPlan,
        test_user: User,
        subscription_blog: Blog,
    ):
        order = await ledger.create_subscription(principal_of(test_user), plan.id)

        with pytest.raises(ConflictError):
            await ledger.cancel_subscription(principal_of(test_user), order.subscription_id)

        subscription = await db_session.get(Subscription, order.subscription_id, populate_existing=True)
        assert subscription.status == SubscriptionStatus.PENDING.value
        decision = await EntitlementResolver(db_session).resolve(principal_of(test_user), subscription_blog)
        assert not decision.has_access

    async def test_payment_after_refused_cancel_activates(
        self,
        ledger,
        db_session: AsyncSession,
        plan: SubscriptionPlan,
        test_user: User,
        subscription_blog: Blog,
    ):
        order = await ledger.create_subscription(principal_of(test_user), plan.id)
        with pytest.raises(ConflictError):
            await ledger.cancel_subscription(principal_of(test_user), order.subscription_id)

        await _confirm(ledger, order, test_user)

        subscription = await db_session.get(Subscription, order.subscription_id, populate_existing=True)
        assert subscription.status == SubscriptionStatus.ACTIVE.value
        decision = await EntitlementResolver(db_session).resolve(principal_of(test_user), subscription_blog)
        assert decision.has_access

    async def test_cancel_other_accounts_subscription(
        self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User, other_user: User
    ):
        subscription = await add_subscription(db_session, test_user, plan, SubscriptionStatus.ACTIVE)

        with pytest.raises(NotFoundError):
            await ledger.cancel_subscription(principal_of(other_user), subscription.id)

    async def test_gateway_cancel_failure_is_swallowed(
        self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User, razorpay_stub
    ):
        subscription = await add_subscription(db_session, test_user, plan, SubscriptionStatus.ACTIVE)
        subscription.external_id = "sub_test0001"
        await db_session.commit()
        razorpay_stub.fail_with = 502

        cancelled = await ledger.cancel_subscription(principal_of(test_user), subscription.id)
        assert cancelled.status == SubscriptionStatus.CANCELLED.value


class TestExpireSweep:
    async def test_expires_only_lapsed_active(
        self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User, other_user: User
    ):
        old = datetime.now(UTC) - timedelta(days=90)
        lapsed = await add_subscription(db_session, test_user, plan, SubscriptionStatus.ACTIVE, start=old)
        live = await add_subscription(db_session, other_user, plan, SubscriptionStatus.ACTIVE)
        cancelled = await add_subscription(
            db_session, other_user, plan, SubscriptionStatus.CANCELLED, start=old
        )

        assert await ledger.expire_sweep() == 1
        await db_session.commit()
        assert await ledger.expire_sweep() == 0

        for row in (lapsed, live, cancelled):
            await db_session.refresh(row)
        assert lapsed.status == SubscriptionStatus.EXPIRED.value
        assert live.status == SubscriptionStatus.ACTIVE.value
        assert cancelled.status == SubscriptionStatus.CANCELLED.value

    async def test_listing_reports_effective_status(
        self, ledger, db_session: AsyncSession, plan: SubscriptionPlan, test_user: User
    ):
        old = datetime.now(UTC) - timedelta(days=90)
        await add_subscription(db_session, test_user, plan, SubscriptionStatus.ACTIVE, start=old)

        listed = await ledger.list_subscriptions(principal_of(test_user))

        assert len(listed) == 1
        assert listed[0]["status"] == "expired"
        assert listed[0]["plan_name"] == "Monthly"


class TestPurchaseCheckout:
    async def test_blog_purchase_flow(
        self, ledger, db_session: AsyncSession, payment_gateway, paid_blog: Blog, test_user: User, email_service
    ):
        checkout = PurchaseCheckout(db_session, payment_gateway)

        order = await checkout.create_order(principal_of(test_user), ContentKind.BLOG, paid_blog.id)
        assert order.amount == 14900
        assert order.subscription_id is None

        await _confirm(ledger, order, test_user)

        purchases = (await db_session.execute(select(BlogPurchase))).scalars().all()
        assert [(p.user_id, p.blog_id, p.payment_id) for p in purchases] == [
            (test_user.id, paid_blog.id, order.payment_id)
        ]
        sent = email_service.of_kind("purchase")
        assert sent[0]["item_url"] == f"/blogs/{paid_blog.slug}"

        with pytest.raises(AlreadyPurchased):
            await checkout.create_order(principal_of(test_user), ContentKind.BLOG, paid_blog.id)

    async def test_non_paid_item_rejected(
        self, db_session: AsyncSession, payment_gateway, free_blog: Blog, test_user: User
    ):
        checkout = PurchaseCheckout(db_session, payment_gateway)
        with pytest.raises(ValidationError):
            await checkout.create_order(principal_of(test_user), ContentKind.BLOG, free_blog.id)

    async def test_kind_must_match_item(
        self, db_session: AsyncSession, payment_gateway, paid_resource: Resource, test_user: User
    ):
        checkout = PurchaseCheckout(db_session, payment_gateway)
        with pytest.raises(ValidationError):
            await checkout.create_order(principal_of(test_user), ContentKind.BLOG, paid_resource.id)

    async def test_gateway_failure_persists_nothing(
        self, db_session: AsyncSession, payment_gateway, paid_resource: Resource, test_user: User, razorpay_stub
    ):
        razorpay_stub.fail_with = 400
        checkout = PurchaseCheckout(db_session, payment_gateway)

        with pytest.raises(GatewayError, match="Order rejected"):
            await checkout.create_order(principal_of(test_user), ContentKind.RESOURCE, paid_resource.id)
        assert await _count(db_session, Payment) == 0
