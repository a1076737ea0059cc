"""
One-time purchase checkout for PAID blogs and resources.
"""

import logging
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from core.domain.content import AccessType, ContentKind
from core.domain.payment import (
    BlogPurchasePurpose,
    PaymentStatus,
    ResourcePurchasePurpose,
    purpose_to_dict,
    to_minor_units,
)
from core.domain.user import Principal
from core.errors import AlreadyPurchased, ValidationError
from core.interfaces.services import PaymentGateway
from infrastructure.config.settings import settings
from infrastructure.database.models import Blog, Payment, Resource
from services.entitlement import EntitlementResolver
from services.subscription_ledger import CheckoutOrder

logger = logging.getLogger(__name__)


class PurchaseCheckout:
    """Creates processor orders for single-item purchases."""

    def __init__(self, db: AsyncSession, gateway: PaymentGateway):
        self.db = db
        self.gateway = gateway

    async def create_order(
        self,
        principal: Principal,
        kind: ContentKind,
        item_id: str,
    ) -> CheckoutOrder:
        """
        Create an order for a PAID item.

        Raises:
            ValidationError: Item missing, unpublished, not PAID or unpriced
            AlreadyPurchased: Account already owns the item
            GatewayError: Order creation failed (nothing is persisted)
        """
        kind = ContentKind(kind)
        model = Blog if kind == ContentKind.BLOG else Resource
        item = await self.db.get(model, item_id)
        if (
            not item
            or not item.published
            or item.access_type != AccessType.PAID.value
            or not item.price
            or item.price <= 0
        ):
            raise ValidationError(f"Invalid {kind.value} or not available for purchase")

        resolver = EntitlementResolver(self.db)
        if await resolver.has_purchase(principal.user_id, kind, item.id):
            raise AlreadyPurchased()

        if kind == ContentKind.BLOG:
            purpose = BlogPurchasePurpose(blog_id=item.id)
        else:
            purpose = ResourcePurchasePurpose(resource_id=item.id)

        payment_id = str(uuid4())
        currency = settings.payment_currency
        order = await self.gateway.create_order(
            amount_minor_units=to_minor_units(item.price),
            currency=currency,
            receipt=payment_id,
            notes={"kind": purpose.kind, "payment_id": payment_id},
        )

        payment = Payment(
            id=payment_id,
            user_id=principal.user_id,
            amount=item.price,
            currency=currency,
            status=PaymentStatus.PENDING.value,
            purpose=purpose_to_dict(purpose),
            razorpay_order_id=order.id,
        )
        self.db.add(payment)
        await self.db.commit()

        logger.info(
            "Created %s order %s for user %s", purpose.kind, order.id, principal.user_id
        )
        return CheckoutOrder(
            order_id=order.id,
            amount=order.amount,
            currency=order.currency or currency,
            payment_id=payment_id,
            key_id=getattr(self.gateway, "key_id", None),
        )
