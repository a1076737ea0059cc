"""
Plans, subscriptions and payment request/response schemas.
"""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PlanResponse(BaseModel):
    """Subscription plan."""

    id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    duration_months: int
    features: list[str] = Field(default_factory=list)
    active: bool

    model_config = ConfigDict(from_attributes=True)


class PlanCreateRequest(BaseModel):
    """Admin request to create a plan."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    duration_months: int = Field(..., ge=1, le=120)
    features: list[str] = Field(default_factory=list)
    active: bool = True


class PlanUpdateRequest(BaseModel):
    """Admin request to update a plan. Omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    duration_months: Optional[int] = Field(None, ge=1, le=120)
    features: Optional[list[str]] = None
    active: Optional[bool] = None


class SubscriptionCreateRequest(BaseModel):
    plan_id: str


class SubscriptionResponse(BaseModel):
    """Subscription with its effective status."""

    id: str
    plan_id: str
    plan_name: Optional[str] = None
    price: Decimal
    duration_months: int
    status: str
    start_date: datetime
    end_date: datetime
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CheckoutOrderResponse(BaseModel):
    """Order handle for the processor's client-side checkout."""

    order_id: str
    amount: int = Field(..., description="Amount in minor units (paise)")
    currency: str
    payment_id: str
    key_id: Optional[str] = Field(None, description="Public key id for the checkout widget")
    subscription_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PurchaseType(StrEnum):
    BLOG = "blog"
    RESOURCE = "resource"


class PaymentOrderRequest(BaseModel):
    """One-time purchase order request."""

    type: PurchaseType
    item_id: str


class PaymentVerifyRequest(BaseModel):
    """Checkout result reported by the client."""

    payment_id: str
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class PaymentResponse(BaseModel):
    id: str
    status: str
    amount: Decimal
    currency: str
    purpose: dict
    subscription_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
