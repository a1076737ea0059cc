"""Payment domain entities."""
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Any, Union


class PaymentStatus(StrEnum):
    """Payment attempt status."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class SubscriptionPurpose:
    """Payment for a recurring plan."""

    plan_id: str
    kind: str = field(default="subscription", init=False)


@dataclass(frozen=True)
class BlogPurchasePurpose:
    """One-time payment for a single blog."""

    blog_id: str
    kind: str = field(default="blog_purchase", init=False)


@dataclass(frozen=True)
class ResourcePurchasePurpose:
    """One-time payment for a single resource."""

    resource_id: str
    kind: str = field(default="resource_purchase", init=False)


PaymentPurpose = Union[SubscriptionPurpose, BlogPurchasePurpose, ResourcePurchasePurpose]

_PURPOSE_TYPES = {
    "subscription": SubscriptionPurpose,
    "blog_purchase": BlogPurchasePurpose,
    "resource_purchase": ResourcePurchasePurpose,
}


def purpose_to_dict(purpose: PaymentPurpose) -> dict[str, Any]:
    """Serialize a purpose into its tagged JSON form."""
    data = dict(purpose.__dict__)
    data["kind"] = purpose.kind
    return data


def purpose_from_dict(data: dict[str, Any]) -> PaymentPurpose:
    """Rebuild a purpose from its tagged JSON form.

    Raises:
        ValueError: If the tag is unknown or fields are missing
    """
    kind = data.get("kind")
    purpose_type = _PURPOSE_TYPES.get(kind)
    if purpose_type is None:
        raise ValueError(f"Unknown payment purpose: {kind!r}")
    fields = {k: v for k, v in data.items() if k != "kind"}
    try:
        return purpose_type(**fields)
    except TypeError as e:
        raise ValueError(f"Malformed {kind} purpose: {e}")


def to_minor_units(amount: Decimal | float | int) -> int:
    """Convert a major-unit amount (e.g. rupees) to minor units (paise)."""
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
