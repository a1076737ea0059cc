"""Service interfaces for external integrations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass
class GatewayOrder:
    """Order handle returned by the payment processor."""

    id: str
    amount: int  # minor units (paise)
    currency: str
    receipt: str
    status: str


class PaymentGateway(ABC):
    """Abstract payment processor.

    Implementations translate every processor failure into
    ``core.errors.GatewayError`` (or ``GatewayTimeout``).
    """

    @abstractmethod
    async def create_order(
        self,
        amount_minor_units: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> GatewayOrder:
        """Create a one-time order to be paid by the client."""
        ...

    @abstractmethod
    async def cancel_recurring(self, external_id: str) -> None:
        """Cancel a recurring arrangement at the processor."""
        ...

    @abstractmethod
    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check the signature the client received after checkout."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Check the signature of a raw webhook body."""
        ...


class EmailService(ABC):
    """Abstract service for transactional email. Implementations never raise."""

    @abstractmethod
    async def send_otp_email(self, to_email: str, user_name: str, otp_code: str) -> bool:
        """Send the signup verification code."""
        ...

    @abstractmethod
    async def send_subscription_activated_email(
        self,
        to_email: str,
        user_name: str,
        plan_name: str,
        start_date: datetime,
        end_date: datetime,
    ) -> bool:
        ...

    @abstractmethod
    async def send_subscription_cancelled_email(
        self,
        to_email: str,
        user_name: str,
        cancelled_at: datetime,
        end_date: datetime,
    ) -> bool:
        ...

    @abstractmethod
    async def send_purchase_email(
        self,
        to_email: str,
        user_name: str,
        item_title: str,
        item_url: str,
        amount: Decimal,
        currency: str,
    ) -> bool:
        ...
