"""
Razorpay payment adapter.

Talks to the Razorpay REST API for order creation and recurring
subscription cancellation, and verifies checkout and webhook signatures.
Every processor failure surfaces as ``GatewayError`` so raw processor
responses never reach end users.
"""

import hashlib
import hmac
import logging
from typing import Any

import httpx

from core.errors import GatewayError, GatewayTimeout
from core.interfaces.services import GatewayOrder, PaymentGateway
from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


def _order_from_api_response(data: dict[str, Any]) -> GatewayOrder:
    """Create an order handle from the Razorpay order entity."""
    return GatewayOrder(
        id=data.get("id", ""),
        amount=int(data.get("amount", 0)),
        currency=data.get("currency", ""),
        receipt=data.get("receipt", "") or "",
        status=data.get("status", ""),
    )


class RazorpayAdapter(PaymentGateway):
    """
    Razorpay API adapter.

    Authenticates with HTTP basic auth (key id / key secret). Order amounts
    are in minor units (paise for INR).
    """

    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        webhook_secret: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize Razorpay adapter.

        Args:
            key_id: Razorpay key id (defaults to settings)
            key_secret: Razorpay key secret (defaults to settings)
            webhook_secret: Webhook signing secret (defaults to settings)
            base_url: API base URL (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
            transport: Optional httpx transport, used by tests
        """
        self.key_id = key_id or settings.razorpay_key_id
        self.key_secret = key_secret or settings.razorpay_key_secret
        self.webhook_secret = webhook_secret or settings.razorpay_webhook_secret
        self.base_url = (base_url or settings.razorpay_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.payment_gateway_timeout
        self._transport = transport

        if not self.key_id or not self.key_secret:
            logger.warning(
                "Razorpay credentials not configured. Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
            )

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make HTTP request to the Razorpay API.

        Raises:
            GatewayTimeout: If the processor does not answer in time
            GatewayError: On any other processor or transport failure
        """
        if not self.key_id or not self.key_secret:
            raise GatewayError("Payment gateway not configured")

        url = f"{self.base_url}/{endpoint}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.key_id, self.key_secret),
                transport=self._transport,
            ) as client:
                logger.info("Making %s request to %s", method, endpoint)
                response = await client.request(method, url, json=data)
                response.raise_for_status()

                if response.status_code == 204 or not response.content:
                    return {}

                return response.json()

        except httpx.TimeoutException as e:
            logger.error("Razorpay request timed out: %s", e)
            raise GatewayTimeout()
        except httpx.HTTPStatusError as e:
            description = ""
            try:
                description = e.response.json().get("error", {}).get("description", "")
            except ValueError:
                pass
            logger.error(
                "Razorpay API error: status=%s description=%s",
                e.response.status_code,
                description or e.response.text[:200],
            )
            # 4xx descriptions are caller-facing (e.g. amount below minimum)
            if 400 <= e.response.status_code < 500 and description:
                raise GatewayError(description)
            raise GatewayError()
        except httpx.RequestError as e:
            logger.error("Razorpay request error: %s", e)
            raise GatewayError()
        except ValueError as e:
            logger.error("Razorpay returned a malformed response: %s", e)
            raise GatewayError()

    async def create_order(
        self,
        amount_minor_units: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> GatewayOrder:
        """
        Create an order for the client-side checkout.

        Args:
            amount_minor_units: Amount in the currency's smallest unit
            currency: ISO currency code
            receipt: Our reference for the order (max 40 characters)
            notes: Free-form key/value notes stored with the order

        Returns:
            GatewayOrder handle
        """
        if amount_minor_units <= 0:
            raise GatewayError("Invalid amount")

        payload: dict[str, Any] = {
            "amount": amount_minor_units,
            "currency": currency,
            "receipt": receipt[:40],
        }
        if notes:
            payload["notes"] = notes

        response = await self._make_request("POST", "orders", data=payload)
        order = _order_from_api_response(response)
        if not order.id:
            logger.error("Razorpay order response missing id")
            raise GatewayError()

        logger.info("Created Razorpay order %s for receipt %s", order.id, receipt)
        return order

    async def cancel_recurring(self, external_id: str) -> None:
        """Cancel a Razorpay subscription immediately."""
        logger.info("Cancelling Razorpay subscription %s", external_id)
        await self._make_request(
            "POST",
            f"subscriptions/{external_id}/cancel",
            data={"cancel_at_cycle_end": 0},
        )

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """
        Verify the checkout signature (HMAC-SHA256 of ``order_id|payment_id``).

        Returns:
            True if signature is valid, False otherwise
        """
        if not self.key_secret:
            raise GatewayError("Payment gateway not configured")

        expected_signature = hmac.new(
            key=self.key_secret.encode("utf-8"),
            msg=f"{order_id}|{payment_id}".encode("utf-8"),
            digestmod=hashlib.sha256,
        ).hexdigest()

        is_valid = hmac.compare_digest(expected_signature, signature or "")
        if not is_valid:
            logger.warning("Payment signature verification failed for order %s", order_id)
        return is_valid

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """
        Verify webhook signature using HMAC SHA256 of the raw body.

        Args:
            payload: Raw webhook payload (bytes)
            signature: Signature from X-Razorpay-Signature header

        Returns:
            True if signature is valid, False otherwise
        """
        if not self.webhook_secret:
            raise GatewayError("Webhook secret not configured")

        expected_signature = hmac.new(
            key=self.webhook_secret.encode("utf-8"),
            msg=payload,
            digestmod=hashlib.sha256,
        ).hexdigest()

        is_valid = hmac.compare_digest(expected_signature, signature or "")
        if is_valid:
            logger.info("Webhook signature verified successfully")
        else:
            logger.warning("Webhook signature verification failed")
        return is_valid


# Factory function for easy instantiation
def create_razorpay_adapter(
    key_id: str | None = None,
    key_secret: str | None = None,
    webhook_secret: str | None = None,
) -> RazorpayAdapter:
    """
    Create a Razorpay adapter instance.

    Args:
        key_id: Razorpay key id (defaults to settings)
        key_secret: Razorpay key secret (defaults to settings)
        webhook_secret: Webhook signing secret (defaults to settings)

    Returns:
        RazorpayAdapter instance
    """
    return RazorpayAdapter(
        key_id=key_id,
        key_secret=key_secret,
        webhook_secret=webhook_secret,
    )
