"""
Resend email service adapter.
"""

import logging
from datetime import datetime
from decimal import Decimal
from html import escape

import resend

from core.interfaces.services import EmailService
from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


class ResendEmailService(EmailService):
    """Email service using Resend API.

    Every send is best-effort: failures are logged and reported as False.
    Without an API key (development) messages are logged instead of sent.
    """

    def __init__(self):
        if settings.resend_api_key:
            resend.api_key = settings.resend_api_key
        self._from_email = settings.resend_from_email
        self._frontend_url = settings.frontend_url
        self._app_name = settings.app_name

    def _send(self, to_email: str, subject: str, html: str, kind: str) -> bool:
        try:
            resend.Emails.send({
                "from": self._from_email,
                "to": to_email,
                "subject": subject,
                "html": html,
            })
            return True
        except Exception as e:
            logger.error("Failed to send %s email to %s: %s", kind, to_email, e)
            return False

    async def send_otp_email(
        self,
        to_email: str,
        user_name: str,
        otp_code: str,
    ) -> bool:
        """
        Send the signup verification code.

        Args:
            to_email: Recipient email address
            user_name: User's name for personalization
            otp_code: 6-digit one-time code

        Returns:
            True if sent successfully, False otherwise
        """
        if not settings.resend_api_key:
            logger.info("[DEV] OTP for %s: %s", to_email, otp_code)
            return True

        return self._send(
            to_email,
            f"Your {self._app_name} verification code",
            self._get_otp_email_html(user_name, otp_code),
            "otp",
        )

    async def send_subscription_activated_email(
        self,
        to_email: str,
        user_name: str,
        plan_name: str,
        start_date: datetime,
        end_date: datetime,
    ) -> bool:
        """Send confirmation that a subscription is now active."""
        if not settings.resend_api_key:
            logger.info("[DEV] Subscription activated email for %s (%s)", to_email, plan_name)
            return True

        body = f"""
                <p style="color: #4A4A68; line-height: 1.6;">
                    Hi {escape(user_name)},<br><br>
                    Your <strong>{escape(plan_name)}</strong> subscription is now active.
                    You have full access to all subscriber content from
                    {start_date:%d %b %Y} until {end_date:%d %b %Y}.
                </p>
                {self._button(f"{self._frontend_url}/dashboard", "Start Reading")}
        """
        return self._send(
            to_email,
            "Your subscription is active",
            self._wrap_html("Subscription activated", body),
            "subscription activated",
        )

    async def send_subscription_cancelled_email(
        self,
        to_email: str,
        user_name: str,
        cancelled_at: datetime,
        end_date: datetime,
    ) -> bool:
        """Send notice that a subscription was cancelled."""
        if not settings.resend_api_key:
            logger.info("[DEV] Subscription cancelled email for %s", to_email)
            return True

        body = f"""
                <p style="color: #4A4A68; line-height: 1.6;">
                    Hi {escape(user_name)},<br><br>
                    Your subscription was cancelled on {cancelled_at:%d %b %Y}.
                    You keep access to subscriber content until {end_date:%d %b %Y}.
                </p>
                {self._button(f"{self._frontend_url}/subscription", "View Plans")}
        """
        return self._send(
            to_email,
            "Your subscription has been cancelled",
            self._wrap_html("Subscription cancelled", body),
            "subscription cancelled",
        )

    async def send_purchase_email(
        self,
        to_email: str,
        user_name: str,
        item_title: str,
        item_url: str,
        amount: Decimal,
        currency: str,
    ) -> bool:
        """Send receipt for a one-time content purchase."""
        if not settings.resend_api_key:
            logger.info("[DEV] Purchase email for %s: %s", to_email, item_title)
            return True

        body = f"""
                <p style="color: #4A4A68; line-height: 1.6;">
                    Hi {escape(user_name)},<br><br>
                    Thanks for your purchase of <strong>{escape(item_title)}</strong>
                    ({currency} {amount}). It is yours to read any time.
                </p>
                {self._button(f"{self._frontend_url}{item_url}", "Open Now")}
        """
        return self._send(
            to_email,
            f"Your purchase: {item_title}",
            self._wrap_html("Purchase confirmed", body),
            "purchase",
        )

    def _get_otp_email_html(self, user_name: str, otp_code: str) -> str:
        """Generate verification code email HTML."""
        body = f"""
                <p style="color: #4A4A68; line-height: 1.6; margin-bottom: 24px;">
                    Hi {escape(user_name)},<br><br>
                    Use the code below to verify your email address.
                </p>

                <div style="text-align: center; margin: 32px 0;">
                    <span style="display: inline-block; background: #F8F9FA; color: #1A1A2E; padding: 16px 32px; border-radius: 12px; font-size: 32px; letter-spacing: 8px; font-weight: 600;">
                        {otp_code}
                    </span>
                </div>

                <p style="color: #8B8BA7; font-size: 14px; line-height: 1.6;">
                    If you didn't create an account, you can safely ignore this email.
                </p>

                <hr style="border: none; border-top: 1px solid #F1F3F5; margin: 32px 0;">

                <p style="color: #8B8BA7; font-size: 12px; text-align: center;">
                    This code will expire in {settings.otp_expire_minutes} minutes.
                </p>
        """
        return self._wrap_html("Verify your email address", body)

    @staticmethod
    def _button(url: str, label: str) -> str:
        return f"""
                <div style="text-align: center; margin: 32px 0;">
                    <a href="{url}" style="display: inline-block; background: #da7756; color: white; text-decoration: none; padding: 14px 32px; border-radius: 12px; font-weight: 500;">
                        {label}
                    </a>
                </div>
        """

    def _wrap_html(self, heading: str, body: str) -> str:
        """Wrap body markup in the shared email layout."""
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <meta name="viewport" content="width=device-width, initial-scale=1.0">
        </head>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background-color: #FFF8F0; padding: 40px 20px;">
            <div style="max-width: 560px; margin: 0 auto; background: white; border-radius: 16px; padding: 40px; box-shadow: 0 2px 8px rgba(0,0,0,0.05);">
                <div style="text-align: center; margin-bottom: 32px;">
                    <h1 style="color: #1A1A2E; font-size: 24px; margin: 16px 0 0;">{self._app_name}</h1>
                </div>

                <h2 style="color: #1A1A2E; font-size: 20px; margin-bottom: 16px;">{heading}</h2>
                {body}
            </div>
        </body>
        </html>
        """


# Singleton instance
email_service = ResendEmailService()
