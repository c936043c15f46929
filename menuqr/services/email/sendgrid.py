"""
SendGrid Email Service

Production implementation using the official SendGrid SDK.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - SENDGRID_API_KEY must be set in environment
    - EMAIL_FROM must be a verified sender
"""

import asyncio
import logging
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from menuqr.core.config import get_settings
from menuqr.services.email.base import BaseEmailService, EmailResult

logger = logging.getLogger(__name__)


class SendGridEmailService(BaseEmailService):
    """Production email service backed by SendGrid."""

    def __init__(self):
        settings = get_settings()

        if settings.sendgrid_api_key:
            self.client = SendGridAPIClient(settings.sendgrid_api_key)
        else:
            self.client = None
            logger.warning("SendGrid credentials not configured")

        self.from_email = settings.email_from
        logger.info("SendGridEmailService initialized")

    @property
    def provider_name(self) -> str:
        return "sendgrid"

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> EmailResult:
        """Send email via SendGrid."""
        if not self.client:
            return EmailResult(
                success=False,
                error_message="SendGrid not configured",
                provider="sendgrid",
            )

        try:
            message = Mail(
                from_email=self.from_email,
                to_emails=to_email,
                subject=subject,
                html_content=body_html,
                plain_text_content=body_text,
            )

            # The SDK is synchronous
            response = await asyncio.to_thread(self.client.send, message)

            logger.info(f"Email sent to {to_email}: {response.status_code}")

            return EmailResult(
                success=response.status_code in [200, 201, 202],
                message_id=response.headers.get("X-Message-Id"),
                provider="sendgrid",
            )

        except Exception as e:
            logger.error(f"SendGrid error: {e}")
            return EmailResult(
                success=False,
                error_message=str(e),
                provider="sendgrid",
            )

    async def health_check(self) -> bool:
        return self.client is not None
