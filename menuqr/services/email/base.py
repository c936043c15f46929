"""
Email Service Abstract Base Class

Defines the interface for transactional email (password reset, welcome).
Supports both Mock (development) and SendGrid (production) implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from menuqr.core.config import get_settings


@dataclass
class EmailResult:
    """Result from sending an email."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


class BaseEmailService(ABC):
    """Abstract base class for email services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> EmailResult:
        """Send an email."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass

    async def send_password_reset_email(
        self,
        to_email: str,
        restaurant_name: str,
        reset_token: str,
    ) -> EmailResult:
        """Send the reset link; the link is valid for the configured expiry."""
        settings = get_settings()
        reset_url = f"{settings.frontend_url}/reset-password?token={reset_token}"
        minutes = settings.reset_token_expiry_minutes

        body_html = (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            '<h2 style="color: #f59e0b;">Password Reset Request</h2>'
            f"<p>Hello {restaurant_name},</p>"
            "<p>We received a request to reset your password for your MenuQR account.</p>"
            f'<p><a href="{reset_url}">Reset Password</a></p>'
            f'<p style="word-break: break-all; color: #6b7280;">{reset_url}</p>'
            f"<p><strong>This link will expire in {minutes} minutes.</strong></p>"
            "<p>If you didn't request this password reset, please ignore this email. "
            "Your password will remain unchanged.</p>"
            "</div>"
        )
        body_text = (
            f"Hello {restaurant_name},\n\n"
            "We received a request to reset your password for your MenuQR account.\n"
            f"Open the following link to reset your password:\n{reset_url}\n\n"
            f"This link will expire in {minutes} minutes.\n"
        )
        return await self.send_email(
            to_email=to_email,
            subject="Password Reset Request - MenuQR",
            body_html=body_html,
            body_text=body_text,
        )

    async def send_welcome_email(self, to_email: str, restaurant_name: str) -> EmailResult:
        settings = get_settings()
        login_url = f"{settings.frontend_url}/login"

        body_html = (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            '<h2 style="color: #f59e0b;">Welcome to MenuQR!</h2>'
            f"<p>Hello {restaurant_name},</p>"
            "<p>Your account has been successfully created. You can now create and manage "
            "your digital menus, generate QR codes and track orders.</p>"
            f'<p><a href="{login_url}">Get Started</a></p>'
            "</div>"
        )
        body_text = (
            f"Hello {restaurant_name},\n\n"
            "Welcome to MenuQR! Your account has been successfully created.\n"
            f"Visit {login_url} to get started.\n"
        )
        return await self.send_email(
            to_email=to_email,
            subject="Welcome to MenuQR!",
            body_html=body_html,
            body_text=body_text,
        )
