"""
Mock Email Service

Simulates email delivery for development.
No actual messages are sent - they are logged and kept in `outbox`.
"""

import asyncio
import random
import uuid
import logging
from typing import Optional

from menuqr.services.email.base import BaseEmailService, EmailResult

logger = logging.getLogger(__name__)


class MockEmailService(BaseEmailService):
    """Mock email service for development."""

    def __init__(self, failure_rate: float = 0.0, simulate_latency: bool = True):
        self.failure_rate = failure_rate
        self.simulate_latency = simulate_latency
        self.outbox: list[dict] = []
        logger.info(f"MockEmailService initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> None:
        """Simulate network latency."""
        if self.simulate_latency:
            await asyncio.sleep(random.uniform(0.05, 0.2))

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> EmailResult:
        """Simulate sending email."""
        await self._simulate_latency()

        if self._should_fail():
            logger.warning(f"Mock email failed (simulated) to {to_email}")
            return EmailResult(
                success=False,
                error_message="Simulated email failure",
                provider="mock",
            )

        message_id = f"email_mock_{uuid.uuid4().hex[:12]}"
        self.outbox.append({
            "message_id": message_id,
            "to": to_email,
            "subject": subject,
            "html": body_html,
            "text": body_text,
        })
        logger.info(f"Mock email sent to {to_email}: {subject} (ID: {message_id})")

        return EmailResult(success=True, message_id=message_id, provider="mock")

    async def health_check(self) -> bool:
        return True
