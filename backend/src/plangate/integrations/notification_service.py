"""Notification service integration for waitlist emails."""
from datetime import datetime
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class NotificationService:
    """
    Service for sending waitlist notifications by email.

    In production, this would integrate with a provider such as
    SendGrid, Resend or AWS SES.
    """

    def __init__(self, api_key: str | None = None):
        """
        Initialize notification service.

        Args:
            api_key: API key for notification provider
        """
        self.api_key = api_key

    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        template: str | None = None,
        template_vars: dict[str, Any] | None = None,
    ) -> dict:
        """
        Send email notification.

        Args:
            to: Recipient email address
            subject: Email subject
            body: Email body (plain text or HTML)
            template: Optional template name
            template_vars: Optional template variables

        Returns:
            Dictionary with send status
        """
        # TODO: Deliver through the email provider's HTTP API once a provider is chosen
        logger.info(
            "email_notification",
            to=to,
            subject=subject,
            template=template,
            has_api_key=self.api_key is not None,
        )

        return {
            "status": "sent",
            "provider": "mock",
            "to": to,
            "subject": subject,
        }

    async def send_seat_available(
        self,
        email: str,
        name: str | None,
        expires_at: datetime,
    ) -> dict:
        """
        Tell a waitlisted user that a paid seat is open for them.

        Args:
            email: Waitlist email address
            name: Display name, if given at registration
            expires_at: When the offer lapses

        Returns:
            Send status dictionary
        """
        greeting = f"Hi {name}," if name else "Hi,"
        body = f"""
        {greeting}

        A paid seat has opened up and is reserved for you until
        {expires_at:%Y-%m-%d %H:%M} UTC.

        Upgrade before then to keep your spot. After that the seat is
        offered to the next person on the waitlist.
        """

        return await self.send_email(
            to=email,
            subject="Your spot is ready",
            body=body,
            template="waitlist_seat_available",
            template_vars={
                "name": name,
                "expires_at": expires_at.isoformat(),
            },
        )
