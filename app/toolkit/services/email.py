"""
Email service backed by Django's mail framework.

EmailService satisfies toolkit.protocols.EmailSender. Delivery failures
are logged and reported as False; they never propagate, because every
caller treats email as best effort.

Configuration:
    Email settings are read from Django settings:
    - EMAIL_BACKEND
    - EMAIL_HOST, EMAIL_PORT
    - DEFAULT_FROM_EMAIL

Usage:
    from toolkit.services.email import EmailService

    EmailService().send(
        to="user@example.com",
        subject="Refund Completed",
        body_text="Your refund of 250.00 INR has been processed successfully.",
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.mail import EmailMultiAlternatives

from toolkit.helpers import mask_email

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class EmailService:
    """
    Send plain-text (optionally HTML) email.

    Args:
        from_email: Sender address (defaults to DEFAULT_FROM_EMAIL)
    """

    def __init__(self, from_email: str | None = None) -> None:
        self.from_email = from_email

    def send(
        self,
        to: str | list[str],
        subject: str,
        body_text: str,
        body_html: str | None = None,
        **kwargs: Any,
    ) -> bool:
        """
        Send an email.

        Args:
            to: Recipient email address(es)
            subject: Email subject line
            body_text: Plain text email body
            body_html: HTML email body (optional)
            **kwargs: reply_to is honoured; anything else is ignored

        Returns:
            True if the backend accepted the message
        """
        recipients = [to] if isinstance(to, str) else list(to)
        if not recipients:
            return False

        reply_to = kwargs.get("reply_to")
        email = EmailMultiAlternatives(
            subject=subject,
            body=body_text,
            from_email=self.from_email or settings.DEFAULT_FROM_EMAIL,
            to=recipients,
            reply_to=[reply_to] if reply_to else None,
        )
        if body_html:
            email.attach_alternative(body_html, "text/html")

        masked = [mask_email(address) for address in recipients]
        try:
            email.send(fail_silently=False)
        except Exception:
            logger.error(
                "Failed to send email",
                extra={"recipients": masked, "subject": subject},
                exc_info=True,
            )
            return False

        logger.info("Email sent", extra={"recipients": masked, "subject": subject})
        return True
