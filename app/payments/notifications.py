"""
User-facing notification texts and delivery for payment events.

EmailNotificationSender implements toolkit.protocols.NotificationSender
by resolving the user's email through UserDirectory and handing the
message to an EmailSender. notify() wraps any sender so a delivery
failure is logged and reported as False, never raised: notifications
are best effort and must not roll back ledger changes.

Usage:
    from payments.notifications import notify, refund_message

    title, body = refund_message("processed", refund.amount, refund.currency)
    notify(notifier, user_id, title, body, refund_id=refund.refund_id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from toolkit.helpers import format_minor_units

if TYPE_CHECKING:
    from typing import Any

    from authentication.directory import UserDirectory
    from toolkit.protocols import EmailSender, NotificationSender

logger = logging.getLogger(__name__)

RENEW_ACTION = "RENEW_SUBSCRIPTION"


# =============================================================================
# Message Builders
# =============================================================================


def refund_message(status: str, amount: int, currency: str = "INR") -> tuple[str, str]:
    """Title and body for a refund status notice."""
    display = format_minor_units(amount, currency)
    status = str(status).lower()
    if status == "processed":
        return "Refund Completed", f"Your refund of {display} has been processed successfully."
    if status == "failed":
        return (
            "Refund Failed",
            f"Your refund of {display} could not be processed. Please contact support.",
        )
    return (
        "Refund Initiated",
        f"Your refund of {display} is being processed. You'll be notified once completed.",
    )


def expiry_warning_message(days_remaining: int) -> tuple[str, str]:
    suffix = "s" if days_remaining > 1 else ""
    return (
        "Subscription Expiring Soon",
        f"Your premium subscription expires in {days_remaining} day{suffix}. Renew now!",
    )


def expired_message() -> tuple[str, str]:
    return (
        "Subscription Expired",
        "Your premium subscription has expired. Renew now to regain access!",
    )


# =============================================================================
# Delivery
# =============================================================================


def notify(
    notifier: NotificationSender | None,
    user_id,
    title: str,
    body: str,
    **data: Any,
) -> bool:
    """
    Send through notifier, swallowing and logging delivery errors.

    Returns:
        True if the notifier accepted the message
    """
    if notifier is None or user_id is None:
        return False
    try:
        return bool(notifier.send(user_id, title, body, **data))
    except Exception:
        logger.warning(
            "Notification delivery failed",
            extra={"user_id": str(user_id), "title": title},
            exc_info=True,
        )
        return False


class EmailNotificationSender:
    """
    NotificationSender that delivers by email.

    Args:
        email_sender: EmailSender implementation (e.g., toolkit EmailService)
        user_directory: Resolves user_id to an email address
    """

    def __init__(self, email_sender: EmailSender, user_directory: UserDirectory) -> None:
        self.email_sender = email_sender
        self.user_directory = user_directory

    def send(self, user_id, title: str, body: str, **kwargs: Any) -> bool:
        email = self.user_directory.email_for(user_id)
        if not email:
            logger.info(
                "No email on file, notification skipped",
                extra={"user_id": str(user_id), "title": title},
            )
            return False
        try:
            return bool(self.email_sender.send(to=email, subject=title, body_text=body))
        except Exception:
            logger.warning(
                "Email notification failed",
                extra={"user_id": str(user_id), "title": title},
                exc_info=True,
            )
            return False
