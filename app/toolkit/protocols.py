"""
Protocol definitions (interfaces) for outbound collaborators.

Protocols define the contracts the payments domain depends on, so the
concrete delivery mechanism (email, push provider, test double) can be
swapped at composition time.

Available Protocols:
    NotificationSender: Fire-and-forget user notification
    EmailSender: Plain email delivery

Usage:
    from toolkit.protocols import NotificationSender

    def notify_refund(sender: NotificationSender, user_id: int) -> None:
        sender.send(user_id, "Refund Initiated", "Your refund is on its way")

Note:
    Implementations must not raise for delivery failures: they return
    False and log instead. Callers treat notifications as best effort.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from typing import Any


@runtime_checkable
class NotificationSender(Protocol):
    """
    Protocol for notification sending services.

    Example:
        class PushNotificationSender:
            def send(self, user_id: int, title: str, body: str, **kwargs) -> bool:
                return push_client.send(token_for(user_id), title, body)
    """

    def send(
        self,
        user_id: int,
        title: str,
        body: str,
        **kwargs: Any,
    ) -> bool:
        """
        Send notification to user.

        Args:
            user_id: Recipient user ID
            title: Notification title
            body: Notification body
            **kwargs: Data payload (action, days_remaining, etc.)

        Returns:
            True if the notification was handed to the transport
        """
        ...


@runtime_checkable
class EmailSender(Protocol):
    """Protocol for email sending services."""

    def send(
        self,
        to: str | list[str],
        subject: str,
        body_text: str,
        body_html: str | None = None,
        **kwargs: Any,
    ) -> bool:
        """
        Send email.

        Returns:
            True if email was sent successfully
        """
        ...
