"""
Subscription model for premium access windows.

A Subscription grants premium access between start_date and end_date.
When end_date passes the lifecycle job moves it into a grace window (or
straight to EXPIRED when no grace window is configured); when the grace
window passes it becomes GRACE_EXPIRED.

Usage:
    from payments.models import Subscription

    subscription = Subscription.objects.create(
        user=user,
        service_code="premium_monthly",
        source_payment=payment,
        start_date=now,
        end_date=now + timedelta(days=30),
    )

    subscription.enter_grace(grace_end_date=subscription.end_date + timedelta(hours=72))
    subscription.save()  # compare-and-swap on status
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import ConcurrentTransitionMixin, FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import NotificationKind, SubscriptionStatus


class Subscription(ConcurrentTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks a user's premium access window.

    State Flow:
        ACTIVE -> GRACE -> GRACE_EXPIRED
        ACTIVE -> EXPIRED (no grace window)
        ACTIVE/GRACE -> CANCELLED

    Terminal states: CANCELLED, EXPIRED, GRACE_EXPIRED
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="subscriptions",
        help_text="Subscribed user",
    )

    service_code = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Catalog service granting access",
    )

    source_payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="subscriptions",
        help_text="Payment that bought this subscription",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=SubscriptionStatus.ACTIVE,
        choices=SubscriptionStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current subscription status (managed by FSM)",
    )

    # ==========================================================================
    # Access Window
    # ==========================================================================

    start_date = models.DateTimeField(
        help_text="Start of premium access",
    )

    end_date = models.DateTimeField(
        db_index=True,
        help_text="End of premium access",
    )

    grace_end_date = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="End of the grace window after end_date",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the subscription was cancelled",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(fields=["user", "status"], name="payments_su_user_id_4b2e8d_idx"),
            models.Index(fields=["status", "end_date"], name="payments_su_status_a17c3f_idx"),
            models.Index(fields=["status", "grace_end_date"], name="payments_su_status_e60b92_idx"),
        ]

    def __str__(self) -> str:
        return f"Subscription({self.id}, {self.service_code}, {self.status})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=SubscriptionStatus.ACTIVE,
        target=SubscriptionStatus.GRACE,
    )
    def enter_grace(self, grace_end_date):
        """Transition: ACTIVE -> GRACE"""
        self.grace_end_date = grace_end_date

    @transition(
        field=status,
        source=SubscriptionStatus.ACTIVE,
        target=SubscriptionStatus.EXPIRED,
    )
    def expire(self):
        """Transition: ACTIVE -> EXPIRED (no grace window configured)"""

    @transition(
        field=status,
        source=SubscriptionStatus.GRACE,
        target=SubscriptionStatus.GRACE_EXPIRED,
    )
    def expire_grace(self):
        """Transition: GRACE -> GRACE_EXPIRED"""

    @transition(
        field=status,
        source=[SubscriptionStatus.ACTIVE, SubscriptionStatus.GRACE],
        target=SubscriptionStatus.CANCELLED,
    )
    def cancel(self):
        """
        Cancel the subscription.

        Transition: ACTIVE/GRACE -> CANCELLED

        Triggered by refunds of the source payment and by admin action.
        """
        self.cancelled_at = timezone.now()

    # ==========================================================================
    # Helper Properties
    # ==========================================================================

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE

    @property
    def has_access(self) -> bool:
        """Premium access continues through the grace window."""
        return self.status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.GRACE)

    def days_remaining(self, now=None) -> int:
        """Whole days until end_date, 0 once it has passed."""
        now = now or timezone.now()
        if self.end_date <= now:
            return 0
        return (self.end_date - now).days


class SubscriptionNotification(UUIDPrimaryKeyMixin, BaseModel):
    """
    Dedupe record for lifecycle notifications.

    One row per (subscription, kind). The lifecycle job creates the row
    before sending, so a notice is sent at most once even across
    overlapping retries.
    """

    subscription = models.ForeignKey(
        Subscription,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="Subscription the notice is about",
    )

    kind = models.CharField(
        max_length=40,
        choices=NotificationKind.choices,
        help_text="Which lifecycle notice",
    )

    delivered = models.BooleanField(
        default=False,
        help_text="Whether the sender accepted the notice",
    )

    sent_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the sender accepted the notice",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription Notification"
        verbose_name_plural = "Subscription Notifications"
        constraints = [
            models.UniqueConstraint(
                fields=["subscription", "kind"],
                name="unique_subscription_notification_kind",
            ),
        ]

    def __str__(self) -> str:
        return f"SubscriptionNotification({self.subscription_id}, {self.kind})"
