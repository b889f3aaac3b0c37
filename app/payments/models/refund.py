"""
Refund model for money returned against a Payment.

The gateway is the system of record for refund status; this row mirrors
it. Status only moves forward, and every save is a compare-and-swap on
the status column so two writers cannot both apply a transition.

Usage:
    from payments.models import Refund

    refund = Refund.objects.create(
        refund_id="rfnd_FP8QHiV938haTz",
        payment=payment,
        amount=25000,
        user_email=payment.user_email,
        processed_by="admin@example.com",
    )

    refund.mark_processed(processed_at=timezone.now())
    refund.save()  # raises ConcurrentTransition if another writer got there first
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from django_fsm import ConcurrentTransitionMixin, FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from toolkit.helpers import format_minor_units

from payments.state_machines import (
    REFUND_IN_FLIGHT_STATUSES,
    RefundSpeed,
    RefundStatus,
)

SYSTEM_ACTOR = "system"


class Refund(ConcurrentTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    Mirrors a gateway refund.

    State Flow:
        INITIATED -> PROCESSING -> PROCESSED
        INITIATED -> PROCESSING -> FAILED
        INITIATED -> PROCESSED | FAILED

    Note:
        Multiple refunds can exist for a Payment. The sum of PROCESSED
        amounts never exceeds the payment amount; RefundStateMachine
        enforces this under a row lock on the payment.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    refund_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Gateway refund ID (rfnd_xxx)",
    )

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="refunds",
        help_text="Payment being refunded",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount = models.PositiveBigIntegerField(
        help_text="Refund amount in minor units (paise)",
    )

    currency = models.CharField(
        max_length=3,
        default="INR",
        help_text="ISO 4217 currency code",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=RefundStatus.INITIATED,
        choices=RefundStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current refund status (managed by FSM)",
    )

    speed_requested = models.CharField(
        max_length=20,
        choices=RefundSpeed.choices,
        default=RefundSpeed.OPTIMUM,
        help_text="Speed requested from the gateway",
    )

    speed_processed = models.CharField(
        max_length=20,
        choices=RefundSpeed.choices,
        null=True,
        blank=True,
        help_text="Speed the gateway actually used",
    )

    # ==========================================================================
    # Refund Details
    # ==========================================================================

    user_email = models.EmailField(
        blank=True,
        default="",
        db_index=True,
        help_text="Email of the refunded user",
    )

    processed_by = models.CharField(
        max_length=255,
        default=SYSTEM_ACTOR,
        help_text="Admin email that initiated the refund, or 'system'",
    )

    reason = models.TextField(
        blank=True,
        default="",
        help_text="Reason for the refund",
    )

    notes = models.JSONField(
        default=dict,
        blank=True,
        help_text="Notes sent to the gateway",
    )

    receipt = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Merchant receipt reference",
    )

    batch_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Gateway batch ID for instant refunds",
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When the gateway completed the refund",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the gateway reported failure",
    )

    # ==========================================================================
    # Error Info
    # ==========================================================================

    error_code = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Gateway error code if failed",
    )

    error_description = models.TextField(
        blank=True,
        default="",
        help_text="Gateway error description if failed",
    )

    raw_response = models.JSONField(
        default=dict,
        blank=True,
        help_text="Last gateway payload for this refund",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Refund"
        verbose_name_plural = "Refunds"
        indexes = [
            models.Index(fields=["payment", "status"], name="payments_re_payment_3d7a2b_idx"),
            models.Index(fields=["status", "processed_at"], name="payments_re_status_5e9c41_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="refund_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Refund({self.refund_id}, {self.status}, {format_minor_units(self.amount, self.currency)})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=RefundStatus.INITIATED,
        target=RefundStatus.PROCESSING,
    )
    def mark_processing(self):
        """Transition: INITIATED -> PROCESSING"""

    @transition(
        field=status,
        source=[RefundStatus.INITIATED, RefundStatus.PROCESSING],
        target=RefundStatus.PROCESSED,
    )
    def mark_processed(self, processed_at=None, speed_processed: str | None = None):
        """
        Mark refund as completed at the gateway.

        Transition: INITIATED/PROCESSING -> PROCESSED

        Args:
            processed_at: Gateway completion time (defaults to now)
            speed_processed: Speed reported by the gateway
        """
        self.processed_at = processed_at or timezone.now()
        if speed_processed:
            self.speed_processed = speed_processed

    @transition(
        field=status,
        source=[RefundStatus.INITIATED, RefundStatus.PROCESSING],
        target=RefundStatus.FAILED,
    )
    def mark_failed(
        self,
        error_code: str,
        error_description: str,
        failed_at=None,
    ):
        """
        Mark refund as failed at the gateway.

        Transition: INITIATED/PROCESSING -> FAILED
        """
        self.error_code = error_code
        self.error_description = error_description
        self.failed_at = failed_at or timezone.now()

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_in_flight(self) -> bool:
        return self.status in REFUND_IN_FLIGHT_STATUSES

    @property
    def processing_hours(self) -> float | None:
        """Hours between creation and gateway completion."""
        if self.processed_at is None:
            return None
        return (self.processed_at - self.created_at).total_seconds() / 3600
