"""
Payment model for completed gateway charges.

A Payment is created once, when the gateway confirms a charge and the
checkout signature verifies. It is never deleted and never changes
amount; refunds hang off it.

Usage:
    from payments.models import Payment

    payment = Payment.objects.create(
        transaction_id="pay_29QQoUBi66xm2f",
        order_id="order_9A33XWu170gUtm",
        user=user,
        user_email=user.email,
        amount=49900,  # paise
        service_code="premium_monthly",
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from toolkit.helpers import format_minor_units

from payments.state_machines import PaymentStatus


class Payment(UUIDPrimaryKeyMixin, BaseModel):
    """
    Immutable record of a charge captured by the gateway.

    Fields:
        transaction_id: Gateway payment ID (pay_xxx), unique
        order_id: Gateway order ID (order_xxx)
        user: Paying user (nullable so history survives user deletion)
        user_email: Email at time of payment
        amount: Charged amount in minor units (paise)
        currency: ISO 4217 currency code
        status: Verification status
        service_code: Catalog entry that was purchased
        receipt: Merchant receipt reference
        notes: Gateway notes passthrough
        verified_at: When the checkout signature was verified
    """

    # ==========================================================================
    # Gateway Identifiers
    # ==========================================================================

    transaction_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Gateway payment ID (pay_xxx)",
    )

    order_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        db_index=True,
        help_text="Gateway order ID (order_xxx)",
    )

    # ==========================================================================
    # Payer
    # ==========================================================================

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="User who paid",
    )

    user_email = models.EmailField(
        db_index=True,
        help_text="Payer email at time of payment",
    )

    # ==========================================================================
    # Amount & Status
    # ==========================================================================

    amount = models.PositiveBigIntegerField(
        help_text="Charged amount in minor units (paise)",
    )

    currency = models.CharField(
        max_length=3,
        default="INR",
        help_text="ISO 4217 currency code",
    )

    status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.VERIFIED,
        db_index=True,
        help_text="Verification status of the charge",
    )

    service_code = models.CharField(
        max_length=100,
        blank=True,
        default="",
        db_index=True,
        help_text="Catalog service that was purchased",
    )

    # ==========================================================================
    # Metadata
    # ==========================================================================

    receipt = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Merchant receipt reference",
    )

    notes = models.JSONField(
        default=dict,
        blank=True,
        help_text="Gateway notes passthrough",
    )

    verified_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the checkout signature was verified",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["status", "created_at"], name="payments_pa_status_8c1f0e_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.transaction_id}, {format_minor_units(self.amount, self.currency)})"
