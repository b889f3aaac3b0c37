"""
Service catalog models.

ServiceConfig is the price list a checkout is validated against.
ServiceHistory is an append-only audit trail of catalog edits.
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import ServiceChangeType, ServiceStatus


class ServiceConfig(UUIDPrimaryKeyMixin, BaseModel):
    """
    A purchasable offering.

    Fields:
        service_code: Stable identifier (e.g., PREMIUM_ONE)
        display_name: User-facing name
        status: Only ACTIVE services can be bought
        amount: Price in minor units (paise)
        currency: ISO 4217 currency code
        duration_days: Length of premium access granted
    """

    service_code = models.CharField(
        max_length=100,
        unique=True,
        help_text="Stable service identifier",
    )

    display_name = models.CharField(
        max_length=255,
        help_text="User-facing name",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="User-facing description",
    )

    status = models.CharField(
        max_length=20,
        choices=ServiceStatus.choices,
        default=ServiceStatus.ACTIVE,
        db_index=True,
        help_text="Availability of the service",
    )

    amount = models.PositiveBigIntegerField(
        help_text="Price in minor units (paise)",
    )

    currency = models.CharField(
        max_length=3,
        default="INR",
        help_text="ISO 4217 currency code",
    )

    duration_days = models.PositiveIntegerField(
        default=30,
        help_text="Days of premium access granted per purchase",
    )

    updated_by = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Admin email of the last editor",
    )

    class Meta:
        ordering = ["service_code"]
        verbose_name = "Service Config"
        verbose_name_plural = "Service Configs"

    def __str__(self) -> str:
        return f"ServiceConfig({self.service_code}, {self.status})"

    @property
    def is_available(self) -> bool:
        return self.status == ServiceStatus.ACTIVE


class ServiceHistory(UUIDPrimaryKeyMixin, BaseModel):
    """
    Append-only record of a catalog change.

    changes maps field name to {"old": ..., "new": ...}.
    """

    service = models.ForeignKey(
        ServiceConfig,
        on_delete=models.CASCADE,
        related_name="history",
        help_text="Service that changed",
    )

    service_code = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Service code at time of change",
    )

    change_type = models.CharField(
        max_length=20,
        choices=ServiceChangeType.choices,
        help_text="Kind of change",
    )

    changed_by = models.CharField(
        max_length=255,
        help_text="Admin email that made the change",
    )

    changes = models.JSONField(
        default=dict,
        blank=True,
        help_text="Field-level old/new values",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Service History"
        verbose_name_plural = "Service History"

    def __str__(self) -> str:
        return f"ServiceHistory({self.service_code}, {self.change_type})"
