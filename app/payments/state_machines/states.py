"""
State enums for payment models.

This module defines all state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Refund States:
    initiated → processing → processed
    initiated → processing → failed
    initiated → processed | failed (gateway may skip processing)

Subscription States:
    active → grace → grace_expired
    active → expired (no grace window configured)
    active | grace → cancelled
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """Verification status of a gateway charge."""

    VERIFIED = "verified", "Verified"
    FAILED = "failed", "Failed"


class RefundStatus(models.TextChoices):
    """
    States for the Refund model lifecycle.

    Forward order: INITIATED < PROCESSING < PROCESSED.
    FAILED is reachable from INITIATED or PROCESSING only.
    Terminal states: PROCESSED, FAILED
    """

    INITIATED = "initiated", "Initiated"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


REFUND_TERMINAL_STATUSES = frozenset([RefundStatus.PROCESSED, RefundStatus.FAILED])
REFUND_IN_FLIGHT_STATUSES = frozenset([RefundStatus.INITIATED, RefundStatus.PROCESSING])


class RefundSpeed(models.TextChoices):
    """Speed requested from / reported by the gateway."""

    OPTIMUM = "optimum", "Optimum"
    NORMAL = "normal", "Normal"
    INSTANT = "instant", "Instant"


class SubscriptionStatus(models.TextChoices):
    """
    States for the Subscription model lifecycle.

    Terminal states: CANCELLED, EXPIRED, GRACE_EXPIRED
    """

    ACTIVE = "active", "Active"
    GRACE = "grace", "Grace Period"
    EXPIRED = "expired", "Expired"
    GRACE_EXPIRED = "grace_expired", "Grace Period Expired"
    CANCELLED = "cancelled", "Cancelled"


class NotificationKind(models.TextChoices):
    """Subscription notifications deduplicated per subscription."""

    EXPIRY_WARNING_3_DAYS = "expiry_warning_3_days", "Expires in 3 days"
    EXPIRY_WARNING_1_DAY = "expiry_warning_1_day", "Expires in 1 day"
    SUBSCRIPTION_EXPIRED = "subscription_expired", "Subscription expired"


class ServiceStatus(models.TextChoices):
    """Availability of a catalog offering."""

    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    ARCHIVED = "archived", "Archived"


class ServiceChangeType(models.TextChoices):
    """Kinds of change recorded in the service catalog audit log."""

    CREATED = "created", "Created"
    UPDATED = "updated", "Updated"
    STATUS_CHANGED = "status_changed", "Status Changed"
    ARCHIVED = "archived", "Archived"


__all__ = [
    "NotificationKind",
    "PaymentStatus",
    "REFUND_IN_FLIGHT_STATUSES",
    "REFUND_TERMINAL_STATUSES",
    "RefundSpeed",
    "RefundStatus",
    "ServiceChangeType",
    "ServiceStatus",
    "SubscriptionStatus",
]
