"""
State machine enums and helpers for payment models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    REFUND_IN_FLIGHT_STATUSES,
    REFUND_TERMINAL_STATUSES,
    NotificationKind,
    PaymentStatus,
    RefundSpeed,
    RefundStatus,
    ServiceChangeType,
    ServiceStatus,
    SubscriptionStatus,
)

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
