"""
Payment domain models.

This module contains the ledger store:
- Payment: Completed gateway charge (immutable)
- Refund: Gateway refund mirrored locally (forward-only status)
- Subscription: Premium access window driven by the lifecycle job
- SubscriptionNotification: Dedupe record for lifecycle notices
- ServiceConfig / ServiceHistory: Service catalog and its audit log
"""

from payments.models.payment import Payment
from payments.models.refund import SYSTEM_ACTOR, Refund
from payments.models.service_config import ServiceConfig, ServiceHistory
from payments.models.subscription import Subscription, SubscriptionNotification

__all__ = [
    "Payment",
    "Refund",
    "SYSTEM_ACTOR",
    "ServiceConfig",
    "ServiceHistory",
    "Subscription",
    "SubscriptionNotification",
]
