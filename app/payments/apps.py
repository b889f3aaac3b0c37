"""
Payments app configuration.

This app provides refund reconciliation infrastructure:
- Ledger store (payments, refunds, subscriptions, service catalog)
- Gateway webhook ingestion with HMAC verification
- Forward-only refund state machine
- Subscription lifecycle job and financial reporting
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
