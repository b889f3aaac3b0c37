"""
Celery tasks for payment processing.

This module provides async tasks for:
- The scheduled subscription lifecycle run (expiry warnings, expiry,
  grace expiry)
- Running a single lifecycle pass on demand
- Pulling a payment's refund status from the gateway
- Scheduling that pull after a refund is initiated

Usage:
    # Scheduled via celery-beat (see migration 0002)
    from payments.tasks import run_subscription_lifecycle
    run_subscription_lifecycle.delay()

    # Re-check a payment's refunds after initiation
    from payments.tasks import sync_payment_refunds
    sync_payment_refunds.apply_async(args=["pay_29QQoUBi66xm2f"], countdown=60)
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings
from django.db import transaction

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_SYNC_RETRIES = 5


# =============================================================================
# Subscription Lifecycle
# =============================================================================


def _run_lifecycle(passes: tuple[str, ...] | None = None) -> dict:
    # Import here to avoid loading the object graph at worker import time
    from payments.composition import build_lifecycle_job

    job = build_lifecycle_job()
    result = job.run(passes) if passes else job.run()
    if not result.success:
        logger.error(
            "Subscription lifecycle task failed",
            extra={"error": result.error, "error_code": result.error_code},
        )
        return {"status": "failed", "error": result.error, "error_code": result.error_code}

    stats = result.data.to_dict()
    return {"status": "skipped" if result.data.lock_skipped else "completed", **stats}


@shared_task
def run_subscription_lifecycle() -> dict:
    """
    Run all lifecycle passes.

    Returns:
        Dict with status ("completed", "skipped" when another run holds
        the lock, or "failed") and the run's counters
    """
    return _run_lifecycle()


@shared_task
def send_subscription_expiry_warnings() -> dict:
    return _run_lifecycle(("expiry_warnings",))


@shared_task
def process_expired_subscriptions() -> dict:
    return _run_lifecycle(("expired",))


@shared_task
def process_grace_expired_subscriptions() -> dict:
    return _run_lifecycle(("grace_expired",))


# =============================================================================
# Refund Sync
# =============================================================================


@shared_task(bind=True, max_retries=MAX_SYNC_RETRIES)
def sync_payment_refunds(self, payment_id: str) -> dict:
    """
    Pull a payment's refunds from the gateway and apply them.

    Retries with exponential backoff while the gateway is unreachable.

    Args:
        payment_id: Gateway payment ID (pay_xxx)
    """
    from payments.composition import build_refund_service

    result = build_refund_service().check_refund_status(payment_id)
    if not result.success:
        logger.warning(
            "Refund sync failed",
            extra={"payment_id": payment_id, "error_code": result.error_code},
        )
        return {"status": "failed", "payment_id": payment_id, "error_code": result.error_code}

    summary = result.data
    if not summary.synced:
        raise self.retry(countdown=min(2**self.request.retries * 30, 900))

    return {
        "status": "synced",
        "payment_id": payment_id,
        "refund_count": len(summary.refunds),
        "total_refunded": summary.total_refunded,
    }


def schedule_refund_sync(payment_id: str) -> None:
    """
    Queue sync_payment_refunds once the current transaction commits.

    Picks up statuses whose webhook arrived before the refund row existed.
    """
    countdown = settings.REFUND_STATUS_SYNC_DELAY_SECONDS
    transaction.on_commit(
        lambda: sync_payment_refunds.apply_async(args=[payment_id], countdown=countdown)
    )
