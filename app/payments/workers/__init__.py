"""
Background workers for payment processing.

This module contains the jobs run by Celery tasks in payments.tasks:
- SubscriptionLifecycleJob: Expiry warnings, expiry and grace expiry

Usage:
    from payments.workers import SubscriptionLifecycleJob

    job = SubscriptionLifecycleJob(notifier=notifier, grace_period=timedelta(hours=72))
    result = job.run()
"""

from payments.workers.subscription_lifecycle import (
    LIFECYCLE_LOCK_KEY,
    PASSES,
    LifecycleStats,
    SubscriptionLifecycleJob,
)

__all__ = [
    "LIFECYCLE_LOCK_KEY",
    "PASSES",
    "LifecycleStats",
    "SubscriptionLifecycleJob",
]
