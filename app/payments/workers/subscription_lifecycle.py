"""
Subscription lifecycle job.

Moves subscriptions through their time-driven states and sends the
expiry notices that go with them. Runs from celery-beat every
SUBSCRIPTION_EXPIRY_CHECK_INTERVAL_MINUTES; runs never overlap.

Passes (in order):
    1. Expiry warnings: ACTIVE subscriptions ending within 3 days / 1 day
    2. Expiry: ACTIVE past end_date -> GRACE (or EXPIRED with no grace window)
    3. Grace expiry: GRACE past grace_end_date -> GRACE_EXPIRED

Every pass is safe to re-run. A transition is a compare-and-swap on
status, so a subscription changed by someone else mid-run is skipped, and
each notice is claimed through a unique SubscriptionNotification row
before it is sent, so no user gets the same notice twice.

Usage:
    from payments.composition import build_lifecycle_job

    result = build_lifecycle_job().run()
    if result.success:
        print(result.data.to_dict())
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.utils import timezone
from django_fsm import ConcurrentTransition

from core.services import BaseService, ServiceResult
from toolkit.helpers import mask_email

from payments.exceptions import LockAcquisitionError
from payments.locks import DistributedLock
from payments.models import Subscription, SubscriptionNotification
from payments.notifications import RENEW_ACTION, expired_message, expiry_warning_message, notify
from payments.state_machines import NotificationKind, SubscriptionStatus

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractContextManager
    from datetime import datetime

    from authentication.directory import UserDirectory
    from toolkit.protocols import NotificationSender


# =============================================================================
# Constants
# =============================================================================

LIFECYCLE_LOCK_KEY = "subscription_lifecycle"

# Lock TTL must outlive the longest expected run (seconds)
DEFAULT_LOCK_TTL = 600

DEFAULT_GRACE_PERIOD = timedelta(hours=72)

# (kind, days before end_date)
EXPIRY_WARNINGS = (
    (NotificationKind.EXPIRY_WARNING_1_DAY, 1),
    (NotificationKind.EXPIRY_WARNING_3_DAYS, 3),
)

# Pass names accepted by run(), in execution order
PASSES = ("expiry_warnings", "expired", "grace_expired")


@dataclass
class LifecycleStats:
    """
    Counts from one run.

    Attributes:
        skipped: Subscriptions whose status changed under us (CAS lost)
        lock_skipped: The run did nothing because another run held the lock
    """

    warnings_sent: int = 0
    grace_started: int = 0
    expired: int = 0
    grace_expired: int = 0
    expired_notices_sent: int = 0
    notification_failures: int = 0
    skipped: int = 0
    lock_skipped: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class SubscriptionLifecycleJob(BaseService):
    """
    Args:
        notifier: NotificationSender for expiry notices
        user_directory: Used to mask the recipient in logs
        lock_factory: Callable(key, ttl=, blocking=) returning a context
            manager that raises LockAcquisitionError when the lock is held
        clock: Returns the current aware datetime
        grace_period: Access kept after end_date; zero expires immediately
        lock_ttl: Distributed lock TTL in seconds
    """

    def __init__(
        self,
        notifier: NotificationSender | None = None,
        user_directory: UserDirectory | None = None,
        lock_factory: Callable[..., AbstractContextManager] = DistributedLock,
        clock: Callable[[], datetime] = timezone.now,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
        lock_ttl: int = DEFAULT_LOCK_TTL,
    ) -> None:
        self.notifier = notifier
        self.user_directory = user_directory
        self.lock_factory = lock_factory
        self.clock = clock
        self.grace_period = grace_period
        self.lock_ttl = lock_ttl

    def run(self, passes: tuple[str, ...] = PASSES) -> ServiceResult[LifecycleStats]:
        """
        Run the given passes, in order, under the lifecycle lock.

        A run that finds the lock held does nothing and reports
        lock_skipped=True.
        """
        logger = self.get_logger()
        stats = LifecycleStats()

        unknown = set(passes) - set(PASSES)
        if unknown:
            return ServiceResult.failure(
                "Unknown lifecycle pass",
                error_code="VALIDATION_ERROR",
                details={"passes": sorted(unknown)},
            )

        try:
            with self.lock_factory(LIFECYCLE_LOCK_KEY, ttl=self.lock_ttl, blocking=False):
                now = self.clock()
                for name in passes:
                    getattr(self, f"process_{name}")(now, stats)
        except LockAcquisitionError:
            logger.info("Subscription lifecycle run already in progress, skipping")
            stats.lock_skipped = True
            return ServiceResult.success(stats)
        except Exception as e:
            return self.handle_exception(e, "Subscription lifecycle run failed")

        logger.info("Subscription lifecycle run complete", extra={"stats": stats.to_dict()})
        return ServiceResult.success(stats)

    # =========================================================================
    # Passes
    # =========================================================================

    def process_expiry_warnings(self, now: datetime | None = None, stats: LifecycleStats | None = None) -> LifecycleStats:
        """Warn ACTIVE subscriptions ending within 3 days, and again within 1 day."""
        now = now or self.clock()
        stats = stats or LifecycleStats()
        horizon = now + timedelta(days=max(days for _, days in EXPIRY_WARNINGS))

        ending_soon = Subscription.objects.filter(
            status=SubscriptionStatus.ACTIVE,
            end_date__gt=now,
            end_date__lte=horizon,
        ).order_by("end_date")

        for subscription in ending_soon.iterator():
            kind, days = self._warning_for(subscription, now)
            title, body = expiry_warning_message(days)
            self._send_once(subscription, kind, title, body, stats, counter="warnings_sent")
        return stats

    def process_expired(self, now: datetime | None = None, stats: LifecycleStats | None = None) -> LifecycleStats:
        """ACTIVE past end_date -> GRACE, or EXPIRED when there is no grace window."""
        now = now or self.clock()
        stats = stats or LifecycleStats()
        logger = self.get_logger()

        due = Subscription.objects.filter(status=SubscriptionStatus.ACTIVE, end_date__lt=now).order_by("end_date")

        for subscription in due.iterator():
            try:
                with transaction.atomic():
                    if self.grace_period > timedelta(0):
                        subscription.enter_grace(grace_end_date=subscription.end_date + self.grace_period)
                    else:
                        subscription.expire()
                    subscription.save()
            except ConcurrentTransition:
                stats.skipped += 1
                logger.info(
                    "Subscription changed during expiry, skipping",
                    extra={"subscription_id": str(subscription.pk)},
                )
                continue

            if subscription.status == SubscriptionStatus.GRACE:
                stats.grace_started += 1
            else:
                stats.expired += 1
            logger.info(
                "Subscription expired",
                extra={
                    "subscription_id": str(subscription.pk),
                    "status": subscription.status,
                    "grace_end_date": subscription.grace_end_date.isoformat()
                    if subscription.grace_end_date
                    else None,
                },
            )

            title, body = expired_message()
            self._send_once(
                subscription,
                NotificationKind.SUBSCRIPTION_EXPIRED,
                title,
                body,
                stats,
                counter="expired_notices_sent",
            )
        return stats

    def process_grace_expired(self, now: datetime | None = None, stats: LifecycleStats | None = None) -> LifecycleStats:
        """GRACE past grace_end_date -> GRACE_EXPIRED."""
        now = now or self.clock()
        stats = stats or LifecycleStats()
        logger = self.get_logger()

        due = Subscription.objects.filter(
            status=SubscriptionStatus.GRACE,
            grace_end_date__lt=now,
        ).order_by("grace_end_date")

        for subscription in due.iterator():
            try:
                with transaction.atomic():
                    subscription.expire_grace()
                    subscription.save()
            except ConcurrentTransition:
                stats.skipped += 1
                logger.info(
                    "Subscription changed during grace expiry, skipping",
                    extra={"subscription_id": str(subscription.pk)},
                )
                continue

            stats.grace_expired += 1
            logger.info("Subscription grace period ended", extra={"subscription_id": str(subscription.pk)})
        return stats

    # =========================================================================
    # Notifications
    # =========================================================================

    @staticmethod
    def _warning_for(subscription: Subscription, now: datetime) -> tuple[str, int]:
        for kind, days in EXPIRY_WARNINGS:
            if subscription.end_date <= now + timedelta(days=days):
                return kind, days
        return EXPIRY_WARNINGS[-1]

    def _send_once(
        self,
        subscription: Subscription,
        kind: str,
        title: str,
        body: str,
        stats: LifecycleStats,
        counter: str,
    ) -> None:
        """Claim (subscription, kind), then send; an existing claim means it was already sent."""
        try:
            with transaction.atomic():
                record, created = SubscriptionNotification.objects.get_or_create(
                    subscription=subscription, kind=kind
                )
        except IntegrityError:
            return
        if not created:
            return

        delivered = notify(
            self.notifier,
            subscription.user_id,
            title,
            body,
            action=RENEW_ACTION,
            subscription_id=str(subscription.pk),
            kind=kind,
        )
        if not delivered:
            stats.notification_failures += 1
            return

        record.delivered = True
        record.sent_at = self.clock()
        record.save(update_fields=["delivered", "sent_at", "updated_at"])
        setattr(stats, counter, getattr(stats, counter) + 1)

        if self.user_directory is not None:
            self.get_logger().info(
                "Lifecycle notice sent",
                extra={
                    "subscription_id": str(subscription.pk),
                    "notice": kind,
                    "recipient": mask_email(self.user_directory.email_for(subscription.user_id)),
                },
            )
