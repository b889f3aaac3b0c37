"""
Subscription queries and admin cancellation.

Time-driven transitions (expiry, grace) belong to the lifecycle job in
payments.workers; this service covers the on-demand side: a user's
current status and history, the admin subscription list and analytics,
and cancellation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from django.db.models import Count
from django.utils import timezone
from django_fsm import ConcurrentTransition, can_proceed

from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.helpers import calculate_pagination
from core.services import BaseService, ServiceResult
from payments.models import Subscription
from payments.services.financial_aggregator import FinancialAggregator, PageResult
from payments.state_machines import SubscriptionStatus

if TYPE_CHECKING:
    from authentication.directory import UserDirectory

ACCESS_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.GRACE)
EXPIRED_STATUSES = (SubscriptionStatus.EXPIRED, SubscriptionStatus.GRACE_EXPIRED)
RECENT_SUBSCRIPTIONS = 10


@dataclass
class SubscriptionStatusInfo:
    subscription: Subscription | None
    status: str | None
    has_access: bool
    days_remaining: int


@dataclass
class SubscriptionHistory:
    subscriptions: list[Subscription]
    total_count: int


@dataclass
class SubscriptionAnalytics:
    """
    Subscription counts and averages for the admin dashboard.

    Attributes:
        total_expired: EXPIRED plus GRACE_EXPIRED
        total_revenue: Sum of verified payments, in paise
        average_subscription_days: Mean end_date - start_date in days
        recent_subscriptions: Newest subscriptions, newest first
    """

    total_active: int
    total_grace: int
    total_expired: int
    total_cancelled: int
    total_revenue: int
    average_subscription_days: float
    recent_subscriptions: list[Subscription] = field(default_factory=list)


class SubscriptionService(BaseService):
    """
    Args:
        user_directory: Resolves user emails to users
        aggregator: FinancialAggregator supplying revenue for analytics()
    """

    def __init__(
        self,
        user_directory: UserDirectory,
        aggregator: FinancialAggregator | None = None,
    ) -> None:
        self.user_directory = user_directory
        self.aggregator = aggregator or FinancialAggregator()

    def current_for_user(self, user_id) -> Subscription | None:
        """The subscription granting access, else the most recent one."""
        subscriptions = Subscription.objects.filter(user_id=user_id)
        return (
            subscriptions.filter(status__in=ACCESS_STATUSES).order_by("-end_date").first()
            or subscriptions.order_by("-created_at").first()
        )

    def get_status(self, user_email: str) -> ServiceResult[SubscriptionStatusInfo]:
        user = self.user_directory.get_by_email(user_email)
        if user is None:
            return ServiceResult.from_exception(
                NotFoundError(f"No user with email {user_email}", details={"user_email": user_email})
            )

        subscription = self.current_for_user(user.pk)
        if subscription is None:
            return ServiceResult.success(
                SubscriptionStatusInfo(subscription=None, status=None, has_access=False, days_remaining=0)
            )
        return ServiceResult.success(
            SubscriptionStatusInfo(
                subscription=subscription,
                status=subscription.status,
                has_access=subscription.has_access,
                days_remaining=subscription.days_remaining(timezone.now()) if subscription.has_access else 0,
            )
        )

    def history(self, user_email: str) -> ServiceResult[SubscriptionHistory]:
        """Every subscription the user has held, newest first."""
        user = self.user_directory.get_by_email(user_email)
        if user is None:
            return ServiceResult.from_exception(
                NotFoundError(f"No user with email {user_email}", details={"user_email": user_email})
            )

        subscriptions = list(Subscription.objects.filter(user_id=user.pk).order_by("-created_at"))
        return ServiceResult.success(
            SubscriptionHistory(subscriptions=subscriptions, total_count=len(subscriptions))
        )

    def paginated(
        self,
        page: Any = 1,
        page_size: Any = 20,
        status: str | None = None,
    ) -> ServiceResult[PageResult[Subscription]]:
        """
        One page of all subscriptions for the admin list, newest first.

        Args:
            page: 1-indexed page number
            page_size: Rows per page, 1..100
            status: Optional SubscriptionStatus value to filter on

        Returns:
            Success with a PageResult, or VALIDATION_ERROR for bad paging
            parameters or an unknown status.
        """
        try:
            page, page_size = FinancialAggregator.validate_page(page, page_size)
            queryset = Subscription.objects.select_related("user", "source_payment").order_by("-created_at")
            if status:
                if status not in SubscriptionStatus.values:
                    raise ValidationError(
                        f"Unknown subscription status {status}",
                        details={"status": [f"Must be one of {', '.join(SubscriptionStatus.values)}"]},
                    )
                queryset = queryset.filter(status=status)
            total_count = queryset.count()
            window = calculate_pagination(total_count, page, page_size)
            items = list(queryset[window["offset"] : window["offset"] + window["limit"]])
        except ValidationError as e:
            return ServiceResult.from_exception(e)

        return ServiceResult.success(
            PageResult(
                items=items,
                total_count=total_count,
                page=page,
                page_size=page_size,
                total_pages=window["total_pages"],
            )
        )

    def analytics(self, recent: int = RECENT_SUBSCRIPTIONS) -> ServiceResult[SubscriptionAnalytics]:
        counts = {
            row["status"]: row["count"]
            for row in Subscription.objects.values("status").annotate(count=Count("id")).order_by()
        }

        durations = [
            (end_date - start_date).total_seconds() / 86400
            for start_date, end_date in Subscription.objects.values_list("start_date", "end_date")
        ]
        average_days = round(sum(durations) / len(durations), 2) if durations else 0.0

        recent_subscriptions = list(
            Subscription.objects.select_related("user", "source_payment").order_by("-created_at")[:recent]
        )

        return ServiceResult.success(
            SubscriptionAnalytics(
                total_active=counts.get(SubscriptionStatus.ACTIVE, 0),
                total_grace=counts.get(SubscriptionStatus.GRACE, 0),
                total_expired=sum(counts.get(status, 0) for status in EXPIRED_STATUSES),
                total_cancelled=counts.get(SubscriptionStatus.CANCELLED, 0),
                total_revenue=self.aggregator.total_revenue(),
                average_subscription_days=average_days,
                recent_subscriptions=recent_subscriptions,
            )
        )

    def cancel_for_user(self, user_email: str, cancelled_by: str) -> ServiceResult[Subscription]:
        """
        Cancel the user's ACTIVE or GRACE subscription.

        Returns:
            Success with the cancelled subscription. NOT_FOUND when the user
            has nothing to cancel, CONFLICT when the subscription changed
            status while we were cancelling it.
        """
        logger = self.get_logger()

        user = self.user_directory.get_by_email(user_email)
        subscription = (
            Subscription.objects.filter(user_id=user.pk, status__in=ACCESS_STATUSES)
            .order_by("-end_date")
            .first()
            if user is not None
            else None
        )
        if subscription is None:
            return ServiceResult.from_exception(
                NotFoundError(
                    "No active subscription to cancel",
                    details={"user_email": user_email},
                )
            )

        if not can_proceed(subscription.cancel):
            return ServiceResult.from_exception(
                ConflictError(
                    f"Subscription cannot be cancelled from {subscription.status}",
                    details={"subscription_id": str(subscription.pk)},
                )
            )

        try:
            with self.atomic():
                subscription.cancel()
                subscription.save()
        except ConcurrentTransition:
            logger.warning(
                "Subscription changed during cancellation",
                extra={"subscription_id": str(subscription.pk), "cancelled_by": cancelled_by},
            )
            return ServiceResult.from_exception(
                ConflictError(
                    "Subscription changed status during cancellation",
                    details={"subscription_id": str(subscription.pk)},
                )
            )

        logger.info(
            "Subscription cancelled",
            extra={
                "subscription_id": str(subscription.pk),
                "user_id": str(user.pk),
                "cancelled_by": cancelled_by,
            },
        )
        return ServiceResult.success(subscription)
