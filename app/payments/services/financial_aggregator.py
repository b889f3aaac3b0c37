"""
Read-only revenue and refund reporting.

All amounts are integer minor units (paise). Refund figures count only
PROCESSED refunds, bucketed by processed_at; revenue counts verified
payments, bucketed by created_at. Months are calendar months in the
project time zone.

Usage:
    aggregator = FinancialAggregator()
    aggregator.total_refunded()             # 125000
    aggregator.monthly_series(6)            # oldest first, zero-filled
    aggregator.paginated(page=2, page_size=20, filters={"status": "processed"})
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone

from core.exceptions import ValidationError
from core.helpers import calculate_pagination, month_label, parse_iso_date, shift_month
from core.services import BaseService, ServiceResult
from payments.models import Payment, Refund
from payments.state_machines import PaymentStatus, RefundSpeed, RefundStatus

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

    from authentication.directory import UserDirectory

T = TypeVar("T")

MAX_PAGE_SIZE = 100
CHART_MONTHS = 12


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class MonthlyRefundData:
    month: str
    refund_amount: int = 0
    refund_count: int = 0


@dataclass
class MonthlyRevenueData:
    month: str
    revenue: int = 0
    payment_count: int = 0


@dataclass
class PageResult(Generic[T]):
    """One 1-indexed page of results plus the size of the whole result set."""

    items: list[T]
    total_count: int
    page: int
    page_size: int
    total_pages: int


@dataclass
class RefundMetrics:
    total_refunded: int
    monthly_refunded: int
    refund_rate: float
    total_refund_count: int
    monthly_refund_count: int
    instant_refund_count: int
    normal_refund_count: int
    average_processing_time_hours: float
    monthly_chart: list[MonthlyRefundData] = field(default_factory=list)


@dataclass
class FinancialMetrics:
    total_revenue: int
    monthly_revenue: int
    payment_count: int
    total_refunded: int
    monthly_refunded: int
    refund_rate: float
    net_revenue: int
    monthly_revenue_chart: list[MonthlyRevenueData] = field(default_factory=list)
    monthly_refund_chart: list[MonthlyRefundData] = field(default_factory=list)


# =============================================================================
# Aggregator
# =============================================================================


class FinancialAggregator(BaseService):
    """
    Computes reporting figures from the ledger store.

    Args:
        user_directory: Resolves the user_email filter to a user
        clock: Returns the current aware datetime (injectable for tests)
    """

    def __init__(
        self,
        user_directory: UserDirectory | None = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.user_directory = user_directory
        self.clock = clock

    # =========================================================================
    # Revenue
    # =========================================================================

    def _verified_payments(self):
        return Payment.objects.filter(status=PaymentStatus.VERIFIED)

    def total_revenue(self) -> int:
        return self._verified_payments().aggregate(total=Sum("amount"))["total"] or 0

    def payment_count(self) -> int:
        return self._verified_payments().count()

    def monthly_revenue(self, month: date | str | None = None) -> int:
        start, end = self._month_window(month)
        return (
            self._verified_payments()
            .filter(created_at__gte=start, created_at__lt=end)
            .aggregate(total=Sum("amount"))["total"]
            or 0
        )

    def monthly_revenue_series(self, months: int = CHART_MONTHS) -> list[MonthlyRevenueData]:
        labels, start = self._series_labels(months)
        if not labels:
            return []
        rows = (
            self._verified_payments()
            .filter(created_at__gte=start)
            .annotate(month=TruncMonth("created_at"))
            .values("month")
            .annotate(total=Sum("amount"), count=Count("pk"))
        )
        buckets = {month_label(row["month"]): row for row in rows}
        return [
            MonthlyRevenueData(
                month=label,
                revenue=(buckets.get(label) or {}).get("total") or 0,
                payment_count=(buckets.get(label) or {}).get("count") or 0,
            )
            for label in labels
        ]

    # =========================================================================
    # Refunds
    # =========================================================================

    def _processed_refunds(self):
        return Refund.objects.filter(status=RefundStatus.PROCESSED)

    def total_refunded(self) -> int:
        return self._processed_refunds().aggregate(total=Sum("amount"))["total"] or 0

    def monthly_refunded(self, month: date | str | None = None) -> int:
        """Sum of refunds whose processed_at falls in month (default: current)."""
        start, end = self._month_window(month)
        return (
            self._processed_refunds()
            .filter(processed_at__gte=start, processed_at__lt=end)
            .aggregate(total=Sum("amount"))["total"]
            or 0
        )

    def monthly_refund_count(self, month: date | str | None = None) -> int:
        start, end = self._month_window(month)
        return self._processed_refunds().filter(processed_at__gte=start, processed_at__lt=end).count()

    def refund_count_by_speed(self) -> dict[str, int]:
        """
        PROCESSED refund counts split into instant and normal.

        Uses the speed the gateway reported; when it never reported one,
        an optimum request counts as instant.
        """
        instant = Q(speed_processed__in=[RefundSpeed.INSTANT, RefundSpeed.OPTIMUM]) | Q(
            speed_processed__isnull=True,
            speed_requested__in=[RefundSpeed.OPTIMUM, RefundSpeed.INSTANT],
        )
        normal = Q(speed_processed=RefundSpeed.NORMAL) | Q(
            speed_processed__isnull=True, speed_requested=RefundSpeed.NORMAL
        )
        counts = self._processed_refunds().aggregate(
            instant=Count("pk", filter=instant),
            normal=Count("pk", filter=normal),
        )
        return {"instant": counts["instant"] or 0, "normal": counts["normal"] or 0}

    def average_processing_time(self) -> float:
        """Mean hours from creation to completion over PROCESSED refunds; 0.0 if none."""
        durations = [
            (processed_at - created_at).total_seconds()
            for created_at, processed_at in self._processed_refunds()
            .filter(processed_at__isnull=False)
            .values_list("created_at", "processed_at")
            .iterator()
        ]
        if not durations:
            return 0.0
        return sum(durations) / len(durations) / 3600

    def monthly_series(self, months: int = CHART_MONTHS) -> list[MonthlyRefundData]:
        """Last `months` calendar months of refunds, oldest first, zero-filled."""
        labels, start = self._series_labels(months)
        if not labels:
            return []
        rows = (
            self._processed_refunds()
            .filter(processed_at__gte=start)
            .annotate(month=TruncMonth("processed_at"))
            .values("month")
            .annotate(total=Sum("amount"), count=Count("pk"))
        )
        buckets = {month_label(row["month"]): row for row in rows if row["month"]}
        return [
            MonthlyRefundData(
                month=label,
                refund_amount=(buckets.get(label) or {}).get("total") or 0,
                refund_count=(buckets.get(label) or {}).get("count") or 0,
            )
            for label in labels
        ]

    # =========================================================================
    # Paging
    # =========================================================================

    def paginated(
        self,
        page: int = 1,
        page_size: int = 20,
        filters: dict[str, Any] | None = None,
    ) -> ServiceResult[PageResult[Refund]]:
        """
        One page of refunds, newest first.

        Filters:
            status: Refund status name (case-insensitive)
            start_date / end_date: Inclusive ISO dates on created_at
            user_email: Refunds of that user

        A page beyond the last returns no items but the true total_count.
        """
        try:
            page, page_size = self.validate_page(page, page_size)
            queryset = self.filter_refunds(filters or {})
            total_count = queryset.count()
            window = calculate_pagination(total_count, page, page_size)
            items = list(
                queryset.select_related("payment")[window["offset"] : window["offset"] + window["limit"]]
            )
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

    @staticmethod
    def validate_page(page: Any, page_size: Any) -> tuple[int, int]:
        """
        Coerce and check paging parameters.

        Raises:
            ValidationError: page < 1, or page_size outside 1..100
        """
        errors: dict[str, list[str]] = {}
        try:
            page = int(page)
            if page < 1:
                raise ValueError
        except (TypeError, ValueError):
            errors["page"] = ["Must be a positive integer."]
        try:
            page_size = int(page_size)
            if not 1 <= page_size <= MAX_PAGE_SIZE:
                raise ValueError
        except (TypeError, ValueError):
            errors["page_size"] = [f"Must be an integer between 1 and {MAX_PAGE_SIZE}."]
        if errors:
            raise ValidationError("Invalid pagination parameters", details=errors)
        return page, page_size

    def filter_refunds(self, filters: dict[str, Any]):
        queryset = Refund.objects.all().order_by("-created_at", "-pk")

        status = filters.get("status")
        if status:
            try:
                queryset = queryset.filter(status=RefundStatus(str(status).strip().lower()))
            except ValueError:
                raise ValidationError(
                    f"Unknown refund status: {status}",
                    details={"status": status},
                ) from None

        start, end = self.date_range(filters.get("start_date"), filters.get("end_date"))
        if start:
            queryset = queryset.filter(created_at__gte=start)
        if end:
            queryset = queryset.filter(created_at__lt=end)

        user_email = filters.get("user_email")
        if user_email:
            match = Q(user_email__iexact=user_email.strip())
            if self.user_directory is not None:
                user_id = self.user_directory.user_id_for(user_email)
                if user_id is not None:
                    match |= Q(payment__user_id=user_id)
            queryset = queryset.filter(match)

        return queryset

    @staticmethod
    def date_range(start_date: Any, end_date: Any) -> tuple[datetime | None, datetime | None]:
        """
        Inclusive ISO dates -> half-open aware datetime window.

        Raises:
            ValidationError: Unparseable date, or start after end
        """
        start = parse_iso_date(start_date, "start_date")
        end = parse_iso_date(end_date, "end_date")
        if start and end and start > end:
            raise ValidationError(
                "start_date must not be after end_date",
                details={"start_date": str(start), "end_date": str(end)},
            )
        tz = timezone.get_current_timezone()
        start_dt = timezone.make_aware(datetime.combine(start, time.min), tz) if start else None
        end_dt = (
            timezone.make_aware(datetime.combine(end + timedelta(days=1), time.min), tz)
            if end
            else None
        )
        return start_dt, end_dt

    # =========================================================================
    # Dashboards
    # =========================================================================

    def refund_metrics(self) -> ServiceResult[RefundMetrics]:
        try:
            total_refunded = self.total_refunded()
            total_revenue = self.total_revenue()
            by_speed = self.refund_count_by_speed()
            metrics = RefundMetrics(
                total_refunded=total_refunded,
                monthly_refunded=self.monthly_refunded(),
                refund_rate=refund_rate(total_refunded, total_revenue),
                total_refund_count=self._processed_refunds().count(),
                monthly_refund_count=self.monthly_refund_count(),
                instant_refund_count=by_speed["instant"],
                normal_refund_count=by_speed["normal"],
                average_processing_time_hours=round(self.average_processing_time(), 2),
                monthly_chart=self.monthly_series(CHART_MONTHS),
            )
        except Exception as e:
            return self.handle_exception(e, "Failed to compute refund metrics")
        return ServiceResult.success(metrics)

    def financial_metrics(self) -> ServiceResult[FinancialMetrics]:
        try:
            total_revenue = self.total_revenue()
            total_refunded = self.total_refunded()
            metrics = FinancialMetrics(
                total_revenue=total_revenue,
                monthly_revenue=self.monthly_revenue(),
                payment_count=self.payment_count(),
                total_refunded=total_refunded,
                monthly_refunded=self.monthly_refunded(),
                refund_rate=refund_rate(total_refunded, total_revenue),
                net_revenue=total_revenue - total_refunded,
                monthly_revenue_chart=self.monthly_revenue_series(CHART_MONTHS),
                monthly_refund_chart=self.monthly_series(CHART_MONTHS),
            )
        except Exception as e:
            return self.handle_exception(e, "Failed to compute financial metrics")
        return ServiceResult.success(metrics)

    # =========================================================================
    # Calendar helpers
    # =========================================================================

    def _month_window(self, month: date | str | None) -> tuple[datetime, datetime]:
        """
        [first instant of month, first instant of next month).

        Raises:
            ValidationError: Malformed month string, or a month whose
                window falls outside the representable calendar
        """
        try:
            if month is None:
                now = timezone.localtime(self.clock())
                year, month_number = now.year, now.month
            elif isinstance(month, str):
                year, month_number = (int(part) for part in month.split("-")[:2])
            else:
                year, month_number = month.year, month.month
            if not 1 <= month_number <= 12:
                raise ValueError

            next_year, next_month = shift_month(year, month_number, 1)
            tz = timezone.get_current_timezone()
            start = timezone.make_aware(datetime(year, month_number, 1), tz)
            end = timezone.make_aware(datetime(next_year, next_month, 1), tz)
        except (ValueError, OverflowError):
            raise ValidationError(
                "month must be formatted YYYY-MM", details={"month": str(month)}
            ) from None
        return start, end

    def _series_labels(self, months: int) -> tuple[list[str], datetime | None]:
        if months <= 0:
            return [], None
        now = timezone.localtime(self.clock())
        first_year, first_month = shift_month(now.year, now.month, -(months - 1))
        labels = [
            "{:04d}-{:02d}".format(*shift_month(first_year, first_month, offset))
            for offset in range(months)
        ]
        start, _ = self._month_window(date(first_year, first_month, 1))
        return labels, start


def refund_rate(total_refunded: int, total_revenue: int) -> float:
    """Refunded share of revenue as a percentage, 0.0 with no revenue."""
    if not total_revenue:
        return 0.0
    return round(total_refunded / total_revenue * 100, 2)


__all__ = [
    "FinancialAggregator",
    "FinancialMetrics",
    "MonthlyRefundData",
    "MonthlyRevenueData",
    "PageResult",
    "RefundMetrics",
    "refund_rate",
]
