"""
Tests for FinancialAggregator.

Tests cover:
- Totals and monthly figures (PROCESSED refunds only, by processed_at)
- Zero-filled monthly series
- Speed split and average processing time
- Paging, filters and their validation
- Dashboard metrics
"""

from datetime import date, datetime, timedelta, timezone as dt_timezone

import pytest

from core.exceptions import ValidationError
from payments.services import FinancialAggregator
from payments.services.financial_aggregator import refund_rate
from payments.state_machines import PaymentStatus, RefundSpeed, RefundStatus
from payments.tests.factories import PaymentFactory, RefundFactory, UserFactory

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=dt_timezone.utc)


def at(year, month, day=10, hour=12):
    return datetime(year, month, day, hour, 0, tzinfo=dt_timezone.utc)


def processed_refund(payment, amount, processed_at, **kwargs):
    return RefundFactory(
        payment=payment,
        amount=amount,
        status=RefundStatus.PROCESSED,
        processed_at=processed_at,
        **kwargs,
    )


def backdate(instance, created_at):
    model = type(instance)
    model.objects.filter(pk=instance.pk).update(created_at=created_at)
    return model.objects.get(pk=instance.pk)


@pytest.fixture
def aggregator(user_directory):
    return FinancialAggregator(user_directory=user_directory, clock=lambda: NOW)


@pytest.fixture
def big_payment(db):
    return PaymentFactory(amount=1_000_000)


# =============================================================================
# Refund Figures
# =============================================================================


@pytest.mark.django_db
class TestRefundTotals:
    def test_only_processed_refunds_count(self, aggregator, big_payment):
        processed_refund(big_payment, 10000, at(2025, 6))
        processed_refund(big_payment, 5000, at(2025, 5))
        RefundFactory(payment=big_payment, amount=7000, status=RefundStatus.PROCESSING)
        RefundFactory(payment=big_payment, amount=9000, status=RefundStatus.FAILED)
        RefundFactory(payment=big_payment, amount=3000)

        assert aggregator.total_refunded() == 15000

    def test_empty_ledger(self, aggregator, db):
        assert aggregator.total_refunded() == 0
        assert aggregator.monthly_refunded() == 0
        assert aggregator.average_processing_time() == 0.0
        assert aggregator.refund_count_by_speed() == {"instant": 0, "normal": 0}

    def test_monthly_refunded_uses_processed_at(self, aggregator, big_payment):
        """A refund created in May but completed in June counts for June."""
        refund = processed_refund(big_payment, 10000, at(2025, 6, 2))
        backdate(refund, at(2025, 5, 28))
        processed_refund(big_payment, 2000, at(2025, 5, 20))

        assert aggregator.monthly_refunded() == 10000
        assert aggregator.monthly_refunded("2025-05") == 2000
        assert aggregator.monthly_refunded(date(2025, 4, 1)) == 0
        assert aggregator.monthly_refund_count() == 1

    def test_month_boundaries(self, aggregator, big_payment):
        processed_refund(big_payment, 100, datetime(2025, 6, 1, 0, 0, tzinfo=dt_timezone.utc))
        processed_refund(big_payment, 200, datetime(2025, 6, 30, 23, 59, 59, tzinfo=dt_timezone.utc))
        processed_refund(big_payment, 400, datetime(2025, 7, 1, 0, 0, tzinfo=dt_timezone.utc))

        assert aggregator.monthly_refunded("2025-06") == 300

    @pytest.mark.parametrize("month", ["2025-13", "June", "2025", "0000-01", "9999-12"])
    def test_bad_month(self, aggregator, db, month):
        with pytest.raises(ValidationError):
            aggregator.monthly_refunded(month)

    def test_speed_split(self, aggregator, big_payment):
        processed_refund(big_payment, 100, at(2025, 6), speed_processed=RefundSpeed.INSTANT)
        processed_refund(big_payment, 100, at(2025, 6), speed_processed=RefundSpeed.NORMAL)
        processed_refund(big_payment, 100, at(2025, 6), speed_requested=RefundSpeed.OPTIMUM)
        processed_refund(big_payment, 100, at(2025, 6), speed_requested=RefundSpeed.NORMAL)

        assert aggregator.refund_count_by_speed() == {"instant": 2, "normal": 2}

    def test_average_processing_time(self, aggregator, big_payment):
        first = processed_refund(big_payment, 100, at(2025, 6, 10, 12))
        backdate(first, at(2025, 6, 10, 10))
        second = processed_refund(big_payment, 100, at(2025, 6, 11, 16))
        backdate(second, at(2025, 6, 11, 10))

        assert aggregator.average_processing_time() == pytest.approx(4.0)


@pytest.mark.django_db
class TestMonthlySeries:
    def test_zero_filled_oldest_first(self, aggregator, big_payment):
        processed_refund(big_payment, 10000, at(2025, 6))
        processed_refund(big_payment, 2500, at(2025, 6, 20))
        processed_refund(big_payment, 4000, at(2025, 3))
        processed_refund(big_payment, 9999, at(2024, 12))  # outside the window

        series = aggregator.monthly_series(6)

        assert [point.month for point in series] == [
            "2025-01",
            "2025-02",
            "2025-03",
            "2025-04",
            "2025-05",
            "2025-06",
        ]
        assert [point.refund_amount for point in series] == [0, 0, 4000, 0, 0, 12500]
        assert series[-1].refund_count == 2

    def test_crosses_year(self, db):
        aggregator = FinancialAggregator(clock=lambda: at(2025, 2))

        labels = [point.month for point in aggregator.monthly_series(3)]

        assert labels == ["2024-12", "2025-01", "2025-02"]

    def test_non_positive_months(self, aggregator, db):
        assert aggregator.monthly_series(0) == []

    def test_revenue_series(self, aggregator, db):
        backdate(PaymentFactory(amount=49900), at(2025, 6))
        backdate(PaymentFactory(amount=49900), at(2025, 4))
        backdate(PaymentFactory(amount=10000, status=PaymentStatus.FAILED), at(2025, 6))

        series = aggregator.monthly_revenue_series(3)

        assert [(p.month, p.revenue, p.payment_count) for p in series] == [
            ("2025-04", 49900, 1),
            ("2025-05", 0, 0),
            ("2025-06", 49900, 1),
        ]


# =============================================================================
# Paging & Filters
# =============================================================================


@pytest.mark.django_db
class TestPaginated:
    def test_pages_newest_first(self, aggregator, big_payment):
        refunds = [RefundFactory(payment=big_payment, amount=100) for _ in range(5)]
        for offset, refund in enumerate(refunds):
            backdate(refund, at(2025, 6, 1 + offset))

        page_one = aggregator.paginated(page=1, page_size=2).data
        page_three = aggregator.paginated(page=3, page_size=2).data

        assert page_one.total_count == 5
        assert page_one.total_pages == 3
        assert [r.refund_id for r in page_one.items] == [refunds[4].refund_id, refunds[3].refund_id]
        assert [r.refund_id for r in page_three.items] == [refunds[0].refund_id]

    def test_page_past_end_is_empty(self, aggregator, big_payment):
        RefundFactory(payment=big_payment)

        page = aggregator.paginated(page=9, page_size=10).data

        assert page.items == []
        assert page.total_count == 1

    @pytest.mark.parametrize(
        "page, page_size",
        [(0, 20), (-1, 20), (1, 0), (1, 101), ("abc", 20), (1, None)],
    )
    def test_invalid_paging(self, aggregator, db, page, page_size):
        result = aggregator.paginated(page=page, page_size=page_size)

        assert result.error_code == "VALIDATION_ERROR"

    def test_status_filter(self, aggregator, big_payment):
        processed = RefundFactory(payment=big_payment, status=RefundStatus.PROCESSED)
        RefundFactory(payment=big_payment)

        page = aggregator.paginated(filters={"status": "PROCESSED"}).data

        assert [r.pk for r in page.items] == [processed.pk]

    def test_unknown_status_filter(self, aggregator, db):
        assert aggregator.paginated(filters={"status": "refunded"}).error_code == "VALIDATION_ERROR"

    def test_inclusive_date_filter(self, aggregator, big_payment):
        inside = backdate(RefundFactory(payment=big_payment), at(2025, 6, 30, 23))
        backdate(RefundFactory(payment=big_payment), at(2025, 7, 1, 0))
        backdate(RefundFactory(payment=big_payment), at(2025, 5, 31, 23))

        page = aggregator.paginated(filters={"start_date": "2025-06-01", "end_date": "2025-06-30"}).data

        assert [r.pk for r in page.items] == [inside.pk]

    def test_start_after_end(self, aggregator, db):
        result = aggregator.paginated(filters={"start_date": "2025-06-02", "end_date": "2025-06-01"})

        assert result.error_code == "VALIDATION_ERROR"

    def test_bad_date(self, aggregator, db):
        assert aggregator.paginated(filters={"start_date": "01/06/2025"}).error_code == "VALIDATION_ERROR"

    def test_user_email_filter(self, aggregator, db):
        """Matches the stored email case-insensitively or the payer's account."""
        user = UserFactory(email="buyer@example.com")
        own = RefundFactory(payment=PaymentFactory(user=user), user_email="")
        by_email = RefundFactory(payment=PaymentFactory(user=None), user_email="BUYER@example.com")
        RefundFactory()

        page = aggregator.paginated(filters={"user_email": "buyer@example.com"}).data

        assert {r.pk for r in page.items} == {own.pk, by_email.pk}

    def test_validate_page_coerces(self):
        assert FinancialAggregator.validate_page("2", "50") == (2, 50)


# =============================================================================
# Dashboards
# =============================================================================


@pytest.mark.django_db
class TestMetrics:
    def test_refund_metrics(self, aggregator, db):
        payment = backdate(PaymentFactory(amount=100000), at(2025, 6, 1))
        processed_refund(payment, 25000, at(2025, 6, 5), speed_processed=RefundSpeed.INSTANT)

        metrics = aggregator.refund_metrics().data

        assert metrics.total_refunded == 25000
        assert metrics.monthly_refunded == 25000
        assert metrics.refund_rate == 25.0
        assert metrics.total_refund_count == 1
        assert metrics.instant_refund_count == 1
        assert len(metrics.monthly_chart) == 12

    def test_financial_metrics(self, aggregator, db):
        payment = backdate(PaymentFactory(amount=80000), at(2025, 6, 1))
        backdate(PaymentFactory(amount=20000), at(2025, 1, 1))
        processed_refund(payment, 10000, at(2025, 6, 3))

        metrics = aggregator.financial_metrics().data

        assert metrics.total_revenue == 100000
        assert metrics.monthly_revenue == 80000
        assert metrics.payment_count == 2
        assert metrics.net_revenue == 90000
        assert metrics.refund_rate == 10.0
        assert len(metrics.monthly_revenue_chart) == 12

    def test_refund_rate(self):
        assert refund_rate(0, 0) == 0.0
        assert refund_rate(1, 3) == 33.33
