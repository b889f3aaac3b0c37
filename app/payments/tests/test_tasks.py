"""
Tests for payment Celery tasks.

Tasks are called directly; the services they build are patched at
payments.composition.
"""

from contextlib import nullcontext
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from celery.exceptions import Retry
from django.utils import timezone

from core.services import ServiceResult
from payments.exceptions import GatewayUnavailable, LockAcquisitionError
from payments.services import RefundService
from payments.state_machines import SubscriptionStatus
from payments.tasks import (
    process_expired_subscriptions,
    run_subscription_lifecycle,
    send_subscription_expiry_warnings,
    schedule_refund_sync,
    sync_payment_refunds,
)
from payments.tests.factories import SubscriptionFactory
from payments.tests.helpers import RecordingNotifier, gateway_refund, reload
from payments.workers.subscription_lifecycle import SubscriptionLifecycleJob


def lifecycle_job(lock_factory=None):
    return SubscriptionLifecycleJob(
        notifier=RecordingNotifier(),
        lock_factory=lock_factory or (lambda key, **kwargs: nullcontext()),
    )


@pytest.mark.django_db
class TestLifecycleTasks:
    def test_run_completes(self):
        subscription = SubscriptionFactory(end_date=timezone.now() - timedelta(hours=1))

        with patch("payments.composition.build_lifecycle_job", return_value=lifecycle_job()):
            result = run_subscription_lifecycle()

        assert result["status"] == "completed"
        assert result["grace_started"] == 1
        assert reload(subscription).status == SubscriptionStatus.GRACE

    def test_run_skipped_when_locked(self):
        def held(key, **kwargs):
            raise LockAcquisitionError("held")

        with patch("payments.composition.build_lifecycle_job", return_value=lifecycle_job(held)):
            result = run_subscription_lifecycle()

        assert result["status"] == "skipped"
        assert result["lock_skipped"] is True

    def test_single_pass_tasks(self):
        job = MagicMock()
        job.run.return_value = ServiceResult.success(MagicMock(lock_skipped=False, to_dict=lambda: {}))

        with patch("payments.composition.build_lifecycle_job", return_value=job):
            send_subscription_expiry_warnings()
            process_expired_subscriptions()

        assert [c.args[0] for c in job.run.call_args_list] == [("expiry_warnings",), ("expired",)]

    def test_failure_reported(self):
        job = MagicMock()
        job.run.return_value = ServiceResult.failure("boom", error_code="INTERNAL_ERROR")

        with patch("payments.composition.build_lifecycle_job", return_value=job):
            result = run_subscription_lifecycle()

        assert result == {"status": "failed", "error": "boom", "error_code": "INTERNAL_ERROR"}


@pytest.mark.django_db
class TestSyncPaymentRefunds:
    @pytest.fixture
    def refund_service(self, gateway, state_machine, notifier, subscription_service):
        service = RefundService(
            gateway=gateway,
            state_machine=state_machine,
            notifier=notifier,
            subscriptions=subscription_service,
            cancel_retry_delay=0,
        )
        with patch("payments.composition.build_refund_service", return_value=service):
            yield service

    def test_synced(self, refund_service, gateway, payment, refund):
        gateway.list_refunds.return_value = [
            gateway_refund(refund_id=refund.refund_id, payment_id=payment.transaction_id, status="processed")
        ]

        result = sync_payment_refunds(payment.transaction_id)

        assert result == {
            "status": "synced",
            "payment_id": payment.transaction_id,
            "refund_count": 1,
            "total_refunded": refund.amount,
        }

    def test_unknown_payment(self, refund_service):
        result = sync_payment_refunds("pay_missing")

        assert result["status"] == "failed"
        assert result["error_code"] == "NOT_FOUND"

    def test_retries_while_gateway_down(self, refund_service, gateway, payment):
        gateway.list_refunds.side_effect = GatewayUnavailable("timeout")

        with patch.object(sync_payment_refunds, "retry", side_effect=Retry()) as retry:
            with pytest.raises(Retry):
                sync_payment_refunds(payment.transaction_id)

        assert retry.call_args.kwargs["countdown"] == 30


@pytest.mark.django_db
class TestScheduleRefundSync:
    def test_queued_after_commit(self, settings, django_capture_on_commit_callbacks):
        settings.REFUND_STATUS_SYNC_DELAY_SECONDS = 120

        with patch.object(sync_payment_refunds, "apply_async") as apply_async:
            with django_capture_on_commit_callbacks(execute=True) as callbacks:
                schedule_refund_sync("pay_test00000001")
                apply_async.assert_not_called()

        assert len(callbacks) == 1
        apply_async.assert_called_once_with(args=["pay_test00000001"], countdown=120)

    def test_not_queued_when_rolled_back(self, django_capture_on_commit_callbacks):
        with patch.object(sync_payment_refunds, "apply_async") as apply_async:
            with django_capture_on_commit_callbacks(execute=False) as callbacks:
                schedule_refund_sync("pay_test00000001")

        assert len(callbacks) == 1
        apply_async.assert_not_called()
