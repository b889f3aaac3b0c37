"""
Refund service for returning money to customers.

This module provides the RefundService class which handles admin-initiated
refunds, gateway status sync and refund reporting.

The service implements:
1. Remaining-amount validation under a row lock on the payment
2. Gateway refund creation outside any lock or transaction
3. Best-effort user notification and subscription cancellation
4. Pulling refund status from the gateway for a payment
5. Refund history paging and CSV export

Usage:
    from payments.composition import build_refund_service

    service = build_refund_service()
    result = service.initiate_refund(
        admin_email="admin@example.com",
        payment_id="pay_29QQoUBi66xm2f",
        amount=25000,  # Partial refund, paise
        reason="Customer request",
    )

    if result.success:
        print(f"Refund created: {result.data.refund.refund_id}")
    else:
        print(f"Refund failed: {result.error}")
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import Q, Sum
from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError
from core.services import BaseService, ServiceResult
from toolkit.helpers import minor_to_major, rows_to_csv

from payments.adapters import GATEWAY_STATUS_MAP
from payments.exceptions import GatewayRequestError, GatewayUnavailable, PaymentNotFoundError
from payments.models import SYSTEM_ACTOR, Payment, Refund
from payments.notifications import notify, refund_message
from payments.services.financial_aggregator import FinancialAggregator
from payments.state_machines import REFUND_IN_FLIGHT_STATUSES, RefundSpeed, RefundStatus

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

    from payments.adapters import GatewayClient, GatewayRefund
    from payments.services.financial_aggregator import PageResult
    from payments.services.refund_state_machine import RefundStateMachine
    from payments.services.subscription_service import SubscriptionService
    from toolkit.protocols import NotificationSender


# =============================================================================
# Constants
# =============================================================================

REFUND_CSV_COLUMNS = [
    "id",
    "payment_id",
    "user_email",
    "amount",
    "currency",
    "status",
    "speed",
    "reason",
    "processed_by",
    "created_at",
    "processed_at",
]

DEFAULT_EXPORT_MAX_ROWS = 10000


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class RefundInitiation:
    """
    Result of an admin refund request.

    Attributes:
        refund: The recorded Refund row, carrying the status the gateway
            answered with
        notification_sent: Whether the user notice was accepted
        subscription_cancelled: Whether the user's subscription was cancelled
    """

    refund: Refund
    notification_sent: bool = False
    subscription_cancelled: bool = False


@dataclass
class PaymentRefundSummary:
    """
    Refund position of one payment.

    Attributes:
        total_refunded: Sum of PROCESSED refunds
        remaining_refundable: Amount minus PROCESSED and in-flight refunds
        synced: False when the gateway could not be reached and the
            figures are local only
    """

    payment_id: str
    original_amount: int
    currency: str
    total_refunded: int
    remaining_refundable: int
    is_fully_refunded: bool
    refunds: list[Refund] = field(default_factory=list)
    synced: bool = True


# =============================================================================
# Refund Service
# =============================================================================


class RefundService(BaseService):
    """
    Admin refund operations.

    Initiation Flow:
        1. Lock the payment row and compute the remaining refundable amount
        2. Release the lock, then ask the gateway to create the refund
        3. Store the gateway refund as INITIATED
        4. Notify the user and cancel their subscription (best-effort)
        5. Apply the status the gateway answered with and schedule a
           follow-up sync for the payment

    The gateway is the system of record. Status changes after creation
    arrive by webhook or by check_refund_status() and are applied through
    RefundStateMachine only.

    Args:
        gateway: GatewayClient
        state_machine: RefundStateMachine used for every status change
        notifier: NotificationSender for user notices
        subscriptions: SubscriptionService used to cancel access
        aggregator: FinancialAggregator backing refund_history()
        cancel_attempts: Subscription cancellation attempts
        cancel_retry_delay: Seconds between cancellation attempts
        export_max_rows: Row cap for CSV export
        sleep: Injectable sleep for retry delays
        sync_scheduler: Called with the payment ID after each initiation
            to queue a later gateway sync
    """

    def __init__(
        self,
        gateway: GatewayClient,
        state_machine: RefundStateMachine,
        notifier: NotificationSender | None = None,
        subscriptions: SubscriptionService | None = None,
        aggregator: FinancialAggregator | None = None,
        cancel_attempts: int = 2,
        cancel_retry_delay: float = 0.5,
        export_max_rows: int = DEFAULT_EXPORT_MAX_ROWS,
        sleep: Callable[[float], None] = time.sleep,
        sync_scheduler: Callable[[str], None] | None = None,
    ) -> None:
        self.gateway = gateway
        self.state_machine = state_machine
        self.notifier = notifier
        self.subscriptions = subscriptions
        self.aggregator = aggregator or FinancialAggregator()
        self.cancel_attempts = cancel_attempts
        self.cancel_retry_delay = cancel_retry_delay
        self.export_max_rows = export_max_rows
        self.sleep = sleep
        self.sync_scheduler = sync_scheduler

    # =========================================================================
    # Initiation
    # =========================================================================

    def initiate_refund(
        self,
        admin_email: str,
        payment_id: str,
        amount: int | None = None,
        speed: str = RefundSpeed.OPTIMUM,
        reason: str | None = None,
        notes: dict[str, Any] | None = None,
        receipt: str | None = None,
    ) -> ServiceResult[RefundInitiation]:
        """
        Refund part or all of a payment.

        Args:
            admin_email: Who asked for the refund (stored as processed_by)
            payment_id: Gateway payment ID (pay_xxx)
            amount: Paise to refund; defaults to the remaining amount
            speed: optimum or normal

        Returns:
            ServiceResult with RefundInitiation. Failures: NOT_FOUND,
            VALIDATION_ERROR, GATEWAY_UNAVAILABLE (nothing written),
            GATEWAY_REQUEST_REJECTED.
        """
        logger = self.get_logger()

        validation = self.validate_required(admin_email=admin_email, payment_id=payment_id)
        if validation:
            return validation
        if speed not in (RefundSpeed.OPTIMUM, RefundSpeed.NORMAL):
            return ServiceResult.from_exception(
                ValidationError("speed must be optimum or normal", details={"speed": speed})
            )

        # Phase 1: validate against a consistent view of the payment
        try:
            with transaction.atomic():
                payment = Payment.objects.select_for_update().filter(transaction_id=payment_id).first()
                if payment is None:
                    raise PaymentNotFoundError(
                        f"Payment {payment_id} not found", details={"payment_id": payment_id}
                    )
                amount = self._validate_amount(payment, amount)
        except (PaymentNotFoundError, ValidationError) as e:
            logger.info("Refund request rejected", extra={"payment_id": payment_id, "error": e.message})
            return ServiceResult.from_exception(e)

        # Phase 2: gateway call with no lock held
        try:
            gateway_refund = self.gateway.create_refund(
                payment_id,
                amount,
                speed=speed,
                notes={**(notes or {}), **({"reason": reason} if reason else {})},
                receipt=receipt,
            )
        except (GatewayUnavailable, GatewayRequestError) as e:
            logger.warning(
                "Gateway refund creation failed",
                extra={"payment_id": payment_id, "amount": amount, "error_code": e.error_code},
            )
            return ServiceResult.from_exception(e)

        # Phase 3: record it
        refund = self._record_refund(
            payment,
            gateway_refund,
            processed_by=admin_email,
            reason=reason,
            speed_requested=speed,
        )
        logger.info(
            "Refund initiated",
            extra={
                "refund_id": refund.refund_id,
                "payment_id": payment_id,
                "amount": amount,
                "processed_by": admin_email,
            },
        )

        # Phase 4: side effects that never undo the refund
        title, body = refund_message(RefundStatus.INITIATED, refund.amount, refund.currency)
        notification_sent = notify(
            self.notifier,
            payment.user_id,
            title,
            body,
            refund_id=refund.refund_id,
            status=RefundStatus.INITIATED,
        )
        subscription_cancelled = self._cancel_subscription(payment, admin_email)

        # Phase 5: catch up with what the gateway already reported
        refund = self._apply_gateway_status(refund, gateway_refund)
        self._schedule_sync(payment_id)

        return ServiceResult.success(
            RefundInitiation(
                refund=refund,
                notification_sent=notification_sent,
                subscription_cancelled=subscription_cancelled,
            )
        )

    def _validate_amount(self, payment: Payment, amount: Any) -> int:
        remaining = self.remaining_refundable(payment)
        if remaining <= 0:
            raise ValidationError(
                "Payment has no remaining refundable amount",
                details={"payment_id": payment.transaction_id, "remaining": remaining},
            )
        if amount is None:
            return remaining
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(
                "Refund amount must be a positive integer in minor units",
                details={"amount": amount},
            )
        if amount > remaining:
            raise ValidationError(
                "Refund amount exceeds the remaining refundable amount",
                details={"amount": amount, "remaining": remaining},
            )
        return amount

    def _record_refund(
        self,
        payment: Payment,
        gateway_refund: GatewayRefund,
        processed_by: str,
        reason: str | None = None,
        speed_requested: str | None = None,
    ) -> Refund:
        """Insert the gateway refund as INITIATED; a row that already exists is reused."""
        defaults = {
            "payment": payment,
            "amount": gateway_refund.amount,
            "currency": gateway_refund.currency or payment.currency,
            "speed_requested": speed_requested or gateway_refund.speed_requested or RefundSpeed.OPTIMUM,
            "user_email": payment.user_email,
            "processed_by": processed_by,
            "reason": reason or gateway_refund.notes.get("reason", ""),
            "notes": gateway_refund.notes,
            "receipt": gateway_refund.receipt or "",
            "batch_id": gateway_refund.batch_id or "",
            "raw_response": gateway_refund.raw_response,
            "created_at": gateway_refund.created_at or timezone.now(),
        }
        try:
            with transaction.atomic():
                refund, _ = Refund.objects.get_or_create(refund_id=gateway_refund.id, defaults=defaults)
        except IntegrityError:
            refund = Refund.objects.get(refund_id=gateway_refund.id)
        return refund

    def _apply_gateway_status(self, refund: Refund, gateway_refund: GatewayRefund) -> Refund:
        """
        Move a freshly recorded refund to the status in the create response.

        Instant refunds can come back already processed, and a webhook
        that raced the insert was acknowledged as unknown.
        """
        target = GATEWAY_STATUS_MAP.get(gateway_refund.status)
        if target is None or target == RefundStatus.INITIATED:
            return refund

        raw = gateway_refund.raw_response
        result = self.state_machine.apply(
            refund.refund_id,
            target,
            error_code=raw.get("error_code"),
            error_description=raw.get("error_description"),
            speed_processed=gateway_refund.speed_processed,
        )
        if not result.success:
            self.get_logger().warning(
                "Gateway status from refund creation not applied",
                extra={"refund_id": refund.refund_id, "error_code": result.error_code},
            )
            return refund
        return Refund.objects.get(pk=refund.pk)

    def _schedule_sync(self, payment_id: str) -> None:
        if self.sync_scheduler is None:
            return
        try:
            self.sync_scheduler(payment_id)
        except Exception:
            self.get_logger().warning(
                "Could not schedule refund sync",
                extra={"payment_id": payment_id},
                exc_info=True,
            )

    def _cancel_subscription(self, payment: Payment, admin_email: str) -> bool:
        if self.subscriptions is None or not payment.user_email:
            return False

        logger = self.get_logger()
        for attempt in range(1, self.cancel_attempts + 1):
            try:
                result = self.subscriptions.cancel_for_user(payment.user_email, cancelled_by=admin_email)
            except Exception:
                logger.warning(
                    "Subscription cancellation raised",
                    extra={"payment_id": payment.transaction_id, "attempt": attempt},
                    exc_info=True,
                )
            else:
                if result.success:
                    return True
                if result.error_code == "NOT_FOUND":
                    return False
                logger.warning(
                    "Subscription cancellation failed",
                    extra={
                        "payment_id": payment.transaction_id,
                        "attempt": attempt,
                        "error_code": result.error_code,
                    },
                )
            if attempt < self.cancel_attempts:
                self.sleep(self.cancel_retry_delay)
        return False

    # =========================================================================
    # Gateway Sync
    # =========================================================================

    def check_refund_status(self, payment_id: str) -> ServiceResult[PaymentRefundSummary]:
        """
        Pull the payment's refunds from the gateway and apply them locally.

        Missing refunds are recorded (processed_by "system"); known ones are
        moved forward through RefundStateMachine. When the gateway is
        unreachable the local summary is returned with synced=False.
        """
        logger = self.get_logger()

        payment = Payment.objects.filter(transaction_id=payment_id).first()
        if payment is None:
            return ServiceResult.from_exception(
                PaymentNotFoundError(f"Payment {payment_id} not found", details={"payment_id": payment_id})
            )

        try:
            gateway_refunds = self.gateway.list_refunds(payment_id)
        except GatewayUnavailable as e:
            logger.warning(
                "Gateway unavailable, returning local refund summary",
                extra={"payment_id": payment_id, "error_code": e.error_code},
            )
            return ServiceResult.success(self.summarize(payment, synced=False))
        except GatewayRequestError as e:
            return ServiceResult.from_exception(e)

        for gateway_refund in gateway_refunds:
            self._sync_refund(payment, gateway_refund)

        return ServiceResult.success(self.summarize(payment))

    def _sync_refund(self, payment: Payment, gateway_refund: GatewayRefund) -> None:
        logger = self.get_logger()

        target = GATEWAY_STATUS_MAP.get(gateway_refund.status)
        if target is None:
            logger.warning(
                "Gateway reported an unknown refund status",
                extra={"refund_id": gateway_refund.id, "gateway_status": gateway_refund.status},
            )
            return

        if not Refund.objects.filter(refund_id=gateway_refund.id).exists():
            self._record_refund(payment, gateway_refund, processed_by=SYSTEM_ACTOR)
            logger.info(
                "Recorded refund found at gateway",
                extra={"refund_id": gateway_refund.id, "payment_id": payment.transaction_id},
            )

        raw = gateway_refund.raw_response
        result = self.state_machine.apply(
            gateway_refund.id,
            target,
            error_code=raw.get("error_code"),
            error_description=raw.get("error_description"),
            speed_processed=gateway_refund.speed_processed,
        )
        if not result.success:
            logger.warning(
                "Gateway refund status not applied",
                extra={"refund_id": gateway_refund.id, "error_code": result.error_code},
            )

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def remaining_refundable(payment: Payment) -> int:
        """Amount minus PROCESSED and in-flight refunds."""
        committed = (
            payment.refunds.filter(
                Q(status=RefundStatus.PROCESSED) | Q(status__in=REFUND_IN_FLIGHT_STATUSES)
            ).aggregate(total=Sum("amount"))["total"]
            or 0
        )
        return payment.amount - committed

    def summarize(self, payment: Payment, synced: bool = True) -> PaymentRefundSummary:
        refunds = list(payment.refunds.order_by("-created_at"))
        total_refunded = sum(r.amount for r in refunds if r.status == RefundStatus.PROCESSED)
        return PaymentRefundSummary(
            payment_id=payment.transaction_id,
            original_amount=payment.amount,
            currency=payment.currency,
            total_refunded=total_refunded,
            remaining_refundable=max(self.remaining_refundable(payment), 0),
            is_fully_refunded=total_refunded >= payment.amount,
            refunds=refunds,
            synced=synced,
        )

    def get_refunds_for_payment(self, payment_id: str) -> ServiceResult[PaymentRefundSummary]:
        payment = Payment.objects.filter(transaction_id=payment_id).first()
        if payment is None:
            return ServiceResult.from_exception(
                PaymentNotFoundError(f"Payment {payment_id} not found", details={"payment_id": payment_id})
            )
        return ServiceResult.success(self.summarize(payment))

    def get_refund(self, refund_id: str) -> ServiceResult[Refund]:
        refund = Refund.objects.select_related("payment").filter(refund_id=refund_id).first()
        if refund is None:
            return ServiceResult.from_exception(
                NotFoundError(f"Refund {refund_id} not found", details={"refund_id": refund_id})
            )
        return ServiceResult.success(refund)

    def refund_history(
        self,
        page: int = 1,
        page_size: int = 20,
        status: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        user_email: str | None = None,
    ) -> ServiceResult[PageResult[Refund]]:
        return self.aggregator.paginated(
            page=page,
            page_size=page_size,
            filters={
                "status": status,
                "start_date": start_date,
                "end_date": end_date,
                "user_email": user_email,
            },
        )

    def export_refunds_csv(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> ServiceResult[str]:
        """
        Refunds created in the inclusive date range as CSV text.

        Amounts are major units. At most export_max_rows rows, newest first.
        """
        try:
            refunds = self.aggregator.filter_refunds(
                {"start_date": start_date, "end_date": end_date}
            ).select_related("payment")[: self.export_max_rows]
        except ValidationError as e:
            return ServiceResult.from_exception(e)

        rows = (
            {
                "id": refund.refund_id,
                "payment_id": refund.payment.transaction_id,
                "user_email": refund.user_email,
                "amount": minor_to_major(refund.amount),
                "currency": refund.currency,
                "status": refund.status,
                "speed": refund.speed_processed or refund.speed_requested,
                "reason": refund.reason,
                "processed_by": refund.processed_by,
                "created_at": refund.created_at.isoformat(),
                "processed_at": refund.processed_at.isoformat() if refund.processed_at else "",
            }
            for refund in refunds
        )
        return ServiceResult.success(rows_to_csv(rows, REFUND_CSV_COLUMNS))
