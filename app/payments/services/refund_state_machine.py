"""
Forward-only refund status transitions.

RefundStateMachine is the single writer of Refund.status. Every status
update, whether from a webhook, a gateway sync or an admin action, goes
through apply().

Rules:
    INITIATED < PROCESSING < PROCESSED; FAILED from INITIATED or PROCESSING.
    Same status again: no-op success, timestamps untouched.
    Anything backwards or terminal -> other terminal: IllegalTransition.
    PROCESSED that would refund more than the payment: IllegalTransition.

Concurrency:
    The payment row is locked with select_for_update for the duration of
    the decision, which serializes transitions of sibling refunds and
    makes the conservation check exact. The refund save itself is a
    compare-and-swap on status (ConcurrentTransitionMixin). A lost swap
    re-reads and decides again; a replay then resolves as a no-op.

Usage:
    machine = RefundStateMachine(notifier=notifier)
    result = machine.apply("rfnd_FP8QHiV938haTz", RefundStatus.PROCESSED)
    if result.success and result.data.changed:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import transaction
from django.db.models import Sum
from django_fsm import ConcurrentTransition, can_proceed

from core.services import BaseService, ServiceResult
from payments.exceptions import IllegalTransition, StaleRecordError, UnknownRefund
from payments.models import Payment, Refund
from payments.notifications import notify, refund_message
from payments.state_machines import RefundStatus

if TYPE_CHECKING:
    from datetime import datetime

    from toolkit.protocols import NotificationSender

DEFAULT_FAILURE_CODE = "GATEWAY_ERROR"
DEFAULT_FAILURE_DESCRIPTION = "Refund failed at gateway"

# Statuses that trigger a user notice when entered
NOTIFY_ON = frozenset([RefundStatus.PROCESSED, RefundStatus.FAILED])


@dataclass
class TransitionOutcome:
    """Result of applying a status to a refund."""

    refund_id: str
    previous_status: str
    status: str
    changed: bool


def parse_refund_status(value) -> RefundStatus:
    """
    Coerce a status name to RefundStatus, case-insensitively.

    Raises:
        ValueError: If value names no refund status
    """
    if isinstance(value, RefundStatus):
        return value
    return RefundStatus(str(value).strip().lower())


class RefundStateMachine(BaseService):
    """
    Applies gateway-reported statuses to local refunds.

    Args:
        notifier: Optional NotificationSender for completion/failure notices
        max_attempts: Compare-and-swap attempts before giving up
    """

    def __init__(
        self,
        notifier: NotificationSender | None = None,
        max_attempts: int = 3,
    ) -> None:
        self.notifier = notifier
        self.max_attempts = max_attempts

    def apply(
        self,
        refund_id: str,
        target_status,
        *,
        error_code: str | None = None,
        error_description: str | None = None,
        occurred_at: datetime | None = None,
        speed_processed: str | None = None,
    ) -> ServiceResult[TransitionOutcome]:
        """
        Move refund_id to target_status if that is a forward move.

        Returns:
            ServiceResult with TransitionOutcome on success; failures carry
            UNKNOWN_REFUND, ILLEGAL_TRANSITION, VALIDATION_ERROR or
            STALE_RECORD error codes
        """
        logger = self.get_logger()

        try:
            target = parse_refund_status(target_status)
        except ValueError:
            return ServiceResult.failure(
                f"Unknown refund status: {target_status}",
                error_code="VALIDATION_ERROR",
                details={"status": str(target_status)},
            )

        for attempt in range(1, self.max_attempts + 1):
            try:
                with transaction.atomic():
                    refund = self._lock_and_load(refund_id)
                    outcome = self._transition(
                        refund,
                        target,
                        error_code=error_code,
                        error_description=error_description,
                        occurred_at=occurred_at,
                        speed_processed=speed_processed,
                    )
            except ConcurrentTransition:
                logger.info(
                    "Refund changed concurrently, re-deciding",
                    extra={"refund_id": refund_id, "target_status": target, "attempt": attempt},
                )
                continue
            except UnknownRefund as e:
                return ServiceResult.from_exception(e)
            except IllegalTransition as e:
                logger.error(
                    "Illegal refund transition rejected",
                    extra={"refund_id": refund_id, **e.details},
                )
                return ServiceResult.from_exception(e)

            if outcome.changed:
                logger.info(
                    "Refund status updated",
                    extra={
                        "refund_id": refund_id,
                        "previous_status": outcome.previous_status,
                        "status": outcome.status,
                    },
                )
                if target in NOTIFY_ON:
                    self._notify(refund)
            else:
                logger.info(
                    "Refund already in requested status, nothing to do",
                    extra={"refund_id": refund_id, "status": outcome.status},
                )
            return ServiceResult.success(outcome)

        error = StaleRecordError(
            f"Refund {refund_id} kept changing; gave up after {self.max_attempts} attempts",
            details={"refund_id": refund_id, "target_status": str(target)},
        )
        logger.error(error.message, extra=error.details)
        return ServiceResult.from_exception(error)

    # =========================================================================
    # Internals
    # =========================================================================

    def _lock_and_load(self, refund_id: str) -> Refund:
        """Lock the parent payment row, then read the refund fresh."""
        payment_pk = (
            Refund.objects.filter(refund_id=refund_id)
            .values_list("payment_id", flat=True)
            .first()
        )
        if payment_pk is None:
            raise UnknownRefund(refund_id)

        Payment.objects.select_for_update().filter(pk=payment_pk).first()
        return Refund.objects.select_related("payment").get(refund_id=refund_id)

    def _transition(
        self,
        refund: Refund,
        target: RefundStatus,
        *,
        error_code: str | None,
        error_description: str | None,
        occurred_at: datetime | None,
        speed_processed: str | None,
    ) -> TransitionOutcome:
        previous = RefundStatus(refund.status)

        if previous == target:
            return TransitionOutcome(refund.refund_id, previous, target, changed=False)

        if target == RefundStatus.PROCESSING:
            method = refund.mark_processing
        elif target == RefundStatus.PROCESSED:
            method = refund.mark_processed
        elif target == RefundStatus.FAILED:
            method = refund.mark_failed
        else:
            method = None

        if method is None or not can_proceed(method):
            raise IllegalTransition(
                f"Refund {refund.refund_id} cannot move from {previous} to {target}",
                current_status=previous,
                target_status=target,
                details={"refund_id": refund.refund_id},
            )

        if target == RefundStatus.PROCESSED:
            self._check_conservation(refund)
            refund.mark_processed(processed_at=occurred_at, speed_processed=speed_processed)
        elif target == RefundStatus.FAILED:
            refund.mark_failed(
                error_code=error_code or DEFAULT_FAILURE_CODE,
                error_description=error_description or DEFAULT_FAILURE_DESCRIPTION,
                failed_at=occurred_at,
            )
        else:
            refund.mark_processing()

        refund.save()
        return TransitionOutcome(refund.refund_id, previous, target, changed=True)

    def _check_conservation(self, refund: Refund) -> None:
        """Refuse PROCESSED if processed refunds would exceed the payment."""
        already = (
            Refund.objects.filter(payment_id=refund.payment_id, status=RefundStatus.PROCESSED)
            .exclude(pk=refund.pk)
            .aggregate(total=Sum("amount"))["total"]
            or 0
        )
        if already + refund.amount > refund.payment.amount:
            raise IllegalTransition(
                f"Refund {refund.refund_id} would exceed the payment amount",
                current_status=refund.status,
                target_status=RefundStatus.PROCESSED,
                details={
                    "refund_id": refund.refund_id,
                    "payment_amount": refund.payment.amount,
                    "already_refunded": already,
                    "amount": refund.amount,
                },
            )

    def _notify(self, refund: Refund) -> None:
        title, body = refund_message(refund.status, refund.amount, refund.currency)
        notify(
            self.notifier,
            refund.payment.user_id,
            title,
            body,
            refund_id=refund.refund_id,
            status=refund.status,
        )
