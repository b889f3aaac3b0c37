"""
Verified payment recording and payment reporting.

A Payment row is written once, when checkout confirmation proves the
gateway captured the charge. It is never updated afterwards; refunds
hang off it.

Usage:
    from payments.composition import build_payment_service

    result = build_payment_service().record_verified_payment(
        user=request.user,
        order_id="order_DBJOWzybf0sJbb",
        transaction_id="pay_29QQoUBi66xm2f",
        signature=request.data["signature"],
        service_code="PREMIUM_ONE",
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from core.exceptions import ValidationError
from core.helpers import calculate_pagination
from core.services import BaseService, ServiceResult
from toolkit.helpers import mask_email, minor_to_major, rows_to_csv

from payments.exceptions import SignatureInvalid
from payments.models import Payment, Subscription
from payments.services.catalog_service import ServiceCatalog
from payments.services.financial_aggregator import FinancialAggregator, PageResult
from payments.state_machines import PaymentStatus
from payments.webhooks.signature import verify_payment_signature

if TYPE_CHECKING:
    from typing import Any

    from authentication.directory import UserDirectory
    from authentication.models import User

PAYMENT_CSV_COLUMNS = [
    "id",
    "user_email",
    "amount",
    "currency",
    "status",
    "service_code",
    "created_at",
    "processed_at",
]


@dataclass
class PaymentRecord:
    payment: Payment
    subscription: Subscription | None
    created: bool


class PaymentService(BaseService):
    """
    Args:
        signing_secret: Gateway key secret used for checkout signatures
        user_directory: Resolves the user_email history filter
        catalog: ServiceCatalog the checkout is priced against
        export_max_rows: Row cap for CSV export
    """

    def __init__(
        self,
        signing_secret: str,
        user_directory: UserDirectory | None = None,
        catalog: ServiceCatalog | None = None,
        export_max_rows: int = 10000,
    ) -> None:
        self.signing_secret = signing_secret
        self.user_directory = user_directory
        self.catalog = catalog or ServiceCatalog()
        self.export_max_rows = export_max_rows

    def record_verified_payment(
        self,
        user: User,
        order_id: str,
        transaction_id: str,
        signature: str,
        service_code: str,
        amount: int | None = None,
    ) -> ServiceResult[PaymentRecord]:
        """
        Record a checkout the gateway confirmed and start the subscription.

        Replaying the same transaction_id returns the existing record with
        created=False.

        Returns:
            Failures: VALIDATION_ERROR (missing fields, unknown service or
            amount mismatch), SIGNATURE_INVALID
        """
        logger = self.get_logger()

        validation = self.validate_required(
            order_id=order_id,
            transaction_id=transaction_id,
            signature=signature,
            service_code=service_code,
        )
        if validation:
            return validation

        if not verify_payment_signature(order_id, transaction_id, signature, self.signing_secret):
            logger.warning(
                "Checkout signature verification failed",
                extra={"order_id": order_id, "transaction_id": transaction_id},
            )
            return ServiceResult.from_exception(SignatureInvalid("Invalid payment signature"))

        existing = Payment.objects.filter(transaction_id=transaction_id).first()
        if existing is not None:
            return ServiceResult.success(self._existing_record(existing))

        lookup = self.catalog.get_active_service(service_code)
        if not lookup.success:
            return ServiceResult.from_exception(
                ValidationError(lookup.error, details={"service_code": service_code})
            )
        service = lookup.data
        if amount is not None and amount != service.amount:
            return ServiceResult.from_exception(
                ValidationError(
                    "Payment amount does not match the service price",
                    details={"amount": amount, "expected": service.amount},
                )
            )

        now = timezone.now()
        try:
            with transaction.atomic():
                payment = Payment.objects.create(
                    transaction_id=transaction_id,
                    order_id=order_id,
                    user=user,
                    user_email=user.email,
                    amount=service.amount,
                    currency=service.currency,
                    status=PaymentStatus.VERIFIED,
                    service_code=service.service_code,
                    verified_at=now,
                )
                subscription = Subscription.objects.create(
                    user=user,
                    service_code=service.service_code,
                    source_payment=payment,
                    start_date=now,
                    end_date=now + timedelta(days=service.duration_days),
                )
        except IntegrityError:
            # Concurrent confirmation of the same transaction
            payment = Payment.objects.get(transaction_id=transaction_id)
            return ServiceResult.success(self._existing_record(payment))

        logger.info(
            "Payment recorded",
            extra={
                "transaction_id": transaction_id,
                "amount": payment.amount,
                "service_code": service_code,
                "user_email": mask_email(user.email),
            },
        )
        return ServiceResult.success(PaymentRecord(payment=payment, subscription=subscription, created=True))

    @staticmethod
    def _existing_record(payment: Payment) -> PaymentRecord:
        subscription = Subscription.objects.filter(source_payment=payment).first()
        return PaymentRecord(payment=payment, subscription=subscription, created=False)

    # =========================================================================
    # Reporting
    # =========================================================================

    def filter_payments(self, filters: dict[str, Any]):
        queryset = Payment.objects.all().order_by("-created_at", "-pk")

        status = filters.get("status")
        if status:
            normalized = str(status).strip().lower()
            if normalized not in PaymentStatus.values:
                raise ValidationError(f"Unknown payment status: {status}", details={"status": status})
            queryset = queryset.filter(status=normalized)

        start, end = FinancialAggregator.date_range(filters.get("start_date"), filters.get("end_date"))
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
                    match |= Q(user_id=user_id)
            queryset = queryset.filter(match)

        return queryset

    def payment_history(
        self,
        page: int = 1,
        page_size: int = 20,
        status: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        user_email: str | None = None,
    ) -> ServiceResult[PageResult[Payment]]:
        try:
            page, page_size = FinancialAggregator.validate_page(page, page_size)
            queryset = self.filter_payments(
                {"status": status, "start_date": start_date, "end_date": end_date, "user_email": user_email}
            )
            total_count = queryset.count()
            window = calculate_pagination(total_count, page, page_size)
        except ValidationError as e:
            return ServiceResult.from_exception(e)

        items = list(queryset[window["offset"] : window["offset"] + window["limit"]])
        return ServiceResult.success(
            PageResult(
                items=items,
                total_count=total_count,
                page=page,
                page_size=page_size,
                total_pages=window["total_pages"],
            )
        )

    def export_payments_csv(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> ServiceResult[str]:
        try:
            payments = self.filter_payments({"start_date": start_date, "end_date": end_date})[
                : self.export_max_rows
            ]
        except ValidationError as e:
            return ServiceResult.from_exception(e)

        rows = (
            {
                "id": payment.transaction_id,
                "user_email": payment.user_email,
                "amount": minor_to_major(payment.amount),
                "currency": payment.currency,
                "status": payment.status,
                "service_code": payment.service_code,
                "created_at": payment.created_at.isoformat(),
                "processed_at": payment.verified_at.isoformat() if payment.verified_at else "",
            }
            for payment in payments
        )
        return ServiceResult.success(rows_to_csv(rows, PAYMENT_CSV_COLUMNS))
