"""
DRF views for payments app.

This module provides API views for:
- Refund initiation, status sync, history, metrics and CSV export
- Payment verification, history, metrics and CSV export
- Subscription status, history and admin cancellation
- Admin subscription list and analytics

Related files:
    - services/: Business logic behind every view
    - composition.py: Builds the services with their collaborators
    - serializers.py: Request/response serializers
    - urls.py: URL routing

Endpoints:
    GET  /api/v1/payments/refunds/ - Refund history (paged)
    GET  /api/v1/payments/refunds/metrics/ - Refund metrics
    GET  /api/v1/payments/refunds/export/ - Refunds CSV
    GET  /api/v1/payments/refunds/<refund_id>/ - Single refund
    GET  /api/v1/payments/<payment_id>/refunds/ - Payment refund summary
    POST /api/v1/payments/<payment_id>/refunds/ - Initiate refund
    GET  /api/v1/payments/<payment_id>/refunds/status/ - Sync from gateway
    POST /api/v1/payments/verify/ - Record a verified checkout
    GET  /api/v1/payments/history/ - Payment history (paged)
    GET  /api/v1/payments/export/ - Payments CSV
    GET  /api/v1/payments/metrics/ - Financial metrics
    GET  /api/v1/payments/subscription/ - Current user's subscription
    GET  /api/v1/payments/subscription/history/ - Current user's subscriptions
    GET  /api/v1/payments/subscriptions/ - All subscriptions (paged)
    GET  /api/v1/payments/subscriptions/analytics/ - Subscription analytics
    POST /api/v1/payments/subscriptions/cancel/ - Admin cancel by email

Security:
    - Refund, report and admin subscription endpoints require staff users
    - verify/ and subscription/... require an authenticated user
"""

from __future__ import annotations

import logging

from django.http import HttpResponse
from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema

from payments.composition import (
    build_financial_aggregator,
    build_payment_service,
    build_refund_service,
    build_subscription_service,
)
from payments.serializers import (
    AdminSubscriptionSerializer,
    CancelSubscriptionSerializer,
    FinancialMetricsSerializer,
    InitiateRefundSerializer,
    PaymentRecordSerializer,
    PaymentRefundSummarySerializer,
    PaymentSerializer,
    RefundInitiationSerializer,
    RefundMetricsSerializer,
    RefundSerializer,
    SubscriptionAnalyticsSerializer,
    SubscriptionHistorySerializer,
    SubscriptionSerializer,
    SubscriptionStatusSerializer,
    VerifyPaymentSerializer,
)

logger = logging.getLogger(__name__)

# ServiceResult.error_code -> HTTP status
ERROR_STATUS = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "SIGNATURE_INVALID": status.HTTP_400_BAD_REQUEST,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "ILLEGAL_TRANSITION": status.HTTP_409_CONFLICT,
    "STALE_RECORD": status.HTTP_409_CONFLICT,
    "GATEWAY_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
    "GATEWAY_REQUEST_REJECTED": status.HTTP_502_BAD_GATEWAY,
}

PAGE_PARAMETERS = [
    OpenApiParameter(name="page", type=int, location=OpenApiParameter.QUERY, description="1-indexed page"),
    OpenApiParameter(
        name="pageSize", type=int, location=OpenApiParameter.QUERY, description="Items per page (1-100)"
    ),
    OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY, description="Status filter"),
    OpenApiParameter(
        name="startDate", type=str, location=OpenApiParameter.QUERY, description="Inclusive ISO date"
    ),
    OpenApiParameter(name="endDate", type=str, location=OpenApiParameter.QUERY, description="Inclusive ISO date"),
]

DATE_PARAMETERS = PAGE_PARAMETERS[3:]


def error_response(result) -> Response:
    """Render a failed ServiceResult with the matching HTTP status."""
    body = {"error": result.error, "error_code": result.error_code}
    if result.errors:
        body["errors"] = result.errors
    if result.details:
        body["details"] = result.details
    return Response(body, status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST))


def query_param(request, camel: str, snake: str, default=None):
    """Read a query parameter by its camelCase name, accepting snake_case too."""
    params = request.query_params
    return params.get(camel, params.get(snake, default))


def page_response(result, serializer_class) -> Response:
    page = result.data
    return Response(
        {
            "items": serializer_class(page.items, many=True).data,
            "page": page.page,
            "pageSize": page.page_size,
            "totalCount": page.total_count,
            "totalPages": page.total_pages,
        }
    )


def csv_response(content: str, prefix: str) -> HttpResponse:
    filename = f"{prefix}_{timezone.now():%Y%m%d_%H%M%S}.csv"
    response = HttpResponse(content, content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


# =============================================================================
# Refunds
# =============================================================================


class RefundHistoryView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="list_refunds",
        summary="Refund history",
        description="Paged refunds, newest first. A page past the end returns no items.",
        parameters=[
            *PAGE_PARAMETERS,
            OpenApiParameter(name="userEmail", type=str, location=OpenApiParameter.QUERY),
        ],
        responses={200: RefundSerializer(many=True), 400: OpenApiResponse(description="Invalid filters")},
        tags=["Payments - Refunds"],
    )
    def get(self, request):
        result = build_refund_service().refund_history(
            page=query_param(request, "page", "page", 1),
            page_size=query_param(request, "pageSize", "page_size", 20),
            status=request.query_params.get("status"),
            start_date=query_param(request, "startDate", "start_date"),
            end_date=query_param(request, "endDate", "end_date"),
            user_email=query_param(request, "userEmail", "user_email"),
        )
        if not result.success:
            return error_response(result)
        return page_response(result, RefundSerializer)


class RefundMetricsView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="get_refund_metrics",
        summary="Refund metrics",
        responses={200: RefundMetricsSerializer},
        tags=["Payments - Refunds"],
    )
    def get(self, request):
        result = build_financial_aggregator().refund_metrics()
        if not result.success:
            return error_response(result)
        return Response(RefundMetricsSerializer(result.data).data)


class RefundExportView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="export_refunds",
        summary="Export refunds as CSV",
        parameters=DATE_PARAMETERS,
        responses={(200, "text/csv"): str},
        tags=["Payments - Refunds"],
    )
    def get(self, request):
        result = build_refund_service().export_refunds_csv(
            start_date=query_param(request, "startDate", "start_date"),
            end_date=query_param(request, "endDate", "end_date"),
        )
        if not result.success:
            return error_response(result)
        return csv_response(result.data, "refunds")


class RefundDetailView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="get_refund",
        summary="Get refund",
        responses={200: RefundSerializer, 404: OpenApiResponse(description="Refund not found")},
        tags=["Payments - Refunds"],
    )
    def get(self, request, refund_id: str):
        result = build_refund_service().get_refund(refund_id)
        if not result.success:
            return error_response(result)
        return Response(RefundSerializer(result.data).data)


class PaymentRefundsView(APIView):
    """
    GET: refund summary of a payment from local records.
    POST: initiate a refund; the requesting admin is recorded as processed_by.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="get_payment_refunds",
        summary="Payment refund summary",
        responses={200: PaymentRefundSummarySerializer, 404: OpenApiResponse(description="Payment not found")},
        tags=["Payments - Refunds"],
    )
    def get(self, request, payment_id: str):
        result = build_refund_service().get_refunds_for_payment(payment_id)
        if not result.success:
            return error_response(result)
        return Response(PaymentRefundSummarySerializer(result.data).data)

    @extend_schema(
        operation_id="initiate_refund",
        summary="Initiate refund",
        request=InitiateRefundSerializer,
        responses={
            201: RefundInitiationSerializer,
            400: OpenApiResponse(description="Invalid amount or nothing left to refund"),
            404: OpenApiResponse(description="Payment not found"),
            503: OpenApiResponse(description="Gateway unavailable; nothing was recorded"),
        },
        tags=["Payments - Refunds"],
    )
    def post(self, request, payment_id: str):
        serializer = InitiateRefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = build_refund_service().initiate_refund(
            admin_email=request.user.email,
            payment_id=payment_id,
            **serializer.validated_data,
        )
        if not result.success:
            return error_response(result)
        return Response(RefundInitiationSerializer(result.data).data, status=status.HTTP_201_CREATED)


class PaymentRefundStatusView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="sync_payment_refunds",
        summary="Sync refund status from gateway",
        description="Falls back to local records with synced=false when the gateway is unreachable.",
        responses={200: PaymentRefundSummarySerializer, 404: OpenApiResponse(description="Payment not found")},
        tags=["Payments - Refunds"],
    )
    def get(self, request, payment_id: str):
        result = build_refund_service().check_refund_status(payment_id)
        if not result.success:
            return error_response(result)
        return Response(PaymentRefundSummarySerializer(result.data).data)


# =============================================================================
# Payments
# =============================================================================


class VerifyPaymentView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="verify_payment",
        summary="Record a verified checkout",
        request=VerifyPaymentSerializer,
        responses={
            201: PaymentRecordSerializer,
            200: PaymentRecordSerializer,
            400: OpenApiResponse(description="Bad signature or amount mismatch"),
        },
        tags=["Payments - Payments"],
    )
    def post(self, request):
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = build_payment_service().record_verified_payment(
            user=request.user,
            order_id=data["order_id"],
            transaction_id=data["payment_id"],
            signature=data["signature"],
            service_code=data["service_code"],
            amount=data.get("amount"),
        )
        if not result.success:
            return error_response(result)
        return Response(
            PaymentRecordSerializer(result.data).data,
            status=status.HTTP_201_CREATED if result.data.created else status.HTTP_200_OK,
        )


class PaymentHistoryView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="list_payments",
        summary="Payment history",
        parameters=[
            *PAGE_PARAMETERS,
            OpenApiParameter(name="userEmail", type=str, location=OpenApiParameter.QUERY),
        ],
        responses={200: PaymentSerializer(many=True)},
        tags=["Payments - Payments"],
    )
    def get(self, request):
        result = build_payment_service().payment_history(
            page=query_param(request, "page", "page", 1),
            page_size=query_param(request, "pageSize", "page_size", 20),
            status=request.query_params.get("status"),
            start_date=query_param(request, "startDate", "start_date"),
            end_date=query_param(request, "endDate", "end_date"),
            user_email=query_param(request, "userEmail", "user_email"),
        )
        if not result.success:
            return error_response(result)
        return page_response(result, PaymentSerializer)


class PaymentExportView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="export_payments",
        summary="Export payments as CSV",
        parameters=DATE_PARAMETERS,
        responses={(200, "text/csv"): str},
        tags=["Payments - Payments"],
    )
    def get(self, request):
        result = build_payment_service().export_payments_csv(
            start_date=query_param(request, "startDate", "start_date"),
            end_date=query_param(request, "endDate", "end_date"),
        )
        if not result.success:
            return error_response(result)
        return csv_response(result.data, "payments")


class FinancialMetricsView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="get_financial_metrics",
        summary="Financial metrics",
        responses={200: FinancialMetricsSerializer},
        tags=["Payments - Payments"],
    )
    def get(self, request):
        result = build_financial_aggregator().financial_metrics()
        if not result.success:
            return error_response(result)
        return Response(FinancialMetricsSerializer(result.data).data)


# =============================================================================
# Subscriptions
# =============================================================================


class SubscriptionStatusView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_subscription_status",
        summary="Current subscription",
        responses={200: SubscriptionStatusSerializer},
        tags=["Payments - Subscriptions"],
    )
    def get(self, request):
        result = build_subscription_service().get_status(request.user.email)
        if not result.success:
            return error_response(result)
        return Response(SubscriptionStatusSerializer(result.data).data)


class CancelSubscriptionView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="cancel_subscription",
        summary="Cancel a user's subscription",
        request=CancelSubscriptionSerializer,
        responses={
            200: SubscriptionSerializer,
            404: OpenApiResponse(description="No active subscription"),
            409: OpenApiResponse(description="Subscription changed during cancellation"),
        },
        tags=["Payments - Subscriptions"],
    )
    def post(self, request):
        serializer = CancelSubscriptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = build_subscription_service().cancel_for_user(
            serializer.validated_data["user_email"],
            cancelled_by=request.user.email,
        )
        if not result.success:
            return error_response(result)
        return Response(SubscriptionSerializer(result.data).data)


class SubscriptionHistoryView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_subscription_history",
        summary="Subscription history",
        description="Every subscription the current user has held, newest first.",
        responses={200: SubscriptionHistorySerializer},
        tags=["Payments - Subscriptions"],
    )
    def get(self, request):
        result = build_subscription_service().history(request.user.email)
        if not result.success:
            return error_response(result)
        return Response(SubscriptionHistorySerializer(result.data).data)


class AdminSubscriptionListView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="list_subscriptions",
        summary="All subscriptions",
        description="Paged subscriptions across all users, newest first.",
        parameters=[
            *PAGE_PARAMETERS,
            OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY),
        ],
        responses={
            200: AdminSubscriptionSerializer(many=True),
            400: OpenApiResponse(description="Invalid paging or status"),
        },
        tags=["Payments - Subscriptions"],
    )
    def get(self, request):
        result = build_subscription_service().paginated(
            page=query_param(request, "page", "page", 1),
            page_size=query_param(request, "pageSize", "page_size", 20),
            status=request.query_params.get("status"),
        )
        if not result.success:
            return error_response(result)
        return page_response(result, AdminSubscriptionSerializer)


class SubscriptionAnalyticsView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="get_subscription_analytics",
        summary="Subscription analytics",
        responses={200: SubscriptionAnalyticsSerializer},
        tags=["Payments - Subscriptions"],
    )
    def get(self, request):
        result = build_subscription_service().analytics()
        if not result.success:
            return error_response(result)
        return Response(SubscriptionAnalyticsSerializer(result.data).data)
