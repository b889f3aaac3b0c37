"""
URL configuration for the payments app.

Routes:
    - POST webhooks/gateway/ - Gateway refund webhook
    - refunds/...            - Refund history, metrics, export, detail
    - <payment_id>/refunds/  - Per-payment refund summary, initiation, sync
    - verify/, history/, export/, metrics/ - Payments
    - subscription/, subscription/history/ - Current user's subscriptions
    - subscriptions/, subscriptions/analytics/, subscriptions/cancel/ - Admin subscriptions

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
The webhook is also mounted at /refunds/webhook by config/urls.py.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import gateway_webhook

app_name = "payments"

urlpatterns = [
    # Webhook endpoints
    path("webhooks/gateway/", gateway_webhook, name="gateway_webhook"),
    # Refunds
    path("refunds/", views.RefundHistoryView.as_view(), name="refund_history"),
    path("refunds/metrics/", views.RefundMetricsView.as_view(), name="refund_metrics"),
    path("refunds/export/", views.RefundExportView.as_view(), name="refund_export"),
    path("refunds/<str:refund_id>/", views.RefundDetailView.as_view(), name="refund_detail"),
    # Payments
    path("verify/", views.VerifyPaymentView.as_view(), name="payment_verify"),
    path("history/", views.PaymentHistoryView.as_view(), name="payment_history"),
    path("export/", views.PaymentExportView.as_view(), name="payment_export"),
    path("metrics/", views.FinancialMetricsView.as_view(), name="financial_metrics"),
    # Subscriptions
    path("subscription/", views.SubscriptionStatusView.as_view(), name="subscription_status"),
    path("subscription/history/", views.SubscriptionHistoryView.as_view(), name="subscription_history"),
    path("subscriptions/", views.AdminSubscriptionListView.as_view(), name="subscription_list"),
    path(
        "subscriptions/analytics/",
        views.SubscriptionAnalyticsView.as_view(),
        name="subscription_analytics",
    ),
    path("subscriptions/cancel/", views.CancelSubscriptionView.as_view(), name="subscription_cancel"),
    # Per-payment refunds
    path("<str:payment_id>/refunds/", views.PaymentRefundsView.as_view(), name="payment_refunds"),
    path(
        "<str:payment_id>/refunds/status/",
        views.PaymentRefundStatusView.as_view(),
        name="payment_refund_status",
    ),
]
