"""
URL configuration for the Django application.

URL Structure:
    /                              - ReDoc API documentation
    /schema/                       - OpenAPI schema (YAML)
    /health/                       - Health check (database, Redis)
    /admin/                        - Django admin interface
    /refunds/webhook               - Gateway refund webhook (POST)
    /api/v1/payments/              - Payment endpoints
        webhooks/gateway/          - Gateway refund webhook (POST)
        refunds/                   - Refund history
        refunds/metrics/           - Refund metrics
        refunds/export/            - Refunds CSV
        refunds/{refund_id}/       - Refund detail
        {payment_id}/refunds/      - Refund summary (GET) / initiate (POST)
        {payment_id}/refunds/status/ - Sync refunds from gateway
        verify/                    - Record verified checkout
        history/                   - Payment history
        export/                    - Payments CSV
        metrics/                   - Financial metrics
        subscription/              - Current user's subscription
        subscriptions/cancel/      - Admin cancellation

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check
from payments.webhooks.views import gateway_webhook

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Health check
    path("health/", health_check, name="health_check"),
    # Admin
    path("admin/", admin.site.urls),
    # Gateway webhook at the path registered with the gateway
    path("refunds/webhook", gateway_webhook, name="refund_webhook"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Payments Admin"
admin.site.site_title = "Payments Admin Portal"
admin.site.index_title = "Payments, refunds and subscriptions"
