"""
Webhook endpoint view for gateway refund events.

The view:
1. Reads the raw body and the signature header
2. Hands both to WebhookIngestor (verify, parse, apply)
3. Maps the result to an HTTP status

Responses:
    200: Authenticated and parsed (applied, replayed, unknown refund,
         or rejected regression)
    400: Body could not be parsed
    401: Signature missing or wrong
    409: Refund kept changing under us; the gateway should redeliver

Usage:
    # In urls.py
    from payments.webhooks.views import gateway_webhook

    urlpatterns = [
        path("refunds/webhook", gateway_webhook, name="refund_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.composition import build_webhook_ingestor

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Gateway-Signature"
LEGACY_SIGNATURE_HEADER = "X-Razorpay-Signature"

ERROR_STATUS = {
    "SIGNATURE_INVALID": 401,
    "VALIDATION_ERROR": 400,
    "STALE_RECORD": 409,
}


@csrf_exempt
@require_POST
def gateway_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive a gateway refund webhook.

    Processing is synchronous: a refund transition is one row update
    under a row lock, well inside the gateway's delivery timeout.

    Security:
    - HMAC-SHA256 over the raw body, compared in constant time
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Example X-Gateway-Signature header:
        5f0b0c4c8e6d9b0f0b2a2c1b7b1b0d1c7f4a0e0c2b9a8f7e6d5c4b3a2f1e0d9c
    """
    signature = request.headers.get(SIGNATURE_HEADER) or request.headers.get(
        LEGACY_SIGNATURE_HEADER, ""
    )
    result = build_webhook_ingestor().handle(signature, request.body)

    if result.success:
        ack = result.data
        return JsonResponse(
            {"refundId": ack.refund_id, "status": ack.status, "outcome": ack.outcome},
            status=200,
        )

    status_code = ERROR_STATUS.get(result.error_code, 400)
    return JsonResponse(
        {"error": result.error, "error_code": result.error_code},
        status=status_code,
    )
