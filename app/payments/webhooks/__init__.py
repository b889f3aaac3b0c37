"""
Webhook handling for refund events from the payment gateway.

Webhooks are verified against the raw body, parsed, and applied to the
local refund record through RefundStateMachine.

Modules:
    signature.py: HMAC-SHA256 sign/verify helpers
    ingestor.py: WebhookIngestor (verify -> parse -> apply)
    views.py: Django endpoint

Usage:
    # In urls.py
    from payments.webhooks.views import gateway_webhook

    urlpatterns = [
        path("refunds/webhook", gateway_webhook, name="refund_webhook"),
    ]
"""
