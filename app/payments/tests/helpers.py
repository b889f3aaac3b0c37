"""
Test doubles and payload builders shared by payment tests.
"""

import json

from payments.adapters import GatewayRefund
from payments.webhooks.signature import sign

WEBHOOK_SECRET = "whsec_test"


class RecordingNotifier:
    """NotificationSender double that records every message."""

    def __init__(self, result=True):
        self.result = result
        self.sent = []

    def send(self, user_id, title, body, **kwargs):
        self.sent.append({"user_id": user_id, "title": title, "body": body, **kwargs})
        return self.result

    @property
    def titles(self):
        return [message["title"] for message in self.sent]


class FailingNotifier:
    """NotificationSender double whose transport is down."""

    def __init__(self):
        self.calls = 0

    def send(self, user_id, title, body, **kwargs):
        self.calls += 1
        raise ConnectionError("push provider unreachable")


def gateway_refund(
    refund_id="rfnd_gw00000001",
    payment_id="pay_test00000000",
    amount=10000,
    status="created",
    **extra,
):
    """Build a GatewayRefund as the adapter would return it."""
    payload = {
        "id": refund_id,
        "entity": "refund",
        "payment_id": payment_id,
        "amount": amount,
        "currency": "INR",
        "status": status,
        "speed_requested": "optimum",
        "notes": [],
        "created_at": 1700000000,
    }
    payload.update(extra)
    return GatewayRefund.from_payload(payload)


def signed_body(payload, secret=WEBHOOK_SECRET):
    """Return (raw_body, signature) for a webhook payload dict."""
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return raw, sign(raw, secret)


def reload(instance):
    """
    Fetch a fresh copy of a model instance.

    refresh_from_db() assigns every field, which a protected FSMField
    rejects, so FSM-backed models are re-queried instead.
    """
    return type(instance).objects.get(pk=instance.pk)
