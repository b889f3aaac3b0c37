"""
Tests for WebhookIngestor and payload parsing.

Tests cover:
- Signature failure leaves state unchanged
- Flat and envelope payload shapes
- Acknowledgement of replays, unknown refunds and regressions
- Malformed bodies
"""

from unittest.mock import patch

import pytest

from core.exceptions import ValidationError
from core.services import ServiceResult
from payments.models import Refund
from payments.state_machines import RefundStatus
from payments.tests.factories import RefundFactory
from payments.tests.helpers import WEBHOOK_SECRET, reload, signed_body
from payments.webhooks.ingestor import Outcome, WebhookIngestor, map_status, parse_event


def envelope(refund_id, event="refund.processed", status="processed", **entity):
    return {
        "entity": "event",
        "event": event,
        "contains": ["refund", "payment"],
        "payload": {
            "refund": {
                "entity": {
                    "id": refund_id,
                    "entity": "refund",
                    "amount": 10000,
                    "currency": "INR",
                    "payment_id": "pay_29QQoUBi66xm2f",
                    "notes": [],
                    "status": status,
                    **entity,
                }
            }
        },
        "created_at": 1700000000,
    }


@pytest.fixture
def ingestor(state_machine):
    return WebhookIngestor(secret=WEBHOOK_SECRET, state_machine=state_machine)


# =============================================================================
# Parsing
# =============================================================================


class TestMapStatus:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("PROCESSED", RefundStatus.PROCESSED),
            ("processed", RefundStatus.PROCESSED),
            ("pending", RefundStatus.PROCESSING),
            ("created", RefundStatus.INITIATED),
            ("FAILED", RefundStatus.FAILED),
            ("processing", RefundStatus.PROCESSING),
        ],
    )
    def test_known_statuses(self, value, expected):
        assert map_status(value) == expected

    @pytest.mark.parametrize("value", ["", None, "refunded", 42])
    def test_rejects_unknown(self, value):
        with pytest.raises(ValidationError):
            map_status(value)


class TestParseEvent:
    def test_flat_payload(self):
        event = parse_event(
            b'{"refundId":"rfnd_1","status":"FAILED","paymentId":"pay_1",'
            b'"errorCode":"BAD_REQUEST_ERROR","errorDescription":"Account closed"}'
        )

        assert event.refund_id == "rfnd_1"
        assert event.status == RefundStatus.FAILED
        assert event.payment_id == "pay_1"
        assert event.error_code == "BAD_REQUEST_ERROR"
        assert event.error_description == "Account closed"

    def test_envelope_event_name_wins(self):
        """refund.processed overrides a stale entity status."""
        raw, _ = signed_body(envelope("rfnd_1", event="refund.processed", status="pending"))

        event = parse_event(raw)

        assert event.status == RefundStatus.PROCESSED
        assert event.occurred_at is not None

    def test_envelope_falls_back_to_entity_status(self):
        raw, _ = signed_body(envelope("rfnd_1", event="refund.speed_changed", status="pending"))

        assert parse_event(raw).status == RefundStatus.PROCESSING

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"[1, 2]",
            b'{"status":"PROCESSED"}',
            b'{"refundId":"rfnd_1"}',
            b'{"event":"refund.processed","payload":{}}',
            b'{"event":"refund.processed","payload":{"refund":{"entity":{"status":"processed"}}}}',
        ],
    )
    def test_malformed(self, raw):
        with pytest.raises(ValidationError):
            parse_event(raw)


# =============================================================================
# Handling
# =============================================================================


@pytest.mark.django_db
class TestWebhookIngestor:
    def test_applies_transition(self, ingestor, refund):
        raw, signature = signed_body({"refundId": refund.refund_id, "status": "PROCESSED"})

        result = ingestor.handle(signature, raw)

        assert result.success
        assert result.data.outcome == Outcome.APPLIED
        refund = reload(refund)
        assert refund.status == RefundStatus.PROCESSED

    def test_bad_signature_changes_nothing(self, ingestor, refund):
        raw, _ = signed_body({"refundId": refund.refund_id, "status": "PROCESSED"})

        result = ingestor.handle("0" * 64, raw)

        assert result.error_code == "SIGNATURE_INVALID"
        refund = reload(refund)
        assert refund.status == RefundStatus.INITIATED

    def test_missing_signature(self, ingestor, refund):
        raw, _ = signed_body({"refundId": refund.refund_id, "status": "PROCESSED"})

        assert ingestor.handle(None, raw).error_code == "SIGNATURE_INVALID"

    def test_signature_checked_before_parsing(self, ingestor):
        """Garbage with a bad signature is a 401, not a 400."""
        assert ingestor.handle("bad", b"not json").error_code == "SIGNATURE_INVALID"

    def test_unparseable_body(self, ingestor):
        raw, signature = signed_body({"status": "PROCESSED"})

        assert ingestor.handle(signature, raw).error_code == "VALIDATION_ERROR"

    def test_replay_is_acknowledged(self, ingestor, refund):
        raw, signature = signed_body({"refundId": refund.refund_id, "status": "PROCESSED"})
        ingestor.handle(signature, raw)

        result = ingestor.handle(signature, raw)

        assert result.success
        assert result.data.outcome == Outcome.NO_OP

    def test_unknown_refund_is_acknowledged(self, ingestor, db):
        """Webhooks never create refunds; unknown ids are logged and acked."""
        raw, signature = signed_body({"refundId": "rfnd_never_seen", "status": "PROCESSED"})

        result = ingestor.handle(signature, raw)

        assert result.success
        assert result.data.outcome == Outcome.UNKNOWN_REFUND
        assert not Refund.objects.filter(refund_id="rfnd_never_seen").exists()

    def test_regression_is_acknowledged(self, ingestor, payment):
        refund = RefundFactory(payment=payment, status=RefundStatus.PROCESSED)
        raw, signature = signed_body({"refundId": refund.refund_id, "status": "PROCESSING"})

        result = ingestor.handle(signature, raw)

        assert result.success
        assert result.data.outcome == Outcome.ILLEGAL_TRANSITION
        refund = reload(refund)
        assert refund.status == RefundStatus.PROCESSED

    def test_envelope_failure_details(self, ingestor, refund):
        raw, signature = signed_body(
            envelope(
                refund.refund_id,
                event="refund.failed",
                status="failed",
                error_code="BAD_REQUEST_ERROR",
                error_description="Beneficiary account closed",
            )
        )

        result = ingestor.handle(signature, raw)

        assert result.data.outcome == Outcome.APPLIED
        refund = reload(refund)
        assert refund.status == RefundStatus.FAILED
        assert refund.error_description == "Beneficiary account closed"

    def test_stale_record_is_not_acknowledged(self, ingestor, refund):
        stale = ServiceResult.failure("kept changing", error_code="STALE_RECORD")
        with patch.object(ingestor.state_machine, "apply", return_value=stale):
            raw, signature = signed_body({"refundId": refund.refund_id, "status": "PROCESSED"})
            result = ingestor.handle(signature, raw)

        assert result.error_code == "STALE_RECORD"
