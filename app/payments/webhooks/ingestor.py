"""
Gateway refund webhook ingestion.

WebhookIngestor turns an authenticated webhook body into a refund state
transition. It is transport-agnostic: the Django view hands it the raw
header and body bytes and maps the result to an HTTP status.

Accepted payloads:

    Flat event:
        {"refundId": "rfnd_1", "status": "PROCESSED", "paymentId": "pay_1",
         "errorCode": null, "errorDescription": null}

    Gateway envelope:
        {"event": "refund.processed",
         "payload": {"refund": {"entity": {"id": "rfnd_1", "payment_id": "pay_1",
                                           "status": "processed", ...}}}}

In the envelope form the event name wins over the entity status.

Every authenticated, parseable payload is acknowledged, including replays,
unknown refunds and rejected regressions, so the gateway stops retrying.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import TYPE_CHECKING

from core.exceptions import ValidationError
from core.services import BaseService, ServiceResult
from payments.adapters.gateway_adapter import GATEWAY_STATUS_MAP, normalize_entity
from payments.exceptions import SignatureInvalid
from payments.services.refund_state_machine import parse_refund_status
from payments.state_machines import RefundStatus
from payments.webhooks.signature import verify

if TYPE_CHECKING:
    from typing import Any

    from payments.services.refund_state_machine import RefundStateMachine


# Envelope event name -> local status; wins over the entity status
EVENT_STATUS_MAP = {
    "refund.created": RefundStatus.INITIATED,
    "refund.processed": RefundStatus.PROCESSED,
    "refund.failed": RefundStatus.FAILED,
}


class Outcome:
    APPLIED = "applied"
    NO_OP = "no_op"
    UNKNOWN_REFUND = "unknown_refund"
    ILLEGAL_TRANSITION = "illegal_transition"


@dataclass
class RefundEvent:
    """A parsed refund status event."""

    refund_id: str
    status: RefundStatus
    payment_id: str | None = None
    error_code: str | None = None
    error_description: str | None = None
    speed_processed: str | None = None
    occurred_at: datetime | None = None


@dataclass
class WebhookAck:
    """What the endpoint acknowledges back to the gateway."""

    refund_id: str
    status: str
    outcome: str


def map_status(value: Any) -> RefundStatus:
    """
    Map a gateway or local status name to RefundStatus.

    Raises:
        ValidationError: If the status is not recognised
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("status is required", details={"status": value})
    key = value.strip().lower()
    if key in GATEWAY_STATUS_MAP:
        return GATEWAY_STATUS_MAP[key]
    try:
        return parse_refund_status(key)
    except ValueError:
        raise ValidationError(f"Unknown refund status: {value}", details={"status": value}) from None


def parse_event(raw_body: bytes) -> RefundEvent:
    """
    Parse a webhook body into a RefundEvent.

    Raises:
        ValidationError: Body is not JSON or lacks refund id / status
    """
    try:
        body = json.loads(raw_body)
    except (TypeError, ValueError, UnicodeDecodeError):
        raise ValidationError("Webhook body is not valid JSON") from None
    if not isinstance(body, dict):
        raise ValidationError("Webhook body must be a JSON object")

    if "payload" in body or "event" in body:
        return _parse_envelope(body)
    return _parse_flat(body)


def _parse_flat(body: dict[str, Any]) -> RefundEvent:
    refund_id = body.get("refundId") or body.get("refund_id")
    if not isinstance(refund_id, str) or not refund_id:
        raise ValidationError("refundId is required", details={"field": "refundId"})
    return RefundEvent(
        refund_id=refund_id,
        status=map_status(body.get("status")),
        payment_id=body.get("paymentId") or body.get("payment_id"),
        error_code=body.get("errorCode") or body.get("error_code"),
        error_description=body.get("errorDescription") or body.get("error_description"),
        speed_processed=body.get("speedProcessed") or body.get("speed_processed"),
    )


def _parse_envelope(body: dict[str, Any]) -> RefundEvent:
    try:
        entity = body["payload"]["refund"]["entity"]
    except (KeyError, TypeError):
        raise ValidationError(
            "Webhook payload.refund.entity is missing",
            details={"field": "payload.refund.entity"},
        ) from None
    if not isinstance(entity, dict):
        raise ValidationError("Webhook refund entity must be an object")
    entity = normalize_entity(entity)

    refund_id = entity.get("id")
    if not isinstance(refund_id, str) or not refund_id:
        raise ValidationError("Refund entity id is required", details={"field": "id"})

    event_name = str(body.get("event") or "").strip().lower()
    status = EVENT_STATUS_MAP.get(event_name)
    if status is None:
        status = map_status(entity.get("status"))

    occurred_at = None
    if body.get("created_at"):
        try:
            occurred_at = datetime.fromtimestamp(int(body["created_at"]), tz=dt_timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            occurred_at = None

    return RefundEvent(
        refund_id=refund_id,
        status=status,
        payment_id=entity.get("payment_id"),
        error_code=entity.get("error_code"),
        error_description=entity.get("error_description"),
        speed_processed=entity.get("speed_processed"),
        occurred_at=occurred_at,
    )


class WebhookIngestor(BaseService):
    """
    Verify, parse and apply a gateway refund webhook.

    Args:
        secret: Webhook signing secret
        state_machine: RefundStateMachine that owns refund status writes
    """

    def __init__(self, secret: str, state_machine: RefundStateMachine) -> None:
        self.secret = secret
        self.state_machine = state_machine

    def handle(self, signature_header: str | None, raw_body: bytes) -> ServiceResult[WebhookAck]:
        """
        Process one webhook delivery.

        Returns:
            Success with WebhookAck for every authenticated, parseable
            payload. Failure with SIGNATURE_INVALID (no state change) or
            VALIDATION_ERROR (unparseable body).
        """
        logger = self.get_logger()

        if not verify(raw_body, signature_header, self.secret):
            logger.warning(
                "Webhook signature verification failed",
                extra={"has_signature": bool(signature_header), "body_size": len(raw_body or b"")},
            )
            return ServiceResult.from_exception(SignatureInvalid("Invalid webhook signature"))

        try:
            event = parse_event(raw_body)
        except ValidationError as e:
            logger.warning("Webhook payload rejected", extra={"error": e.message})
            return ServiceResult.from_exception(e)

        logger.info(
            "Webhook received",
            extra={"refund_id": event.refund_id, "status": event.status},
        )

        result = self.state_machine.apply(
            event.refund_id,
            event.status,
            error_code=event.error_code,
            error_description=event.error_description,
            occurred_at=event.occurred_at,
            speed_processed=event.speed_processed,
        )

        if result.success:
            outcome = Outcome.APPLIED if result.data.changed else Outcome.NO_OP
        elif result.error_code == "UNKNOWN_REFUND":
            logger.warning(
                "Webhook for unknown refund acknowledged",
                extra={"refund_id": event.refund_id, "payment_id": event.payment_id},
            )
            outcome = Outcome.UNKNOWN_REFUND
        elif result.error_code == "ILLEGAL_TRANSITION":
            outcome = Outcome.ILLEGAL_TRANSITION
        else:
            # Lost every CAS attempt: let the gateway redeliver
            return result

        return ServiceResult.success(
            WebhookAck(refund_id=event.refund_id, status=str(event.status), outcome=outcome)
        )
