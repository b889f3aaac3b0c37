"""
Payment gateway REST adapter.

This module provides the GatewayClient class which encapsulates all
refund-related gateway API calls. All gateway traffic goes through this
client to ensure consistent timeouts, error translation and logging.

Features:
- Bounded timeout on every call (PAYMENT_GATEWAY_TIMEOUT_SECONDS)
- Basic auth from a TTL credential cache
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Normalisation of the gateway's [] placeholders for empty objects

Configuration (via settings):
- PAYMENT_GATEWAY_BASE_URL: API root (default: https://api.razorpay.com/v1)
- PAYMENT_GATEWAY_KEY_ID / PAYMENT_GATEWAY_KEY_SECRET: API key pair
- PAYMENT_GATEWAY_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from payments.adapters import GatewayClient

    client = GatewayClient(base_url=..., credentials=cache, timeout=10)
    refund = client.create_refund("pay_29QQoUBi66xm2f", amount=25000, speed="optimum")
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from typing import TYPE_CHECKING, Any

import requests

from payments.exceptions import GatewayRequestError, GatewayUnavailable
from payments.state_machines import RefundStatus

if TYPE_CHECKING:
    from payments.adapters.credentials import GatewayCredentialCache


# =============================================================================
# Data Types
# =============================================================================

# Gateway fields that arrive as [] when they are empty objects
OBJECT_FIELDS = ("notes", "acquirer_data")

# Gateway refund status -> local RefundStatus
GATEWAY_STATUS_MAP = {
    "created": RefundStatus.INITIATED,
    "pending": RefundStatus.PROCESSING,
    "processed": RefundStatus.PROCESSED,
    "failed": RefundStatus.FAILED,
}


@dataclass
class GatewayRefund:
    """
    Refund as reported by the gateway.

    Attributes:
        id: Gateway refund ID (rfnd_xxx)
        payment_id: Gateway payment ID (pay_xxx)
        amount: Refunded amount in paise
        currency: Currency code
        status: Gateway status (pending, processed, failed)
        speed_requested: optimum or normal
        speed_processed: instant or normal, once known
        created_at: Gateway creation time (UTC)
        raw_response: Full normalised response dict
    """

    id: str
    payment_id: str
    amount: int
    currency: str
    status: str
    speed_requested: str | None = None
    speed_processed: str | None = None
    receipt: str | None = None
    batch_id: str | None = None
    notes: dict[str, Any] = field(default_factory=dict)
    acquirer_data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> GatewayRefund:
        """
        Build a GatewayRefund from a gateway refund entity.

        Raises:
            GatewayRequestError: Entity without an id, or with a
                non-numeric amount or created_at
        """
        data = normalize_entity(payload)
        try:
            refund_id = data["id"]
            amount = int(data.get("amount") or 0)
            created_at = data.get("created_at")
            created_at = (
                datetime.fromtimestamp(int(created_at), tz=dt_timezone.utc)
                if created_at
                else None
            )
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
            raise GatewayRequestError(
                "Malformed gateway response",
                gateway_code="malformed_response",
                details={"refund_id": data.get("id")},
            ) from e
        return cls(
            id=refund_id,
            payment_id=data.get("payment_id") or "",
            amount=amount,
            currency=(data.get("currency") or "INR").upper(),
            status=(data.get("status") or "pending").lower(),
            speed_requested=data.get("speed_requested"),
            speed_processed=data.get("speed_processed"),
            receipt=data.get("receipt"),
            batch_id=data.get("batch_id"),
            notes=data.get("notes") or {},
            acquirer_data=data.get("acquirer_data") or {},
            created_at=created_at,
            raw_response=data,
        )


def normalize_entity(payload: dict[str, Any]) -> dict[str, Any]:
    """Replace [] with {} on object-valued fields and drop null map values."""
    data = dict(payload)
    for name in OBJECT_FIELDS:
        value = data.get(name)
        if value is None or value == []:
            data[name] = {}
        elif isinstance(value, dict):
            data[name] = {k: v for k, v in value.items() if v is not None}
    return data


def parse_gateway_error(body: Any) -> tuple[str, str | None]:
    """
    Extract (description, code) from a gateway error body.

    Example body:
        {"error": {"code": "BAD_REQUEST_ERROR",
                   "description": "The refund amount is invalid",
                   "field": "amount"}}
    """
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = body["error"]
        description = error.get("description")
        code = error.get("code")
        error_field = error.get("field")
        if description and error_field:
            return f"{description} (Field: {error_field})", code
        if description:
            return description, code
        if code:
            return f"Gateway error: {code}", code
    return "Gateway API error", None


# =============================================================================
# Gateway Client
# =============================================================================


class GatewayClient:
    """
    Client for the gateway refund API.

    Thread-safe for use from Celery workers: the only shared state is
    the requests Session and the credential cache.

    Args:
        base_url: API root, without trailing slash
        credentials: Cache yielding the Basic-auth key pair
        timeout: Seconds before a call is abandoned as GatewayUnavailable
        session: Optional requests Session (tests inject a mock)
    """

    def __init__(
        self,
        base_url: str,
        credentials: GatewayCredentialCache,
        timeout: float = 10,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Core Operations
    # =========================================================================

    def create_refund(
        self,
        payment_id: str,
        amount: int,
        speed: str = "optimum",
        notes: dict[str, str] | None = None,
        receipt: str | None = None,
    ) -> GatewayRefund:
        """
        Create a refund for a captured payment.

        The gateway requires an explicit amount even for full refunds.

        Raises:
            GatewayUnavailable: Timeout, connection error, 5xx or 429
            GatewayRequestError: Gateway rejected the refund
        """
        body: dict[str, Any] = {"amount": amount, "speed": speed}
        if notes:
            body["notes"] = notes
        if receipt:
            body["receipt"] = receipt

        data = self._request(
            "POST",
            f"/payments/{payment_id}/refund",
            json=body,
            log_context={
                "operation": "create_refund",
                "payment_id": payment_id,
                "amount": amount,
                "speed": speed,
            },
        )
        return GatewayRefund.from_payload(data)

    def fetch_refund(self, refund_id: str) -> GatewayRefund:
        """Fetch a single refund by gateway ID."""
        data = self._request(
            "GET",
            f"/refunds/{refund_id}",
            log_context={"operation": "fetch_refund", "refund_id": refund_id},
        )
        return GatewayRefund.from_payload(data)

    def list_refunds(self, payment_id: str) -> list[GatewayRefund]:
        """List every refund the gateway holds for a payment."""
        data = self._request(
            "GET",
            f"/payments/{payment_id}/refunds",
            log_context={"operation": "list_refunds", "payment_id": payment_id},
        )
        return [GatewayRefund.from_payload(item) for item in data.get("items") or []]

    # =========================================================================
    # Transport
    # =========================================================================

    def _request(
        self,
        method: str,
        path: str,
        log_context: dict[str, Any],
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        logger = self.get_logger()
        credentials = self.credentials.get()

        start_time = time.time()
        logger.info("Starting gateway operation", extra=log_context)

        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                auth=(credentials.key_id, credentials.key_secret),
                timeout=self.timeout,
            )
        except requests.Timeout:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Gateway call timed out",
                extra={**log_context, "duration_ms": duration_ms, "timeout": self.timeout},
            )
            raise GatewayUnavailable(
                f"Gateway did not respond within {self.timeout}s",
                gateway_code="timeout",
            )
        except requests.RequestException as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Connection error to gateway",
                extra={**log_context, "duration_ms": duration_ms},
                exc_info=True,
            )
            raise GatewayUnavailable(
                "Could not connect to payment gateway. Please retry.",
                gateway_code="connection_error",
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        log_context = {
            **log_context,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }

        if response.ok:
            try:
                data = response.json()
            except ValueError as e:
                logger.error("Gateway returned a non-JSON body", extra=log_context)
                raise GatewayRequestError(
                    "Malformed gateway response",
                    gateway_code="malformed_response",
                    status_code=response.status_code,
                ) from e
            logger.info("Gateway operation completed", extra=log_context)
            return data if isinstance(data, dict) else {"items": data}

        raise self._error_from_response(response, log_context)

    def _error_from_response(
        self,
        response: requests.Response,
        log_context: dict[str, Any],
    ) -> GatewayUnavailable | GatewayRequestError:
        """
        Translate a non-2xx response to a domain exception.

        Returns:
            GatewayUnavailable for 429 or 5xx (transient),
            GatewayRequestError for any other 4xx (permanent)
        """
        logger = self.get_logger()
        try:
            body = response.json()
        except ValueError:
            body = None
        description, gateway_code = parse_gateway_error(body)
        status_code = response.status_code

        if status_code == 429:
            logger.warning("Rate limited by gateway", extra=log_context)
            return GatewayUnavailable(
                "Gateway rate limit exceeded. Please retry.",
                gateway_code=gateway_code or "rate_limit",
                status_code=status_code,
            )

        if status_code >= 500:
            logger.error("Gateway server error", extra=log_context)
            return GatewayUnavailable(
                "Payment gateway error. Please retry.",
                gateway_code=gateway_code or "server_error",
                status_code=status_code,
            )

        if status_code == 401:
            logger.critical("Gateway authentication failed - check API keys", extra=log_context)
            self.credentials.invalidate()
        else:
            logger.error(
                "Gateway rejected request",
                extra={**log_context, "gateway_code": gateway_code},
            )

        return GatewayRequestError(
            description,
            gateway_code=gateway_code,
            status_code=status_code,
        )
