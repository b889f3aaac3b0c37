"""
Payment-specific exceptions for refund reconciliation.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Payment entity lookup failures
    ├── PaymentValidationError - Payment validation failures
    ├── SignatureInvalid - Webhook/checkout HMAC did not verify (401)
    └── UnknownRefund - Webhook referenced a refund we never recorded

    GatewayError (inherits ExternalServiceError)
    ├── GatewayUnavailable - Timeout, connection error, 5xx, 429 (transient, retry)
    └── GatewayRequestError - Gateway rejected the request (permanent)

    IllegalTransition - Refund status regression (inherits ConflictError)
    StaleRecordError - Compare-and-swap lost to a concurrent writer (inherits ConflictError)
    LockAcquisitionError - Distributed lock already held (inherits ConflictError)

Usage:
    from payments.exceptions import GatewayUnavailable, IllegalTransition

    try:
        refund = gateway.create_refund(payment_id, amount)
    except GatewayUnavailable as e:
        # Nothing was written locally; the caller may retry later
        return ServiceResult.from_exception(e)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError, ExternalServiceError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Inherits from BaseApplicationError for consistent API error responses.
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError):
    """
    Raised when a payment entity cannot be found.

    Use for:
    - Payment lookup fails
    - Refund lookup fails (API reads)
    - Subscription lookup fails
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PaymentValidationError(PaymentError):
    """
    Raised when payment validation fails.

    Example:
        if amount > remaining:
            raise PaymentValidationError(
                "Refund amount exceeds remaining refundable amount",
                details={"amount": amount, "remaining": remaining},
            )
    """

    default_error_code: str = "VALIDATION_ERROR"


class SignatureInvalid(PaymentError):
    """
    Raised when an HMAC signature does not match the payload.

    No state is changed when this is raised. The webhook endpoint
    answers 401 so the gateway knows the delivery was rejected.
    """

    default_error_code: str = "SIGNATURE_INVALID"
    http_status: int = 401


class UnknownRefund(PaymentError):
    """
    Raised when a gateway event references a refund id with no local record.

    Webhooks never create refunds, so ingestion logs and acknowledges these.
    """

    default_error_code: str = "UNKNOWN_REFUND"
    http_status: int = 404

    def __init__(self, refund_id: str, details: dict[str, Any] | None = None):
        details = details or {}
        details["refund_id"] = refund_id
        super().__init__(f"Refund {refund_id} is not known", details=details)
        self.refund_id = refund_id


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(ExternalServiceError):
    """
    Base exception for payment gateway failures.

    Use is_retryable to determine retry behavior:
    - True: Transient error, safe to retry with backoff
    - False: Permanent error, do not retry
    """

    default_error_code: str = "GATEWAY_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        gateway_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if gateway_code:
            details["gateway_code"] = gateway_code
        if status_code:
            details["status_code"] = status_code
        super().__init__(
            message,
            error_code=error_code,
            service_name="payment_gateway",
            details=details,
        )
        self.gateway_code = gateway_code
        self.status_code = status_code


class GatewayUnavailable(GatewayError):
    """
    Gateway did not answer within the configured timeout, or answered 5xx/429.

    The local record is left unchanged. Operations that raise this are
    safe to retry.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    http_status: int = 503
    is_retryable: bool = True


class GatewayRequestError(GatewayError):
    """
    Gateway rejected the request (4xx other than 429).

    Common causes:
    - Refund amount exceeds the captured amount on the gateway side
    - Payment id unknown to the gateway
    - Invalid API credentials
    """

    default_error_code: str = "GATEWAY_REQUEST_REJECTED"
    http_status: int = 502
    is_retryable: bool = False


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class IllegalTransition(ConflictError):
    """
    Raised when a refund status update would move the record backwards.

    Forward order is INITIATED < PROCESSING < PROCESSED; FAILED is only
    reachable from INITIATED or PROCESSING. A PROCESSED update that would
    push the refunded total past the payment amount is also illegal.

    Attributes:
        details: Contains refund_id, current_status, target_status
    """

    default_error_code: str = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        message: str,
        current_status: str | None = None,
        target_status: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if current_status is not None:
            details["current_status"] = str(current_status)
        if target_status is not None:
            details["target_status"] = str(target_status)
        super().__init__(message, details=details)
        self.current_status = current_status
        self.target_status = target_status


class StaleRecordError(ConflictError):
    """
    Raised when a compare-and-swap save loses to a concurrent writer.

    The caller should re-read the record and decide again, or skip it.
    """

    default_error_code: str = "STALE_RECORD"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Example:
        lock = DistributedLock("subscription_lifecycle", ttl=600, blocking=False)
        if not lock.acquire():
            raise LockAcquisitionError(
                "Lock 'subscription_lifecycle' is held by another worker",
                details={"key": "subscription_lifecycle"},
            )
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "SignatureInvalid",
    "UnknownRefund",
    # Gateway
    "GatewayError",
    "GatewayUnavailable",
    "GatewayRequestError",
    # Concurrency control
    "IllegalTransition",
    "StaleRecordError",
    "LockAcquisitionError",
]
