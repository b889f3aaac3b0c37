"""
HMAC-SHA256 signature verification for gateway callbacks.

The gateway signs the exact bytes it sends. Verification must run over
request.body as received; re-serialising parsed JSON changes whitespace
and key order and breaks the digest.

Usage:
    from payments.webhooks.signature import verify

    if not verify(request.body, request.headers.get("X-Gateway-Signature", ""), secret):
        return HttpResponse(status=401)
"""

from __future__ import annotations

import hashlib
import hmac


def sign(raw_payload: bytes, secret: str) -> str:
    """Lowercase hex HMAC-SHA256 of raw_payload keyed by secret."""
    return hmac.new(secret.encode("utf-8"), raw_payload, hashlib.sha256).hexdigest()


def verify(raw_payload: bytes, provided_signature: str | None, secret: str | None) -> bool:
    """
    Check a webhook signature in constant time.

    Never raises. Returns False for a missing secret, a missing or
    non-ASCII signature, or any digest mismatch (length included).
    """
    if not secret or not provided_signature:
        return False
    if isinstance(raw_payload, str):
        raw_payload = raw_payload.encode("utf-8")
    try:
        provided = provided_signature.encode("ascii")
    except (UnicodeEncodeError, AttributeError):
        return False
    expected = sign(raw_payload, secret).encode("ascii")
    return hmac.compare_digest(expected, provided)


def verify_payment_signature(
    order_id: str,
    payment_id: str,
    signature: str | None,
    secret: str | None,
) -> bool:
    """
    Verify a checkout confirmation signature.

    The gateway signs "{order_id}|{payment_id}" with the API key secret.
    """
    if not order_id or not payment_id:
        return False
    return verify(f"{order_id}|{payment_id}".encode("utf-8"), signature, secret)


__all__ = ["sign", "verify", "verify_payment_signature"]
