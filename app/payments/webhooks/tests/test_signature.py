"""
Tests for HMAC-SHA256 webhook and checkout signatures.
"""

import hashlib
import hmac

from payments.webhooks.signature import sign, verify, verify_payment_signature

SECRET = "whsec_test"
BODY = b'{"refundId":"rfnd_1","status":"PROCESSED"}'


class TestSign:
    def test_matches_hmac_sha256_hex(self):
        expected = hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()

        assert sign(BODY, SECRET) == expected

    def test_lowercase_hex(self):
        signature = sign(BODY, SECRET)

        assert signature == signature.lower()
        assert len(signature) == 64


class TestVerify:
    def test_valid_signature(self):
        assert verify(BODY, sign(BODY, SECRET), SECRET) is True

    def test_accepts_str_payload(self):
        assert verify(BODY.decode(), sign(BODY, SECRET), SECRET) is True

    def test_wrong_secret(self):
        assert verify(BODY, sign(BODY, "other"), SECRET) is False

    def test_tampered_body(self):
        """Any change to the raw bytes, even whitespace, should fail."""
        signature = sign(BODY, SECRET)
        reformatted = b'{"refundId": "rfnd_1", "status": "PROCESSED"}'

        assert verify(reformatted, signature, SECRET) is False

    def test_truncated_signature(self):
        assert verify(BODY, sign(BODY, SECRET)[:-1], SECRET) is False

    def test_missing_signature(self):
        assert verify(BODY, None, SECRET) is False
        assert verify(BODY, "", SECRET) is False

    def test_missing_secret(self):
        """An unconfigured secret must never authenticate anything."""
        assert verify(BODY, sign(BODY, ""), "") is False
        assert verify(BODY, "abc", None) is False

    def test_non_ascii_signature(self):
        assert verify(BODY, "é" * 64, SECRET) is False


class TestVerifyPaymentSignature:
    def test_valid(self):
        signature = sign(b"order_9A33XWu170gUtm|pay_29QQoUBi66xm2f", SECRET)

        assert verify_payment_signature("order_9A33XWu170gUtm", "pay_29QQoUBi66xm2f", signature, SECRET)

    def test_swapped_ids(self):
        signature = sign(b"order_1|pay_1", SECRET)

        assert not verify_payment_signature("pay_1", "order_1", signature, SECRET)

    def test_missing_ids(self):
        assert not verify_payment_signature("", "pay_1", sign(b"|pay_1", SECRET), SECRET)
