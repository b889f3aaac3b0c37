"""
Tests for the gateway REST adapter.

Tests cover:
- Request shape (URL, auth, body, timeout)
- Error translation: timeout, connection error, 5xx, 429, 4xx, 401
- Normalisation of [] placeholders and error bodies
"""

from unittest.mock import MagicMock

import pytest
import requests

from payments.adapters import (
    GATEWAY_STATUS_MAP,
    GatewayClient,
    GatewayCredentialCache,
    GatewayRefund,
    normalize_entity,
    parse_gateway_error,
)
from payments.exceptions import GatewayRequestError, GatewayUnavailable
from payments.state_machines import RefundStatus


def refund_payload(**overrides):
    payload = {
        "id": "rfnd_FP8QHiV938haTz",
        "entity": "refund",
        "amount": 25000,
        "currency": "INR",
        "payment_id": "pay_29QQoUBi66xm2f",
        "notes": [],
        "receipt": None,
        "acquirer_data": {"arn": None},
        "created_at": 1597078866,
        "batch_id": None,
        "status": "processed",
        "speed_processed": "normal",
        "speed_requested": "optimum",
    }
    payload.update(overrides)
    return payload


def make_response(status_code=200, body=None, json_error=False):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    if json_error:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = body if body is not None else {}
    return response


@pytest.fixture
def credentials():
    return GatewayCredentialCache(loader=lambda: ("rzp_test_key", "rzp_test_secret"))


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(credentials, session):
    return GatewayClient(
        base_url="https://gateway.test/v1/",
        credentials=credentials,
        timeout=5,
        session=session,
    )


# =============================================================================
# Helpers
# =============================================================================


class TestNormalizeEntity:
    def test_empty_list_placeholders_become_dicts(self):
        """Gateway sends [] for empty notes; it should become {}."""
        data = normalize_entity({"id": "rfnd_1", "notes": [], "acquirer_data": None})

        assert data["notes"] == {}
        assert data["acquirer_data"] == {}

    def test_null_map_values_dropped(self):
        """None values inside object fields should be removed."""
        data = normalize_entity({"acquirer_data": {"arn": None, "rrn": "123"}})

        assert data["acquirer_data"] == {"rrn": "123"}

    def test_does_not_mutate_input(self):
        payload = {"notes": []}
        normalize_entity(payload)
        assert payload == {"notes": []}


class TestParseGatewayError:
    def test_description_with_field(self):
        body = {"error": {"code": "BAD_REQUEST_ERROR", "description": "Invalid amount", "field": "amount"}}

        assert parse_gateway_error(body) == ("Invalid amount (Field: amount)", "BAD_REQUEST_ERROR")

    def test_description_only(self):
        body = {"error": {"code": "BAD_REQUEST_ERROR", "description": "Invalid amount"}}

        assert parse_gateway_error(body) == ("Invalid amount", "BAD_REQUEST_ERROR")

    def test_code_only(self):
        assert parse_gateway_error({"error": {"code": "SERVER_ERROR"}}) == (
            "Gateway error: SERVER_ERROR",
            "SERVER_ERROR",
        )

    def test_unrecognised_body(self):
        assert parse_gateway_error("oops") == ("Gateway API error", None)
        assert parse_gateway_error(None) == ("Gateway API error", None)


class TestGatewayRefund:
    def test_from_payload(self):
        """Should parse ids, amounts, speeds and epoch timestamps."""
        refund = GatewayRefund.from_payload(refund_payload())

        assert refund.id == "rfnd_FP8QHiV938haTz"
        assert refund.payment_id == "pay_29QQoUBi66xm2f"
        assert refund.amount == 25000
        assert refund.status == "processed"
        assert refund.speed_processed == "normal"
        assert refund.notes == {}
        assert refund.acquirer_data == {}
        assert refund.created_at is not None
        assert refund.created_at.year == 2020

    def test_missing_created_at(self):
        refund = GatewayRefund.from_payload(refund_payload(created_at=None))
        assert refund.created_at is None

    @pytest.mark.parametrize(
        "overrides",
        [
            {"created_at": "yesterday"},
            {"created_at": 10**20},
            {"amount": "lots"},
            {"amount": {"value": 100}},
        ],
    )
    def test_malformed_entity_is_request_error(self, overrides):
        with pytest.raises(GatewayRequestError) as exc_info:
            GatewayRefund.from_payload(refund_payload(**overrides))

        assert exc_info.value.gateway_code == "malformed_response"

    def test_entity_without_id(self):
        payload = refund_payload()
        del payload["id"]

        with pytest.raises(GatewayRequestError):
            GatewayRefund.from_payload(payload)

    def test_status_map_covers_gateway_statuses(self):
        assert GATEWAY_STATUS_MAP["created"] == RefundStatus.INITIATED
        assert GATEWAY_STATUS_MAP["pending"] == RefundStatus.PROCESSING
        assert GATEWAY_STATUS_MAP["processed"] == RefundStatus.PROCESSED
        assert GATEWAY_STATUS_MAP["failed"] == RefundStatus.FAILED


# =============================================================================
# Successful Calls
# =============================================================================


class TestCreateRefund:
    def test_posts_refund_request(self, client, session):
        """Should POST amount and speed with basic auth and the timeout."""
        session.request.return_value = make_response(200, refund_payload(status="pending"))

        refund = client.create_refund(
            "pay_29QQoUBi66xm2f",
            amount=25000,
            speed="optimum",
            notes={"reason": "duplicate"},
            receipt="rcpt_1",
        )

        session.request.assert_called_once_with(
            "POST",
            "https://gateway.test/v1/payments/pay_29QQoUBi66xm2f/refund",
            json={
                "amount": 25000,
                "speed": "optimum",
                "notes": {"reason": "duplicate"},
                "receipt": "rcpt_1",
            },
            auth=("rzp_test_key", "rzp_test_secret"),
            timeout=5,
        )
        assert refund.status == "pending"

    def test_omits_empty_optional_fields(self, client, session):
        session.request.return_value = make_response(200, refund_payload())

        client.create_refund("pay_1", amount=100)

        assert session.request.call_args.kwargs["json"] == {"amount": 100, "speed": "optimum"}


class TestFetchAndList:
    def test_fetch_refund(self, client, session):
        session.request.return_value = make_response(200, refund_payload())

        refund = client.fetch_refund("rfnd_FP8QHiV938haTz")

        assert session.request.call_args.args == (
            "GET",
            "https://gateway.test/v1/refunds/rfnd_FP8QHiV938haTz",
        )
        assert refund.id == "rfnd_FP8QHiV938haTz"

    def test_list_refunds(self, client, session):
        """Should unwrap the items collection."""
        session.request.return_value = make_response(
            200,
            {
                "entity": "collection",
                "count": 2,
                "items": [refund_payload(id="rfnd_a"), refund_payload(id="rfnd_b")],
            },
        )

        refunds = client.list_refunds("pay_29QQoUBi66xm2f")

        assert [r.id for r in refunds] == ["rfnd_a", "rfnd_b"]

    def test_list_refunds_empty(self, client, session):
        session.request.return_value = make_response(200, {"entity": "collection", "count": 0, "items": []})

        assert client.list_refunds("pay_1") == []


# =============================================================================
# Error Translation
# =============================================================================


class TestErrorTranslation:
    def test_timeout_is_unavailable(self, client, session):
        """A timeout should surface as retryable GatewayUnavailable."""
        session.request.side_effect = requests.Timeout()

        with pytest.raises(GatewayUnavailable) as exc_info:
            client.fetch_refund("rfnd_1")

        assert exc_info.value.is_retryable is True
        assert exc_info.value.gateway_code == "timeout"

    def test_connection_error_is_unavailable(self, client, session):
        session.request.side_effect = requests.ConnectionError()

        with pytest.raises(GatewayUnavailable) as exc_info:
            client.list_refunds("pay_1")

        assert exc_info.value.gateway_code == "connection_error"

    def test_server_error_is_unavailable(self, client, session):
        session.request.return_value = make_response(502, json_error=True)

        with pytest.raises(GatewayUnavailable) as exc_info:
            client.fetch_refund("rfnd_1")

        assert exc_info.value.status_code == 502

    def test_rate_limit_is_unavailable(self, client, session):
        session.request.return_value = make_response(429, {})

        with pytest.raises(GatewayUnavailable) as exc_info:
            client.fetch_refund("rfnd_1")

        assert exc_info.value.gateway_code == "rate_limit"

    def test_bad_request_is_request_error(self, client, session):
        """4xx rejections should be permanent and carry the gateway message."""
        session.request.return_value = make_response(
            400,
            {
                "error": {
                    "code": "BAD_REQUEST_ERROR",
                    "description": "The refund amount provided is greater than amount captured",
                    "field": "amount",
                }
            },
        )

        with pytest.raises(GatewayRequestError) as exc_info:
            client.create_refund("pay_1", amount=999999)

        error = exc_info.value
        assert error.is_retryable is False
        assert error.gateway_code == "BAD_REQUEST_ERROR"
        assert "greater than amount captured" in error.message

    def test_unauthorized_invalidates_credentials(self, client, session, credentials):
        """A 401 should drop the cached key pair so the next call reloads."""
        credentials.get()
        session.request.return_value = make_response(401, {"error": {"code": "BAD_REQUEST_ERROR"}})

        with pytest.raises(GatewayRequestError):
            client.fetch_refund("rfnd_1")

        assert credentials._snapshot is None

    def test_non_json_success_body(self, client, session):
        session.request.return_value = make_response(200, json_error=True)

        with pytest.raises(GatewayRequestError) as exc_info:
            client.fetch_refund("rfnd_1")

        assert exc_info.value.gateway_code == "malformed_response"
