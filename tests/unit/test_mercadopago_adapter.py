"""Mercado Pago adapter: signature manifest, notification enrichment."""

import datetime as dt
import json
from decimal import Decimal

import pytest

from apps.gateways.mercadopago import (
    MercadoPagoGateway,
    parse_signature_header,
    sign_manifest,
    signature_manifest,
    split_phone,
)
from apps.gateways.types import CreatePaymentRequest, CustomerRequest, EventType, PaymentStatus
from core.exceptions import ProviderError, UnsupportedEventError, WebhookParseError

from conftest import StubSession

pytestmark = pytest.mark.unit

SECRET = "mp-secret"


def notification(kind="payment", data_id="987654", action="payment.updated"):
    return json.dumps({"id": 1, "type": kind, "action": action, "data": {"id": data_id}}).encode()


def signed_headers(body, request_id="req-1", ts="1700000000", secret=SECRET):
    data_id = str(json.loads(body)["data"]["id"])
    v1 = sign_manifest(secret, signature_manifest(data_id, request_id, ts))
    return {"x-signature": f"ts={ts},v1={v1}", "x-request-id": request_id}


@pytest.fixture
def mp_session():
    session = StubSession()
    session.route(
        "GET",
        "/v1/payments/987654",
        payload={
            "id": 987654,
            "status": "approved",
            "transaction_amount": 200.0,
            "net_received_amount": 198.02,
            "payment_type_id": "bank_transfer",
            "date_approved": "2030-01-02T10:30:00.000-03:00",
            "external_reference": "enr-1",
            "payer": {"email": "maria@example.com"},
        },
    )
    return session


@pytest.fixture
def mp_gateway(mp_session):
    return MercadoPagoGateway("TEST-token", "https://mercadopago.test", SECRET, session=mp_session)


class TestSignature:
    def test_valid_signature(self, mp_gateway):
        body = notification()

        assert mp_gateway.validate_webhook_signature(signed_headers(body), body)

    def test_tampered_payment_id(self, mp_gateway):
        headers = signed_headers(notification(data_id="1"))

        assert not mp_gateway.validate_webhook_signature(headers, notification(data_id="2"))

    def test_wrong_secret(self, mp_gateway):
        body = notification()

        assert not mp_gateway.validate_webhook_signature(signed_headers(body, secret="other"), body)

    def test_missing_header(self, mp_gateway):
        assert not mp_gateway.validate_webhook_signature({}, notification())

    def test_header_without_v1(self, mp_gateway):
        assert not mp_gateway.validate_webhook_signature({"x-signature": "ts=1"}, notification())

    def test_parse_signature_header(self):
        assert parse_signature_header("ts=123, v1=abc") == ("123", "abc")
        assert parse_signature_header("garbage") == ("", "")

    def test_manifest_format(self):
        assert signature_manifest("42", "req", "99") == "id:42;request-id:req;ts:99;"


class TestNotificationParsing:
    def test_fetches_payment_to_build_event(self, mp_gateway, mp_session):
        event = mp_gateway.parse_webhook_event({}, notification())

        assert mp_session.calls_to("GET", "/v1/payments/987654")
        assert event.gateway == "mercadopago"
        assert event.event_type == EventType.PAYMENT_CONFIRMED.value
        assert event.gateway_payment_id == "987654"
        assert event.amount == Decimal("200.00")
        assert event.net_amount == Decimal("198.02")
        assert event.status == PaymentStatus.CONFIRMED
        assert event.billing_type == "pix"
        assert event.paid_at == dt.datetime(2030, 1, 2, 13, 30, tzinfo=dt.timezone.utc)
        assert event.external_reference == "enr-1"

    def test_created_action_wins_over_status(self, mp_gateway):
        event = mp_gateway.parse_webhook_event({}, notification(action="payment.created"))

        assert event.event_type == EventType.PAYMENT_CREATED.value

    def test_unsupported_type(self, mp_gateway, mp_session):
        with pytest.raises(UnsupportedEventError):
            mp_gateway.parse_webhook_event({}, notification(kind="merchant_order"))
        assert mp_session.calls == []

    def test_missing_payment_id(self, mp_gateway):
        with pytest.raises(WebhookParseError):
            mp_gateway.parse_webhook_event({}, notification(data_id=""))

    def test_bad_json(self, mp_gateway):
        with pytest.raises(WebhookParseError):
            mp_gateway.parse_webhook_event({}, b"[]")

    def test_enrichment_failure_propagates(self, mp_gateway, mp_session):
        mp_session.route("GET", "/v1/payments/987654", status_code=500, payload={"message": "internal error"})

        with pytest.raises(ProviderError) as exc_info:
            mp_gateway.parse_webhook_event({}, notification())
        assert exc_info.value.http_status == 500

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("approved", PaymentStatus.CONFIRMED),
            ("in_process", PaymentStatus.PENDING),
            ("charged_back", PaymentStatus.CHARGEBACK),
            ("cancelled", PaymentStatus.CANCELLED),
            ("refunded", PaymentStatus.REFUNDED),
            ("mystery", PaymentStatus.FAILED),
        ],
    )
    def test_status_normalization(self, mp_gateway, raw, expected):
        assert mp_gateway.normalize_status(raw) == expected


class TestPayments:
    def test_pix_expires_a_day_after_due_date(self, mp_gateway, mp_session):
        mp_session.route(
            "POST",
            "/v1/payments",
            payload={
                "id": 555,
                "status": "pending",
                "transaction_amount": 200.0,
                "point_of_interaction": {
                    "transaction_data": {"qr_code": "000201mp", "qr_code_base64": "b64", "ticket_url": "https://mp.test/t"}
                },
            },
        )
        request = CreatePaymentRequest(
            customer_id="cus_1",
            amount=Decimal("200.00"),
            description="Matrícula: Python",
            due_date=dt.date(2030, 1, 4),
            external_reference="enr-1",
            payer_email="maria@example.com",
        )

        result = mp_gateway.create_payment(request, "pix")

        call = mp_session.calls_to("POST", "/v1/payments")[0]
        assert call["json"]["payment_method_id"] == "pix"
        assert call["json"]["date_of_expiration"] == "2030-01-05T00:00:00+00:00"
        assert call["json"]["payer"] == {"email": "maria@example.com"}
        assert call["headers"]["Authorization"] == "Bearer TEST-token"
        assert call["headers"]["X-Idempotency-Key"]
        assert result.gateway_payment_id == "555"
        assert result.pix.copy_paste == "000201mp"
        assert result.receipt_url == "https://mp.test/t"

    def test_error_cause_is_surfaced(self, mp_gateway, mp_session):
        mp_session.route(
            "GET",
            "/v1/payments/1",
            status_code=404,
            payload={"message": "not found", "cause": [{"code": 2000, "description": "Payment not found"}]},
        )

        with pytest.raises(ProviderError) as exc_info:
            mp_gateway.get_payment("1")
        assert exc_info.value.message == "Payment not found"
        assert exc_info.value.code == "2000"

    def test_split_phone(self):
        assert split_phone("(11) 98765-4321") == ("11", "987654321")
        assert split_phone("1234") == ("", "1234")


class TestLifecycle:
    def test_refund_reports_fresh_status(self, mp_gateway, mp_session):
        mp_session.route("POST", "/v1/payments/987654/refunds", payload={"id": 1, "amount": 200.0})
        mp_session.route("GET", "/v1/payments/987654", payload={"id": 987654, "status": "refunded", "transaction_amount": 200.0})

        refund = mp_gateway.refund_payment("987654")

        assert mp_session.calls_to("POST", "/v1/payments/987654/refunds")[0]["json"] == {}
        assert refund.status == PaymentStatus.REFUNDED
        assert refund.refunded_amount == Decimal("200.00")

    def test_cancel(self, mp_gateway, mp_session):
        mp_session.route("PUT", "/v1/payments/987654", payload={"id": 987654, "status": "cancelled"})

        mp_gateway.cancel_payment("987654")

        assert mp_session.calls_to("PUT", "/v1/payments/987654")[0]["json"] == {"status": "cancelled"}

    def test_no_document_search(self, mp_gateway):
        assert mp_gateway.find_customer_by_document("12345678909") is None

    def test_reuses_customer_found_by_email(self, mp_gateway, mp_session):
        mp_session.route("GET", "/v1/customers/search", payload={"results": [{"id": "123-abc"}]})

        assert mp_gateway.create_customer(CustomerRequest("Maria Silva", "maria@example.com")) == "123-abc"
        assert mp_session.calls_to("POST", "/v1/customers") == []
