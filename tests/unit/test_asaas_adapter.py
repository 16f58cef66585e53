"""Asaas adapter: request payloads, error mapping, webhook parsing."""

import datetime as dt
import json
from decimal import Decimal

import pytest
import requests

from apps.gateways.asaas import AsaasGateway
from apps.gateways.types import (
    CardData,
    CreatePaymentRequest,
    CustomerRequest,
    EventType,
    PaymentStatus,
)
from core.exceptions import ProviderError, ValidationError, WebhookParseError

from conftest import ASAAS_URL, ASAAS_WEBHOOK_TOKEN, asaas_payment, asaas_webhook

pytestmark = pytest.mark.unit


def charge(**overrides):
    fields = {
        "customer_id": "cus_1",
        "amount": Decimal("200.00"),
        "description": "Matrícula: Python",
        "due_date": dt.date(2030, 1, 4),
        "external_reference": "enr-1",
    }
    fields.update(overrides)
    return CreatePaymentRequest(**fields)


class TestAsaasPayments:
    def test_pix_payment_payload_and_qr_code(self, asaas_gateway, asaas_session):
        result = asaas_gateway.create_payment(charge(), "pix")

        call = asaas_session.calls_to("POST", "/payments")[0]
        assert call["json"] == {
            "customer": "cus_1",
            "billingType": "PIX",
            "value": 200.0,
            "dueDate": "2030-01-04",
            "description": "Matrícula: Python",
            "externalReference": "enr-1",
        }
        assert call["headers"]["access_token"] == "test-key"
        assert result.gateway_payment_id == "pay_123"
        assert result.status == PaymentStatus.PENDING
        assert result.pix.copy_paste.startswith("000201")

    def test_pix_without_qr_code_still_succeeds(self, asaas_gateway, asaas_session):
        asaas_session.route("GET", "/payments/pay_123/pixQrCode", status_code=500, payload={})

        result = asaas_gateway.create_payment(charge(), "pix")

        assert result.gateway_payment_id == "pay_123"
        assert result.pix is None

    def test_boleto_collects_bar_code(self, asaas_gateway, asaas_session):
        asaas_session.route(
            "POST",
            "/payments",
            payload=asaas_payment(billing_type="BOLETO", bankSlipUrl="https://asaas.test/b/pay_123"),
        )
        asaas_session.route("GET", "/payments/pay_123/identificationField", payload={"identificationField": "2379000"})

        result = asaas_gateway.create_payment(charge(), "boleto")

        assert result.boleto.url == "https://asaas.test/b/pay_123"
        assert result.boleto.bar_code == "2379000"
        assert result.boleto.due_date == "2030-01-04"

    def test_card_payment_with_installments(self, asaas_gateway, asaas_session):
        card = CardData(number="4111111111111111", cvv="123", exp_month="12", exp_year="2030", holder_name="Maria")

        asaas_gateway.create_payment(charge(card=card, installments=4), "card")

        body = asaas_session.calls_to("POST", "/payments")[0]["json"]
        assert body["billingType"] == "CREDIT_CARD"
        assert body["creditCard"]["ccv"] == "123"
        assert body["installmentCount"] == 4
        assert body["installmentValue"] == 50.0

    def test_card_payment_requires_card(self, asaas_gateway):
        with pytest.raises(ValidationError):
            asaas_gateway.create_payment(charge(), "card")

    def test_unknown_method(self, asaas_gateway):
        with pytest.raises(ValidationError):
            asaas_gateway.create_payment(charge(), "cash")

    def test_provider_error_carries_description_and_status(self, asaas_gateway, asaas_session):
        asaas_session.route(
            "POST",
            "/payments",
            status_code=400,
            payload={"errors": [{"code": "invalid_value", "description": "Valor inválido"}]},
        )

        with pytest.raises(ProviderError) as exc_info:
            asaas_gateway.create_payment(charge(), "pix")

        assert exc_info.value.message == "Valor inválido"
        assert exc_info.value.code == "invalid_value"
        assert exc_info.value.http_status == 400

    def test_network_failure_becomes_provider_error(self, asaas_gateway, asaas_session):
        asaas_session.fail("POST", "/payments", requests.ConnectionError("connection refused"))

        with pytest.raises(ProviderError):
            asaas_gateway.create_payment(charge(), "pix")


class TestAsaasCustomers:
    def test_reuses_customer_found_by_document(self, asaas_gateway, asaas_session):
        asaas_session.route("GET", "/customers", payload={"data": [{"id": "cus_existing"}]})

        customer_id = asaas_gateway.create_customer(CustomerRequest("Maria", "maria@example.com", "12345678909"))

        assert customer_id == "cus_existing"
        assert asaas_session.calls_to("GET", "/customers")[0]["params"] == {"cpfCnpj": "12345678909"}
        assert asaas_session.calls_to("POST", "/customers") == []

    def test_creates_customer_when_missing(self, asaas_gateway, asaas_session):
        customer_id = asaas_gateway.create_customer(CustomerRequest("Maria", "maria@example.com", "12345678909"))

        assert customer_id == "cus_1"
        assert asaas_session.calls_to("POST", "/customers")[0]["json"]["cpfCnpj"] == "12345678909"


class TestAsaasWebhooks:
    def test_parses_confirmation(self, asaas_gateway):
        body = asaas_webhook("PAYMENT_RECEIVED", status="RECEIVED", net_value=198.02, paymentDate="2030-01-02")

        event = asaas_gateway.parse_webhook_event({}, body)

        assert event.event_type == EventType.PAYMENT_CONFIRMED.value
        assert event.raw_event_type == "PAYMENT_RECEIVED"
        assert event.gateway_payment_id == "pay_123"
        assert event.amount == Decimal("200.00")
        assert event.net_amount == Decimal("198.02")
        assert event.status == PaymentStatus.CONFIRMED
        assert event.billing_type == "pix"
        assert event.paid_at == dt.datetime(2030, 1, 2, tzinfo=dt.timezone.utc)

    def test_unknown_event_passes_through(self, asaas_gateway):
        event = asaas_gateway.parse_webhook_event({}, asaas_webhook("PAYMENT_BANK_SLIP_VIEWED"))

        assert event.event_type == "PAYMENT_BANK_SLIP_VIEWED"

    def test_rejects_bad_json(self, asaas_gateway):
        with pytest.raises(WebhookParseError):
            asaas_gateway.parse_webhook_event({}, b"{not json")

    def test_rejects_missing_payment(self, asaas_gateway):
        with pytest.raises(WebhookParseError):
            asaas_gateway.parse_webhook_event({}, json.dumps({"event": "PAYMENT_CONFIRMED"}).encode())

    def test_rejects_payment_without_id(self, asaas_gateway):
        with pytest.raises(WebhookParseError, match="no payment id"):
            asaas_gateway.parse_webhook_event({}, asaas_webhook("PAYMENT_CONFIRMED", payment_id=""))

    def test_signature_token(self, asaas_gateway):
        body = asaas_webhook("PAYMENT_CONFIRMED")

        assert asaas_gateway.validate_webhook_signature({"asaas-access-token": ASAAS_WEBHOOK_TOKEN}, body)
        assert not asaas_gateway.validate_webhook_signature({"asaas-access-token": "wrong"}, body)
        assert not asaas_gateway.validate_webhook_signature({}, body)

    def test_no_configured_token_accepts_everything(self):
        gateway = AsaasGateway("key", ASAAS_URL, webhook_token="")

        assert gateway.validate_webhook_signature({}, b"{}")

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("RECEIVED", PaymentStatus.CONFIRMED),
            ("CONFIRMED", PaymentStatus.CONFIRMED),
            ("OVERDUE", PaymentStatus.OVERDUE),
            ("REFUND_REQUESTED", PaymentStatus.REFUNDED),
            ("CHARGEBACK_DISPUTE", PaymentStatus.CHARGEBACK),
            ("SOMETHING_NEW", PaymentStatus.FAILED),
        ],
    )
    def test_status_normalization(self, asaas_gateway, raw, expected):
        assert asaas_gateway.normalize_status(raw) == expected


class TestAsaasLifecycle:
    def test_find_customer_by_document(self, asaas_gateway, asaas_session):
        assert asaas_gateway.find_customer_by_document("12345678909") is None

        asaas_session.route("GET", "/customers", payload={"data": [{"id": "cus_9"}]})
        assert asaas_gateway.find_customer_by_document("12345678909") == "cus_9"

    def test_partial_refund(self, asaas_gateway, asaas_session):
        asaas_session.route("POST", "/payments/pay_123/refund", payload=asaas_payment(status="REFUNDED"))

        refund = asaas_gateway.refund_payment("pay_123", Decimal("50.00"))

        assert asaas_session.calls_to("POST", "/payments/pay_123/refund")[0]["json"] == {"value": 50.0}
        assert refund.status == PaymentStatus.REFUNDED
        assert refund.refunded_amount == Decimal("50.00")

    def test_cancel(self, asaas_gateway, asaas_session):
        asaas_session.route("DELETE", "/payments/pay_123", payload={"deleted": True, "id": "pay_123"})

        asaas_gateway.cancel_payment("pay_123")

        assert len(asaas_session.calls_to("DELETE", "/payments/pay_123")) == 1
