"""
Asaas adapter.

Asaas authenticates API calls with a static ``access_token`` header and
signs webhooks with a shared token echoed back in ``asaas-access-token``.
Webhook bodies carry the full payment inline, so no follow-up fetch is
needed to build the canonical event.
"""

from __future__ import annotations

import datetime as dt
import hmac
import json
import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

import requests

from core.exceptions import ProviderError, WebhookParseError

from .base import PaymentGateway
from .client import DEFAULT_TIMEOUT, GatewayClient
from .types import (
    BillingType,
    BoletoData,
    CreatePaymentRequest,
    CustomerRequest,
    EventType,
    GatewayFees,
    PaymentResponse,
    PaymentStatus,
    PixData,
    RefundResponse,
    WebhookEvent,
    to_decimal,
)

logger = logging.getLogger(__name__)

ASAAS_FEES = GatewayFees(
    pix_percent=Decimal("0.0099"),
    boleto_fixed=Decimal("2.99"),
    card_percent=Decimal("0.0299"),
    card_fixed=Decimal("0.49"),
)

STATUS_MAP = {
    "PENDING": PaymentStatus.PENDING,
    "AWAITING_RISK_ANALYSIS": PaymentStatus.PENDING,
    "RECEIVED": PaymentStatus.CONFIRMED,
    "CONFIRMED": PaymentStatus.CONFIRMED,
    "RECEIVED_IN_CASH": PaymentStatus.CONFIRMED,
    "OVERDUE": PaymentStatus.OVERDUE,
    "REFUNDED": PaymentStatus.REFUNDED,
    "REFUND_REQUESTED": PaymentStatus.REFUNDED,
    "CHARGEBACK_REQUESTED": PaymentStatus.CHARGEBACK,
    "CHARGEBACK_DISPUTE": PaymentStatus.CHARGEBACK,
    "AWAITING_CHARGEBACK_REVERSAL": PaymentStatus.CHARGEBACK,
}

EVENT_MAP = {
    "PAYMENT_CREATED": EventType.PAYMENT_CREATED,
    "PAYMENT_CONFIRMED": EventType.PAYMENT_CONFIRMED,
    "PAYMENT_RECEIVED": EventType.PAYMENT_CONFIRMED,
    "PAYMENT_RECEIVED_IN_CASH": EventType.PAYMENT_CONFIRMED,
    "PAYMENT_OVERDUE": EventType.PAYMENT_OVERDUE,
    "PAYMENT_REFUNDED": EventType.PAYMENT_REFUNDED,
    "PAYMENT_DELETED": EventType.PAYMENT_DELETED,
    "PAYMENT_CHARGEBACK_REQUESTED": EventType.PAYMENT_CHARGEBACK,
    "PAYMENT_CHARGEBACK_DISPUTE": EventType.PAYMENT_CHARGEBACK,
}

BILLING_MAP = {
    "PIX": BillingType.PIX,
    "BOLETO": BillingType.BOLETO,
    "CREDIT_CARD": BillingType.CREDIT_CARD,
    "DEBIT_CARD": BillingType.DEBIT_CARD,
}

TOKEN_HEADER = "asaas-access-token"


class AsaasClient(GatewayClient):
    provider = "asaas"

    def __init__(self, api_key: str, base_url: str, **kwargs) -> None:
        super().__init__(base_url, **kwargs)
        self.api_key = api_key

    def auth_headers(self) -> dict[str, str]:
        return {"access_token": self.api_key}

    def error_message(self, payload: dict[str, Any]) -> tuple[str, str | None]:
        errors = payload.get("errors") or []
        if errors and isinstance(errors[0], dict):
            return errors[0].get("description", ""), errors[0].get("code")
        return "", None

    def find_customer(self, **params) -> dict[str, Any] | None:
        data = self.get("/customers", params=params).get("data") or []
        return data[0] if data else None


class AsaasGateway(PaymentGateway):
    name = "asaas"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://sandbox.asaas.com/api/v3",
        webhook_token: str = "",
        *,
        fees: GatewayFees = ASAAS_FEES,
        timeout: int = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.client = AsaasClient(api_key, base_url, timeout=timeout, session=session)
        self.webhook_token = webhook_token
        self.fees = fees

    # Customers

    def create_customer(self, customer: CustomerRequest) -> str:
        existing = None
        if customer.document:
            existing = self.client.find_customer(cpfCnpj=customer.document)
        if existing is None and customer.email:
            existing = self.client.find_customer(email=customer.email)
        if existing is not None:
            return existing["id"]

        created = self.client.post(
            "/customers",
            {
                "name": customer.name,
                "email": customer.email,
                "cpfCnpj": customer.document,
                "mobilePhone": customer.phone,
            },
        )
        return created["id"]

    def find_customer_by_document(self, document: str) -> str | None:
        found = self.client.find_customer(cpfCnpj=document)
        return found["id"] if found else None

    # Payments

    def _payment_body(self, request: CreatePaymentRequest, billing_type: str) -> dict[str, Any]:
        return {
            "customer": request.customer_id,
            "billingType": billing_type,
            "value": float(request.amount),
            "dueDate": request.due_date.strftime("%Y-%m-%d"),
            "description": request.description,
            "externalReference": request.external_reference,
        }

    def create_pix_payment(self, request: CreatePaymentRequest) -> PaymentResponse:
        payload = self.client.post("/payments", self._payment_body(request, "PIX"))
        result = self._to_canonical(payload)
        try:
            qr = self.client.get(f"/payments/{result.gateway_payment_id}/pixQrCode")
        except ProviderError:
            logger.warning("asaas: could not fetch PIX QR code for %s", result.gateway_payment_id)
        else:
            result.pix = PixData(
                qr_code=qr.get("encodedImage", ""),
                copy_paste=qr.get("payload", ""),
                expiration_date=qr.get("expirationDate", ""),
            )
        return result

    def create_boleto_payment(self, request: CreatePaymentRequest) -> PaymentResponse:
        payload = self.client.post("/payments", self._payment_body(request, "BOLETO"))
        result = self._to_canonical(payload)
        if result.boleto is None:
            result.boleto = BoletoData(due_date=result.due_date)
        try:
            field = self.client.get(f"/payments/{result.gateway_payment_id}/identificationField")
        except ProviderError:
            logger.warning("asaas: could not fetch boleto bar code for %s", result.gateway_payment_id)
        else:
            result.boleto.bar_code = field.get("identificationField", "")
        return result

    def create_card_payment(self, request: CreatePaymentRequest) -> PaymentResponse:
        self.require_card(request)
        card = request.card
        body = self._payment_body(request, "CREDIT_CARD")
        body["creditCard"] = {
            "holderName": card.holder_name,
            "number": card.number,
            "expiryMonth": card.exp_month,
            "expiryYear": card.exp_year,
            "ccv": card.cvv,
        }
        body["creditCardHolderInfo"] = {
            "name": card.holder_name,
            "email": card.holder_email,
            "cpfCnpj": card.holder_document,
            "postalCode": card.holder_postal_code,
            "addressNumber": card.holder_address_number,
            "phone": card.holder_phone,
        }
        if request.installments > 1:
            body["installmentCount"] = request.installments
            body["installmentValue"] = float(request.amount / request.installments)
        return self._to_canonical(self.client.post("/payments", body))

    def get_payment(self, gateway_payment_id: str) -> PaymentResponse:
        return self._to_canonical(self.client.get(f"/payments/{gateway_payment_id}"))

    def refund_payment(self, gateway_payment_id: str, amount: Decimal | None = None) -> RefundResponse:
        body = {"value": float(amount)} if amount else {}
        payload = self.client.post(f"/payments/{gateway_payment_id}/refund", body)
        return RefundResponse(
            gateway_payment_id=payload.get("id", gateway_payment_id),
            status=self.normalize_status(payload.get("status", "")),
            refunded_amount=to_decimal(amount if amount else payload.get("value")),
        )

    def cancel_payment(self, gateway_payment_id: str) -> None:
        self.client.delete(f"/payments/{gateway_payment_id}")

    # Webhooks

    def parse_webhook_event(self, headers: Mapping[str, str], body: bytes) -> WebhookEvent:
        try:
            data = json.loads(body)
        except ValueError as exc:
            raise WebhookParseError(f"failed to parse Asaas webhook: {exc}") from exc
        if not isinstance(data, dict):
            raise WebhookParseError("failed to parse Asaas webhook: expected an object")

        payment = data.get("payment")
        if not payment:
            raise WebhookParseError("webhook event has no payment data")
        if not payment.get("id"):
            raise WebhookParseError("webhook event has no payment id")

        raw_event = data.get("event", "")
        raw_status = payment.get("status", "")
        return WebhookEvent(
            gateway=self.name,
            event_id=str(data.get("id", "")),
            raw_event_type=raw_event,
            event_type=self.normalize_event_type(raw_event),
            gateway_payment_id=payment.get("id", ""),
            customer_id=payment.get("customer", ""),
            amount=to_decimal(payment.get("value")),
            net_amount=to_decimal(payment.get("netValue")),
            status=self.normalize_status(raw_status),
            gateway_raw_status=raw_status,
            billing_type=self.normalize_billing_type(payment.get("billingType", "")),
            paid_at=_parse_date(payment.get("paymentDate") or payment.get("confirmedDate")),
            external_reference=payment.get("externalReference") or "",
            raw_payload=body,
        )

    def validate_webhook_signature(self, headers: Mapping[str, str], body: bytes) -> bool:
        if not self.webhook_token:
            return True
        token = headers.get(TOKEN_HEADER)
        if token is None:
            return False
        return hmac.compare_digest(token.encode(), self.webhook_token.encode())

    # Canonical translation

    def get_fees(self) -> GatewayFees:
        return self.fees

    def normalize_status(self, provider_status: str) -> PaymentStatus:
        return STATUS_MAP.get(provider_status, PaymentStatus.FAILED)

    @staticmethod
    def normalize_event_type(provider_event: str) -> str:
        mapped = EVENT_MAP.get(provider_event)
        return mapped.value if mapped else provider_event

    @staticmethod
    def normalize_billing_type(provider_billing: str) -> str:
        mapped = BILLING_MAP.get(provider_billing)
        return mapped.value if mapped else provider_billing

    def _to_canonical(self, payload: dict[str, Any]) -> PaymentResponse:
        raw_status = payload.get("status", "")
        return PaymentResponse(
            gateway_payment_id=payload.get("id", ""),
            status=self.normalize_status(raw_status),
            gateway_raw_status=raw_status,
            amount=to_decimal(payload.get("value")),
            net_amount=to_decimal(payload.get("netValue")),
            billing_type=self.normalize_billing_type(payload.get("billingType", "")),
            due_date=payload.get("dueDate", "") or "",
            invoice_url=payload.get("invoiceUrl", "") or "",
            receipt_url=payload.get("transactionReceiptUrl", "") or "",
            confirmed_at=payload.get("confirmedDate", "") or "",
            external_reference=payload.get("externalReference", "") or "",
            boleto=BoletoData(url=payload["bankSlipUrl"], due_date=payload.get("dueDate", "") or "")
            if payload.get("bankSlipUrl")
            else None,
        )


def _parse_date(value: str | None) -> dt.datetime | None:
    if not value:
        return None
    try:
        return dt.datetime.strptime(value[:10], "%Y-%m-%d").replace(tzinfo=dt.timezone.utc)
    except ValueError:
        return None
