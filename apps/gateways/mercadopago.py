"""
Mercado Pago adapter.

Webhook notifications only carry the payment id, so parsing fetches the
payment to build a complete canonical event. Signatures are HMAC-SHA256
over a manifest built from the notification id, the request id and the
timestamp sent in ``x-signature``.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import hmac
import json
import logging
import re
import uuid
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

import requests
from django.utils.dateparse import parse_datetime

from core.exceptions import UnsupportedEventError, WebhookParseError

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

MERCADOPAGO_FEES = GatewayFees(
    pix_percent=Decimal("0.0099"),
    boleto_fixed=Decimal("3.49"),
    card_percent=Decimal("0.0499"),
    card_fixed=Decimal("0.39"),
)

METHOD_PIX = "pix"
METHOD_BOLETO = "bolbradesco"
METHOD_VISA = "visa"

STATUS_MAP = {
    "pending": PaymentStatus.PENDING,
    "authorized": PaymentStatus.PENDING,
    "in_process": PaymentStatus.PENDING,
    "approved": PaymentStatus.CONFIRMED,
    "in_mediation": PaymentStatus.CHARGEBACK,
    "charged_back": PaymentStatus.CHARGEBACK,
    "rejected": PaymentStatus.FAILED,
    "cancelled": PaymentStatus.CANCELLED,
    "refunded": PaymentStatus.REFUNDED,
}

# Event type is derived from the payment status unless the action says "created"
STATUS_EVENT_MAP = {
    "approved": EventType.PAYMENT_CONFIRMED,
    "refunded": EventType.PAYMENT_REFUNDED,
    "cancelled": EventType.PAYMENT_DELETED,
    "charged_back": EventType.PAYMENT_CHARGEBACK,
    "in_mediation": EventType.PAYMENT_CHARGEBACK,
    "rejected": EventType.PAYMENT_FAILED,
}

BILLING_MAP = {
    "bank_transfer": BillingType.PIX,
    "ticket": BillingType.BOLETO,
    "credit_card": BillingType.CREDIT_CARD,
    "debit_card": BillingType.DEBIT_CARD,
}

SIGNATURE_HEADER = "x-signature"
REQUEST_ID_HEADER = "x-request-id"


class MercadoPagoClient(GatewayClient):
    provider = "mercadopago"

    def __init__(self, access_token: str, base_url: str, **kwargs) -> None:
        super().__init__(base_url, **kwargs)
        self.access_token = access_token

    def auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "X-Idempotency-Key": uuid.uuid4().hex,
        }

    def error_message(self, payload: dict[str, Any]) -> tuple[str, str | None]:
        causes = payload.get("cause") or []
        if causes and isinstance(causes[0], dict) and causes[0].get("description"):
            return causes[0]["description"], str(causes[0].get("code", "")) or None
        return payload.get("message", ""), payload.get("error")


def split_name(full_name: str) -> tuple[str, str]:
    parts = full_name.strip().split(" ", 1)
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1]


def split_phone(phone: str) -> tuple[str, str]:
    digits = re.sub(r"\D", "", phone)
    if len(digits) >= 10:
        return digits[:2], digits[2:]
    return "", digits


def document_type(document: str) -> str:
    return "CNPJ" if len(document) > 11 else "CPF"


def parse_signature_header(value: str) -> tuple[str, str]:
    ts = v1 = ""
    for part in value.split(","):
        key, sep, val = part.strip().partition("=")
        if not sep:
            continue
        if key == "ts":
            ts = val
        elif key == "v1":
            v1 = val
    return ts, v1


def signature_manifest(data_id: str, request_id: str, ts: str) -> str:
    return f"id:{data_id};request-id:{request_id};ts:{ts};"


def sign_manifest(secret: str, manifest: str) -> str:
    return hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()


class MercadoPagoGateway(PaymentGateway):
    name = "mercadopago"

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://api.mercadopago.com",
        webhook_secret: str = "",
        *,
        fees: GatewayFees = MERCADOPAGO_FEES,
        timeout: int = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.client = MercadoPagoClient(access_token, base_url, timeout=timeout, session=session)
        self.webhook_secret = webhook_secret
        self.fees = fees

    # Customers

    def create_customer(self, customer: CustomerRequest) -> str:
        if customer.email:
            found = self.client.get("/v1/customers/search", params={"email": customer.email})
            results = found.get("results") or []
            if results:
                return str(results[0]["id"])

        first_name, last_name = split_name(customer.name)
        body: dict[str, Any] = {
            "email": customer.email,
            "first_name": first_name,
            "last_name": last_name,
            "identification": {
                "type": document_type(customer.document),
                "number": customer.document,
            },
        }
        if customer.phone:
            area_code, number = split_phone(customer.phone)
            body["phone"] = {"area_code": area_code, "number": number}
        created = self.client.post("/v1/customers", body)
        return str(created["id"])

    def find_customer_by_document(self, document: str) -> str | None:
        # The customers API has no search by document
        return None

    # Payments

    def _payment_body(self, request: CreatePaymentRequest, method_id: str) -> dict[str, Any]:
        return {
            "transaction_amount": float(request.amount),
            "description": request.description,
            "payment_method_id": method_id,
            "external_reference": request.external_reference,
            "payer": {"email": request.payer_email or request.customer_id},
        }

    @staticmethod
    def _expiration(due_date: dt.date, days: int) -> str:
        moment = dt.datetime.combine(due_date, dt.time.min, tzinfo=dt.timezone.utc)
        return (moment + dt.timedelta(days=days)).isoformat()

    def create_pix_payment(self, request: CreatePaymentRequest) -> PaymentResponse:
        body = self._payment_body(request, METHOD_PIX)
        body["date_of_expiration"] = self._expiration(request.due_date, 1)
        return self._to_canonical(self.client.post("/v1/payments", body))

    def create_boleto_payment(self, request: CreatePaymentRequest) -> PaymentResponse:
        body = self._payment_body(request, METHOD_BOLETO)
        body["date_of_expiration"] = self._expiration(request.due_date, 3)
        return self._to_canonical(self.client.post("/v1/payments", body))

    def create_card_payment(self, request: CreatePaymentRequest) -> PaymentResponse:
        self.require_card(request)
        card = request.card
        body = self._payment_body(request, METHOD_VISA)
        # The frontend tokenizes the card; the token travels in the number field
        body["token"] = card.number
        body["installments"] = max(request.installments, 1)
        body["payer"] = {
            "email": card.holder_email or request.payer_email,
            "identification": {
                "type": document_type(card.holder_document),
                "number": card.holder_document,
            },
        }
        return self._to_canonical(self.client.post("/v1/payments", body))

    def get_payment(self, gateway_payment_id: str) -> PaymentResponse:
        return self._to_canonical(self._fetch(gateway_payment_id))

    def _fetch(self, gateway_payment_id: str) -> dict[str, Any]:
        return self.client.get(f"/v1/payments/{gateway_payment_id}")

    def refund_payment(self, gateway_payment_id: str, amount: Decimal | None = None) -> RefundResponse:
        body = {"amount": float(amount)} if amount and amount > 0 else {}
        refund = self.client.post(f"/v1/payments/{gateway_payment_id}/refunds", body)
        payment = self.get_payment(gateway_payment_id)
        return RefundResponse(
            gateway_payment_id=payment.gateway_payment_id,
            status=payment.status,
            refunded_amount=to_decimal(refund.get("amount") or amount or payment.amount),
        )

    def cancel_payment(self, gateway_payment_id: str) -> None:
        self.client.put(f"/v1/payments/{gateway_payment_id}", {"status": "cancelled"})

    # Webhooks

    @staticmethod
    def _notification(body: bytes) -> dict[str, Any]:
        data = json.loads(body)
        if not isinstance(data, dict):
            raise ValueError("expected an object")
        return data

    def parse_webhook_event(self, headers: Mapping[str, str], body: bytes) -> WebhookEvent:
        try:
            notification = self._notification(body)
        except ValueError as exc:
            raise WebhookParseError(f"failed to parse Mercado Pago notification: {exc}") from exc

        kind = notification.get("type", "")
        if kind != "payment":
            raise UnsupportedEventError(f"unsupported webhook type: {kind}")

        payment_id = str((notification.get("data") or {}).get("id") or "")
        if not payment_id:
            raise WebhookParseError("webhook notification has no payment ID")

        payment = self._fetch(payment_id)
        raw_status = payment.get("status", "")
        action = notification.get("action", "")
        payer = payment.get("payer") or {}
        return WebhookEvent(
            gateway=self.name,
            event_id=str(notification.get("id", "")),
            raw_event_type=action,
            event_type=self.normalize_event_type(action, raw_status),
            gateway_payment_id=payment_id,
            customer_id=payer.get("email", "") or "",
            amount=to_decimal(payment.get("transaction_amount")),
            net_amount=to_decimal(payment.get("net_received_amount")),
            status=self.normalize_status(raw_status),
            gateway_raw_status=raw_status,
            billing_type=self.normalize_billing_type(payment.get("payment_type_id", "")),
            paid_at=_parse_datetime(payment.get("date_approved")),
            external_reference=payment.get("external_reference") or "",
            raw_payload=body,
        )

    def validate_webhook_signature(self, headers: Mapping[str, str], body: bytes) -> bool:
        if not self.webhook_secret:
            return True
        signature = headers.get(SIGNATURE_HEADER, "")
        if not signature:
            return False
        ts, v1 = parse_signature_header(signature)
        if not ts or not v1:
            return False
        try:
            notification = self._notification(body)
        except ValueError:
            return False

        data_id = str((notification.get("data") or {}).get("id") or "")
        manifest = signature_manifest(data_id, headers.get(REQUEST_ID_HEADER, ""), ts)
        expected = sign_manifest(self.webhook_secret, manifest)
        return hmac.compare_digest(expected, v1)

    # Canonical translation

    def get_fees(self) -> GatewayFees:
        return self.fees

    def normalize_status(self, provider_status: str) -> PaymentStatus:
        return STATUS_MAP.get(provider_status, PaymentStatus.FAILED)

    @staticmethod
    def normalize_event_type(action: str, provider_status: str) -> str:
        if action == "payment.created":
            return EventType.PAYMENT_CREATED.value
        return STATUS_EVENT_MAP.get(provider_status, EventType.PAYMENT_CREATED).value

    @staticmethod
    def normalize_billing_type(payment_type_id: str) -> str:
        mapped = BILLING_MAP.get(payment_type_id)
        return mapped.value if mapped else payment_type_id

    def _to_canonical(self, payload: dict[str, Any]) -> PaymentResponse:
        raw_status = payload.get("status", "")
        result = PaymentResponse(
            gateway_payment_id=str(payload.get("id", "")),
            status=self.normalize_status(raw_status),
            gateway_raw_status=raw_status,
            amount=to_decimal(payload.get("transaction_amount")),
            net_amount=to_decimal(payload.get("net_received_amount")),
            billing_type=self.normalize_billing_type(payload.get("payment_type_id", "")),
            confirmed_at=payload.get("date_approved") or "",
            external_reference=payload.get("external_reference") or "",
        )

        transaction_data = (payload.get("point_of_interaction") or {}).get("transaction_data") or {}
        if transaction_data:
            result.pix = PixData(
                qr_code=transaction_data.get("qr_code_base64", "") or "",
                copy_paste=transaction_data.get("qr_code", "") or "",
                expiration_date=payload.get("date_of_expiration") or "",
            )
            result.receipt_url = transaction_data.get("ticket_url", "") or ""

        resource_url = (payload.get("transaction_details") or {}).get("external_resource_url") or ""
        if resource_url:
            result.invoice_url = resource_url
            result.boleto = BoletoData(
                url=resource_url,
                bar_code=(payload.get("barcode") or {}).get("content", "") or "",
                due_date=payload.get("date_of_expiration") or "",
            )
        return result


def _parse_datetime(value: str | None) -> dt.datetime | None:
    if not value:
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        return None
