"""
Gateway-agnostic vocabulary shared by every payment provider adapter.

Adapters translate provider payloads into these types; the checkout and
reconciliation code only ever sees the canonical values below.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from core.exceptions import MoneyInvariantError

CENT = Decimal("0.01")
ZERO = Decimal("0")


def round_money(value) -> Decimal:
    """Round to cents, half away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    RECEIVED = "received"
    OVERDUE = "overdue"
    REFUNDED = "refunded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    CHARGEBACK = "chargeback"


class BillingType(str, Enum):
    PIX = "pix"
    BOLETO = "boleto"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"


class EventType(str, Enum):
    PAYMENT_CREATED = "payment_created"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_OVERDUE = "payment_overdue"
    PAYMENT_REFUNDED = "payment_refunded"
    PAYMENT_DELETED = "payment_deleted"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_CHARGEBACK = "payment_chargeback"


# Checkout-facing method names
PAYMENT_METHODS = ("pix", "boleto", "card")

_PIX_METHODS = {"pix", "PIX"}
_BOLETO_METHODS = {"boleto", "BOLETO"}
_CARD_METHODS = {"card", "credit_card", "debit_card", "CREDIT_CARD", "DEBIT_CARD"}


@dataclass(frozen=True)
class GatewayFees:
    pix_percent: Decimal
    boleto_fixed: Decimal
    card_percent: Decimal
    card_fixed: Decimal

    def calculate(self, amount, method: str) -> Decimal:
        amount = round_money(amount)
        if method in _PIX_METHODS:
            fee = amount * self.pix_percent
        elif method in _BOLETO_METHODS:
            fee = self.boleto_fixed
        elif method in _CARD_METHODS:
            fee = round_money(amount * self.card_percent) + self.card_fixed
        else:
            fee = ZERO
        fee = round_money(fee)
        if fee < 0:
            raise MoneyInvariantError(f"negative gateway fee {fee} for {method}")
        return fee

    def describe(self, method: str) -> str:
        if method in _PIX_METHODS:
            return f"PIX: {self.pix_percent * 100:.2f}%"
        if method in _BOLETO_METHODS:
            return f"Boleto: R$ {self.boleto_fixed:.2f} fixo"
        if method in _CARD_METHODS:
            return f"Cartão: {self.card_percent * 100:.2f}% + R$ {self.card_fixed:.2f}"
        return "Método desconhecido"


@dataclass
class CustomerRequest:
    name: str
    email: str
    document: str = ""
    phone: str = ""


@dataclass
class CardData:
    number: str
    cvv: str
    exp_month: str = ""
    exp_year: str = ""
    holder_name: str = ""
    holder_email: str = ""
    holder_document: str = ""
    holder_postal_code: str = ""
    holder_address_number: str = ""
    holder_phone: str = ""


@dataclass
class CreatePaymentRequest:
    customer_id: str
    amount: Decimal
    description: str
    due_date: dt.date
    external_reference: str = ""
    card: CardData | None = None
    installments: int = 1
    payer_email: str = ""


@dataclass
class PixData:
    qr_code: str = ""
    copy_paste: str = ""
    expiration_date: str = ""


@dataclass
class BoletoData:
    bar_code: str = ""
    url: str = ""
    due_date: str = ""


@dataclass
class PaymentResponse:
    gateway_payment_id: str
    status: PaymentStatus
    gateway_raw_status: str
    amount: Decimal
    net_amount: Decimal = ZERO
    billing_type: str = ""
    due_date: str = ""
    invoice_url: str = ""
    receipt_url: str = ""
    confirmed_at: str = ""
    external_reference: str = ""
    pix: PixData | None = None
    boleto: BoletoData | None = None


@dataclass
class RefundResponse:
    gateway_payment_id: str
    status: PaymentStatus
    refunded_amount: Decimal


@dataclass
class WebhookEvent:
    gateway: str
    event_id: str
    raw_event_type: str
    event_type: str
    gateway_payment_id: str
    customer_id: str = ""
    amount: Decimal = ZERO
    net_amount: Decimal = ZERO
    status: PaymentStatus = PaymentStatus.PENDING
    gateway_raw_status: str = ""
    billing_type: str = ""
    paid_at: dt.datetime | None = None
    external_reference: str = ""
    raw_payload: bytes = b""
    received_at: dt.datetime = field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))


def to_decimal(value) -> Decimal:
    if value is None or value == "":
        return ZERO
    try:
        return round_money(Decimal(str(value)))
    except ArithmeticError:
        return ZERO
