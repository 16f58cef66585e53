"""
Checkout orchestration.

A checkout validates the order, applies any coupon, upserts the gateway
customer and then, inside one transaction, creates the enrollment, the
gateway charge, the payment row and the coupon usage. If the gateway call
fails, the transaction is rolled back and nothing is kept.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import asdict, dataclass
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.coupons.models import Coupon
from apps.coupons.services import apply_coupon, record_usage
from apps.gateways.registry import GatewayRegistry, get_registry
from apps.gateways.types import (
    PAYMENT_METHODS,
    ZERO,
    CardData,
    CreatePaymentRequest,
    CustomerRequest,
    PaymentResponse,
    round_money,
)
from apps.payments.models import Payment
from apps.payments.services import RequestMeta, log_transaction
from apps.revenue.calculator import SplitBreakdown, calculate_split
from core.exceptions import MoneyInvariantError, NotFoundError, ProviderError, ValidationError

from .models import Enrollment

logger = logging.getLogger(__name__)

INVALID_METHOD = "invalid payment method. Use: pix, boleto, or card"
CARD_REQUIRED = "card number and CVV are required for card payments"
NOTHING_TO_CHARGE = "amount after discount must be greater than zero"


@dataclass
class CheckoutRequest:
    student_id: str
    student_name: str
    student_email: str
    course_id: str
    course_name: str
    amount: Decimal
    payment_method: str
    student_document: str = ""
    student_phone: str = ""
    instructor_id: str = ""
    instructor_name: str = ""
    discount_code: str = ""
    card_number: str = ""
    card_exp_month: str = ""
    card_exp_year: str = ""
    card_cvv: str = ""
    holder_name: str = ""
    holder_email: str = ""
    holder_document: str = ""
    holder_postal_code: str = ""
    holder_address_number: str = ""
    holder_phone: str = ""
    installments: int = 1

    def card(self) -> CardData | None:
        if self.payment_method != "card":
            return None
        return CardData(
            number=self.card_number,
            cvv=self.card_cvv,
            exp_month=self.card_exp_month,
            exp_year=self.card_exp_year,
            holder_name=self.holder_name or self.student_name,
            holder_email=self.holder_email or self.student_email,
            holder_document=self.holder_document or self.student_document,
            holder_postal_code=self.holder_postal_code,
            holder_address_number=self.holder_address_number,
            holder_phone=self.holder_phone or self.student_phone,
        )


@dataclass
class CheckoutResult:
    enrollment_id: str
    status: str
    gateway: str
    payment_id: str = ""
    gateway_payment_id: str = ""
    pix_qr_code: str = ""
    pix_copy_paste: str = ""
    pix_expiration_date: str = ""
    boleto_url: str = ""
    boleto_bar_code: str = ""
    boleto_due_date: str = ""
    card_receipt_url: str = ""
    invoice_url: str = ""
    gross_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    payment_fee: Decimal = ZERO
    net_amount: Decimal = ZERO
    instructor_amount: Decimal = ZERO
    platform_amount: Decimal = ZERO
    coupon_code: str = ""

    def as_dict(self) -> dict:
        return asdict(self)

    def apply_artifacts(self, response: PaymentResponse) -> None:
        if response.pix:
            self.pix_qr_code = response.pix.qr_code or self.pix_qr_code
            self.pix_copy_paste = response.pix.copy_paste or self.pix_copy_paste
            self.pix_expiration_date = response.pix.expiration_date or self.pix_expiration_date
        if response.boleto:
            self.boleto_url = response.boleto.url or self.boleto_url
            self.boleto_bar_code = response.boleto.bar_code or self.boleto_bar_code
            self.boleto_due_date = response.boleto.due_date or self.boleto_due_date
        self.card_receipt_url = response.receipt_url or self.card_receipt_url
        self.invoice_url = response.invoice_url or self.invoice_url

    def apply_preview(self, breakdown: SplitBreakdown) -> None:
        """Display-only split preview; nothing is persisted."""
        self.payment_fee = breakdown.payment_fee
        self.net_amount = breakdown.net_amount
        self.instructor_amount = breakdown.instructor_amount
        self.platform_amount = breakdown.platform_amount


def validate_request(request: CheckoutRequest) -> None:
    if request.payment_method not in PAYMENT_METHODS:
        raise ValidationError(INVALID_METHOD)
    if request.payment_method == "card" and (not request.card_number or not request.card_cvv):
        raise ValidationError(CARD_REQUIRED)
    if request.amount is None or request.amount <= ZERO:
        raise ValidationError("amount must be greater than zero")


def _due_date() -> dt.date:
    return timezone.localdate() + dt.timedelta(days=settings.CHECKOUT_DUE_DAYS)


def create_checkout(
    request: CheckoutRequest,
    *,
    registry: GatewayRegistry | None = None,
    meta: RequestMeta | None = None,
) -> CheckoutResult:
    validate_request(request)
    registry = registry or get_registry()
    gateway = registry.get_active()

    gross = round_money(request.amount)
    discount = ZERO
    coupon: Coupon | None = None
    if request.discount_code:
        try:
            coupon, discount = apply_coupon(request.discount_code, gross, request.student_id, request.course_id)
        except NotFoundError as exc:
            raise ValidationError(exc.message) from exc
    final_amount = round_money(gross - discount)

    method = request.payment_method
    if final_amount <= ZERO:
        raise ValidationError(NOTHING_TO_CHARGE)
    fee = gateway.calculate_fee(final_amount, method)
    if fee >= final_amount:
        raise ValidationError(f"amount {final_amount} does not cover the {method} fee of {fee}")
    preview = calculate_split(final_amount, method, gateway.get_fees())
    due_date = _due_date()

    with transaction.atomic():
        customer_id = gateway.create_customer(
            CustomerRequest(
                name=request.student_name,
                email=request.student_email,
                document=request.student_document,
                phone=request.student_phone,
            )
        )

        enrollment = Enrollment.objects.create(
            student_id=request.student_id,
            student_name=request.student_name,
            student_email=request.student_email,
            student_document=request.student_document,
            student_phone=request.student_phone,
            course_id=request.course_id,
            course_name=request.course_name,
            instructor_id=request.instructor_id,
            instructor_name=request.instructor_name,
            amount=gross,
            discount_amount=discount,
            final_amount=final_amount,
            payment_method=method,
            payment_status="pending",
            status="pending",
            gateway_customer_id=customer_id,
        )

        charge = gateway.create_payment(
            CreatePaymentRequest(
                customer_id=customer_id,
                amount=final_amount,
                description=f"Matrícula: {request.course_name}",
                due_date=due_date,
                external_reference=str(enrollment.id),
                card=request.card(),
                installments=max(request.installments or 1, 1),
                payer_email=request.student_email,
            ),
            method,
        )
        if not charge.gateway_payment_id:
            raise ProviderError(f"{gateway.name} returned a charge without an id")

        enrollment.gateway_payment_id = charge.gateway_payment_id
        enrollment.save(update_fields=["gateway_payment_id", "updated_at"])

        payment = Payment.objects.create(
            enrollment=enrollment,
            payer_name=request.student_name,
            payer_email=request.student_email,
            payer_document=request.student_document,
            gross_amount=gross,
            discount_amount=discount,
            net_amount=final_amount,
            gateway_fee=fee,
            payment_method=method,
            gateway=gateway.name,
            gateway_payment_id=charge.gateway_payment_id,
            gateway_customer_id=customer_id,
            invoice_url=charge.invoice_url,
            installment_count=max(request.installments or 1, 1),
            status="pending",
            coupon=coupon,
            due_date=due_date,
        )

        if coupon is not None:
            record_usage(
                coupon,
                user_id=request.student_id,
                enrollment=enrollment,
                original_amount=gross,
                discount=discount,
                final_amount=final_amount,
            )

    log_transaction(
        payment,
        event_type="created",
        event_source="api",
        new_status=payment.status,
        gateway_event_id="checkout_created",
        amount=final_amount,
        description=f"Checkout {method} via {gateway.name}",
        meta=meta,
    )
    logger.info(
        "Checkout created: enrollment=%s payment=%s gateway=%s method=%s amount=%s",
        enrollment.id,
        charge.gateway_payment_id,
        gateway.name,
        method,
        final_amount,
    )

    result = CheckoutResult(
        enrollment_id=str(enrollment.id),
        payment_id=str(payment.id),
        gateway_payment_id=charge.gateway_payment_id,
        status=charge.status.value,
        gateway=gateway.name,
        gross_amount=gross,
        discount_amount=discount,
        coupon_code=coupon.code if coupon else "",
    )
    result.apply_artifacts(charge)
    if method == "boleto" and not result.boleto_due_date:
        result.boleto_due_date = due_date.isoformat()
    result.apply_preview(preview)
    return result


def get_checkout_status(enrollment_id, *, registry: GatewayRegistry | None = None) -> CheckoutResult:
    """
    Current state of a checkout. The provider is polled live when a charge
    id is known, since webhooks may lag behind.
    """
    enrollment = Enrollment.objects.filter(pk=enrollment_id).first()
    if enrollment is None:
        raise NotFoundError("enrollment not found")

    registry = registry or get_registry()
    payment = enrollment.payments.order_by("-created_at").first()
    result = CheckoutResult(
        enrollment_id=str(enrollment.id),
        status=enrollment.payment_status,
        gateway="",
        gross_amount=enrollment.amount,
        discount_amount=enrollment.discount_amount,
    )

    if payment is not None:
        result.payment_id = str(payment.id)
        result.status = payment.status
        result.gateway = payment.gateway
        result.gateway_payment_id = payment.gateway_payment_id
        result.gross_amount = payment.gross_amount
        result.discount_amount = payment.discount_amount
        result.invoice_url = payment.invoice_url
        if payment.coupon_id:
            result.coupon_code = payment.coupon.code
        gateway_name, gateway_payment_id = payment.gateway, payment.gateway_payment_id
    else:
        gateway_name, gateway_payment_id = "", enrollment.gateway_payment_id
        if gateway_payment_id:
            result.gateway_payment_id = gateway_payment_id

    try:
        gateway = registry.get(gateway_name) if gateway_name else registry.get_active()
    except NotFoundError:
        logger.warning("Gateway %s for enrollment %s is not registered", gateway_name, enrollment.id)
        gateway = registry.get_active()
    result.gateway = result.gateway or gateway.name

    if gateway_payment_id:
        try:
            live = gateway.get_payment(gateway_payment_id)
        except ProviderError as exc:
            logger.warning("Live status poll failed for %s payment %s: %s", gateway.name, gateway_payment_id, exc)
        else:
            result.status = live.status.value
            if payment is None:
                result.payment_id = live.gateway_payment_id
            result.apply_artifacts(live)

    try:
        result.apply_preview(
            calculate_split(enrollment.final_amount, enrollment.payment_method or "pix", gateway.get_fees())
        )
    except MoneyInvariantError as exc:
        logger.warning("No split preview for enrollment %s: %s", enrollment.id, exc.message)
    return result
