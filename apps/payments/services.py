"""
Webhook reconciliation.

A canonical ``WebhookEvent`` (from any provider adapter) is applied to the
matching Payment/Enrollment rows through a fixed transition table. Every
transition runs inside one ``transaction.atomic()`` block and is safe to
repeat: providers deliver at least once and in no particular order.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from apps.enrollments.models import Enrollment
from apps.gateways.base import PaymentGateway
from apps.gateways.types import ZERO, EventType, WebhookEvent, round_money
from apps.revenue.calculator import calculate_split
from apps.revenue.models import RevenueSplit
from core.exceptions import MoneyInvariantError, ReconciliationError

from .models import Payment, PaymentTransaction

logger = logging.getLogger(__name__)


@dataclass
class RequestMeta:
    ip_address: str | None = None
    user_agent: str = ""
    triggered_by: str = ""

    @classmethod
    def from_request(cls, request) -> "RequestMeta":
        user = getattr(request, "user", None)
        return cls(
            ip_address=request.META.get("REMOTE_ADDR"),
            user_agent=request.META.get("HTTP_USER_AGENT", ""),
            triggered_by=str(user.pk) if user is not None and user.is_authenticated else "",
        )


@dataclass
class ReconcileResult:
    event_type: str
    payment: Payment | None
    enrollment: Enrollment | None
    revenue_split: RevenueSplit | None = None
    split_created: bool = False


def decode_payload(raw: bytes | str | dict | None):
    if raw is None or isinstance(raw, dict):
        return raw
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return {"raw": raw}


def log_transaction(
    payment: Payment | None,
    *,
    event_type: str,
    event_source: str,
    previous_status: str = "",
    new_status: str = "",
    gateway_event_id: str = "",
    amount=None,
    description: str = "",
    raw_payload=None,
    meta: RequestMeta | None = None,
) -> PaymentTransaction | None:
    """
    Append an audit entry. Failures are logged and swallowed: the audit
    trail never fails the operation it describes.
    """
    meta = meta or RequestMeta()
    try:
        with transaction.atomic():
            return PaymentTransaction.objects.create(
                payment=payment,
                previous_status=previous_status or "",
                new_status=new_status or "",
                event_source=event_source,
                event_type=event_type,
                gateway_event_id=gateway_event_id or "",
                amount=amount,
                description=description,
                raw_payload=decode_payload(raw_payload),
                ip_address=meta.ip_address or None,
                user_agent=meta.user_agent or "",
                triggered_by=meta.triggered_by or "",
            )
    except DatabaseError:
        logger.exception("Failed to write %s payment transaction for %s", event_type, payment)
        return None


@dataclass
class _Context:
    event: WebhookEvent
    gateway: PaymentGateway
    payment: Payment | None
    enrollment: Enrollment | None
    source: str
    meta: RequestMeta
    now: datetime
    revenue_split: RevenueSplit | None = None
    split_created: bool = False


def _set_payment_status(ctx: _Context, new_status: str, **fields) -> None:
    payment = ctx.payment
    if payment is None:
        return
    previous = payment.status
    payment.status = new_status
    for name, value in fields.items():
        setattr(payment, name, value)
    payment.save(update_fields=["status", "updated_at", *fields])
    if previous != new_status:
        log_transaction(
            payment,
            event_type="status_changed",
            event_source=ctx.source,
            previous_status=previous,
            new_status=new_status,
            gateway_event_id=ctx.event.raw_event_type,
            amount=ctx.event.amount,
            meta=ctx.meta,
        )


def _set_enrollment(ctx: _Context, **fields) -> None:
    enrollment = ctx.enrollment
    if enrollment is None:
        return
    for name, value in fields.items():
        setattr(enrollment, name, value)
    enrollment.save(update_fields=[*fields, "updated_at"])


def ensure_revenue_split(ctx: _Context) -> tuple[RevenueSplit | None, bool]:
    """
    Create the enrollment's split unless one already exists. Returns
    ``(None, False)`` when the charged amount cannot cover the gateway fee.
    """
    enrollment = ctx.enrollment
    existing = RevenueSplit.objects.filter(enrollment=enrollment).first()
    if existing:
        return existing, False

    payment = ctx.payment
    if payment is not None:
        # Split what was actually charged: gross minus any coupon discount
        amount = round_money(payment.gross_amount - payment.discount_amount)
        method = payment.payment_method
        payment_id = str(payment.id)
    else:
        amount = ctx.event.amount
        method = ctx.event.billing_type
        payment_id = ctx.event.gateway_payment_id

    try:
        breakdown = calculate_split(amount, method, ctx.gateway.get_fees())
    except MoneyInvariantError as exc:
        logger.error("No revenue split for enrollment %s: %s", enrollment.id, exc.message)
        return None, False

    try:
        with transaction.atomic():
            split = RevenueSplit.objects.create(
                enrollment=enrollment,
                payment_id=payment_id,
                gross_amount=breakdown.gross_amount,
                net_amount=breakdown.net_amount,
                platform_fee=breakdown.platform_amount,
                payment_fee=breakdown.payment_fee,
                instructor_amount=breakdown.instructor_amount,
                platform_amount=breakdown.platform_amount,
                instructor_id=enrollment.instructor_id,
                payment_method=method,
                status="pending",
            )
    except IntegrityError:
        # A concurrent delivery of the same confirmation won the race
        return RevenueSplit.objects.get(enrollment=enrollment), False
    return split, True


def apply_confirmed(ctx: _Context) -> None:
    event = ctx.event
    if ctx.payment is not None:
        fields = {"paid_at": event.paid_at or ctx.payment.paid_at or ctx.now}
        if event.net_amount > ZERO:
            fields["net_amount"] = event.net_amount
        _set_payment_status(ctx, "confirmed", **fields)
    if ctx.enrollment is None:
        return
    _set_enrollment(ctx, status="active", payment_status="confirmed")
    ctx.revenue_split, ctx.split_created = ensure_revenue_split(ctx)
    if ctx.split_created:
        logger.info("Revenue split %s created for enrollment %s", ctx.revenue_split.id, ctx.enrollment.id)


def apply_overdue(ctx: _Context) -> None:
    _set_payment_status(ctx, "overdue")
    _set_enrollment(ctx, payment_status="overdue")


def apply_refunded(ctx: _Context) -> None:
    if ctx.payment is not None:
        _set_payment_status(
            ctx,
            "refunded",
            refunded_amount=ctx.event.amount,
            refunded_at=ctx.payment.refunded_at or ctx.now,
        )
    _set_enrollment(ctx, status="cancelled", payment_status="refunded")


def apply_deleted(ctx: _Context) -> None:
    if ctx.payment is not None:
        _set_payment_status(ctx, "cancelled", cancelled_at=ctx.payment.cancelled_at or ctx.now)
    _set_enrollment(ctx, status="cancelled")


def apply_chargeback(ctx: _Context) -> None:
    _set_payment_status(ctx, "chargeback")
    _set_enrollment(ctx, payment_status="chargeback")


TRANSITIONS: dict[str, Callable[[_Context], None]] = {
    EventType.PAYMENT_CONFIRMED.value: apply_confirmed,
    EventType.PAYMENT_OVERDUE.value: apply_overdue,
    EventType.PAYMENT_REFUNDED.value: apply_refunded,
    EventType.PAYMENT_DELETED.value: apply_deleted,
    EventType.PAYMENT_CHARGEBACK.value: apply_chargeback,
}


def find_targets(event: WebhookEvent) -> tuple[Payment | None, Enrollment | None]:
    payment = (
        Payment.objects.select_related("enrollment")
        .filter(gateway=event.gateway, gateway_payment_id=event.gateway_payment_id)
        .first()
    )
    enrollment = Enrollment.objects.filter(gateway_payment_id=event.gateway_payment_id).first()
    if enrollment is None and payment is not None:
        enrollment = payment.enrollment
    return payment, enrollment


def reconcile_event(
    event: WebhookEvent,
    gateway: PaymentGateway,
    *,
    source: str = "webhook",
    meta: RequestMeta | None = None,
) -> ReconcileResult | None:
    """
    Apply ``event`` to persisted state. Returns ``None`` when there is
    nothing to do (unhandled event type or unknown payment).
    """
    transition = TRANSITIONS.get(event.event_type)
    if transition is None:
        logger.info(
            "Ignoring %s event %r for payment %s",
            event.gateway,
            event.event_type,
            event.gateway_payment_id,
        )
        return None

    try:
        payment, enrollment = find_targets(event)
    except DatabaseError as exc:
        raise ReconciliationError(f"failed to load payment {event.gateway_payment_id}: {exc}") from exc

    if payment is None and enrollment is None:
        logger.info(
            "No payment or enrollment found for %s payment %s, nothing to reconcile",
            event.gateway,
            event.gateway_payment_id,
        )
        return None

    meta = meta or RequestMeta()
    if source == "webhook":
        log_transaction(
            payment,
            event_type="webhook_received",
            event_source=source,
            new_status=event.status.value,
            gateway_event_id=event.raw_event_type,
            amount=event.amount,
            description=f"{event.gateway} {event.event_type}",
            raw_payload=event.raw_payload,
            meta=meta,
        )

    try:
        with transaction.atomic():
            if payment is not None:
                payment = Payment.objects.select_for_update().get(pk=payment.pk)
            if enrollment is not None:
                enrollment = Enrollment.objects.select_for_update().get(pk=enrollment.pk)
            ctx = _Context(
                event=event,
                gateway=gateway,
                payment=payment,
                enrollment=enrollment,
                source=source,
                meta=meta,
                now=timezone.now(),
            )
            transition(ctx)
    except DatabaseError as exc:
        raise ReconciliationError(
            f"failed to apply {event.event_type} to payment {event.gateway_payment_id}: {exc}"
        ) from exc

    logger.info(
        "Reconciled %s %s for payment %s (enrollment %s)",
        event.gateway,
        event.event_type,
        event.gateway_payment_id,
        enrollment.id if enrollment else None,
    )
    return ReconcileResult(
        event_type=event.event_type,
        payment=payment,
        enrollment=enrollment,
        revenue_split=ctx.revenue_split,
        split_created=ctx.split_created,
    )
