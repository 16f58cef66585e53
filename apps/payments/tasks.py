import datetime as dt
import logging

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from apps.gateways.registry import get_registry
from apps.gateways.types import EventType, PaymentStatus, WebhookEvent
from core.exceptions import PaymentError

from .models import Payment
from .services import reconcile_event

logger = logging.getLogger(__name__)

STATUS_EVENTS = {
    PaymentStatus.CONFIRMED: EventType.PAYMENT_CONFIRMED,
    PaymentStatus.RECEIVED: EventType.PAYMENT_CONFIRMED,
    PaymentStatus.OVERDUE: EventType.PAYMENT_OVERDUE,
    PaymentStatus.REFUNDED: EventType.PAYMENT_REFUNDED,
    PaymentStatus.CANCELLED: EventType.PAYMENT_DELETED,
    PaymentStatus.CHARGEBACK: EventType.PAYMENT_CHARGEBACK,
}


@shared_task
def poll_pending_payments() -> int:
    """Pull live status for stale pending payments whose webhook never arrived."""
    cutoff = timezone.now() - dt.timedelta(minutes=settings.PAYMENT_POLL_MIN_AGE_MINUTES)
    registry = get_registry()
    reconciled = 0
    pending = Payment.objects.filter(status="pending", created_at__lte=cutoff).exclude(gateway_payment_id="")
    for payment in pending:
        try:
            gateway = registry.get(payment.gateway)
            live = gateway.get_payment(payment.gateway_payment_id)
        except PaymentError as exc:
            logger.warning("Could not poll %s payment %s: %s", payment.gateway, payment.gateway_payment_id, exc)
            continue

        event_type = STATUS_EVENTS.get(live.status)
        if event_type is None or live.status.value == payment.status:
            continue

        event = WebhookEvent(
            gateway=gateway.name,
            event_id=f"poll:{payment.gateway_payment_id}:{live.status.value}",
            raw_event_type=live.gateway_raw_status,
            event_type=event_type.value,
            gateway_payment_id=live.gateway_payment_id or payment.gateway_payment_id,
            amount=live.amount,
            net_amount=live.net_amount,
            status=live.status,
            gateway_raw_status=live.gateway_raw_status,
            billing_type=live.billing_type,
            external_reference=live.external_reference,
        )
        try:
            reconcile_event(event, gateway, source="scheduler")
        except PaymentError as exc:
            logger.error("Failed to reconcile polled payment %s: %s", payment.gateway_payment_id, exc)
            continue
        reconciled += 1
    return reconciled
