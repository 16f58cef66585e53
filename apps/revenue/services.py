from decimal import Decimal

from django.db.models import Sum
from django.utils import timezone

from apps.gateways.registry import get_registry
from apps.gateways.types import ZERO, round_money
from core.exceptions import ValidationError

from .calculator import SplitBreakdown, calculate_split
from .models import RevenueSplit

INVALID_STATUS = "invalid status: must be 'pending', 'processed', or 'failed'"


def instructor_total_earnings(instructor_id: str) -> Decimal:
    """Sum of instructor shares already paid out."""
    total = RevenueSplit.objects.filter(instructor_id=instructor_id, status="processed").aggregate(
        total=Sum("instructor_amount")
    )["total"]
    return round_money(total or ZERO)


def update_split_status(split: RevenueSplit, new_status: str) -> RevenueSplit:
    valid = {choice for choice, _ in RevenueSplit.STATUS_CHOICES}
    if new_status not in valid:
        raise ValidationError(INVALID_STATUS)
    split.status = new_status
    fields = ["status"]
    if new_status == "processed":
        split.processed_at = timezone.now()
        fields.append("processed_at")
    split.save(update_fields=fields)
    return split


def simulate_split(value, method: str = "pix") -> SplitBreakdown:
    value = round_money(value)
    if value <= ZERO:
        raise ValidationError("value must be greater than zero")
    return calculate_split(value, method or "pix", get_registry().get_active().get_fees())
