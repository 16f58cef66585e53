from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal

from django.db.models import F

from apps.gateways.types import ZERO, round_money
from core.exceptions import NotFoundError, ValidationError

from .models import Coupon, CouponUsage

INVALID_CODE = "invalid coupon code"
USAGE_LIMIT_EXCEEDED = "coupon usage limit exceeded for this user"
NOT_APPLICABLE = "coupon is not applicable to this order"
NOT_FOR_COURSE = "coupon is not valid for this course"


@dataclass
class CouponValidation:
    valid: bool
    message: str
    coupon_id: str = ""
    code: str = ""
    discount_type: str = ""
    discount_value: Decimal = ZERO
    discount_amount: Decimal = ZERO
    final_amount: Decimal = ZERO

    def as_dict(self) -> dict:
        return asdict(self)


def find_coupon(code: str) -> Coupon:
    coupon = Coupon.objects.filter(code=(code or "").strip().upper()).first()
    if coupon is None:
        raise NotFoundError(INVALID_CODE)
    return coupon


def usage_count(coupon: Coupon, user_id: str) -> int:
    return CouponUsage.objects.filter(coupon=coupon, user_id=user_id).count()


def apply_coupon(code: str, amount, user_id: str, course_id: str = "") -> tuple[Coupon, Decimal]:
    """
    Resolve ``code`` for this user and order, returning the coupon and the
    discount it grants. Raises when the coupon cannot be used.
    """
    coupon = find_coupon(code)
    if user_id and coupon.max_uses_per_user and usage_count(coupon, user_id) >= coupon.max_uses_per_user:
        raise ValidationError(USAGE_LIMIT_EXCEEDED)
    if course_id and not coupon.applies_to_course(course_id):
        raise ValidationError(NOT_FOR_COURSE)
    discount = coupon.calculate_discount(amount)
    if discount <= ZERO:
        raise ValidationError(NOT_APPLICABLE)
    return coupon, discount


def validate_coupon(code: str, amount, user_id: str = "", course_id: str = "") -> CouponValidation:
    amount = round_money(amount)
    try:
        coupon, discount = apply_coupon(code, amount, user_id, course_id)
    except (NotFoundError, ValidationError) as exc:
        return CouponValidation(valid=False, message=exc.message, final_amount=amount)

    return CouponValidation(
        valid=True,
        message="coupon applied",
        coupon_id=str(coupon.id),
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        discount_amount=discount,
        final_amount=round_money(amount - discount),
    )


def record_usage(coupon: Coupon, *, user_id: str, enrollment, original_amount, discount, final_amount) -> CouponUsage:
    """Append a usage row and bump the counter; call inside the checkout transaction."""
    usage = CouponUsage.objects.create(
        coupon=coupon,
        user_id=user_id,
        enrollment=enrollment,
        original_amount=original_amount,
        discount_applied=discount,
        final_amount=final_amount,
    )
    Coupon.objects.filter(pk=coupon.pk).update(current_uses=F("current_uses") + 1)
    return usage
