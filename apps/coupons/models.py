import uuid
from decimal import Decimal

from django.db import models
from django.utils import timezone

from apps.gateways.types import ZERO, round_money


class Coupon(models.Model):
    DISCOUNT_TYPE_CHOICES = [
        ("percentage", "Percentage"),
        ("fixed", "Fixed amount"),
    ]

    APPLIES_TO_CHOICES = [
        ("all_courses", "All courses"),
        ("specific_courses", "Specific courses"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=50, unique=True)
    description = models.CharField(max_length=255, blank=True, default="")
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPE_CHOICES)
    discount_value = models.DecimalField(max_digits=12, decimal_places=2)
    max_discount_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    minimum_order_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    max_uses_per_user = models.PositiveIntegerField(default=1)
    current_uses = models.PositiveIntegerField(default=0)
    applies_to = models.CharField(max_length=20, choices=APPLIES_TO_CHOICES, default="all_courses")
    course_ids = models.JSONField(default=list, blank=True)
    starts_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.code

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    def is_within_window(self, now=None) -> bool:
        now = now or timezone.now()
        if self.starts_at and now < self.starts_at:
            return False
        if self.expires_at and now > self.expires_at:
            return False
        return True

    def applies_to_course(self, course_id: str) -> bool:
        if self.applies_to != "specific_courses":
            return True
        return str(course_id) in {str(c) for c in (self.course_ids or [])}

    def calculate_discount(self, amount, now=None) -> Decimal:
        """
        Discount this coupon grants on ``amount``, or zero when it does not
        apply (inactive, exhausted, out of its window or below the minimum).
        """
        amount = round_money(amount)
        if not self.is_active:
            return ZERO
        if self.minimum_order_amount and amount < self.minimum_order_amount:
            return ZERO
        if self.max_uses is not None and self.current_uses >= self.max_uses:
            return ZERO
        if not self.is_within_window(now):
            return ZERO

        if self.discount_type == "percentage":
            discount = round_money(amount * self.discount_value / Decimal("100"))
            if self.max_discount_amount and discount > self.max_discount_amount:
                discount = self.max_discount_amount
        else:
            discount = self.discount_value

        return round_money(min(discount, amount))


class CouponUsage(models.Model):
    coupon = models.ForeignKey(Coupon, on_delete=models.PROTECT, related_name="usages")
    user_id = models.CharField(max_length=64, db_index=True)
    enrollment = models.ForeignKey(
        "enrollments.Enrollment",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="coupon_usages",
    )
    original_amount = models.DecimalField(max_digits=12, decimal_places=2)
    discount_applied = models.DecimalField(max_digits=12, decimal_places=2)
    final_amount = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)
