from django.contrib import admin

from .models import Coupon, CouponUsage


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ("code", "discount_type", "discount_value", "current_uses", "max_uses", "is_active", "expires_at")
    search_fields = ("code", "description")
    list_filter = ("discount_type", "is_active", "applies_to")
    readonly_fields = ("current_uses",)


@admin.register(CouponUsage)
class CouponUsageAdmin(admin.ModelAdmin):
    list_display = ("coupon", "user_id", "enrollment", "discount_applied", "final_amount", "created_at")
    search_fields = ("coupon__code", "user_id")
