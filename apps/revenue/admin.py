from django.contrib import admin

from .models import RevenueSplit


@admin.register(RevenueSplit)
class RevenueSplitAdmin(admin.ModelAdmin):
    list_display = ("id", "enrollment", "instructor_id", "net_amount", "instructor_amount", "platform_amount", "status")
    search_fields = ("instructor_id", "payment_id", "enrollment__student_name")
    list_filter = ("status", "payment_method")
    readonly_fields = ("created_at",)
