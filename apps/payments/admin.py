from django.contrib import admin

from .models import Payment, PaymentTransaction


class PaymentTransactionInline(admin.TabularInline):
    model = PaymentTransaction
    extra = 0
    can_delete = False
    fields = ("event_type", "event_source", "previous_status", "new_status", "gateway_event_id", "amount", "created_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "gateway", "gateway_payment_id", "payment_method", "gross_amount", "net_amount", "status", "created_at")
    search_fields = ("gateway_payment_id", "payer_email", "enrollment__student_name")
    list_filter = ("gateway", "status", "payment_method")
    inlines = [PaymentTransactionInline]


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ("payment", "event_type", "event_source", "previous_status", "new_status", "created_at")
    list_filter = ("event_type", "event_source")
    search_fields = ("payment__gateway_payment_id", "gateway_event_id")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
