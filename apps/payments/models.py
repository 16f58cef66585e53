import uuid

from django.db import models


class Payment(models.Model):
    """One gateway charge attempt for an enrollment."""

    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("confirmed", "Confirmed"),
        ("received", "Received"),
        ("overdue", "Overdue"),
        ("refunded", "Refunded"),
        ("failed", "Failed"),
        ("cancelled", "Cancelled"),
        ("chargeback", "Chargeback"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    enrollment = models.ForeignKey(
        "enrollments.Enrollment",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    payer_name = models.CharField(max_length=255, blank=True, default="")
    payer_email = models.EmailField(blank=True, default="")
    payer_document = models.CharField(max_length=20, blank=True, default="")
    gross_amount = models.DecimalField(max_digits=12, decimal_places=2)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    net_amount = models.DecimalField(max_digits=12, decimal_places=2)
    gateway_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    refunded_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    payment_method = models.CharField(max_length=20)
    gateway = models.CharField(max_length=30)
    gateway_payment_id = models.CharField(max_length=100)
    gateway_customer_id = models.CharField(max_length=100, blank=True, default="")
    invoice_url = models.URLField(max_length=500, blank=True, default="")
    installment_count = models.PositiveSmallIntegerField(default=1)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    coupon = models.ForeignKey(
        "coupons.Coupon",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="payments",
    )
    due_date = models.DateField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("gateway", "gateway_payment_id")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.gateway}:{self.gateway_payment_id} ({self.status})"


class PaymentTransaction(models.Model):
    """Append-only audit trail of everything observed about a payment."""

    EVENT_SOURCE_CHOICES = [
        ("webhook", "Webhook"),
        ("manual", "Manual"),
        ("system", "System"),
        ("scheduler", "Scheduler"),
        ("api", "API"),
    ]

    EVENT_TYPE_CHOICES = [
        ("created", "Created"),
        ("status_changed", "Status changed"),
        ("webhook_received", "Webhook received"),
        ("refund_requested", "Refund requested"),
        ("error", "Error"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment = models.ForeignKey(
        Payment,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    previous_status = models.CharField(max_length=20, blank=True, default="")
    new_status = models.CharField(max_length=20, blank=True, default="")
    event_source = models.CharField(max_length=20, choices=EVENT_SOURCE_CHOICES)
    event_type = models.CharField(max_length=30, choices=EVENT_TYPE_CHOICES)
    gateway_event_id = models.CharField(max_length=100, blank=True, default="")
    amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    description = models.TextField(blank=True, default="")
    raw_payload = models.JSONField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default="")
    triggered_by = models.CharField(max_length=100, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("payment transactions are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("payment transactions are append-only")
