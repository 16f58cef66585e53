import uuid

from django.db import models


class Enrollment(models.Model):
    """
    A student's purchase of a course.

    Created by checkout; afterwards only payment reconciliation changes it.
    Enrollments are cancelled, never deleted.
    """

    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("active", "Active"),
        ("completed", "Completed"),
        ("cancelled", "Cancelled"),
        ("expired", "Expired"),
    ]

    PAYMENT_STATUS_CHOICES = [
        ("pending", "Pending"),
        ("confirmed", "Confirmed"),
        ("overdue", "Overdue"),
        ("refunded", "Refunded"),
        ("cancelled", "Cancelled"),
        ("chargeback", "Chargeback"),
    ]

    PAYMENT_METHOD_CHOICES = [
        ("pix", "PIX"),
        ("boleto", "Boleto"),
        ("card", "Card"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    student_id = models.CharField(max_length=64, db_index=True)
    student_name = models.CharField(max_length=255)
    student_email = models.EmailField()
    student_document = models.CharField(max_length=20, blank=True, default="")
    student_phone = models.CharField(max_length=20, blank=True, default="")
    course_id = models.CharField(max_length=64, db_index=True)
    course_name = models.CharField(max_length=255)
    instructor_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    instructor_name = models.CharField(max_length=255, blank=True, default="")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    final_amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES)
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default="pending")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    progress = models.PositiveSmallIntegerField(default=0)
    gateway_customer_id = models.CharField(max_length=100, blank=True, default="")
    # Legacy single-charge reference, still used to join webhooks
    gateway_payment_id = models.CharField(max_length=100, blank=True, default="", db_index=True)
    enrollment_date = models.DateTimeField(auto_now_add=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.student_name} - {self.course_name}"
