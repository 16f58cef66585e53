from django.contrib import admin

from .models import Enrollment


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ("id", "student_name", "course_name", "final_amount", "payment_method", "payment_status", "status")
    search_fields = ("student_name", "student_email", "course_name", "gateway_payment_id")
    list_filter = ("status", "payment_status", "payment_method")
