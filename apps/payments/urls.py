from django.urls import path
from rest_framework.routers import DefaultRouter

from .views import EnrollmentPaymentsView, PaymentViewSet

router = DefaultRouter()
router.register("", PaymentViewSet, basename="payment")

urlpatterns = [
    path("enrollment/<uuid:enrollment_id>/", EnrollmentPaymentsView.as_view(), name="payments-by-enrollment"),
] + router.urls
