from django.urls import path

from .views import CheckoutStatusView, CheckoutView

urlpatterns = [
    path("", CheckoutView.as_view(), name="checkout"),
    path("<uuid:enrollment_id>/status/", CheckoutStatusView.as_view(), name="checkout-status"),
]
